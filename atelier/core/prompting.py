"""Image prompt preparation: product data extraction, assembly and templated fallback."""
from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal, Mapping

import yaml

from atelier.core.errors import InferenceError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

PhotographyCategory = Literal["wearable", "footwear", "accessories", "non_wearable"]

COMPONENT_FIELDS: tuple[str, ...] = (
    "productDescription",
    "frontPrefix",
    "backPrefix",
    "modelPrefix",
    "frontDetails",
    "backDetails",
    "modelDetails",
)

_HANDLED_KEYS = {
    "article_product_type",
    "article_product_group",
    "article_customer_segment",
    "product_group",
    "customer_segment",
}
_FALLBACK_VISUAL_KEYS = (
    "specific_color",
    "color_family",
    "color",
    "material",
    "fabric_type_base",
    "fabric",
    "fit",
    "style",
)
_ONTOLOGY_KEY = re.compile(r"^ontology_([^_]+(?:-[^_]+)*)_")


@lru_cache(maxsize=1)
def load_prompt_profiles() -> dict:
    path = CONFIG_DIR / "prompt_profiles.yaml"
    with path.open("r", encoding="utf-8") as fp:
        return yaml.safe_load(fp)


@dataclass(slots=True)
class ModelProfile:
    gender: str
    age_group: str
    descriptor: str


@dataclass(slots=True)
class ProductData:
    product_group: str | None
    product_type: str
    customer_segment: str | None
    photography_category: PhotographyCategory
    model_profile: ModelProfile
    attributes: dict[str, str]


@dataclass(slots=True)
class PromptComponents:
    product_description: str
    front_prefix: str
    back_prefix: str
    model_prefix: str
    front_details: str
    back_details: str
    model_details: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "PromptComponents":
        missing = [name for name in COMPONENT_FIELDS if not str(payload.get(name) or "").strip()]
        if missing:
            raise InferenceError(f"Invalid component structure: missing {', '.join(missing)}")
        return cls(
            product_description=str(payload["productDescription"]).strip(),
            front_prefix=str(payload["frontPrefix"]).strip(),
            back_prefix=str(payload["backPrefix"]).strip(),
            model_prefix=str(payload["modelPrefix"]).strip(),
            front_details=str(payload["frontDetails"]).strip(),
            back_details=str(payload["backDetails"]).strip(),
            model_details=str(payload["modelDetails"]).strip(),
        )


@dataclass(slots=True)
class PromptSet:
    front: str
    back: str
    model: str
    source: Literal["llm", "fallback"] = "llm"

    def for_view(self, view: str) -> str:
        return getattr(self, view)


# ----------------------------------------------------------------------
# attribute helpers
# ----------------------------------------------------------------------
def merge_attributes(
    locked: Mapping[str, str],
    predicted: Mapping[str, str],
    context: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge attribute maps; predicted wins over locked, locked over context."""

    merged: dict[str, str] = {}
    for source in (context or {}, locked, predicted):
        for key, value in source.items():
            merged[key] = value
    return merged


def public_attributes(attributes: Mapping[str, object]) -> dict[str, str]:
    """Drop internal keys (``_`` prefix) and non-string values."""

    return {key: value for key, value in attributes.items() if not key.startswith("_") and isinstance(value, str)}


def clean_attribute_key(key: str) -> str:
    if key.startswith("ontology_"):
        return _ONTOLOGY_KEY.sub("", key)
    if key.startswith("article_"):
        return key[len("article_"):]
    return key


def format_product_type(key: str) -> str:
    return "-".join(word[:1].upper() + word[1:].lower() for word in key.split("-"))


def extract_product_type(attributes: Mapping[str, str]) -> str:
    explicit = attributes.get("article_product_type")
    if explicit:
        return explicit

    counts: Counter[str] = Counter()
    for key in attributes:
        match = _ONTOLOGY_KEY.match(key)
        if match:
            counts[match.group(1)] += 1

    if not counts:
        logger.warning("Could not determine product type, using fallback")
        return "Fashion Item"
    if len(counts) > 1:
        logger.warning("Multiple product types found: %s; using most frequent", ", ".join(counts))
    product_type, _ = counts.most_common(1)[0]
    return format_product_type(product_type)


# ----------------------------------------------------------------------
# category & model profile
# ----------------------------------------------------------------------
def photography_category(product_group: str | None, product_type: str) -> PhotographyCategory:
    profiles = load_prompt_profiles()
    if product_group and product_group in profiles["product_group_categories"]:
        return profiles["product_group_categories"][product_group]

    lowered = product_type.lower()
    for category, keywords in profiles["category_keywords"].items():
        if any(keyword in lowered for keyword in keywords):
            return category
    return "wearable"


def model_profile(customer_segment: str | None) -> ModelProfile:
    profiles = load_prompt_profiles()
    default = ModelProfile(**profiles["default_model_profile"])
    if not customer_segment:
        return default
    # exact matches only; child models are never inferred from partial segment names
    entry = profiles["model_profiles"].get(customer_segment)
    if entry is None:
        logger.warning("Unknown customer segment %r, defaulting to adult model", customer_segment)
        return default
    return ModelProfile(**entry)


def preprocess_product_data(
    locked: Mapping[str, str],
    predicted: Mapping[str, str],
    context: Mapping[str, str] | None = None,
) -> ProductData:
    merged = public_attributes(merge_attributes(locked, predicted, context))

    product_group = merged.get("article_product_group") or merged.get("product_group")
    product_type = extract_product_type(merged)
    customer_segment = merged.get("article_customer_segment") or merged.get("customer_segment")

    attributes: dict[str, str] = {}
    for key, value in merged.items():
        if key in _HANDLED_KEYS or not value.strip():
            continue
        attributes[clean_attribute_key(key)] = value.strip()

    return ProductData(
        product_group=product_group,
        product_type=product_type,
        customer_segment=customer_segment,
        photography_category=photography_category(product_group, product_type),
        model_profile=model_profile(customer_segment),
        attributes=attributes,
    )


# ----------------------------------------------------------------------
# prompt text
# ----------------------------------------------------------------------
def build_system_prompt(category: PhotographyCategory, model_descriptor: str) -> str:
    profiles = load_prompt_profiles()
    lines = [
        "## MODEL PROFILE - STRICTLY ENFORCED",
        "",
        f'Use EXACTLY this model descriptor for ALL model view prompts: "{model_descriptor}"',
    ]
    if "adult" in model_descriptor:
        lines.append("This product requires an ADULT model. Do not use child models.")
    if "child" in model_descriptor:
        lines.append("This product requires a CHILD model.")
    lines.append(f'Example modelPrefix: "Fashion photography, full body shot of {model_descriptor} wearing"')
    return "\n\n".join(
        [profiles["base_system_prompt"].strip(), profiles["category_rules"][category].strip(), "\n".join(lines)]
    )


def build_user_prompt(data: ProductData) -> str:
    attribute_lines = "\n".join(f"- {key}: {value}" for key, value in data.attributes.items())
    return (
        "Generate prompt components for this product:\n\n"
        f"Product Group: {data.product_group or 'Unknown'}\n"
        f"Product Type: {data.product_type}\n"
        f"Customer Segment: {data.customer_segment or 'Unknown'}\n"
        f"Photography Category: {data.photography_category}\n\n"
        "All Attributes (include ALL in productDescription):\n"
        f"{attribute_lines or '- No specific attributes provided'}\n\n"
        "Return ONLY the JSON object with the structured components."
    )


def assemble_prompts(components: PromptComponents, *, source: Literal["llm", "fallback"] = "llm") -> PromptSet:
    suffix = load_prompt_profiles()["quality_suffix"]
    description = components.product_description
    return PromptSet(
        front=f"{components.front_prefix} {description}. {components.front_details}. {suffix}",
        back=f"{components.back_prefix} {description}. {components.back_details}. {suffix}",
        model=f"{components.model_prefix} {description}. {components.model_details}. {suffix}",
        source=source,
    )


def build_fallback_components(data: ProductData) -> PromptComponents:
    """Deterministic components used when the prompt model is unavailable."""

    profiles = load_prompt_profiles()
    attributes = data.attributes

    color = attributes.get("specific_color") or attributes.get("color_family") or attributes.get("color") or ""
    material = attributes.get("material") or attributes.get("fabric_type_base") or attributes.get("fabric") or ""
    parts = [color, material, attributes.get("fit", ""), attributes.get("style", ""), data.product_type]
    description = " ".join(part for part in parts if part)

    others = ", ".join(
        f"{key.replace('_', ' ')}: {value}"
        for key, value in attributes.items()
        if key not in _FALLBACK_VISUAL_KEYS
    )
    if others:
        description = f"{description} with {others}"

    template_key: str = data.photography_category
    if template_key == "wearable" and any(
        keyword in data.product_type.lower() for keyword in profiles["lower_body_keywords"]
    ):
        template_key = "wearable_lower_body"
    template = profiles["fallback_components"][template_key]

    descriptor = data.model_profile.descriptor
    return PromptComponents(
        product_description=description,
        front_prefix=template["frontPrefix"],
        back_prefix=template["backPrefix"],
        model_prefix=template["modelPrefix"].format(model=descriptor),
        front_details=template["frontDetails"],
        back_details=template["backDetails"],
        model_details=template["modelDetails"],
    )
