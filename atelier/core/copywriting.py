"""Prompt building and formatting for marketing copy."""
from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from atelier.core.errors import InferenceError

SYSTEM_PROMPT = (
    "You are an expert fashion copywriter specializing in trend-forward, aspirational product "
    "descriptions that convert browsers into buyers."
)

_KEY_PREFIX = re.compile(r"^(article_|ontology_\w+?_)")
_CAMEL = re.compile(r"([a-z])([A-Z])")


def readable_key(key: str) -> str:
    cleaned = _KEY_PREFIX.sub("", key).replace("_", " ")
    return _CAMEL.sub(r"\1 \2", cleaned).lower()


def trend_level(score: int) -> str:
    if score >= 80:
        return "high-trend"
    if score >= 60:
        return "moderate-trend"
    return "classic"


def build_copy_prompt(
    product_type: str,
    attributes: Iterable[tuple[str, str]],
    target_score: int,
    *,
    has_image: bool = False,
) -> str:
    attribute_lines = "\n".join(f"- {readable_key(key)}: {value}" for key, value in attributes)
    lines = [
        f"Create compelling sales copy for a {product_type} predicted to be a best-seller.",
        "",
        f"PRODUCT TYPE: {product_type}",
        "",
        "DESIGN ATTRIBUTES:",
        attribute_lines,
        "",
        f"TREND SCORE: {target_score}/100 (This indicates {trend_level(target_score)} appeal)",
    ]
    if has_image:
        lines += [
            "",
            "IMAGE CONTEXT: Use the provided product image to describe specific visual details, fit, "
            "styling, and overall aesthetic appeal.",
        ]
    lines += [
        "",
        "Generate a JSON object with exactly this structure:",
        "{",
        '  "headline": "Catchy 5-10 word headline emphasizing key appeal and desirability",',
        '  "description": "2-3 compelling sentences describing the product and why customers will love it",',
        '  "keyFeatures": ["Specific feature 1", "Specific feature 2", "Specific feature 3", "Specific feature 4"],',
        '  "stylingTips": "1-2 sentences on how to wear and style this piece"',
        "}",
        "",
        "STYLE GUIDELINES:",
        "- Use aspirational yet authentic tone",
        "- Emphasize quality, craftsmanship, and trend alignment",
        "- Include specific details from the attributes (colors, fabrics, cuts)",
        '- Avoid generic phrases like "perfect for any occasion"',
    ]
    if target_score >= 80:
        lines.append("- Highlight that this is a trending, high-demand design that fashion-forward customers are seeking")
    if target_score < 60:
        lines.append("- Position as a timeless, versatile piece with enduring style")
    lines += ["", "Focus on benefits and emotional appeal, not just features."]
    return "\n".join(lines)


def format_sales_text(payload: Mapping[str, Any]) -> str:
    """Render the structured copy response as markdown."""

    headline = str(payload.get("headline") or "").strip()
    description = str(payload.get("description") or "").strip()
    if not headline or not description:
        raise InferenceError("Sales text response is missing headline or description")

    sections = [f"## {headline}", "", description]

    features = [str(item).strip() for item in payload.get("keyFeatures") or [] if str(item).strip()]
    if features:
        sections += ["", "**KEY FEATURES:**"]
        sections += [f"- {feature}" for feature in features]

    tips = str(payload.get("stylingTips") or "").strip()
    if tips:
        sections += ["", f"*STYLING: {tips}*"]

    return "\n".join(sections)


# ----------------------------------------------------------------------
# design names
# ----------------------------------------------------------------------
NAME_SYSTEM_PROMPT = (
    "You are a fashion brand naming expert. You create short, memorable product names that capture "
    "the essence of a design. Respond with ONLY the product name, nothing else."
)
DEFAULT_DESIGN_NAME = "Unnamed Design"
_QUOTES = re.compile(r"^[\"']|[\"']$")


def _name_attribute_lines(attributes: Mapping[str, Any]) -> str:
    lines = [f"- {readable_key(key)}: {value}" for key, value in attributes.items() if not key.startswith("_")]
    return "\n".join(lines) or "(none specified)"


def build_name_prompt(
    product_type: str,
    locked: Mapping[str, Any],
    predicted: Mapping[str, Any],
) -> str:
    return "\n".join(
        [
            "Generate a creative, marketable name for a fashion product with these attributes:",
            "",
            f"Product Type: {product_type}",
            "",
            "Given Attributes:",
            _name_attribute_lines(locked),
            "",
            "AI-Predicted Attributes:",
            _name_attribute_lines(predicted),
            "",
            "Requirements:",
            "- Name should be 2-5 words",
            "- Should be catchy and memorable",
            "- Should reflect the style/aesthetic of the garment",
            '- Do NOT include generic words like "clothing", "garment", "item", or "fashion"',
            f'- Do NOT include the word "{product_type}" in the name',
            "- Make it sound like a real fashion product name you'd see in a store",
            "",
            "Return ONLY the name, nothing else. No quotes, no explanation.",
        ]
    )


def clean_design_name(raw: str | None) -> str:
    name = (raw or "").strip()
    if not name:
        return DEFAULT_DESIGN_NAME
    return _QUOTES.sub("", name).strip() or DEFAULT_DESIGN_NAME
