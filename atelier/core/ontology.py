"""Helpers turning a project's ontology into a validated attribute key set."""
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from atelier.core.errors import InferenceError

OntologySchema = Mapping[str, Mapping[str, list[str]]]

MISMATCH_KEY = "mismatch_confidence"
REVIEW_THRESHOLD = 80

_CODE_BLOCK = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")


@dataclass(slots=True)
class AttributeProperty:
    name: str
    allowed: list[str]
    description: str


@dataclass(slots=True)
class AttributeSchema:
    """Flattened view of an ontology: one property per attribute name."""

    properties: dict[str, AttributeProperty] = field(default_factory=dict)

    @property
    def required(self) -> list[str]:
        return list(self.properties)

    def describe(self) -> str:
        return "\n".join(
            f"- {prop.name}: one of [{', '.join(prop.allowed)}]" for prop in self.properties.values()
        )


def build_attribute_schema(ontology: OntologySchema | None) -> AttributeSchema:
    schema = AttributeSchema()
    for product_type, attributes in (ontology or {}).items():
        for name, variants in (attributes or {}).items():
            schema.properties[name] = AttributeProperty(
                name=name,
                allowed=[str(variant) for variant in variants or []],
                description=f"The {name} of the {product_type}",
            )
    return schema


def extract_ontology_attributes(ontology: OntologySchema | None) -> list[str]:
    names: set[str] = set()
    for attributes in (ontology or {}).values():
        names.update((attributes or {}).keys())
    return sorted(names)


def sanitize_json_response(content: str) -> str:
    """Strip markdown code fences wrapped around a JSON payload."""

    cleaned = content.strip()
    match = _CODE_BLOCK.search(cleaned)
    if match:
        cleaned = match.group(1).strip()
    return cleaned


def parse_json_object(content: str | None) -> dict[str, Any]:
    if not content:
        raise InferenceError("No response content from model")
    try:
        parsed = json.loads(sanitize_json_response(content))
    except json.JSONDecodeError as exc:
        raise InferenceError(f"Failed to parse model response as JSON. Content: {content[:200]}...") from exc
    if not isinstance(parsed, dict):
        raise InferenceError("Model response is not a JSON object")
    return parsed


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: Any, default: int = 0) -> int:
    try:
        score = round_half_up(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(0, min(100, score))


def validate_attributes(raw: Mapping[str, Any], schema: AttributeSchema) -> dict[str, str]:
    """Keep only schema keys; every required key must carry a non-empty value."""

    missing = [name for name in schema.required if raw.get(name) in (None, "")]
    if missing:
        raise InferenceError(f"Model response is missing attributes: {', '.join(missing)}")
    return {name: str(raw[name]).strip() for name in schema.required}
