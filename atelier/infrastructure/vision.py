"""Vision-model attribute extraction through an OpenAI-compatible proxy."""
from __future__ import annotations

import base64
import logging
from typing import Protocol

from openai import AsyncOpenAI

from atelier.core.ontology import (
    MISMATCH_KEY,
    AttributeSchema,
    clamp_score,
    parse_json_object,
    validate_attributes,
)
from atelier.domain import ContextItem, EnrichmentResult

logger = logging.getLogger(__name__)


class VisionInference(Protocol):
    async def extract(self, image: bytes, schema: AttributeSchema, item: ContextItem) -> EnrichmentResult: ...


def build_vision_prompt(schema: AttributeSchema, item: ContextItem) -> str:
    return (
        "Analyze this fashion product image and extract attributes according to the schema below.\n\n"
        "CONTEXT:\n"
        f"- Product Type: {item.product_type or 'Unknown'}\n"
        f"- Description: {item.description or 'No description available'}\n\n"
        "ATTRIBUTES TO EXTRACT:\n"
        f"{schema.describe()}\n\n"
        "Return a JSON object with exactly these attributes. Choose the most appropriate value from the "
        "allowed options for each attribute based on what you see in the image.\n"
        f'Also include "{MISMATCH_KEY}": an integer from 0 to 100 stating how confident you are that the '
        "image does NOT show the product type given in the context."
    )


def image_data_uri(image: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64,{base64.b64encode(image).decode('ascii')}"


class OpenAIVisionClient:
    """Extracts ontology attributes from one article image per call."""

    def __init__(self, client: AsyncOpenAI, *, model: str = "gpt-4.1", max_tokens: int = 500) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    async def extract(self, image: bytes, schema: AttributeSchema, item: ContextItem) -> EnrichmentResult:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": build_vision_prompt(schema, item)},
                        {"type": "image_url", "image_url": {"url": image_data_uri(image)}},
                    ],
                }
            ],
            response_format={"type": "json_object"},
            max_tokens=self._max_tokens,
        )
        content = response.choices[0].message.content if response.choices else None
        raw = parse_json_object(content)
        attributes = validate_attributes(raw, schema)
        result = EnrichmentResult(
            item_id=item.article_id,
            attributes=attributes,
            mismatch_score=clamp_score(raw.get(MISMATCH_KEY), default=0),
        )
        if result.needs_review:
            logger.info("Article %s flagged for review (mismatch %d)", item.article_id, result.mismatch_score)
        return result
