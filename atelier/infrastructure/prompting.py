"""LLM-backed generator for structured image prompt components."""
from __future__ import annotations

import logging
from typing import Protocol

from openai import AsyncOpenAI

from atelier.core.ontology import parse_json_object
from atelier.core.prompting import ProductData, PromptComponents, build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)


class PromptGenerator(Protocol):
    async def generate_components(self, data: ProductData) -> PromptComponents: ...


class OpenAIPromptGenerator:
    def __init__(self, client: AsyncOpenAI, *, model: str = "gpt-4.1", temperature: float = 0.7) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature

    async def generate_components(self, data: ProductData) -> PromptComponents:
        logger.info(
            "Generating prompt components for %s (%s, %s)",
            data.product_type,
            data.photography_category,
            data.model_profile.descriptor,
        )
        completion = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {
                    "role": "system",
                    "content": build_system_prompt(data.photography_category, data.model_profile.descriptor),
                },
                {"role": "user", "content": build_user_prompt(data)},
            ],
            temperature=self._temperature,
        )
        content = completion.choices[0].message.content if completion.choices else None
        return PromptComponents.from_payload(parse_json_object(content))
