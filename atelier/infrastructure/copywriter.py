"""Marketing copy synthesis through an OpenAI-compatible proxy."""
from __future__ import annotations

from typing import Any, Mapping, Protocol

from openai import AsyncOpenAI

from atelier.core.copywriting import (
    NAME_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    build_copy_prompt,
    build_name_prompt,
    clean_design_name,
    format_sales_text,
)
from atelier.core.ontology import parse_json_object
from atelier.core.prompting import public_attributes
from atelier.infrastructure.vision import image_data_uri


class CopySynthesizer(Protocol):
    async def generate(
        self,
        product_type: str,
        attributes: Mapping[str, str],
        score: int,
        image: bytes | None = None,
    ) -> str: ...

    async def suggest_name(
        self,
        product_type: str,
        locked: Mapping[str, str],
        predicted: Mapping[str, str],
    ) -> str: ...


class OpenAICopywriter:
    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "gpt-4.1",
        max_tokens: int = 800,
        temperature: float = 0.7,
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def generate(
        self,
        product_type: str,
        attributes: Mapping[str, str],
        score: int,
        image: bytes | None = None,
    ) -> str:
        prompt = build_copy_prompt(
            product_type,
            public_attributes(attributes).items(),
            score,
            has_image=image is not None,
        )
        content: Any = prompt
        if image is not None:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_data_uri(image, "image/png")}},
            ]

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": content},
            ],
            response_format={"type": "json_object"},
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        raw = response.choices[0].message.content if response.choices else None
        return format_sales_text(parse_json_object(raw))

    async def suggest_name(
        self,
        product_type: str,
        locked: Mapping[str, str],
        predicted: Mapping[str, str],
    ) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": NAME_SYSTEM_PROMPT},
                {"role": "user", "content": build_name_prompt(product_type, locked, predicted)},
            ],
            max_tokens=50,
            temperature=0.9,
        )
        raw = response.choices[0].message.content if response.choices else None
        return clean_design_name(raw)
