"""Text-to-image client authenticated with OAuth2 client credentials."""
from __future__ import annotations

import base64
import logging
import time
from typing import Callable, Protocol

import httpx

logger = logging.getLogger(__name__)

TOKEN_CACHE_SECONDS = 11 * 60 * 60


class ImageSynthesis(Protocol):
    async def generate(self, prompt: str) -> bytes: ...


class ImageSynthesisError(RuntimeError):
    """Raised when the image service rejects a request."""


class OAuthImageSynthesisClient:
    """Posts a prompt and receives the rendered image as raw bytes."""

    def __init__(
        self,
        token_url: str,
        api_url: str,
        client_id: str,
        client_secret: str,
        *,
        width: int = 1024,
        height: int = 1024,
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._token_url = token_url
        self._api_url = api_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._width = width
        self._height = height
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at = 0.0

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _get_token(self) -> str:
        if self._token and self._clock() < self._token_expires_at:
            return self._token

        credentials = base64.b64encode(f"{self._client_id}:{self._client_secret}".encode("utf-8")).decode("ascii")
        response = await self._client.post(
            self._token_url,
            headers={"Authorization": f"Basic {credentials}"},
            data={"grant_type": "client_credentials"},
        )
        if response.is_error:
            logger.error("Image generation OAuth failed: %s %s", response.status_code, response.text)
            raise ImageSynthesisError(f"Image generation OAuth failed: {response.status_code}")

        token = response.json().get("access_token")
        if not token:
            raise ImageSynthesisError("Image generation OAuth response did not contain an access token")
        self._token = token
        self._token_expires_at = self._clock() + TOKEN_CACHE_SECONDS
        logger.info("Image generation token obtained and cached")
        return token

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def generate(self, prompt: str) -> bytes:
        token = await self._get_token()
        logger.debug("Generating image with prompt: %s", prompt)
        response = await self._client.post(
            self._api_url,
            headers={"Authorization": f"Bearer {token}"},
            json={"prompt": prompt, "width": self._width, "height": self._height},
        )
        if response.is_error:
            logger.error("Image generation API error: %s %s", response.status_code, response.text[:500])
            raise ImageSynthesisError(f"Image generation failed: {response.status_code}")
        if not response.content:
            raise ImageSynthesisError("Image generation returned an empty body")
        logger.info("Image generated, size: %d bytes", len(response.content))
        return response.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
