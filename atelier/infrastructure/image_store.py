"""Image storage: article images in, generated design images out."""
from __future__ import annotations

import logging
import threading
from typing import Protocol

import httpx

from atelier.core.errors import ImageNotFoundError

logger = logging.getLogger(__name__)


class ImageFetch(Protocol):
    """Source of catalog article images."""

    async def fetch_article_image(self, article_id: str, image_key: str | None = None) -> bytes: ...


class ImageStore(ImageFetch, Protocol):
    """Storage for generated images."""

    async def put(self, key: str, data: bytes, *, content_type: str = "image/png") -> str: ...

    async def get(self, key: str) -> bytes: ...


def article_image_path(article_id: str, image_key: str | None = None) -> str:
    """Path of an article image inside its bucket; an explicit key wins over the derived one."""

    if image_key:
        return image_key.lstrip("/")
    return f"{article_id[:2]}/{article_id}.jpg"


class FilerImageStore:
    """Client for an HTTP filer exposing buckets as URL path prefixes."""

    def __init__(
        self,
        base_url: str,
        *,
        bucket: str = "images",
        generated_bucket: str = "generatedProducts",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._generated_bucket = generated_bucket
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    def article_url(self, article_id: str, image_key: str | None = None) -> str:
        return f"{self._base_url}/{self._bucket}/{article_image_path(article_id, image_key)}"

    def generated_url(self, key: str) -> str:
        return f"{self._base_url}/{self._generated_bucket}/{key}"

    async def _get_bytes(self, url: str, label: str) -> bytes:
        logger.debug("Fetching image %s", url)
        response = await self._client.get(url)
        if response.status_code == 404:
            raise ImageNotFoundError(f"Image not found for {label}: 404 from {url}")
        response.raise_for_status()
        return response.content

    async def fetch_article_image(self, article_id: str, image_key: str | None = None) -> bytes:
        return await self._get_bytes(self.article_url(article_id, image_key), f"article {article_id}")

    async def get(self, key: str) -> bytes:
        return await self._get_bytes(self.generated_url(key), key)

    async def put(self, key: str, data: bytes, *, content_type: str = "image/png") -> str:
        url = self.generated_url(key)
        logger.info("Uploading %d bytes to %s", len(data), url)
        response = await self._client.put(url, content=data, headers={"Content-Type": content_type})
        if response.is_error:
            raise httpx.HTTPStatusError(
                f"Failed to upload image to filer: {response.status_code} - {response.text}",
                request=response.request,
                response=response,
            )
        return url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class InMemoryImageStore:
    """Dictionary-backed store for local runs and tests."""

    def __init__(self, base_url: str = "memory://images") -> None:
        self._base_url = base_url.rstrip("/")
        self._lock = threading.Lock()
        self._articles: dict[str, bytes] = {}
        self._generated: dict[str, bytes] = {}

    def article_url(self, article_id: str, image_key: str | None = None) -> str:
        return f"{self._base_url}/articles/{article_image_path(article_id, image_key)}"

    def add_article_image(self, article_id: str, data: bytes, image_key: str | None = None) -> None:
        with self._lock:
            self._articles[article_image_path(article_id, image_key)] = data

    async def fetch_article_image(self, article_id: str, image_key: str | None = None) -> bytes:
        with self._lock:
            data = self._articles.get(article_image_path(article_id, image_key))
        if data is None:
            raise ImageNotFoundError(f"Image not found for article {article_id}")
        return data

    async def put(self, key: str, data: bytes, *, content_type: str = "image/png") -> str:
        with self._lock:
            self._generated[key] = data
        return f"{self._base_url}/{key}"

    async def get(self, key: str) -> bytes:
        with self._lock:
            data = self._generated.get(key)
        if data is None:
            raise ImageNotFoundError(f"Image {key} not found")
        return data

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._generated)
