"""Stand-in collaborator installed when an external service has no credentials.

Every call raises :class:`ConfigurationError`, which retry policies treat as
permanent, so runs and stages record a clear failure instead of hanging on
network timeouts. Deployments configure the real clients through environment
variables read by :meth:`atelier.core.settings.Settings.from_env`.
"""
from __future__ import annotations

from typing import Any

from atelier.core.errors import ConfigurationError


class UnconfiguredService:
    def __init__(self, name: str) -> None:
        self.name = name

    def _fail(self) -> ConfigurationError:
        return ConfigurationError(f"{self.name} is not configured")

    async def extract(self, *args: Any, **kwargs: Any) -> Any:
        raise self._fail()

    async def generate(self, *args: Any, **kwargs: Any) -> Any:
        raise self._fail()

    async def suggest_name(self, *args: Any, **kwargs: Any) -> Any:
        raise self._fail()

    async def generate_components(self, *args: Any, **kwargs: Any) -> Any:
        raise self._fail()

    async def predict(self, *args: Any, **kwargs: Any) -> Any:
        raise self._fail()

    async def fetch_article_image(self, *args: Any, **kwargs: Any) -> Any:
        raise self._fail()

    async def put(self, *args: Any, **kwargs: Any) -> Any:
        raise self._fail()

    async def get(self, *args: Any, **kwargs: Any) -> Any:
        raise self._fail()
