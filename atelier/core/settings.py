"""Runtime configuration read from the process environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_CORS_ORIGINS: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_str(name: str, default: str = "") -> str:
    value = os.getenv(name)
    return value.strip() if value else default


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True, slots=True)
class EnrichmentSettings:
    concurrency: int = 5
    progress_interval_ms: int = 500
    max_attempts: int = 3
    retry_base_ms: int = 1000
    keepalive_seconds: int = 30


@dataclass(frozen=True, slots=True)
class VisionLLMSettings:
    proxy_url: str = ""
    api_key: str = ""
    model: str = "gpt-4.1"

    @property
    def configured(self) -> bool:
        return bool(self.proxy_url and self.api_key)


@dataclass(frozen=True, slots=True)
class PredictorSettings:
    ai_api_url: str = ""
    auth_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    resource_group: str = "default"

    @property
    def configured(self) -> bool:
        return bool(self.ai_api_url and self.auth_url and self.client_id and self.client_secret)


@dataclass(frozen=True, slots=True)
class ImageGenerationSettings:
    token_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    api_url: str = ""
    width: int = 1024
    height: int = 1024

    @property
    def configured(self) -> bool:
        return bool(self.token_url and self.api_url and self.client_id and self.client_secret)


@dataclass(frozen=True, slots=True)
class FilerSettings:
    base_url: str = ""
    bucket: str = "images"
    generated_bucket: str = "generatedProducts"

    @property
    def configured(self) -> bool:
        return bool(self.base_url)


@dataclass(frozen=True, slots=True)
class Settings:
    enrichment: EnrichmentSettings = field(default_factory=EnrichmentSettings)
    vision: VisionLLMSettings = field(default_factory=VisionLLMSettings)
    predictor: PredictorSettings = field(default_factory=PredictorSettings)
    image_generation: ImageGenerationSettings = field(default_factory=ImageGenerationSettings)
    filer: FilerSettings = field(default_factory=FilerSettings)
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = _env_list("API_CORS_ORIGINS") or list(DEFAULT_CORS_ORIGINS)
        return cls(
            enrichment=EnrichmentSettings(
                concurrency=_env_int("ENRICHMENT_CONCURRENCY", 5),
                progress_interval_ms=_env_int("ENRICHMENT_PROGRESS_INTERVAL_MS", 500),
                max_attempts=_env_int("ENRICHMENT_MAX_ATTEMPTS", 3),
                retry_base_ms=_env_int("ENRICHMENT_RETRY_BASE_MS", 1000),
                keepalive_seconds=_env_int("SSE_KEEPALIVE_SECONDS", 30),
            ),
            vision=VisionLLMSettings(
                proxy_url=_env_str("LITELLM_PROXY_URL"),
                api_key=_env_str("LITELLM_API_KEY"),
                model=_env_str("VISION_LLM_MODEL", "gpt-4.1"),
            ),
            predictor=PredictorSettings(
                ai_api_url=_env_str("AI_API_URL"),
                auth_url=_env_str("AUTH_URL"),
                client_id=_env_str("CLIENT_ID"),
                client_secret=_env_str("CLIENT_SECRET"),
                resource_group=_env_str("RESOURCE_GROUP", "default"),
            ),
            image_generation=ImageGenerationSettings(
                token_url=_env_str("IMAGE_GEN_TOKEN_URL"),
                client_id=_env_str("IMAGE_GEN_CLIENT_ID"),
                client_secret=_env_str("IMAGE_GEN_CLIENT_SECRET"),
                api_url=_env_str("IMAGE_GEN_API_URL"),
                width=_env_int("IMAGE_GEN_WIDTH", 1024),
                height=_env_int("IMAGE_GEN_HEIGHT", 1024),
            ),
            filer=FilerSettings(
                base_url=_env_str("FILER_BASE_URL").rstrip("/"),
                bucket=_env_str("FILER_BUCKET", "images"),
                generated_bucket=_env_str("FILER_GENERATED_BUCKET", "generatedProducts"),
            ),
            cors_origins=tuple(origins),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )
