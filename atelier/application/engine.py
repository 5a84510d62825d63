"""Wiring of stores, clients, workers and services into one engine."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from openai import AsyncOpenAI

from atelier.core.settings import Settings
from atelier.infrastructure import (
    AttributePredictor,
    CopySynthesizer,
    DeploymentPredictorClient,
    FilerImageStore,
    ImageStore,
    ImageSynthesis,
    InMemoryImageStore,
    InMemoryStatusStore,
    OAuthImageSynthesisClient,
    OpenAICopywriter,
    OpenAIPromptGenerator,
    OpenAIVisionClient,
    PromptGenerator,
    StatusStore,
    UnconfiguredService,
    VisionInference,
)
from atelier.workers.broadcast import EventBroadcaster
from atelier.workers.enrichment import EnrichmentOrchestrator
from atelier.workers.generation import GenerationPipeline
from atelier.workers.retry import RetryPolicy
from atelier.workers.supervisor import TaskSupervisor

from .designs import DesignService
from .enrichment import EnrichmentService
from .projects import ProjectService

logger = logging.getLogger(__name__)

DRAIN_TIMEOUT_SECONDS = 30.0


@dataclass(slots=True)
class Engine:
    store: StatusStore
    broadcaster: EventBroadcaster
    supervisor: TaskSupervisor
    orchestrator: EnrichmentOrchestrator
    pipeline: GenerationPipeline
    image_store: ImageStore
    enrichment: EnrichmentService
    designs: DesignService
    projects: ProjectService
    resources: list[Any] = field(default_factory=list)

    async def shutdown(self, timeout: float | None = DRAIN_TIMEOUT_SECONDS) -> None:
        """Wait for background tasks, then close owned network clients."""

        await self.supervisor.drain(timeout)
        for resource in self.resources:
            close = getattr(resource, "aclose", None) or getattr(resource, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception:
                logger.exception("Failed to close %s", type(resource).__name__)

    def reset(self) -> None:
        self.store.reset()


def build_engine(
    settings: Settings | None = None,
    *,
    store: StatusStore | None = None,
    vision: VisionInference | None = None,
    image_store: ImageStore | None = None,
    predictor: AttributePredictor | None = None,
    prompt_generator: PromptGenerator | None = None,
    image_synthesis: ImageSynthesis | None = None,
    copywriter: CopySynthesizer | None = None,
    enrichment_retry: RetryPolicy | None = None,
    prompt_retry: RetryPolicy | None = None,
    image_retry: RetryPolicy | None = None,
    upload_retry: RetryPolicy | None = None,
    text_retry: RetryPolicy | None = None,
) -> Engine:
    """Assemble an engine, creating any collaborator not passed in from ``settings``.

    Services without credentials are replaced by :class:`UnconfiguredService`;
    without a filer the engine keeps images in memory. The LLM prompt
    generator is optional: without it image prompts come from templates.
    """

    settings = settings or Settings()
    resources: list[Any] = []

    llm: AsyncOpenAI | None = None
    if settings.vision.configured and (vision is None or prompt_generator is None or copywriter is None):
        llm = AsyncOpenAI(base_url=settings.vision.proxy_url, api_key=settings.vision.api_key)
        resources.append(llm)

    if vision is None:
        vision = (
            OpenAIVisionClient(llm, model=settings.vision.model) if llm else UnconfiguredService("Vision LLM")
        )
    if prompt_generator is None and llm is not None:
        prompt_generator = OpenAIPromptGenerator(llm, model=settings.vision.model)
    if copywriter is None:
        copywriter = (
            OpenAICopywriter(llm, model=settings.vision.model) if llm else UnconfiguredService("Copywriting LLM")
        )

    if image_store is None:
        if settings.filer.configured:
            image_store = FilerImageStore(
                settings.filer.base_url,
                bucket=settings.filer.bucket,
                generated_bucket=settings.filer.generated_bucket,
            )
            resources.append(image_store)
        else:
            logger.warning("FILER_BASE_URL is not set; images are kept in memory")
            image_store = InMemoryImageStore()

    if image_synthesis is None:
        generation = settings.image_generation
        if generation.configured:
            image_synthesis = OAuthImageSynthesisClient(
                generation.token_url,
                generation.api_url,
                generation.client_id,
                generation.client_secret,
                width=generation.width,
                height=generation.height,
            )
            resources.append(image_synthesis)
        else:
            image_synthesis = UnconfiguredService("Image generation")

    if predictor is None:
        config = settings.predictor
        if config.configured:
            predictor = DeploymentPredictorClient(
                config.ai_api_url,
                config.auth_url,
                config.client_id,
                config.client_secret,
                resource_group=config.resource_group,
            )
            resources.append(predictor)
        else:
            predictor = UnconfiguredService("Attribute predictor")

    store = store or InMemoryStatusStore()
    broadcaster = EventBroadcaster()
    supervisor = TaskSupervisor()
    run_settings = settings.enrichment

    orchestrator = EnrichmentOrchestrator(
        store,
        vision,
        image_store,
        broadcaster,
        concurrency=run_settings.concurrency,
        progress_interval=run_settings.progress_interval_ms / 1000,
        retry_policy=enrichment_retry
        or RetryPolicy(
            max_attempts=run_settings.max_attempts,
            base_delay=run_settings.retry_base_ms / 1000,
            label="vision inference",
        ),
    )
    pipeline = GenerationPipeline(
        store,
        predictor,
        prompt_generator,
        image_synthesis,
        image_store,
        copywriter,
        supervisor,
        prompt_retry=prompt_retry,
        image_retry=image_retry,
        upload_retry=upload_retry,
        text_retry=text_retry,
    )
    article_url = getattr(image_store, "article_url", None)

    return Engine(
        store=store,
        broadcaster=broadcaster,
        supervisor=supervisor,
        orchestrator=orchestrator,
        pipeline=pipeline,
        image_store=image_store,
        enrichment=EnrichmentService(
            store,
            orchestrator,
            broadcaster,
            supervisor,
            keepalive_seconds=run_settings.keepalive_seconds,
        ),
        designs=DesignService(store, pipeline, copywriter),
        projects=ProjectService(store, article_url),
        resources=resources,
    )


_engine: Engine | None = None


def configure_engine(engine: Engine) -> None:
    global _engine
    _engine = engine


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = build_engine(Settings.from_env())
    return _engine


def reset_engine_state() -> None:
    """Clear all stored projects and designs; used by tests."""

    if _engine is not None:
        _engine.reset()
