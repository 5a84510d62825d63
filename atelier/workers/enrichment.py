"""Enrichment of a project's backlog of context items."""
from __future__ import annotations

import logging
from functools import partial
from typing import Any

from atelier.core.errors import (
    ConfigurationError,
    PersistenceError,
    ProjectNotFoundError,
    error_message,
)
from atelier.core.ontology import AttributeSchema, build_attribute_schema
from atelier.core.status import EnrichmentStatus
from atelier.domain import ContextItem, EnrichmentResult, Project, ProjectEnrichmentState
from atelier.infrastructure import ImageFetch, StatusStore, VisionInference
from atelier.workers.broadcast import EventBroadcaster
from atelier.workers.concurrency import run_bounded
from atelier.workers.progress import ProgressCounter, ProgressReporter
from atelier.workers.retry import RetryPolicy

logger = logging.getLogger(__name__)


class EnrichmentOrchestrator:
    """Runs every unenriched item of a project through the vision model.

    Item failures are recorded against the item and never abort the run.
    Configuration and persistence failures mark the run ``failed`` and are
    re-raised to the caller.
    """

    def __init__(
        self,
        store: StatusStore,
        vision: VisionInference,
        images: ImageFetch,
        broadcaster: EventBroadcaster,
        *,
        concurrency: int = 5,
        progress_interval: float = 0.5,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if concurrency <= 0:
            raise ValueError("concurrency must be a positive integer")
        self._store = store
        self._vision = vision
        self._images = images
        self._broadcaster = broadcaster
        self._concurrency = concurrency
        self._progress_interval = progress_interval
        self._retry = retry_policy or RetryPolicy(max_attempts=3, base_delay=1.0, label="vision inference")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _emit(self, project_id: str, event: str, data: dict[str, Any]) -> None:
        self._broadcaster.publish(project_id, event, data)

    @staticmethod
    def _schema_for(project: Project) -> AttributeSchema:
        if not project.ontology_schema:
            raise ConfigurationError("Project has no ontology schema defined")
        schema = build_attribute_schema(project.ontology_schema)
        if not schema.properties:
            raise ConfigurationError("Project ontology schema defines no attributes")
        return schema

    def _report(self, project_id: str, total: int, processed: int, current_item_id: str | None) -> None:
        self._store.update_run_progress(project_id, processed, current_item_id)
        self._emit(
            project_id,
            "progress",
            {"processed": processed, "total": total, "currentItemId": current_item_id},
        )

    async def _process_item(
        self,
        project_id: str,
        schema: AttributeSchema,
        counter: ProgressCounter,
        item: ContextItem,
    ) -> None:
        counter.begin(item.article_id)
        try:

            async def attempt() -> EnrichmentResult:
                image = await self._images.fetch_article_image(item.article_id, item.image_key)
                return await self._vision.extract(image, schema, item)

            try:
                result = await self._retry.call(attempt)
            except Exception as exc:
                message = error_message(exc)
                logger.warning("Enrichment failed for article %s: %s", item.article_id, message)
                self._store.save_enrichment_error(project_id, item.article_id, message)
            else:
                self._store.save_enrichment_result(project_id, result)
        finally:
            counter.finish(item.article_id)

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def run(self, project_id: str, state: ProjectEnrichmentState | None = None) -> ProjectEnrichmentState:
        """Process the backlog of a run; ``state`` is the run already begun by the caller, if any."""

        project = self._store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)

        if state is None:
            state = self._store.begin_run(project_id)
        if state.status is EnrichmentStatus.COMPLETED:
            self._emit(project_id, "completed", {"processed": 0, "total": 0})
            logger.info("Project %s has no pending items", project_id)
            return state

        try:
            schema = self._schema_for(project)
            items = self._store.list_pending_items(project_id)

            if not items:
                final = self._store.complete_run(project_id, 0, 0)
                self._emit(project_id, "completed", {"processed": 0, "total": 0})
                logger.info("Project %s has no pending items", project_id)
                return final

            total = len(items)
            self._store.set_run_total(project_id, total, items[0].article_id)
            logger.info("Enriching %d item(s) of project %s", total, project_id)

            counter = ProgressCounter(total)
            reporter = ProgressReporter(
                counter,
                partial(self._report, project_id, total),
                interval=self._progress_interval,
            )
            reporter.start()
            try:
                summary = await run_bounded(
                    items,
                    partial(self._process_item, project_id, schema, counter),
                    self._concurrency,
                )
            finally:
                await reporter.stop()

            if summary.unhandled:
                raise PersistenceError(f"{summary.unhandled} item outcome(s) could not be recorded")

            processed = counter.processed
            self._emit(project_id, "progress", {"processed": processed, "total": total, "currentItemId": None})
            final = self._store.complete_run(project_id, processed, total)
            self._emit(project_id, "completed", {"processed": processed, "total": total})
            logger.info("Enrichment of project %s completed (%d/%d)", project_id, processed, total)
            return final
        except Exception as exc:
            logger.error("Enrichment of project %s failed: %s", project_id, exc)
            try:
                self._store.fail_run(project_id)
            except Exception:
                logger.exception("Could not mark enrichment of project %s as failed", project_id)
            self._emit(project_id, "error", {"message": error_message(exc)})
            raise
