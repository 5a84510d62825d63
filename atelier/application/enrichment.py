"""Use cases around enrichment runs: start, retry, status and live progress."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Iterable

from atelier.core.errors import EnrichmentAlreadyRunningError, ProjectInactiveError, ProjectNotFoundError
from atelier.core.status import EnrichmentStatus, ProjectStatus
from atelier.domain import Project
from atelier.infrastructure import StatusStore
from atelier.workers.broadcast import SUBSCRIPTION_CLOSED, EventBroadcaster
from atelier.workers.enrichment import EnrichmentOrchestrator
from atelier.workers.supervisor import TaskSupervisor

logger = logging.getLogger(__name__)

KEEPALIVE_COMMENT = ": ping\n\n"


def format_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


class EnrichmentService:
    """Coordinates enrichment runs for the HTTP layer."""

    def __init__(
        self,
        store: StatusStore,
        orchestrator: EnrichmentOrchestrator,
        broadcaster: EventBroadcaster,
        supervisor: TaskSupervisor,
        *,
        keepalive_seconds: float = 30.0,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._broadcaster = broadcaster
        self._supervisor = supervisor
        self._keepalive_seconds = keepalive_seconds

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def require_project(self, project_id: str) -> Project:
        project = self._store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def _require_startable(self, project_id: str, action: str) -> None:
        project = self.require_project(project_id)
        if project.status is not ProjectStatus.ACTIVE:
            raise ProjectInactiveError(f"Project must be active to {action}")
        if self._store.get_enrichment_state(project_id).status is EnrichmentStatus.RUNNING:
            raise EnrichmentAlreadyRunningError("Enrichment is already running")

    def _launch(self, project_id: str) -> None:
        state = self._store.begin_run(project_id)
        self._supervisor.spawn(self._orchestrator.run(project_id, state), name=f"enrichment-{project_id}")

    # ------------------------------------------------------------------
    # runs
    # ------------------------------------------------------------------
    async def start(self, project_id: str) -> dict[str, Any]:
        self._require_startable(project_id, "start enrichment")
        self._launch(project_id)
        logger.info("Enrichment started for project %s", project_id)
        return {"success": True, "message": "Enrichment started"}

    async def retry(self, project_id: str, article_ids: Iterable[str] | None = None) -> dict[str, Any]:
        self._require_startable(project_id, "retry enrichment")
        ids = list(article_ids) if article_ids else None
        cleared = self._store.clear_enrichment_errors(project_id, ids)
        if cleared == 0:
            return {"success": True, "message": "No failed items to retry", "queuedCount": 0}

        self._launch(project_id)
        logger.info("Enrichment retry started for %d item(s) of project %s", cleared, project_id)
        return {"success": True, "message": "Enrichment retry started", "queuedCount": cleared}

    def status(self, project_id: str) -> dict[str, Any]:
        self.require_project(project_id)
        return self._store.get_enrichment_state(project_id).to_payload()

    # ------------------------------------------------------------------
    # live progress
    # ------------------------------------------------------------------
    def _snapshot(self, project_id: str) -> str:
        state = self._store.get_enrichment_state(project_id)
        return format_sse(
            "status",
            {"status": state.status.value, "processed": state.processed, "total": state.total},
        )

    async def stream(self, project_id: str) -> AsyncIterator[str]:
        """Yield SSE frames: one status snapshot, then every broadcast event."""

        with self._broadcaster.subscription(project_id) as queue:
            yield self._snapshot(project_id)
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=self._keepalive_seconds)
                except asyncio.TimeoutError:
                    yield KEEPALIVE_COMMENT
                    continue
                if event is SUBSCRIPTION_CLOSED:
                    # dropped for falling behind; finish on the current state
                    yield self._snapshot(project_id)
                    return
                yield format_sse(event.event, event.data)
