"""Persistence for project, item, run and design state."""
from __future__ import annotations

import threading
import uuid
from copy import deepcopy
from datetime import datetime, timezone
from typing import Iterable, Protocol

from atelier.core.errors import (
    DesignNotFoundError,
    EnrichmentAlreadyRunningError,
    ProjectNotFoundError,
)
from atelier.core.status import (
    EnrichmentStatus,
    ImageStatus,
    ItemStatus,
    ProjectStatus,
    StageStatus,
    ensure_enrichment_transition,
    ensure_image_transition,
    ensure_item_transition,
    ensure_project_transition,
    ensure_stage_transition,
)
from atelier.domain import (
    ContextItem,
    EnrichmentResult,
    GeneratedDesign,
    Project,
    ProjectEnrichmentState,
)

ERROR_MAX_LENGTH = 1000


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StatusStore(Protocol):
    """Persistence contract for engine state."""

    def create_project(
        self,
        name: str,
        ontology_schema: dict[str, dict[str, list[str]]] | None = None,
        *,
        status: ProjectStatus = ProjectStatus.DRAFT,
    ) -> Project: ...

    def get_project(self, project_id: str) -> Project | None: ...

    def activate_project(self, project_id: str) -> Project: ...

    def add_context_items(self, project_id: str, items: Iterable[ContextItem]) -> int: ...

    def list_context_items(self, project_id: str) -> list[ContextItem]: ...

    def list_pending_items(self, project_id: str) -> list[ContextItem]: ...

    def list_failed_items(self, project_id: str, article_ids: Iterable[str] | None = None) -> list[ContextItem]: ...

    def save_enrichment_result(self, project_id: str, result: EnrichmentResult) -> None: ...

    def save_enrichment_error(self, project_id: str, article_id: str, message: str) -> None: ...

    def clear_enrichment_errors(self, project_id: str, article_ids: Iterable[str] | None = None) -> int: ...

    def get_enrichment_state(self, project_id: str) -> ProjectEnrichmentState: ...

    def begin_run(self, project_id: str) -> ProjectEnrichmentState: ...

    def set_run_total(self, project_id: str, total: int, current_item_id: str | None) -> None: ...

    def update_run_progress(self, project_id: str, processed: int, current_item_id: str | None) -> None: ...

    def complete_run(self, project_id: str, processed: int, total: int) -> ProjectEnrichmentState: ...

    def fail_run(self, project_id: str) -> ProjectEnrichmentState: ...

    def create_design(
        self,
        project_id: str,
        *,
        locked_attributes: dict[str, str],
        predicted_attributes: dict[str, str],
        target_success_score: float,
        context_attributes: dict[str, str] | None = None,
        prediction_metadata: dict[str, object] | None = None,
    ) -> GeneratedDesign: ...

    def get_design(self, project_id: str, design_id: str) -> GeneratedDesign | None: ...

    def list_designs(self, project_id: str) -> list[GeneratedDesign]: ...

    def set_view_state(self, design_id: str, view: str, status: StageStatus, url: str | None = None) -> None: ...

    def set_image_status(self, design_id: str, status: ImageStatus) -> None: ...

    def set_sales_text(self, design_id: str, status: StageStatus, text: str | None = None) -> None: ...

    def reset(self) -> None: ...


class InMemoryStatusStore:
    """Process-local store; every write is serialised by one re-entrant lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._projects: dict[str, Project] = {}
        self._items: dict[str, dict[str, ContextItem]] = {}
        self._designs: dict[str, GeneratedDesign] = {}

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _project(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def _item(self, project_id: str, article_id: str) -> ContextItem:
        self._project(project_id)
        item = self._items[project_id].get(article_id)
        if item is None:
            raise KeyError(f"Context item {article_id} not found in project {project_id}")
        return item

    def _design(self, design_id: str) -> GeneratedDesign:
        design = self._designs.get(design_id)
        if design is None:
            raise DesignNotFoundError(design_id)
        return design

    def _state(self, project_id: str) -> ProjectEnrichmentState:
        state = self._project(project_id).enrichment
        assert state is not None
        return state

    # ------------------------------------------------------------------
    # projects
    # ------------------------------------------------------------------
    def create_project(
        self,
        name: str,
        ontology_schema: dict[str, dict[str, list[str]]] | None = None,
        *,
        status: ProjectStatus = ProjectStatus.DRAFT,
    ) -> Project:
        with self._lock:
            project_id = uuid.uuid4().hex
            project = Project(
                project_id=project_id,
                name=name,
                status=status,
                ontology_schema=deepcopy(ontology_schema),
                created_at=_now(),
            )
            self._projects[project_id] = project
            self._items[project_id] = {}
            return deepcopy(project)

    def get_project(self, project_id: str) -> Project | None:
        with self._lock:
            project = self._projects.get(project_id)
            return deepcopy(project) if project else None

    def activate_project(self, project_id: str) -> Project:
        with self._lock:
            project = self._project(project_id)
            ensure_project_transition(project.status, ProjectStatus.ACTIVE)
            project.status = ProjectStatus.ACTIVE
            return deepcopy(project)

    # ------------------------------------------------------------------
    # context items
    # ------------------------------------------------------------------
    def add_context_items(self, project_id: str, items: Iterable[ContextItem]) -> int:
        with self._lock:
            self._project(project_id)
            bucket = self._items[project_id]
            added = 0
            for item in items:
                if item.article_id in bucket:
                    continue
                bucket[item.article_id] = deepcopy(item)
                added += 1
            return added

    def list_context_items(self, project_id: str) -> list[ContextItem]:
        with self._lock:
            self._project(project_id)
            return [deepcopy(item) for item in self._items[project_id].values()]

    def list_pending_items(self, project_id: str) -> list[ContextItem]:
        return [item for item in self.list_context_items(project_id) if item.status is ItemStatus.PENDING]

    def list_failed_items(self, project_id: str, article_ids: Iterable[str] | None = None) -> list[ContextItem]:
        wanted = set(article_ids) if article_ids is not None else None
        return [
            item
            for item in self.list_context_items(project_id)
            if item.status is ItemStatus.FAILED and (wanted is None or item.article_id in wanted)
        ]

    def save_enrichment_result(self, project_id: str, result: EnrichmentResult) -> None:
        with self._lock:
            item = self._item(project_id, result.item_id)
            ensure_item_transition(item.status, ItemStatus.ENRICHED)
            item.enriched_attributes = dict(result.attributes)
            item.mismatch_confidence = result.mismatch_score
            item.enrichment_error = None

    def save_enrichment_error(self, project_id: str, article_id: str, message: str) -> None:
        with self._lock:
            item = self._item(project_id, article_id)
            ensure_item_transition(item.status, ItemStatus.FAILED)
            item.enrichment_error = message[:ERROR_MAX_LENGTH]
            item.enriched_attributes = None
            item.mismatch_confidence = None

    def clear_enrichment_errors(self, project_id: str, article_ids: Iterable[str] | None = None) -> int:
        wanted = set(article_ids) if article_ids is not None else None
        with self._lock:
            self._project(project_id)
            cleared = 0
            for item in self._items[project_id].values():
                if item.enrichment_error is None:
                    continue
                if wanted is not None and item.article_id not in wanted:
                    continue
                ensure_item_transition(item.status, ItemStatus.PENDING)
                item.enrichment_error = None
                cleared += 1
            return cleared

    # ------------------------------------------------------------------
    # enrichment runs
    # ------------------------------------------------------------------
    def get_enrichment_state(self, project_id: str) -> ProjectEnrichmentState:
        with self._lock:
            return deepcopy(self._state(project_id))

    def begin_run(self, project_id: str) -> ProjectEnrichmentState:
        """Start a run sized to the current backlog; an empty backlog completes at once."""

        with self._lock:
            state = self._state(project_id)
            if state.status is EnrichmentStatus.RUNNING:
                raise EnrichmentAlreadyRunningError(f"Enrichment already running for project {project_id}")
            ensure_enrichment_transition(state.status, EnrichmentStatus.RUNNING)
            pending = [item for item in self._items[project_id].values() if item.status is ItemStatus.PENDING]
            state.status = EnrichmentStatus.RUNNING
            state.processed = 0
            state.total = len(pending)
            state.current_item_id = pending[0].article_id if pending else None
            state.started_at = _now()
            state.completed_at = None
            if not pending:
                state.status = EnrichmentStatus.COMPLETED
                state.completed_at = state.started_at
            return deepcopy(state)

    def set_run_total(self, project_id: str, total: int, current_item_id: str | None) -> None:
        with self._lock:
            state = self._state(project_id)
            if state.status is not EnrichmentStatus.RUNNING:
                raise ValueError(f"No running enrichment for project {project_id}")
            state.total = total
            state.processed = 0
            state.current_item_id = current_item_id

    def update_run_progress(self, project_id: str, processed: int, current_item_id: str | None) -> None:
        with self._lock:
            state = self._state(project_id)
            if state.status is not EnrichmentStatus.RUNNING:
                raise ValueError(f"No running enrichment for project {project_id}")
            if processed >= state.total:
                raise ValueError("The final count is only written together with a terminal status")
            if processed < state.processed:
                return
            state.processed = processed
            state.current_item_id = current_item_id

    def complete_run(self, project_id: str, processed: int, total: int) -> ProjectEnrichmentState:
        if processed > total:
            raise ValueError("processed cannot exceed total")
        with self._lock:
            state = self._state(project_id)
            ensure_enrichment_transition(state.status, EnrichmentStatus.COMPLETED)
            state.status = EnrichmentStatus.COMPLETED
            state.processed = processed
            state.total = total
            state.current_item_id = None
            state.completed_at = _now()
            return deepcopy(state)

    def fail_run(self, project_id: str) -> ProjectEnrichmentState:
        with self._lock:
            state = self._state(project_id)
            ensure_enrichment_transition(state.status, EnrichmentStatus.FAILED)
            state.status = EnrichmentStatus.FAILED
            state.current_item_id = None
            return deepcopy(state)

    # ------------------------------------------------------------------
    # designs
    # ------------------------------------------------------------------
    def create_design(
        self,
        project_id: str,
        *,
        locked_attributes: dict[str, str],
        predicted_attributes: dict[str, str],
        target_success_score: float,
        context_attributes: dict[str, str] | None = None,
        prediction_metadata: dict[str, object] | None = None,
    ) -> GeneratedDesign:
        with self._lock:
            project = self._project(project_id)
            project.design_count += 1
            design = GeneratedDesign(
                design_id=uuid.uuid4().hex,
                project_id=project_id,
                name=f"{project.name}_{project.design_count:03d}",
                locked_attributes=dict(locked_attributes),
                predicted_attributes=dict(predicted_attributes),
                target_success_score=target_success_score,
                context_attributes=dict(context_attributes or {}),
                prediction_metadata=dict(prediction_metadata or {}),
                created_at=_now(),
            )
            self._designs[design.design_id] = design
            return deepcopy(design)

    def get_design(self, project_id: str, design_id: str) -> GeneratedDesign | None:
        with self._lock:
            design = self._designs.get(design_id)
            if design is None or design.project_id != project_id:
                return None
            return deepcopy(design)

    def list_designs(self, project_id: str) -> list[GeneratedDesign]:
        with self._lock:
            self._project(project_id)
            designs = [deepcopy(design) for design in self._designs.values() if design.project_id == project_id]
        designs.sort(key=lambda design: design.created_at or "", reverse=True)
        return designs

    def set_view_state(self, design_id: str, view: str, status: StageStatus, url: str | None = None) -> None:
        with self._lock:
            design = self._design(design_id)
            views = deepcopy(design.views)
            current = views[view]
            ensure_stage_transition(current.status, status, entity=f"{view} view")
            current.status = status
            current.url = url if status is StageStatus.COMPLETED else None
            design.views = views

    def set_image_status(self, design_id: str, status: ImageStatus) -> None:
        with self._lock:
            design = self._design(design_id)
            ensure_image_transition(design.image_status, status)
            design.image_status = status

    def set_sales_text(self, design_id: str, status: StageStatus, text: str | None = None) -> None:
        with self._lock:
            design = self._design(design_id)
            ensure_stage_transition(design.sales_text_status, status, entity="sales text")
            design.sales_text_status = status
            if text is not None:
                design.sales_text = text

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        with self._lock:
            self._projects.clear()
            self._items.clear()
            self._designs.clear()
