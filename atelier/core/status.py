"""Status vocabulary and transition tables for projects, items and designs."""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Mapping

from atelier.core.errors import InvalidTransitionError


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"


class EnrichmentStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ItemStatus(str, Enum):
    PENDING = "pending"
    ENRICHED = "enriched"
    FAILED = "failed"


class StageStatus(str, Enum):
    """Status of a single view or of the sales text stage."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class ImageStatus(str, Enum):
    """Aggregate status of the three image views of a design."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


VIEWS: tuple[str, ...] = ("front", "back", "model")

PROJECT_TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.DRAFT: frozenset({ProjectStatus.ACTIVE}),
    ProjectStatus.ACTIVE: frozenset(),
}

ITEM_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.ENRICHED, ItemStatus.FAILED}),
    ItemStatus.ENRICHED: frozenset(),
    ItemStatus.FAILED: frozenset({ItemStatus.PENDING}),
}

ENRICHMENT_TRANSITIONS: dict[EnrichmentStatus, frozenset[EnrichmentStatus]] = {
    EnrichmentStatus.IDLE: frozenset({EnrichmentStatus.RUNNING}),
    EnrichmentStatus.RUNNING: frozenset({EnrichmentStatus.COMPLETED, EnrichmentStatus.FAILED}),
    EnrichmentStatus.COMPLETED: frozenset({EnrichmentStatus.RUNNING}),
    EnrichmentStatus.FAILED: frozenset({EnrichmentStatus.RUNNING}),
}

STAGE_TRANSITIONS: dict[StageStatus, frozenset[StageStatus]] = {
    StageStatus.PENDING: frozenset({StageStatus.GENERATING, StageStatus.FAILED}),
    StageStatus.GENERATING: frozenset({StageStatus.COMPLETED, StageStatus.FAILED}),
    StageStatus.COMPLETED: frozenset(),
    StageStatus.FAILED: frozenset(),
}

IMAGE_TRANSITIONS: dict[ImageStatus, frozenset[ImageStatus]] = {
    ImageStatus.PENDING: frozenset({ImageStatus.GENERATING, ImageStatus.FAILED}),
    ImageStatus.GENERATING: frozenset({ImageStatus.COMPLETED, ImageStatus.FAILED, ImageStatus.PARTIAL}),
    ImageStatus.COMPLETED: frozenset(),
    ImageStatus.FAILED: frozenset(),
    ImageStatus.PARTIAL: frozenset(),
}

TERMINAL_STAGE_STATES = frozenset({StageStatus.COMPLETED, StageStatus.FAILED})


def _check(entity: str, table: Mapping, current: Enum, target: Enum) -> None:
    if current == target:
        return
    if target not in table.get(current, frozenset()):
        raise InvalidTransitionError(entity, current.value, target.value)


def ensure_project_transition(current: ProjectStatus, target: ProjectStatus) -> None:
    _check("project", PROJECT_TRANSITIONS, current, target)


def ensure_item_transition(current: ItemStatus, target: ItemStatus) -> None:
    _check("item", ITEM_TRANSITIONS, current, target)


def ensure_enrichment_transition(current: EnrichmentStatus, target: EnrichmentStatus) -> None:
    _check("enrichment", ENRICHMENT_TRANSITIONS, current, target)


def ensure_stage_transition(current: StageStatus, target: StageStatus, *, entity: str = "stage") -> None:
    _check(entity, STAGE_TRANSITIONS, current, target)


def ensure_image_transition(current: ImageStatus, target: ImageStatus) -> None:
    _check("image", IMAGE_TRANSITIONS, current, target)


def derive_image_status(view_statuses: Iterable[StageStatus]) -> ImageStatus:
    """Aggregate the per-view statuses into the design-level image status."""

    statuses = [StageStatus(status) for status in view_statuses]
    if not statuses:
        return ImageStatus.PENDING
    if all(status is StageStatus.COMPLETED for status in statuses):
        return ImageStatus.COMPLETED
    if all(status is StageStatus.FAILED for status in statuses):
        return ImageStatus.FAILED
    if any(status in TERMINAL_STAGE_STATES for status in statuses):
        return ImageStatus.PARTIAL
    if any(status is StageStatus.GENERATING for status in statuses):
        return ImageStatus.GENERATING
    return ImageStatus.PENDING
