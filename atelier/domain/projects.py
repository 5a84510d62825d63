"""Domain entities for projects, their context items and enrichment runs."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from atelier.core.ontology import REVIEW_THRESHOLD
from atelier.core.status import EnrichmentStatus, ItemStatus, ProjectStatus


@dataclass(slots=True)
class ProjectEnrichmentState:
    """Aggregate progress of the latest enrichment run of a project."""

    project_id: str
    status: EnrichmentStatus = EnrichmentStatus.IDLE
    processed: int = 0
    total: int = 0
    current_item_id: str | None = None
    started_at: str | None = None
    completed_at: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "progress": {"processed": self.processed, "total": self.total},
            "currentItemId": self.current_item_id,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
        }


@dataclass(slots=True)
class Project:
    project_id: str
    name: str
    status: ProjectStatus = ProjectStatus.DRAFT
    ontology_schema: dict[str, dict[str, list[str]]] | None = None
    created_at: str | None = None
    enrichment: ProjectEnrichmentState | None = None
    design_count: int = 0

    def __post_init__(self) -> None:
        if self.enrichment is None:
            self.enrichment = ProjectEnrichmentState(project_id=self.project_id)


@dataclass(slots=True)
class ContextItem:
    """One catalog article attached to a project; the unit of enrichment work."""

    article_id: str
    product_type: str = ""
    description: str = ""
    velocity_score: float = 0
    article_attributes: dict[str, str] = field(default_factory=dict)
    image_key: str | None = None
    enriched_attributes: dict[str, str] | None = None
    enrichment_error: str | None = None
    mismatch_confidence: int | None = None

    @property
    def status(self) -> ItemStatus:
        if self.enrichment_error is not None:
            return ItemStatus.FAILED
        if self.enriched_attributes is not None:
            return ItemStatus.ENRICHED
        return ItemStatus.PENDING


@dataclass(slots=True)
class EnrichmentResult:
    item_id: str
    attributes: dict[str, str]
    mismatch_score: int = 0

    @property
    def needs_review(self) -> bool:
        return self.mismatch_score >= REVIEW_THRESHOLD
