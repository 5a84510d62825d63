"""Domain entities for generated designs."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from atelier.core.status import VIEWS, ImageStatus, StageStatus


@dataclass(slots=True)
class ViewState:
    url: str | None = None
    status: StageStatus = StageStatus.PENDING

    def to_payload(self) -> dict[str, Any]:
        return {"url": self.url, "status": self.status.value}


def _pending_views() -> dict[str, ViewState]:
    return {view: ViewState() for view in VIEWS}


@dataclass(slots=True)
class GeneratedDesign:
    """Predicted attributes plus the image and copy artifacts derived from them."""

    design_id: str
    project_id: str
    name: str
    locked_attributes: dict[str, str]
    predicted_attributes: dict[str, str]
    target_success_score: float = 100
    context_attributes: dict[str, str] = field(default_factory=dict)
    views: dict[str, ViewState] = field(default_factory=_pending_views)
    image_status: ImageStatus = ImageStatus.PENDING
    sales_text: str | None = None
    sales_text_status: StageStatus = StageStatus.PENDING
    prediction_metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None

    @property
    def generated_image_url(self) -> str | None:
        front = self.views.get("front")
        return front.url if front else None

    @property
    def input_constraints(self) -> dict[str, Any]:
        return {**self.locked_attributes, "_targetSuccessScore": self.target_success_score}

    def generated_images(self) -> dict[str, dict[str, Any]]:
        return {view: state.to_payload() for view, state in self.views.items()}

    def to_summary(self) -> dict[str, Any]:
        return {
            "designId": self.design_id,
            "name": self.name,
            "inputConstraints": self.input_constraints,
            "predictedAttributes": dict(self.predicted_attributes),
            "imageGenerationStatus": self.image_status.value,
            "salesTextGenerationStatus": self.sales_text_status.value,
            "generatedImageUrl": self.generated_image_url,
            "createdAt": self.created_at,
        }
