"""Prediction and design lookup use cases."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from atelier.core.errors import (
    ConfigurationError,
    DesignNotFoundError,
    InsufficientContextError,
    InvalidRequestError,
    ProjectNotFoundError,
)
from atelier.core.ontology import round_half_up
from atelier.core.schema import DesignNameRequest, PredictRequest
from atelier.domain import ContextItem, GeneratedDesign
from atelier.infrastructure import CopySynthesizer, StatusStore
from atelier.infrastructure.predictor import PREDICT_PLACEHOLDER
from atelier.workers.generation import GenerationPipeline

logger = logging.getLogger(__name__)

MAX_AI_VARIABLES = 10
SUCCESS_SCORE_COLUMN = "success_score"


def _score_value(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def resolve_column(item: ContextItem, column: str) -> str | None:
    """Value of ``column`` for one enriched item, or ``None`` when it has none.

    ``article_<field>`` reads the article's own fields; ``ontology_<type>_<attr>``
    reads the enriched attribute ``<attr>``.
    """

    if column.startswith("article_"):
        field = column[len("article_"):]
        if field == "product_type":
            return item.product_type or None
        return item.article_attributes.get(field) or None
    if column.startswith("ontology_"):
        parts = column.split("_")
        if len(parts) < 3:
            return None
        attribute = "_".join(parts[2:])
        return (item.enriched_attributes or {}).get(attribute) or None
    return None


def build_context_rows(items: Iterable[ContextItem], columns: list[str]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for item in items:
        if item.enriched_attributes is None:
            continue
        row: dict[str, Any] = {SUCCESS_SCORE_COLUMN: round_half_up(item.velocity_score)}
        complete = True
        for column in columns:
            value = resolve_column(item, column)
            if value is None:
                complete = False
                break
            row[column] = value
        if complete:
            rows.append(row)
    return rows


def build_query_row(
    target_success_score: float,
    locked_attributes: Mapping[str, str],
    ai_variables: Iterable[str],
) -> dict[str, Any]:
    row: dict[str, Any] = {SUCCESS_SCORE_COLUMN: _score_value(target_success_score)}
    row.update(locked_attributes)
    for variable in ai_variables:
        row[variable] = PREDICT_PLACEHOLDER
    return row


class DesignService:
    def __init__(
        self,
        store: StatusStore,
        pipeline: GenerationPipeline,
        copywriter: CopySynthesizer | None = None,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._copywriter = copywriter

    def _items(self, project_id: str) -> list[ContextItem]:
        if self._store.get_project(project_id) is None:
            raise ProjectNotFoundError(project_id)
        return self._store.list_context_items(project_id)

    def prediction_preview(self, project_id: str) -> dict[str, int]:
        items = self._items(project_id)
        enriched = sum(1 for item in items if item.enriched_attributes is not None)
        return {"totalCount": len(items), "enrichedCount": enriched}

    async def predict(self, project_id: str, request: PredictRequest) -> dict[str, Any]:
        ai_variables = list(request.ai_variables)
        if not ai_variables:
            raise InvalidRequestError("At least one AI variable is required", "aiVariables array cannot be empty")
        if len(ai_variables) > MAX_AI_VARIABLES:
            raise InvalidRequestError(
                "Too many AI variables",
                f"Maximum {MAX_AI_VARIABLES} AI variables allowed, got {len(ai_variables)}",
            )

        enriched = [item for item in self._items(project_id) if item.enriched_attributes is not None]
        if not enriched:
            raise InsufficientContextError(
                "No enriched context items",
                "Run image enrichment before making predictions",
            )

        locked = dict(request.locked_attributes)
        columns = [*locked.keys(), *ai_variables]
        context_rows = build_context_rows(enriched, columns)
        query_row = build_query_row(request.success_score, locked, ai_variables)
        logger.info(
            "Predicting %d attribute(s) for project %s from %d context row(s)",
            len(ai_variables),
            project_id,
            len(context_rows),
        )

        design = await self._pipeline.create_design(
            project_id,
            locked_attributes=locked,
            ai_variables=ai_variables,
            target_success_score=request.success_score,
            context_rows=context_rows,
            query_row=query_row,
            context_attributes=request.context_attributes,
        )
        return {
            "success": True,
            "designId": design.design_id,
            "designName": design.name,
            "predictedAttributes": dict(design.predicted_attributes),
            "imageGenerationStatus": design.image_status.value,
            "salesTextGenerationStatus": design.sales_text_status.value,
            "predictionMetadata": dict(design.prediction_metadata),
        }

    def get_design(self, project_id: str, design_id: str) -> GeneratedDesign:
        design = self._store.get_design(project_id, design_id)
        if design is None:
            raise DesignNotFoundError(design_id)
        return design

    def image_status(self, project_id: str, design_id: str) -> dict[str, Any]:
        design = self.get_design(project_id, design_id)
        return {
            "designId": design.design_id,
            "imageStatus": design.image_status.value,
            "generatedImages": design.generated_images(),
            "generatedImageUrl": design.generated_image_url,
            "salesTextStatus": design.sales_text_status.value,
            "salesText": design.sales_text,
        }

    def list_designs(self, project_id: str) -> list[dict[str, Any]]:
        if self._store.get_project(project_id) is None:
            raise ProjectNotFoundError(project_id)
        return [design.to_summary() for design in self._store.list_designs(project_id)]

    async def suggest_name(self, request: DesignNameRequest) -> dict[str, str]:
        product_type = request.product_type.strip()
        if not product_type:
            raise InvalidRequestError("Product type is required")
        if self._copywriter is None:
            raise ConfigurationError("Copywriting LLM is not configured")

        logger.info("Generating design name for %s", product_type)
        name = await self._copywriter.suggest_name(
            product_type,
            dict(request.locked_attributes),
            dict(request.predicted_attributes),
        )
        logger.info("Design name generated: %s", name)
        return {"suggestedName": name}
