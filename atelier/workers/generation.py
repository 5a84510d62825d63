"""Design generation: prediction, then image and sales text stages."""
from __future__ import annotations

import logging
from functools import partial
from typing import Any

from atelier.core.errors import InsufficientContextError
from atelier.core.ontology import round_half_up
from atelier.core.prompting import (
    PromptSet,
    assemble_prompts,
    build_fallback_components,
    preprocess_product_data,
)
from atelier.core.status import VIEWS, ImageStatus, StageStatus, derive_image_status
from atelier.domain import GeneratedDesign
from atelier.infrastructure import (
    AttributePredictor,
    CopySynthesizer,
    ImageStore,
    ImageSynthesis,
    PromptGenerator,
    StatusStore,
)
from atelier.workers.retry import ExponentialRetry, FixedDelayRetry, RetryPolicy
from atelier.workers.supervisor import TaskSupervisor

logger = logging.getLogger(__name__)

MIN_CONTEXT_ROWS = 2


def image_key(design_id: str, view: str) -> str:
    return f"{design_id}_{view}.png"


class GenerationPipeline:
    """Creates a design from a prediction and runs its two background stages.

    The image stage renders front, back and model strictly in that order from
    one shared prompt set. The text stage runs alongside it. Each stage ends in
    a terminal status regardless of what happens to the other.
    """

    def __init__(
        self,
        store: StatusStore,
        predictor: AttributePredictor,
        prompt_generator: PromptGenerator | None,
        image_synthesis: ImageSynthesis,
        image_store: ImageStore,
        copywriter: CopySynthesizer,
        supervisor: TaskSupervisor,
        *,
        prompt_retry: RetryPolicy | None = None,
        image_retry: RetryPolicy | None = None,
        upload_retry: RetryPolicy | None = None,
        text_retry: RetryPolicy | None = None,
    ) -> None:
        self._store = store
        self._predictor = predictor
        self._prompt_generator = prompt_generator
        self._image_synthesis = image_synthesis
        self._image_store = image_store
        self._copywriter = copywriter
        self._supervisor = supervisor
        self._prompt_retry = prompt_retry or FixedDelayRetry(max_attempts=2, base_delay=1.0, label="prompt generation")
        self._image_retry = image_retry or FixedDelayRetry(max_attempts=2, base_delay=2.0, label="image synthesis")
        self._upload_retry = upload_retry or ExponentialRetry(max_attempts=3, base_delay=1.0, label="image upload")
        self._text_retry = text_retry or FixedDelayRetry(max_attempts=2, base_delay=1.0, label="sales text")

    # ------------------------------------------------------------------
    # prediction
    # ------------------------------------------------------------------
    async def create_design(
        self,
        project_id: str,
        *,
        locked_attributes: dict[str, str],
        ai_variables: list[str],
        target_success_score: float,
        context_rows: list[dict[str, Any]],
        query_row: dict[str, Any],
        context_attributes: dict[str, str] | None = None,
    ) -> GeneratedDesign:
        """Predict the open attributes and persist the design; nothing is stored on failure."""

        if len(context_rows) < MIN_CONTEXT_ROWS:
            raise InsufficientContextError(
                "Insufficient context data",
                f"Only {len(context_rows)} valid context rows found. At least {MIN_CONTEXT_ROWS} are required.",
            )

        prediction = await self._predictor.predict(context_rows, query_row, ai_variables)
        design = self._store.create_design(
            project_id,
            locked_attributes=locked_attributes,
            predicted_attributes=prediction.attributes,
            target_success_score=target_success_score,
            context_attributes=context_attributes,
            prediction_metadata={
                "predictionId": prediction.prediction_id,
                "metadata": prediction.metadata,
                "contextRowsUsed": len(context_rows),
            },
        )
        logger.info("Design %s (%s) created for project %s", design.design_id, design.name, project_id)
        self.launch(design)
        return design

    def launch(self, design: GeneratedDesign) -> None:
        self._supervisor.spawn(self.run_image_stage(design), name=f"design-{design.design_id}-images")
        self._supervisor.spawn(self.run_text_stage(design), name=f"design-{design.design_id}-text")

    # ------------------------------------------------------------------
    # image stage
    # ------------------------------------------------------------------
    async def build_prompts(self, design: GeneratedDesign) -> PromptSet:
        data = preprocess_product_data(
            design.locked_attributes,
            design.predicted_attributes,
            design.context_attributes,
        )
        if self._prompt_generator is not None:
            try:
                components = await self._prompt_retry.call(partial(self._prompt_generator.generate_components, data))
            except Exception as exc:
                logger.warning("Prompt generation failed for design %s, using fallback: %s", design.design_id, exc)
            else:
                return assemble_prompts(components, source="llm")
        return assemble_prompts(build_fallback_components(data), source="fallback")

    async def _render_view(self, design_id: str, view: str, prompt: str) -> None:
        self._store.set_view_state(design_id, view, StageStatus.GENERATING)
        try:
            image = await self._image_retry.call(partial(self._image_synthesis.generate, prompt))
            url = await self._upload_retry.call(partial(self._image_store.put, image_key(design_id, view), image))
        except Exception as exc:
            logger.warning("View %s of design %s failed: %s", view, design_id, exc)
            self._store.set_view_state(design_id, view, StageStatus.FAILED)
        else:
            self._store.set_view_state(design_id, view, StageStatus.COMPLETED, url)
            logger.info("View %s of design %s stored at %s", view, design_id, url)

    def _fail_open_views(self, design: GeneratedDesign) -> None:
        current = self._store.get_design(design.project_id, design.design_id)
        if current is None:
            return
        for view, state in current.views.items():
            if state.status in (StageStatus.PENDING, StageStatus.GENERATING):
                self._store.set_view_state(design.design_id, view, StageStatus.FAILED)

    async def run_image_stage(self, design: GeneratedDesign) -> ImageStatus:
        design_id = design.design_id
        self._store.set_image_status(design_id, ImageStatus.GENERATING)
        try:
            prompts = await self.build_prompts(design)
            logger.info("Rendering design %s from %s prompts", design_id, prompts.source)
            for view in VIEWS:
                await self._render_view(design_id, view, prompts.for_view(view))
        except Exception:
            logger.exception("Image stage of design %s aborted", design_id)
            self._fail_open_views(design)

        current = self._store.get_design(design.project_id, design_id)
        views = current.views if current else {}
        status = derive_image_status(state.status for state in views.values())
        self._store.set_image_status(design_id, status)
        logger.info("Image stage of design %s finished: %s", design_id, status.value)
        return status

    # ------------------------------------------------------------------
    # text stage
    # ------------------------------------------------------------------
    async def _front_image_snapshot(self, design: GeneratedDesign) -> bytes | None:
        current = self._store.get_design(design.project_id, design.design_id)
        if current is None or current.image_status is not ImageStatus.COMPLETED:
            return None
        try:
            return await self._image_store.get(image_key(design.design_id, "front"))
        except Exception as exc:
            logger.warning("Front image of design %s unavailable for copy: %s", design.design_id, exc)
            return None

    async def run_text_stage(self, design: GeneratedDesign) -> StageStatus:
        design_id = design.design_id
        self._store.set_sales_text(design_id, StageStatus.GENERATING)
        try:
            data = preprocess_product_data(
                design.locked_attributes,
                design.predicted_attributes,
                design.context_attributes,
            )
            image = await self._front_image_snapshot(design)
            text = await self._text_retry.call(
                partial(
                    self._copywriter.generate,
                    data.product_type,
                    {**design.locked_attributes, **design.predicted_attributes},
                    round_half_up(design.target_success_score),
                    image,
                )
            )
        except Exception as exc:
            logger.warning("Sales text for design %s failed: %s", design_id, exc)
            self._store.set_sales_text(design_id, StageStatus.FAILED)
            return StageStatus.FAILED

        self._store.set_sales_text(design_id, StageStatus.COMPLETED, text)
        logger.info("Sales text for design %s completed", design_id)
        return StageStatus.COMPLETED
