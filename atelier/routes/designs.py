from __future__ import annotations

import httpx
import openai
from fastapi import APIRouter, HTTPException

from atelier.application import get_engine
from atelier.core.errors import AtelierError
from atelier.core.schema import DesignNameRequest, PredictRequest
from atelier.routes.errors import raise_http_error

router = APIRouter(prefix="/projects", tags=["designs"])
names_router = APIRouter(tags=["designs"])


@router.post("/{project_id}/predict", status_code=201)
async def predict(project_id: str, payload: PredictRequest) -> dict:
    try:
        return await get_engine().designs.predict(project_id, payload)
    except (AtelierError, httpx.HTTPError) as exc:
        raise_http_error(exc)


@router.get("/{project_id}/prediction-preview")
async def prediction_preview(project_id: str) -> dict:
    try:
        return get_engine().designs.prediction_preview(project_id)
    except AtelierError as exc:
        raise_http_error(exc)


@router.get("/{project_id}/designs")
async def list_designs(project_id: str) -> dict:
    try:
        return {"items": get_engine().designs.list_designs(project_id)}
    except AtelierError as exc:
        raise_http_error(exc)


@router.get("/{project_id}/designs/{design_id}/image-status")
async def get_image_status(project_id: str, design_id: str) -> dict:
    try:
        return get_engine().designs.image_status(project_id, design_id)
    except AtelierError as exc:
        raise_http_error(exc)


@names_router.post("/generate-design-name")
async def generate_design_name(payload: DesignNameRequest) -> dict:
    try:
        return await get_engine().designs.suggest_name(payload)
    except AtelierError as exc:
        raise_http_error(exc)
    except openai.OpenAIError as exc:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to generate name", "details": str(exc)},
        ) from exc
