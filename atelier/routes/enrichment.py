from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from atelier.application import get_engine
from atelier.core.errors import AtelierError
from atelier.core.schema import RetryEnrichmentRequest
from atelier.routes.errors import raise_http_error

router = APIRouter(prefix="/projects", tags=["enrichment"])


@router.post("/{project_id}/start-enrichment")
async def start_enrichment(project_id: str) -> dict:
    try:
        return await get_engine().enrichment.start(project_id)
    except AtelierError as exc:
        raise_http_error(exc)


@router.get("/{project_id}/enrichment-progress")
async def stream_enrichment_progress(project_id: str) -> StreamingResponse:
    service = get_engine().enrichment
    try:
        service.require_project(project_id)
    except AtelierError as exc:
        raise_http_error(exc)
    return StreamingResponse(
        service.stream(project_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )


@router.get("/{project_id}/enrichment-status")
async def get_enrichment_status(project_id: str) -> dict:
    try:
        return get_engine().enrichment.status(project_id)
    except AtelierError as exc:
        raise_http_error(exc)


@router.post("/{project_id}/retry-enrichment")
async def retry_enrichment(project_id: str, payload: RetryEnrichmentRequest | None = None) -> dict:
    article_ids = payload.article_ids if payload else None
    try:
        return await get_engine().enrichment.retry(project_id, article_ids)
    except AtelierError as exc:
        raise_http_error(exc)
