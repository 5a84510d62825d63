from __future__ import annotations

from fastapi import APIRouter

from atelier.application import get_engine
from atelier.core.errors import AtelierError
from atelier.core.schema import ContextItemsCreate, ProjectCreate
from atelier.routes.errors import raise_http_error

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("")
async def create_project(payload: ProjectCreate) -> dict:
    return get_engine().projects.create(payload)


@router.get("/{project_id}")
async def get_project(project_id: str) -> dict:
    try:
        return get_engine().projects.get(project_id)
    except AtelierError as exc:
        raise_http_error(exc)


@router.post("/{project_id}/activate")
async def activate_project(project_id: str) -> dict:
    try:
        return get_engine().projects.activate(project_id)
    except AtelierError as exc:
        raise_http_error(exc)


@router.post("/{project_id}/context-items")
async def add_context_items(project_id: str, payload: ContextItemsCreate) -> dict:
    try:
        return get_engine().projects.add_items(project_id, payload)
    except AtelierError as exc:
        raise_http_error(exc)


@router.get("/{project_id}/context-items")
async def list_context_items(project_id: str) -> dict:
    try:
        return get_engine().projects.list_items(project_id)
    except AtelierError as exc:
        raise_http_error(exc)
