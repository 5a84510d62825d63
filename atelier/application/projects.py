"""Project and context item registration."""
from __future__ import annotations

import logging
from typing import Any, Callable

from atelier.core.errors import ProjectNotFoundError
from atelier.core.ontology import extract_ontology_attributes
from atelier.core.schema import ContextItemsCreate, ProjectCreate
from atelier.domain import ContextItem, Project
from atelier.infrastructure import StatusStore

logger = logging.getLogger(__name__)

ImageUrlResolver = Callable[[str, str | None], str]


def project_payload(project: Project) -> dict[str, Any]:
    return {
        "id": project.project_id,
        "name": project.name,
        "status": project.status.value,
        "ontologySchema": project.ontology_schema,
        "createdAt": project.created_at,
        "enrichment": project.enrichment.to_payload() if project.enrichment else None,
    }


class ProjectService:
    def __init__(self, store: StatusStore, image_url: ImageUrlResolver | None = None) -> None:
        self._store = store
        self._image_url = image_url

    def _require(self, project_id: str) -> Project:
        project = self._store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def create(self, payload: ProjectCreate) -> dict[str, Any]:
        project = self._store.create_project(payload.name, payload.ontology_schema, status=payload.status)
        logger.info("Project %s (%s) created", project.project_id, project.name)
        return project_payload(project)

    def activate(self, project_id: str) -> dict[str, Any]:
        self._require(project_id)
        return project_payload(self._store.activate_project(project_id))

    def get(self, project_id: str) -> dict[str, Any]:
        return project_payload(self._require(project_id))

    def add_items(self, project_id: str, payload: ContextItemsCreate) -> dict[str, Any]:
        self._require(project_id)
        items = [
            ContextItem(
                article_id=entry.article_id,
                product_type=entry.product_type,
                description=entry.description,
                velocity_score=entry.velocity_score,
                article_attributes=dict(entry.article_attributes),
                image_key=entry.image_key,
            )
            for entry in payload.items
        ]
        added = self._store.add_context_items(project_id, items)
        logger.info("Registered %d of %d context item(s) for project %s", added, len(items), project_id)
        return {"added": added, "skipped": len(items) - added}

    def _item_payload(self, item: ContextItem) -> dict[str, Any]:
        return {
            "articleId": item.article_id,
            "productType": item.product_type,
            "description": item.description,
            "velocityScore": item.velocity_score,
            "articleAttributes": dict(item.article_attributes),
            "imageUrl": self._image_url(item.article_id, item.image_key) if self._image_url else None,
            "enrichmentStatus": item.status.value,
            "enrichedAttributes": item.enriched_attributes,
            "enrichmentError": item.enrichment_error,
            "mismatchConfidence": item.mismatch_confidence,
        }

    def list_items(self, project_id: str) -> dict[str, Any]:
        project = self._require(project_id)
        items = self._store.list_context_items(project_id)
        return {
            "items": [self._item_payload(item) for item in items],
            "ontologyAttributes": extract_ontology_attributes(project.ontology_schema),
            "enrichment": self._store.get_enrichment_state(project_id).to_payload(),
        }
