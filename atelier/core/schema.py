from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from atelier.core.status import ProjectStatus


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ProjectCreate(ApiModel):
    name: str = Field(min_length=1)
    ontology_schema: dict[str, dict[str, list[str]]] | None = Field(default=None, alias="ontologySchema")
    status: ProjectStatus = ProjectStatus.DRAFT


class ContextItemInput(ApiModel):
    article_id: str = Field(alias="articleId", min_length=1)
    product_type: str = Field(default="", alias="productType")
    description: str = ""
    velocity_score: float = Field(default=0, alias="velocityScore")
    article_attributes: dict[str, str] = Field(default_factory=dict, alias="articleAttributes")
    image_key: str | None = Field(default=None, alias="imageKey")


class ContextItemsCreate(ApiModel):
    items: list[ContextItemInput] = Field(min_length=1)


class RetryEnrichmentRequest(ApiModel):
    article_ids: list[str] | None = Field(default=None, alias="articleIds")


class PredictRequest(ApiModel):
    locked_attributes: dict[str, str] = Field(default_factory=dict, alias="lockedAttributes")
    ai_variables: list[str] = Field(default_factory=list, alias="aiVariables")
    success_score: float = Field(default=100, alias="successScore")
    context_attributes: dict[str, str] | None = Field(default=None, alias="contextAttributes")

    @field_validator("success_score")
    @classmethod
    def _clamp_score(cls, value: float) -> float:
        return max(0.0, min(100.0, value))


class DesignNameRequest(ApiModel):
    product_type: str = Field(default="", alias="productType")
    locked_attributes: dict[str, str] = Field(default_factory=dict, alias="lockedAttributes")
    predicted_attributes: dict[str, str] = Field(default_factory=dict, alias="predictedAttributes")
