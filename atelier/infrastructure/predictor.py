"""Tabular attribute predictor reached through deployment discovery."""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from atelier.core.errors import PredictionError

logger = logging.getLogger(__name__)

PREDICT_PLACEHOLDER = "[PREDICT]"

Row = dict[str, Any]


@dataclass(slots=True)
class PredictionResult:
    attributes: dict[str, str]
    prediction_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AttributePredictor(Protocol):
    async def predict(self, context_rows: list[Row], query_row: Row, target_columns: list[str]) -> PredictionResult: ...


class DeploymentPredictorClient:
    """Client for an in-context tabular model served behind an AI platform."""

    def __init__(
        self,
        ai_api_url: str,
        auth_url: str,
        client_id: str,
        client_secret: str,
        *,
        resource_group: str = "default",
        deployment_keyword: str = "rpt",
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._ai_api_url = ai_api_url.rstrip("/")
        self._auth_url = auth_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._resource_group = resource_group
        self._deployment_keyword = deployment_keyword.lower()
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _get_token(self) -> str:
        credentials = base64.b64encode(f"{self._client_id}:{self._client_secret}".encode("utf-8")).decode("ascii")
        response = await self._client.post(
            f"{self._auth_url}/oauth/token",
            headers={"Authorization": f"Basic {credentials}"},
            data={"grant_type": "client_credentials"},
        )
        if response.is_error:
            logger.error("Predictor OAuth failed: %s %s", response.status_code, response.text)
            raise PredictionError(f"OAuth authentication failed: {response.status_code}")
        token = response.json().get("access_token")
        if not token:
            raise PredictionError("OAuth response did not contain an access token")
        return token

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "AI-Resource-Group": self._resource_group}

    async def _discover_deployment(self, token: str) -> str:
        response = await self._client.get(f"{self._ai_api_url}/v2/lm/deployments", headers=self._headers(token))
        if response.is_error:
            raise PredictionError(f"Failed to fetch deployments: {response.status_code}")

        resources = response.json().get("resources") or []
        for deployment in resources:
            name = str(deployment.get("configurationName") or "").lower()
            if self._deployment_keyword in name and deployment.get("status") == "RUNNING":
                url = deployment.get("deploymentUrl")
                if url:
                    logger.info("Using deployment %s", deployment.get("configurationName"))
                    return str(url).rstrip("/")

        names = [deployment.get("configurationName") for deployment in resources]
        logger.error("No running predictor deployment among %s", names)
        raise PredictionError("No running predictor deployment found")

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def predict(self, context_rows: list[Row], query_row: Row, target_columns: list[str]) -> PredictionResult:
        token = await self._get_token()
        deployment_url = await self._discover_deployment(token)

        payload = {
            "prediction_config": {
                "target_columns": [
                    {"name": name, "prediction_placeholder": PREDICT_PLACEHOLDER} for name in target_columns
                ]
            },
            "rows": [*context_rows, query_row],
        }
        logger.info("Calling predictor with %d context rows", len(context_rows))
        response = await self._client.post(f"{deployment_url}/predict", headers=self._headers(token), json=payload)
        if response.is_error:
            logger.error("Predictor API error: %s %s", response.status_code, response.text[:500])
            raise PredictionError(f"Predictor API error: {response.status_code}")

        body = response.json()
        predictions = body.get("predictions") or []
        if not predictions:
            raise PredictionError("No predictions returned")

        first = predictions[0]
        attributes: dict[str, str] = {}
        for name in target_columns:
            candidates = first.get(name) or []
            if candidates:
                attributes[name] = str(candidates[0].get("prediction"))
        return PredictionResult(
            attributes=attributes,
            prediction_id=body.get("id"),
            metadata=dict(body.get("metadata") or {}),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
