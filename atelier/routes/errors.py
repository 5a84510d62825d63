"""Translation of engine errors into HTTP responses."""
from __future__ import annotations

import logging
from typing import NoReturn

import httpx
from fastapi import HTTPException

from atelier.core.errors import (
    AtelierError,
    ConfigurationError,
    DesignNotFoundError,
    EnrichmentAlreadyRunningError,
    InvalidRequestError,
    PredictionError,
    ProjectInactiveError,
    ProjectNotFoundError,
)

logger = logging.getLogger(__name__)

_BAD_REQUEST = (InvalidRequestError, ProjectInactiveError, EnrichmentAlreadyRunningError, ConfigurationError)


def raise_http_error(exc: Exception) -> NoReturn:
    if isinstance(exc, (ProjectNotFoundError, DesignNotFoundError)):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, InvalidRequestError) and exc.details:
        raise HTTPException(status_code=400, detail={"error": str(exc), "details": exc.details}) from exc
    if isinstance(exc, _BAD_REQUEST):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, (PredictionError, httpx.HTTPError)):
        logger.error("Upstream failure: %s", exc)
        raise HTTPException(status_code=502, detail={"error": "Prediction failed", "details": str(exc)}) from exc
    if isinstance(exc, AtelierError):
        logger.exception("Unhandled engine error")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    raise exc
