"""Exception hierarchy shared by the engine, the services and the routers."""
from __future__ import annotations


class AtelierError(Exception):
    """Base class for all engine errors."""


# ----------------------------------------------------------------------
# permanent errors (never retried)
# ----------------------------------------------------------------------
class PermanentError(AtelierError):
    """Raised for structurally invalid input; retrying cannot succeed."""


class ConfigurationError(PermanentError):
    """Raised when a project is not configured for enrichment."""


class ProjectNotFoundError(PermanentError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class DesignNotFoundError(PermanentError):
    def __init__(self, design_id: str) -> None:
        super().__init__(f"Design {design_id} not found")
        self.design_id = design_id


class ImageNotFoundError(PermanentError):
    """Raised when an image is missing from storage."""


# ----------------------------------------------------------------------
# transient errors
# ----------------------------------------------------------------------
class InferenceError(AtelierError):
    """Raised when a model service returns an unusable response."""


class PredictionError(AtelierError):
    """Raised when the attribute predictor cannot produce a prediction."""


class PersistenceError(AtelierError):
    """Raised when per-item outcomes could not be recorded."""


class RetryExhaustedError(AtelierError):
    """Raised by :class:`RetryPolicy` once every attempt has failed."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


# ----------------------------------------------------------------------
# request-level errors
# ----------------------------------------------------------------------
class InvalidRequestError(AtelierError):
    """Raised when a request payload is semantically invalid."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.details = details


class InsufficientContextError(InvalidRequestError):
    """Raised when too few context rows are available for a prediction."""


class ProjectInactiveError(AtelierError):
    """Raised when an operation requires an active project."""


class EnrichmentAlreadyRunningError(AtelierError):
    """Raised when a run is requested while another one is in progress."""


class InvalidTransitionError(AtelierError):
    """Raised when a status write would move an entity backwards."""

    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(f"Illegal {entity} transition: {current} -> {target}")
        self.entity = entity
        self.current = current
        self.target = target


def error_message(exc: BaseException) -> str:
    """Flatten an exception into the message persisted against an item."""

    if isinstance(exc, RetryExhaustedError):
        return error_message(exc.last_error)
    message = str(exc).strip()
    return message or exc.__class__.__name__
