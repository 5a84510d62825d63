"""Application services."""

from .designs import DesignService, build_context_rows, build_query_row
from .engine import Engine, build_engine, configure_engine, get_engine, reset_engine_state
from .enrichment import EnrichmentService
from .projects import ProjectService

__all__ = [
    "DesignService",
    "Engine",
    "EnrichmentService",
    "ProjectService",
    "build_context_rows",
    "build_engine",
    "configure_engine",
    "get_engine",
    "reset_engine_state",
]
