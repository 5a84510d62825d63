"""Domain layer definitions."""

from .designs import GeneratedDesign, ViewState
from .projects import ContextItem, EnrichmentResult, Project, ProjectEnrichmentState

__all__ = [
    "ContextItem",
    "EnrichmentResult",
    "GeneratedDesign",
    "Project",
    "ProjectEnrichmentState",
    "ViewState",
]
