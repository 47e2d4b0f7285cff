"""Service layer modules."""

from learnpath.services import (
    analytics_service,
    content_service,
    progress_service,
    roadmap_service,
    sync_coordinator,
)

__all__ = [
    "analytics_service",
    "content_service",
    "progress_service",
    "roadmap_service",
    "sync_coordinator",
]
