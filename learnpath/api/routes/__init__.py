"""API routes."""

from learnpath.api.routes import analytics, roadmaps

__all__ = ["analytics", "roadmaps"]
