"""Database models."""

from learnpath.models.roadmap import Roadmap

__all__ = ["Roadmap"]
