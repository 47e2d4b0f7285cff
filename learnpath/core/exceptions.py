"""Domain exceptions.

Every error raised by the engine derives from ``LearnPathError`` and carries
a human-readable ``message`` plus a ``details`` dict for structured logging.
Each category also subclasses the closest builtin (``ValueError``,
``LookupError``, ``PermissionError``) so callers that only know the builtins
still catch them.

The API layer maps the categories to HTTP status codes:

- ``InputValidationError`` -> 422
- ``NotFoundError`` -> 404
- ``OwnershipError`` -> 403
- ``PersistenceError`` -> 503
"""

from typing import Any


class LearnPathError(Exception):
    """Base exception for engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dict for logging and API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InputValidationError(LearnPathError, ValueError):
    """Input rejected before any state change."""


class ContentValidationError(InputValidationError):
    """Content-producer output has the wrong shape."""


class TaskLockedError(InputValidationError):
    """A task was toggled before its predecessor was completed."""

    def __init__(self, milestone_id: str, task_id: str) -> None:
        super().__init__(
            f"Task {task_id} in milestone {milestone_id} is locked",
            {"milestone_id": milestone_id, "task_id": task_id},
        )


class NotFoundError(LearnPathError, LookupError):
    """Addressed roadmap, milestone or task does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} {identifier} not found", {"kind": kind, "id": identifier})


class OwnershipError(LearnPathError, PermissionError):
    """Roadmap does not belong to the requesting owner."""

    def __init__(self, roadmap_id: object, owner_id: str) -> None:
        super().__init__(
            f"Roadmap {roadmap_id} does not belong to owner {owner_id}",
            {"roadmap_id": roadmap_id, "owner_id": owner_id},
        )


class PersistenceError(LearnPathError):
    """The store of record could not be reached or refused a write."""
