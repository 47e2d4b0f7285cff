"""Sync coordinator for optimistic roadmap updates.

Mutations happen in two phases:

1. ``apply_local_mutation`` transforms the in-memory roadmap synchronously.
   The caller shows the result straight away.
2. The full mutated document is written to the store in the background.
   A failed write is reported as a ``SyncWarning`` and the optimistic local
   state is kept; nothing is rolled back.

The store resolves concurrent sessions last-write-wins. Within one
coordinator, writes for the same roadmap are chained so an older document
never lands after a newer one.
"""

import asyncio
from collections.abc import Callable
from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict

from learnpath.core.config import get_settings
from learnpath.core.exceptions import InputValidationError
from learnpath.core.logging import get_logger
from learnpath.schemas.roadmap import (
    MilestoneSchema,
    ProgressBasis,
    QuizReportSchema,
    QuizSubmissionResult,
    RoadmapSchema,
)
from learnpath.services import progress_service

logger = get_logger(__name__)


# ============================================================================
# Mutations
# ============================================================================


class ToggleTask(BaseModel):
    """Flip one task's completion."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["toggle_task"] = "toggle_task"
    milestone_id: str
    task_id: str


class SubmitQuiz(BaseModel):
    """Record a quiz attempt against a milestone."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["submit_quiz"] = "submit_quiz"
    milestone_id: str
    report: QuizReportSchema


Mutation = ToggleTask | SubmitQuiz


class SyncWarning(BaseModel):
    """A background write that did not reach the store."""

    roadmap_id: int | None
    owner_id: str
    error_type: str
    message: str


class SyncResult(BaseModel):
    ok: bool
    roadmap_id: int | None
    warning: SyncWarning | None = None


class RoadmapStore(Protocol):
    """Store of record contract."""

    async def create(self, owner_id: str, roadmap: RoadmapSchema) -> int: ...

    async def list_roadmaps(self, owner_id: str) -> list[RoadmapSchema]: ...

    async def get(self, owner_id: str, roadmap_id: int) -> RoadmapSchema: ...

    async def replace(
        self,
        owner_id: str,
        roadmap_id: int,
        milestones: list[MilestoneSchema],
        progress_basis: ProgressBasis = "tasks",
    ) -> RoadmapSchema: ...

    async def delete(self, owner_id: str, roadmap_id: int) -> None: ...

    async def add_quiz_report(
        self,
        owner_id: str,
        roadmap_id: int,
        milestone_id: str,
        report: QuizReportSchema,
    ) -> QuizSubmissionResult: ...


def progress_basis_for(mutation: Mutation) -> ProgressBasis:
    """Quiz gating drives milestone-weighted progress; toggles drive task-weighted."""
    return "milestones" if isinstance(mutation, SubmitQuiz) else "tasks"


def apply_local_mutation(roadmap: RoadmapSchema, mutation: Mutation) -> RoadmapSchema:
    """Apply a mutation in memory and return the new roadmap.

    The input roadmap is not modified.

    Raises:
        NotFoundError: If the mutation addresses an unknown milestone or task
        InputValidationError: If the mutation itself is invalid
    """
    if isinstance(mutation, ToggleTask):
        return progress_service.toggle_task(roadmap, mutation.milestone_id, mutation.task_id)
    if isinstance(mutation, SubmitQuiz):
        updated, _ = progress_service.apply_quiz_report(
            roadmap, mutation.milestone_id, mutation.report
        )
        return updated
    raise InputValidationError(f"Unknown mutation: {mutation!r}")


# ============================================================================
# Persistence
# ============================================================================


async def persist(
    store: RoadmapStore,
    roadmap: RoadmapSchema,
    owner_id: str,
    progress_basis: ProgressBasis = "tasks",
    timeout: float | None = None,
) -> SyncResult:
    """Write the full roadmap document to the store.

    Never raises for store failures; they come back as a warning result.
    A draft without an id has nothing to overwrite and is reported as a
    failure too.
    """
    if roadmap.id is None:
        return _failure(roadmap, owner_id, "DraftRoadmap", "Roadmap has not been saved yet")

    try:
        await asyncio.wait_for(
            store.replace(owner_id, roadmap.id, roadmap.milestones, progress_basis),
            timeout=timeout,
        )
    except TimeoutError:
        return _failure(roadmap, owner_id, "TimeoutError", f"Persist timed out after {timeout}s")
    except Exception as e:
        return _failure(roadmap, owner_id, type(e).__name__, str(e))

    logger.debug("Roadmap persisted", roadmap_id=roadmap.id, basis=progress_basis)
    return SyncResult(ok=True, roadmap_id=roadmap.id)


def _failure(roadmap: RoadmapSchema, owner_id: str, error_type: str, message: str) -> SyncResult:
    warning = SyncWarning(
        roadmap_id=roadmap.id,
        owner_id=owner_id,
        error_type=error_type,
        message=message,
    )
    logger.warning(
        "Roadmap persist failed",
        roadmap_id=roadmap.id,
        owner_id=owner_id,
        error_type=error_type,
        error=message,
    )
    return SyncResult(ok=False, roadmap_id=roadmap.id, warning=warning)


class SyncCoordinator:
    """Applies mutations locally and persists them in the background.

    ``apply`` returns before the write starts. Called without a running
    event loop it still applies locally and reports the skipped write as a
    warning.
    """

    def __init__(
        self,
        store: RoadmapStore,
        on_warning: Callable[[SyncWarning], None] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.store = store
        self.on_warning = on_warning
        if timeout is None:
            timeout = get_settings().SYNC_PERSIST_TIMEOUT_SECONDS
        self.timeout = timeout
        self.warnings: list[SyncWarning] = []

        # Track background writes for draining and per-roadmap ordering
        self._background_tasks: set[asyncio.Task[SyncResult]] = set()
        self._latest: dict[int, asyncio.Task[SyncResult]] = {}

    @property
    def pending(self) -> int:
        return len(self._background_tasks)

    async def save(self, roadmap: RoadmapSchema, owner_id: str) -> RoadmapSchema:
        """Explicitly save a draft, returning a copy that carries its new id.

        Unlike background writes, failures here propagate to the caller.
        """
        if not roadmap.is_draft:
            raise InputValidationError(
                f"Roadmap {roadmap.id} is already saved", {"roadmap_id": roadmap.id}
            )
        roadmap_id = await self.store.create(owner_id, roadmap)
        logger.info("Draft roadmap saved", roadmap_id=roadmap_id, owner_id=owner_id)
        return roadmap.model_copy(update={"id": roadmap_id})

    def apply(self, roadmap: RoadmapSchema, mutation: Mutation, owner_id: str) -> RoadmapSchema:
        """Apply ``mutation`` and schedule persistence of the result.

        Drafts are only changed locally; they are written on ``save``.
        Without a running event loop nothing can be scheduled, so the write
        is reported as a ``NoEventLoop`` warning and the local result is
        still returned.
        """
        updated = apply_local_mutation(roadmap, mutation)
        if updated.id is None:
            return updated
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._report(
                _failure(updated, owner_id, "NoEventLoop", "No running event loop to persist on")
            )
            return updated
        self._schedule(updated, owner_id, progress_basis_for(mutation))
        return updated

    def _schedule(self, roadmap: RoadmapSchema, owner_id: str, basis: ProgressBasis) -> None:
        previous = self._latest.get(roadmap.id)
        task = asyncio.create_task(self._persist_after(previous, roadmap, owner_id, basis))
        task.add_done_callback(self._on_task_done)
        self._background_tasks.add(task)
        self._latest[roadmap.id] = task

    async def _persist_after(
        self,
        previous: asyncio.Task[SyncResult] | None,
        roadmap: RoadmapSchema,
        owner_id: str,
        basis: ProgressBasis,
    ) -> SyncResult:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        result = await persist(self.store, roadmap, owner_id, basis, self.timeout)
        self._report(result)
        return result

    def _report(self, result: SyncResult) -> None:
        if result.warning is None:
            return
        self.warnings.append(result.warning)
        if self.on_warning is not None:
            self.on_warning(result.warning)

    def _on_task_done(self, task: asyncio.Task[SyncResult]) -> None:
        self._background_tasks.discard(task)
        for roadmap_id, latest in list(self._latest.items()):
            if latest is task:
                del self._latest[roadmap_id]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Background persist failed", error=str(error), exc_info=error)

    async def drain(self) -> list[SyncResult]:
        """Wait for every in-flight write and return their results."""
        results: list[SyncResult] = []
        seen: set[asyncio.Task[SyncResult]] = set()
        while tasks := [t for t in self._background_tasks if t not in seen]:
            seen.update(tasks)
            for outcome in await asyncio.gather(*tasks, return_exceptions=True):
                if isinstance(outcome, SyncResult):
                    results.append(outcome)
        return results
