"""Roadmap service for CRUD operations and progress tracking.

This is the store of record. Every operation is addressed by owner id and
checks ownership before touching a row. Writes are full-document overwrites
of the milestones column, so concurrent sessions resolve last-write-wins.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnpath.core.database import AsyncSessionLocal, get_db_session
from learnpath.core.exceptions import (
    InputValidationError,
    NotFoundError,
    OwnershipError,
    PersistenceError,
)
from learnpath.core.logging import get_logger
from learnpath.models.roadmap import Roadmap
from learnpath.schemas.roadmap import (
    MilestoneProgress,
    MilestoneSchema,
    ProgressBasis,
    QuizReportSchema,
    QuizSubmissionResult,
    RoadmapCreate,
    RoadmapProgress,
    RoadmapSchema,
)
from learnpath.services import content_service, progress_service

logger = get_logger(__name__)


# ============================================================================
# Conversion
# ============================================================================


def to_schema(roadmap: Roadmap) -> RoadmapSchema:
    """Load a stored row into the in-memory aggregate."""
    return RoadmapSchema(
        id=roadmap.id,
        owner_id=roadmap.owner_id,
        career=roadmap.career,
        timeline=roadmap.timeline,
        total_progress=roadmap.total_progress,
        milestones=roadmap.milestones,
        created_at=roadmap.created_at,
        updated_at=roadmap.updated_at,
    )


def _dump_milestones(milestones: list[MilestoneSchema]) -> list[dict]:
    return [m.model_dump(mode="json") for m in milestones]


# ============================================================================
# Progress
# ============================================================================


def get_roadmap_progress(roadmap: RoadmapSchema) -> RoadmapProgress:
    """Per-milestone progress, unlock state and both roadmap-level formulas."""
    milestones_data = []
    for milestone in roadmap.milestones:
        percentages = [
            progress_service.quiz_percentage(r.score, r.total) for r in milestone.quiz_reports
        ]
        milestones_data.append(
            MilestoneProgress(
                id=milestone.id,
                title=milestone.title,
                week=milestone.week,
                completed=milestone.completed,
                progress=progress_service.compute_milestone_progress(milestone),
                completed_tasks=sum(1 for t in milestone.tasks if t.completed),
                total_tasks=len(milestone.tasks),
                unlocked_task_indexes=progress_service.unlocked_indexes(milestone),
                quiz_attempts=len(milestone.quiz_reports),
                best_quiz_percentage=max(percentages) if percentages else None,
            )
        )

    return RoadmapProgress(
        roadmap_id=roadmap.id,
        career=roadmap.career,
        total_progress=roadmap.total_progress,
        task_progress=progress_service.compute_roadmap_progress_by_tasks(roadmap),
        milestone_progress=progress_service.compute_roadmap_progress_by_milestones(roadmap),
        milestones=milestones_data,
    )


# ============================================================================
# Validation
# ============================================================================


def _check_document_shape(
    existing: list[MilestoneSchema],
    incoming: list[MilestoneSchema],
) -> None:
    """Reject overwrites that reorder structure or rewrite quiz history.

    Milestone and task ids must match the stored order exactly. Stored quiz
    reports must survive unchanged as a prefix of the incoming ones; only
    new trailing reports may be added. Their scores were already checked
    when the schema was built.

    Raises:
        InputValidationError: If the incoming document breaks an invariant
    """
    if [m.id for m in existing] != [m.id for m in incoming]:
        raise InputValidationError(
            "Milestone order cannot change",
            {
                "expected": [m.id for m in existing],
                "received": [m.id for m in incoming],
            },
        )

    for old, new in zip(existing, incoming, strict=True):
        if [t.id for t in old.tasks] != [t.id for t in new.tasks]:
            raise InputValidationError(
                f"Task order of milestone {old.id} cannot change",
                {"milestone_id": old.id},
            )
        history = len(old.quiz_reports)
        if new.quiz_reports[:history] != old.quiz_reports:
            raise InputValidationError(
                f"Quiz history of milestone {old.id} is append-only",
                {"milestone_id": old.id},
            )


# ============================================================================
# CRUD Operations
# ============================================================================


async def create_roadmap(
    db: AsyncSession,
    *,
    owner_id: str,
    roadmap_data: RoadmapCreate,
) -> Roadmap:
    """Persist a new roadmap for ``owner_id``.

    Progress is derived from the submitted completion flags, never taken
    from the client.

    A timeline stating a week count needs exactly one milestone per week.

    Note: This function commits the transaction.
    """
    content_service.check_timeline_fits(roadmap_data.timeline, len(roadmap_data.milestones))

    draft = RoadmapSchema(
        owner_id=owner_id,
        career=roadmap_data.career,
        timeline=roadmap_data.timeline,
        milestones=roadmap_data.milestones,
    )
    roadmap = Roadmap(
        owner_id=owner_id,
        career=draft.career,
        timeline=draft.timeline,
        total_progress=progress_service.compute_roadmap_progress_by_tasks(draft),
        milestones=_dump_milestones(draft.milestones),
    )
    db.add(roadmap)
    await db.commit()
    await db.refresh(roadmap)

    logger.info(
        "Roadmap created",
        roadmap_id=roadmap.id,
        owner_id=owner_id,
        milestones=len(draft.milestones),
    )
    return roadmap


async def list_owner_roadmaps(
    db: AsyncSession,
    owner_id: str,
) -> list[Roadmap]:
    """List an owner's roadmaps, newest first."""
    result = await db.execute(
        select(Roadmap)
        .where(Roadmap.owner_id == owner_id)
        .order_by(Roadmap.created_at.desc(), Roadmap.id.desc())
    )
    return list(result.scalars().all())


async def get_owned_roadmap(
    db: AsyncSession,
    owner_id: str,
    roadmap_id: int,
) -> Roadmap:
    """Get a roadmap by ID, checking that ``owner_id`` owns it.

    Raises:
        NotFoundError: If no roadmap has this ID
        OwnershipError: If the roadmap belongs to someone else
    """
    roadmap = await db.get(Roadmap, roadmap_id)
    if roadmap is None:
        raise NotFoundError("Roadmap", roadmap_id)
    if roadmap.owner_id != owner_id:
        logger.warning("Ownership violation", roadmap_id=roadmap_id, owner_id=owner_id)
        raise OwnershipError(roadmap_id, owner_id)
    return roadmap


async def replace_roadmap(
    db: AsyncSession,
    *,
    owner_id: str,
    roadmap_id: int,
    milestones: list[MilestoneSchema],
    progress_basis: ProgressBasis = "tasks",
) -> Roadmap:
    """Overwrite a roadmap's milestones (last write wins).

    ``total_progress`` is recomputed with the named formula.

    Note: This function commits the transaction.
    """
    roadmap = await get_owned_roadmap(db, owner_id, roadmap_id)
    current = to_schema(roadmap)
    _check_document_shape(current.milestones, milestones)

    current.milestones = milestones
    roadmap.milestones = _dump_milestones(milestones)
    roadmap.total_progress = progress_service.compute_roadmap_progress(current, progress_basis)

    await db.commit()
    await db.refresh(roadmap)

    logger.info(
        "Roadmap replaced",
        roadmap_id=roadmap_id,
        total_progress=roadmap.total_progress,
        basis=progress_basis,
    )
    return roadmap


async def delete_roadmap(
    db: AsyncSession,
    *,
    owner_id: str,
    roadmap_id: int,
) -> None:
    """Delete a roadmap.

    Note: This function commits the transaction.
    """
    roadmap = await get_owned_roadmap(db, owner_id, roadmap_id)
    await db.delete(roadmap)
    await db.commit()
    logger.info("Roadmap deleted", roadmap_id=roadmap_id, owner_id=owner_id)


async def add_quiz_report(
    db: AsyncSession,
    *,
    owner_id: str,
    roadmap_id: int,
    milestone_id: str,
    report: QuizReportSchema,
) -> QuizSubmissionResult:
    """Append a quiz report and apply gating server-side.

    Runs the same ``apply_quiz_report`` as the client mirror so the two
    never diverge.

    Note: This function commits the transaction.
    """
    roadmap = await get_owned_roadmap(db, owner_id, roadmap_id)
    updated, result = progress_service.apply_quiz_report(to_schema(roadmap), milestone_id, report)

    roadmap.milestones = _dump_milestones(updated.milestones)
    roadmap.total_progress = updated.total_progress
    await db.commit()

    logger.info(
        "Quiz report saved",
        roadmap_id=roadmap_id,
        milestone_id=milestone_id,
        percentage=result.percentage,
        passed=result.passed,
        total_progress=result.new_total_progress,
    )
    return result


async def toggle_task(
    db: AsyncSession,
    *,
    owner_id: str,
    roadmap_id: int,
    milestone_id: str,
    task_id: str,
) -> Roadmap:
    """Flip a task's completion server-side.

    Note: This function commits the transaction.
    """
    roadmap = await get_owned_roadmap(db, owner_id, roadmap_id)
    updated = progress_service.toggle_task(to_schema(roadmap), milestone_id, task_id)

    roadmap.milestones = _dump_milestones(updated.milestones)
    roadmap.total_progress = updated.total_progress
    await db.commit()
    await db.refresh(roadmap)

    logger.info(
        "Task toggled",
        roadmap_id=roadmap_id,
        milestone_id=milestone_id,
        task_id=task_id,
        total_progress=roadmap.total_progress,
    )
    return roadmap


# ============================================================================
# Store
# ============================================================================


class SqlRoadmapStore:
    """Session-per-call adapter exposing the store contract.

    Used by the sync coordinator, which runs outside any request scope.
    Database failures surface as ``PersistenceError``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with get_db_session(self._session_factory) as db:
                yield db
        except SQLAlchemyError as e:
            logger.error("Roadmap store failure", error=str(e))
            raise PersistenceError(f"Roadmap store unavailable: {e}") from e

    async def create(self, owner_id: str, roadmap: RoadmapSchema) -> int:
        async with self._session() as db:
            row = await create_roadmap(
                db,
                owner_id=owner_id,
                roadmap_data=RoadmapCreate(
                    career=roadmap.career,
                    timeline=roadmap.timeline,
                    milestones=roadmap.milestones,
                ),
            )
            return row.id

    async def list_roadmaps(self, owner_id: str) -> list[RoadmapSchema]:
        async with self._session() as db:
            return [to_schema(r) for r in await list_owner_roadmaps(db, owner_id)]

    async def get(self, owner_id: str, roadmap_id: int) -> RoadmapSchema:
        async with self._session() as db:
            return to_schema(await get_owned_roadmap(db, owner_id, roadmap_id))

    async def replace(
        self,
        owner_id: str,
        roadmap_id: int,
        milestones: list[MilestoneSchema],
        progress_basis: ProgressBasis = "tasks",
    ) -> RoadmapSchema:
        async with self._session() as db:
            row = await replace_roadmap(
                db,
                owner_id=owner_id,
                roadmap_id=roadmap_id,
                milestones=milestones,
                progress_basis=progress_basis,
            )
            return to_schema(row)

    async def delete(self, owner_id: str, roadmap_id: int) -> None:
        async with self._session() as db:
            await delete_roadmap(db, owner_id=owner_id, roadmap_id=roadmap_id)

    async def add_quiz_report(
        self,
        owner_id: str,
        roadmap_id: int,
        milestone_id: str,
        report: QuizReportSchema,
    ) -> QuizSubmissionResult:
        async with self._session() as db:
            return await add_quiz_report(
                db,
                owner_id=owner_id,
                roadmap_id=roadmap_id,
                milestone_id=milestone_id,
                report=report,
            )
