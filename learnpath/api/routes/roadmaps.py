"""Roadmap API routes.

Domain errors raised by the service layer (not found, ownership, invalid
input) are translated to HTTP responses by the handlers in ``main``.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.api.deps import CurrentOwner, get_db
from learnpath.core.logging import get_logger
from learnpath.schemas.roadmap import (
    QuizReportCreate,
    QuizSubmissionResult,
    RoadmapCreate,
    RoadmapProgress,
    RoadmapReplace,
    RoadmapResponse,
)
from learnpath.services import roadmap_service

logger = get_logger(__name__)
router = APIRouter(prefix="/roadmaps", tags=["roadmaps"])


@router.post("", response_model=RoadmapResponse, status_code=status.HTTP_201_CREATED)
async def create_roadmap(
    data: RoadmapCreate,
    owner_id: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Save a roadmap. The store assigns its id and derives its progress."""
    roadmap = await roadmap_service.create_roadmap(db, owner_id=owner_id, roadmap_data=data)
    return RoadmapResponse.model_validate(roadmap).model_dump(mode="json")


@router.get("", response_model=list[RoadmapResponse])
async def list_roadmaps(
    owner_id: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[dict]:
    """List the owner's roadmaps, newest first."""
    roadmaps = await roadmap_service.list_owner_roadmaps(db, owner_id)
    return [RoadmapResponse.model_validate(r).model_dump(mode="json") for r in roadmaps]


@router.get("/{roadmap_id}", response_model=RoadmapResponse)
async def get_roadmap(
    roadmap_id: int,
    owner_id: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Get a roadmap by ID."""
    roadmap = await roadmap_service.get_owned_roadmap(db, owner_id, roadmap_id)
    return RoadmapResponse.model_validate(roadmap).model_dump(mode="json")


@router.put("/{roadmap_id}", response_model=RoadmapResponse)
async def replace_roadmap(
    roadmap_id: int,
    data: RoadmapReplace,
    owner_id: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Overwrite a roadmap's milestones (last write wins)."""
    roadmap = await roadmap_service.replace_roadmap(
        db,
        owner_id=owner_id,
        roadmap_id=roadmap_id,
        milestones=data.milestones,
        progress_basis=data.progress_basis,
    )
    return RoadmapResponse.model_validate(roadmap).model_dump(mode="json")


@router.delete("/{roadmap_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_roadmap(
    roadmap_id: int,
    owner_id: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Response:
    """Delete a roadmap."""
    await roadmap_service.delete_roadmap(db, owner_id=owner_id, roadmap_id=roadmap_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{roadmap_id}/milestones/{milestone_id}/quiz",
    response_model=QuizSubmissionResult,
    status_code=status.HTTP_201_CREATED,
)
async def submit_quiz_report(
    roadmap_id: int,
    milestone_id: str,
    data: QuizReportCreate,
    owner_id: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> QuizSubmissionResult:
    """Record a quiz attempt and gate the milestone on it."""
    return await roadmap_service.add_quiz_report(
        db,
        owner_id=owner_id,
        roadmap_id=roadmap_id,
        milestone_id=milestone_id,
        report=data.to_report(),
    )


@router.post(
    "/{roadmap_id}/milestones/{milestone_id}/tasks/{task_id}/toggle",
    response_model=RoadmapResponse,
)
async def toggle_task(
    roadmap_id: int,
    milestone_id: str,
    task_id: str,
    owner_id: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Flip a task's completion."""
    roadmap = await roadmap_service.toggle_task(
        db,
        owner_id=owner_id,
        roadmap_id=roadmap_id,
        milestone_id=milestone_id,
        task_id=task_id,
    )
    return RoadmapResponse.model_validate(roadmap).model_dump(mode="json")


@router.get("/{roadmap_id}/progress", response_model=RoadmapProgress)
async def get_roadmap_progress(
    roadmap_id: int,
    owner_id: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> RoadmapProgress:
    """Get progress data for a roadmap.

    Returns overall progress under both formulas and per-milestone details,
    including which tasks are unlocked.
    """
    roadmap = await roadmap_service.get_owned_roadmap(db, owner_id, roadmap_id)
    return roadmap_service.get_roadmap_progress(roadmap_service.to_schema(roadmap))
