"""Analytics API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.api.deps import CurrentOwner, get_db
from learnpath.schemas.analytics import AnalyticsSummary
from learnpath.services import analytics_service, roadmap_service

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/summary", response_model=AnalyticsSummary)
async def get_summary(
    owner_id: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
    roadmap_id: int | None = None,
) -> AnalyticsSummary:
    """Quiz analytics across all of the owner's roadmaps, or just one."""
    if roadmap_id is not None:
        rows = [await roadmap_service.get_owned_roadmap(db, owner_id, roadmap_id)]
    else:
        rows = await roadmap_service.list_owner_roadmaps(db, owner_id)
    return analytics_service.summarize([roadmap_service.to_schema(r) for r in rows])
