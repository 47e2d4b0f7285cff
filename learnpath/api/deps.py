"""API dependencies."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.auth import get_owner_id
from learnpath.core.database import get_db_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request, committed when the route returns."""
    async with get_db_session() as session:
        yield session


CurrentOwner = Annotated[str, Depends(get_owner_id)]
