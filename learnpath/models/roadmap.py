"""Roadmap model for learning path persistence."""

from datetime import datetime

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from learnpath.core.database import Base


class Roadmap(Base):
    __tablename__ = "roadmaps"

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, index=True)

    career: Mapped[str] = mapped_column(String)
    timeline: Mapped[str] = mapped_column(String)
    total_progress: Mapped[int] = mapped_column(Integer, default=0)
    # Full milestone documents, tasks and quiz reports included
    milestones: Mapped[list[dict[str, object]]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)
