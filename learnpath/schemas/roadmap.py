"""Roadmap schemas.

These models are both the in-memory aggregate the engine mutates and the
shape persisted in the ``roadmaps.milestones`` JSON column.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ProgressBasis = Literal["tasks", "milestones"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _dedupe(labels: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for label in labels:
        label = label.strip()
        if label:
            seen.setdefault(label, None)
    return list(seen)


class TaskSchema(BaseModel):
    """A single learning step inside a milestone."""

    id: str
    title: str
    completed: bool = False
    explanation: str = ""
    code_snippet: str = ""
    video_query: str = ""
    exercise: str = ""


class QuizReportSchema(BaseModel):
    """Outcome of one quiz attempt. Immutable once created.

    Every construction path (API bodies, stored documents, replace payloads)
    goes through the score checks, so a stored report always has a
    percentage.
    """

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0)
    total: int = Field(gt=0)
    strong_areas: tuple[str, ...] = ()
    weak_areas: tuple[str, ...] = ()
    summary: str = ""
    taken_at: datetime = Field(default_factory=_utcnow)

    @field_validator("strong_areas", "weak_areas")
    @classmethod
    def _unique_labels(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(_dedupe(value))

    @model_validator(mode="after")
    def _score_within_total(self) -> "QuizReportSchema":
        if self.score > self.total:
            raise ValueError("score cannot exceed total")
        return self

    @field_validator("taken_at")
    @classmethod
    def _aware_timestamp(cls, value: datetime) -> datetime:
        # Stored timestamps may come back naive from some drivers
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class MilestoneSchema(BaseModel):
    """One week of a roadmap."""

    id: str
    title: str
    description: str = ""
    week: int = Field(ge=1)
    completed: bool = False
    tasks: list[TaskSchema] = Field(default_factory=list)
    quiz_reports: list[QuizReportSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_task_ids(self) -> "MilestoneSchema":
        ids = [task.id for task in self.tasks]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate task ids in milestone {self.id}")
        return self


class RoadmapSchema(BaseModel):
    """A learner's roadmap. ``id`` is None until the store saves it."""

    id: int | None = None
    owner_id: str
    career: str
    timeline: str
    total_progress: int = Field(default=0, ge=0, le=100)
    milestones: list[MilestoneSchema] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _unique_milestone_ids(self) -> "RoadmapSchema":
        ids = [milestone.id for milestone in self.milestones]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate milestone ids in roadmap")
        return self

    @property
    def is_draft(self) -> bool:
        return self.id is None


class RoadmapCreate(BaseModel):
    """Create a new roadmap."""

    career: str = Field(min_length=1)
    timeline: str = Field(min_length=1)
    milestones: list[MilestoneSchema]


class RoadmapReplace(BaseModel):
    """Full-document overwrite of a roadmap's milestones.

    ``progress_basis`` names the formula the store uses to recompute
    ``total_progress``; clients never send the percentage itself.
    """

    milestones: list[MilestoneSchema]
    progress_basis: ProgressBasis = "tasks"


class QuizReportCreate(BaseModel):
    """Submit a quiz attempt for a milestone."""

    score: int = Field(ge=0)
    total: int = Field(gt=0)
    strong_areas: list[str] = Field(default_factory=list)
    weak_areas: list[str] = Field(default_factory=list)
    summary: str = ""

    @model_validator(mode="after")
    def _score_within_total(self) -> "QuizReportCreate":
        if self.score > self.total:
            raise ValueError("score cannot exceed total")
        return self

    def to_report(self) -> QuizReportSchema:
        return QuizReportSchema(**self.model_dump())


class QuizSubmissionResult(BaseModel):
    """Outcome of gating a milestone on a quiz report."""

    report: QuizReportSchema
    percentage: int
    passed: bool
    milestone_completed: bool
    new_total_progress: int


class MilestoneProgress(BaseModel):
    """Progress data for a single milestone."""

    id: str
    title: str
    week: int
    completed: bool
    progress: int  # 0 to 100
    completed_tasks: int
    total_tasks: int
    unlocked_task_indexes: list[int]
    quiz_attempts: int
    best_quiz_percentage: int | None


class RoadmapProgress(BaseModel):
    """Progress data for a roadmap under both aggregation bases."""

    roadmap_id: int | None
    career: str
    total_progress: int
    task_progress: int
    milestone_progress: int
    milestones: list[MilestoneProgress]


class RoadmapResponse(BaseModel):
    """Roadmap response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    career: str
    timeline: str
    total_progress: int
    milestones: list[MilestoneSchema]
    created_at: datetime
    updated_at: datetime
