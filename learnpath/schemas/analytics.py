"""Analytics schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from learnpath.schemas.roadmap import QuizReportSchema

Trend = Literal["up", "down", "stable"]


class TopicPerformance(BaseModel):
    topic: str
    average_score: int
    attempts: int
    last_score: int
    trend: Trend


class AreaCount(BaseModel):
    label: str
    count: int


class ActivityItem(BaseModel):
    roadmap_id: int | None
    career: str
    milestone_title: str
    percentage: int
    taken_at: datetime


class AnalyticsSummary(BaseModel):
    """Dashboard data for one owner, optionally scoped to a single roadmap."""

    total_roadmaps: int
    total_milestones: int
    completed_milestones: int
    overall_completion: int
    total_quizzes_taken: int
    average_quiz_score: int
    topic_performance: list[TopicPerformance]
    strong_topics: list[str]
    weak_topics: list[str]
    strengths: list[AreaCount]
    weaknesses: list[AreaCount]
    recent_activity: list[ActivityItem]


class AttemptRecord(BaseModel):
    """One quiz report together with the roadmap and milestone it belongs to."""

    model_config = ConfigDict(frozen=True)

    roadmap_id: int | None
    career: str
    milestone_id: str
    milestone_title: str
    report: QuizReportSchema
