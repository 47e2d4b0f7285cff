"""Pydantic schemas."""

from learnpath.schemas.analytics import (
    ActivityItem,
    AnalyticsSummary,
    AreaCount,
    AttemptRecord,
    TopicPerformance,
)
from learnpath.schemas.content import QuizAnalysis, QuizQuestion
from learnpath.schemas.roadmap import (
    MilestoneProgress,
    MilestoneSchema,
    QuizReportCreate,
    QuizReportSchema,
    QuizSubmissionResult,
    RoadmapCreate,
    RoadmapProgress,
    RoadmapReplace,
    RoadmapResponse,
    RoadmapSchema,
    TaskSchema,
)

__all__ = [
    "TaskSchema",
    "QuizReportSchema",
    "MilestoneSchema",
    "RoadmapSchema",
    "RoadmapCreate",
    "RoadmapReplace",
    "RoadmapResponse",
    "QuizReportCreate",
    "QuizSubmissionResult",
    "MilestoneProgress",
    "RoadmapProgress",
    "QuizQuestion",
    "QuizAnalysis",
    "TopicPerformance",
    "AreaCount",
    "AttemptRecord",
    "ActivityItem",
    "AnalyticsSummary",
]
