"""Quiz analytics across an owner's roadmaps.

All functions are read-only over their inputs and keep no state, so they
can be called concurrently on the same snapshot. Empty inputs yield zeros
and empty lists.
"""

from collections import Counter
from collections.abc import Callable, Iterable, Sequence

from learnpath.core.config import get_settings
from learnpath.core.exceptions import InputValidationError
from learnpath.core.logging import get_logger
from learnpath.schemas.analytics import (
    ActivityItem,
    AnalyticsSummary,
    AreaCount,
    AttemptRecord,
    TopicPerformance,
    Trend,
)
from learnpath.schemas.roadmap import QuizReportSchema, RoadmapSchema
from learnpath.services.progress_service import percent, quiz_percentage

logger = get_logger(__name__)

TREND_MARGIN = 5
RECENT_ACTIVITY_LIMIT = 5

TopicKeyFn = Callable[[AttemptRecord], str]


def _mean(values: Sequence[int]) -> int:
    """Mean of integer values rounded half-up, 0 when empty."""
    if not values:
        return 0
    return (2 * sum(values) + len(values)) // (2 * len(values))


def _pct(report: QuizReportSchema) -> int:
    return quiz_percentage(report.score, report.total)


def flatten_attempts(roadmaps: Iterable[RoadmapSchema]) -> list[AttemptRecord]:
    """Flatten every quiz report of every milestone into attempt records."""
    return [
        AttemptRecord(
            roadmap_id=roadmap.id,
            career=roadmap.career,
            milestone_id=milestone.id,
            milestone_title=milestone.title,
            report=report,
        )
        for roadmap in roadmaps
        for milestone in roadmap.milestones
        for report in milestone.quiz_reports
    ]


def default_topic_key(record: AttemptRecord) -> str:
    """Topic name from a milestone title such as ``"Week 2: SQL Joins"``.

    Everything after the first colon is the topic. When that part is empty
    the whole title is used, and an empty title falls back to the milestone
    id, so the key is never blank.
    """
    title = record.milestone_title.strip()
    topic = title.split(":", 1)[-1].strip()
    return topic or title or f"Milestone {record.milestone_id}".strip()


# ============================================================================
# Topic Performance
# ============================================================================


def classify_trend(
    last_score: int,
    average_score: int,
    attempts: int,
    margin: int = TREND_MARGIN,
) -> Trend:
    """Classify the direction of a topic's most recent score.

    A single attempt carries no evidence of change and is always stable.
    """
    if attempts < 2:
        return "stable"
    if last_score > average_score + margin:
        return "up"
    if last_score < average_score - margin:
        return "down"
    return "stable"


def topic_performance(
    records: Iterable[AttemptRecord],
    topic_key_of: TopicKeyFn = default_topic_key,
    margin: int = TREND_MARGIN,
) -> list[TopicPerformance]:
    """Group attempts by topic and score each group.

    Returns:
        One entry per topic, sorted by average score descending

    Raises:
        InputValidationError: If ``topic_key_of`` yields an empty key
    """
    groups: dict[str, list[AttemptRecord]] = {}
    for record in records:
        key = topic_key_of(record)
        if not key or not key.strip():
            raise InputValidationError(
                "Topic key must not be empty",
                {"milestone_id": record.milestone_id, "roadmap_id": record.roadmap_id},
            )
        groups.setdefault(key.strip(), []).append(record)

    results = []
    for topic, attempts in groups.items():
        # Stable sort: equal timestamps keep input order
        ordered = sorted(attempts, key=lambda r: r.report.taken_at)
        scores = [_pct(r.report) for r in ordered]
        average = _mean(scores)
        results.append(
            TopicPerformance(
                topic=topic,
                average_score=average,
                attempts=len(scores),
                last_score=scores[-1],
                trend=classify_trend(scores[-1], average, len(scores), margin),
            )
        )

    results.sort(key=lambda t: t.average_score, reverse=True)
    return results


def split_topics_by_strength(
    performance: Iterable[TopicPerformance],
    strong_threshold: int,
    weak_threshold: int,
) -> tuple[list[str], list[str]]:
    """Names of strong topics (avg >= strong) and weak topics (avg < weak)."""
    strong, weak = [], []
    for item in performance:
        if item.average_score >= strong_threshold:
            strong.append(item.topic)
        elif item.average_score < weak_threshold:
            weak.append(item.topic)
    return strong, weak


# ============================================================================
# Strengths / Weaknesses
# ============================================================================


def area_frequencies(
    reports: Iterable[QuizReportSchema],
    top_n: int = 5,
) -> tuple[list[AreaCount], list[AreaCount]]:
    """Most frequent strong and weak area labels across reports.

    Ties keep first-seen order.

    Returns:
        Tuple of (strengths, weaknesses), each at most ``top_n`` long
    """
    strong: Counter[str] = Counter()
    weak: Counter[str] = Counter()
    for report in reports:
        strong.update(report.strong_areas)
        weak.update(report.weak_areas)

    # most_common sorts stably, so insertion order breaks ties
    return (
        [AreaCount(label=label, count=count) for label, count in strong.most_common(top_n)],
        [AreaCount(label=label, count=count) for label, count in weak.most_common(top_n)],
    )


# ============================================================================
# Recent Activity
# ============================================================================


def recent_activity(
    records: Iterable[AttemptRecord],
    limit: int = RECENT_ACTIVITY_LIMIT,
) -> list[ActivityItem]:
    """Most recent attempts first."""
    ordered = sorted(records, key=lambda r: r.report.taken_at, reverse=True)
    return [
        ActivityItem(
            roadmap_id=r.roadmap_id,
            career=r.career,
            milestone_title=r.milestone_title,
            percentage=_pct(r.report),
            taken_at=r.report.taken_at,
        )
        for r in ordered[:limit]
    ]


# ============================================================================
# Summary
# ============================================================================


def summarize(
    roadmaps: Sequence[RoadmapSchema],
    topic_key_of: TopicKeyFn = default_topic_key,
) -> AnalyticsSummary:
    """Build the analytics dashboard for a collection of roadmaps.

    Args:
        roadmaps: Roadmaps of one owner (or a single roadmap)
        topic_key_of: Maps an attempt to its topic name

    Returns:
        Roll-up counters plus topic, area and activity breakdowns
    """
    settings = get_settings()
    records = flatten_attempts(roadmaps)

    total_milestones = sum(len(r.milestones) for r in roadmaps)
    completed_milestones = sum(1 for r in roadmaps for m in r.milestones if m.completed)

    performance = topic_performance(records, topic_key_of)
    strong_topics, weak_topics = split_topics_by_strength(
        performance,
        settings.STRONG_TOPIC_THRESHOLD,
        settings.WEAK_TOPIC_THRESHOLD,
    )
    strengths, weaknesses = area_frequencies(
        (r.report for r in records), settings.ANALYTICS_TOP_N
    )

    summary = AnalyticsSummary(
        total_roadmaps=len(roadmaps),
        total_milestones=total_milestones,
        completed_milestones=completed_milestones,
        overall_completion=percent(completed_milestones, total_milestones),
        total_quizzes_taken=len(records),
        average_quiz_score=_mean([_pct(r.report) for r in records]),
        topic_performance=performance,
        strong_topics=strong_topics,
        weak_topics=weak_topics,
        strengths=strengths,
        weaknesses=weaknesses,
        recent_activity=recent_activity(records, settings.ANALYTICS_TOP_N),
    )
    logger.debug(
        "Analytics summarized",
        roadmaps=summary.total_roadmaps,
        attempts=summary.total_quizzes_taken,
    )
    return summary
