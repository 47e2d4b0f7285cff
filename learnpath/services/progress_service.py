"""Progress calculation, lesson unlocking and quiz gating.

Everything in this module is a pure, synchronous transform over the roadmap
schemas. Functions that "mutate" return deep copies and leave their inputs
untouched, so the same code serves as the client-side optimistic mirror and
as the authoritative recomputation inside the store.
"""

from learnpath.core.exceptions import InputValidationError, NotFoundError, TaskLockedError
from learnpath.core.logging import get_logger
from learnpath.schemas.roadmap import (
    MilestoneSchema,
    ProgressBasis,
    QuizReportSchema,
    QuizSubmissionResult,
    RoadmapSchema,
)

logger = get_logger(__name__)

PASS_THRESHOLD = 60


# ============================================================================
# Progress Calculation
# ============================================================================


def percent(part: int, whole: int) -> int:
    """Return ``100 * part / whole`` rounded half-up, or 0 for an empty whole.

    Integer arithmetic only, so 2.5 rounds to 3 and 1/3 never drifts.
    """
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def compute_milestone_progress(milestone: MilestoneSchema) -> int:
    """Percentage of completed tasks in a milestone (0 with no tasks)."""
    done = sum(1 for task in milestone.tasks if task.completed)
    return percent(done, len(milestone.tasks))


def compute_roadmap_progress_by_tasks(roadmap: RoadmapSchema) -> int:
    """Task-weighted progress: completed tasks over all tasks.

    Used after task toggles.
    """
    done = sum(1 for m in roadmap.milestones for task in m.tasks if task.completed)
    total = sum(len(m.tasks) for m in roadmap.milestones)
    return percent(done, total)


def compute_roadmap_progress_by_milestones(roadmap: RoadmapSchema) -> int:
    """Milestone-weighted progress: completed milestones over all milestones.

    Used after quiz gating.
    """
    done = sum(1 for m in roadmap.milestones if m.completed)
    return percent(done, len(roadmap.milestones))


def compute_roadmap_progress(roadmap: RoadmapSchema, basis: ProgressBasis) -> int:
    """Dispatch to one of the two roadmap progress formulas.

    The two bases can disagree for the same state (a milestone passed by quiz
    with no tasks counts under one and not the other). That is intentional.
    """
    if basis == "tasks":
        return compute_roadmap_progress_by_tasks(roadmap)
    if basis == "milestones":
        return compute_roadmap_progress_by_milestones(roadmap)
    raise InputValidationError(f"Unknown progress basis: {basis}", {"basis": basis})


def quiz_percentage(score: int, total: int) -> int:
    """Percentage of correct answers for a quiz attempt.

    Raises:
        InputValidationError: If total is not positive or score is out of range
    """
    if total <= 0:
        raise InputValidationError(
            "Quiz total must be greater than zero", {"score": score, "total": total}
        )
    if score < 0:
        raise InputValidationError("Quiz score cannot be negative", {"score": score})
    if score > total:
        raise InputValidationError(
            "Quiz score cannot exceed total", {"score": score, "total": total}
        )
    return percent(score, total)


def is_passing(percentage: int) -> bool:
    """Threshold is inclusive: exactly 60% passes."""
    return percentage >= PASS_THRESHOLD


# ============================================================================
# Lesson Unlocking
# ============================================================================


def is_unlocked(milestone: MilestoneSchema, task_index: int) -> bool:
    """Whether the task at ``task_index`` is accessible.

    The first task is always open. Any other task opens once its predecessor
    is completed, and a completed task never locks again.

    Raises:
        InputValidationError: If task_index is outside the milestone's tasks
    """
    if not 0 <= task_index < len(milestone.tasks):
        raise InputValidationError(
            f"Task index {task_index} out of range for milestone {milestone.id}",
            {"milestone_id": milestone.id, "task_index": task_index},
        )
    if task_index == 0:
        return True
    return milestone.tasks[task_index].completed or milestone.tasks[task_index - 1].completed


def unlocked_indexes(milestone: MilestoneSchema) -> list[int]:
    """All accessible task indexes of a milestone, in order."""
    return [i for i in range(len(milestone.tasks)) if is_unlocked(milestone, i)]


# ============================================================================
# Lookup
# ============================================================================


def find_milestone(roadmap: RoadmapSchema, milestone_id: str) -> MilestoneSchema:
    """Return the milestone with ``milestone_id``.

    Raises:
        NotFoundError: If the roadmap has no such milestone
    """
    return roadmap.milestones[_milestone_index(roadmap, milestone_id)]


def _milestone_index(roadmap: RoadmapSchema, milestone_id: str) -> int:
    for i, milestone in enumerate(roadmap.milestones):
        if milestone.id == milestone_id:
            return i
    raise NotFoundError("Milestone", milestone_id)


def _task_index(milestone: MilestoneSchema, task_id: str) -> int:
    for i, task in enumerate(milestone.tasks):
        if task.id == task_id:
            return i
    raise NotFoundError("Task", task_id)


# ============================================================================
# Mutations
# ============================================================================


def submit_quiz_report(
    milestone: MilestoneSchema,
    report: QuizReportSchema,
) -> tuple[MilestoneSchema, bool]:
    """Append a quiz report to a milestone and apply completion gating.

    A pass completes the milestone and every one of its tasks. A fail leaves
    completion untouched, so it never un-completes a milestone.

    Returns:
        Tuple of (updated milestone copy, passed)

    Raises:
        InputValidationError: If the report's score/total are invalid.
            Nothing is appended in that case.
    """
    percentage = quiz_percentage(report.score, report.total)
    passed = is_passing(percentage)

    updated = milestone.model_copy(deep=True)
    updated.quiz_reports.append(report)
    if passed:
        updated.completed = True
        for task in updated.tasks:
            task.completed = True

    logger.debug(
        "Quiz report gated",
        milestone_id=milestone.id,
        percentage=percentage,
        passed=passed,
    )
    return updated, passed


def apply_quiz_report(
    roadmap: RoadmapSchema,
    milestone_id: str,
    report: QuizReportSchema,
) -> tuple[RoadmapSchema, QuizSubmissionResult]:
    """Gate a milestone of ``roadmap`` on a quiz report.

    Roadmap progress is recomputed milestone-weighted afterwards.

    Returns:
        Tuple of (updated roadmap copy, submission result)

    Raises:
        NotFoundError: If the milestone does not exist
        InputValidationError: If the report is invalid
    """
    index = _milestone_index(roadmap, milestone_id)
    milestone, passed = submit_quiz_report(roadmap.milestones[index], report)

    updated = roadmap.model_copy(deep=True)
    updated.milestones[index] = milestone
    updated.total_progress = compute_roadmap_progress_by_milestones(updated)

    result = QuizSubmissionResult(
        report=report,
        percentage=quiz_percentage(report.score, report.total),
        passed=passed,
        milestone_completed=milestone.completed,
        new_total_progress=updated.total_progress,
    )
    return updated, result


def toggle_task(
    roadmap: RoadmapSchema,
    milestone_id: str,
    task_id: str,
) -> RoadmapSchema:
    """Flip a task's completion flag.

    The milestone's own flag then mirrors "every task completed" and roadmap
    progress is recomputed task-weighted. A milestone without tasks is never
    completed by this path.

    Raises:
        NotFoundError: If the milestone or task does not exist
        TaskLockedError: If the task is still locked
    """
    m_index = _milestone_index(roadmap, milestone_id)
    t_index = _task_index(roadmap.milestones[m_index], task_id)
    if not is_unlocked(roadmap.milestones[m_index], t_index):
        raise TaskLockedError(milestone_id, task_id)

    updated = roadmap.model_copy(deep=True)
    milestone = updated.milestones[m_index]
    task = milestone.tasks[t_index]
    task.completed = not task.completed
    milestone.completed = bool(milestone.tasks) and all(t.completed for t in milestone.tasks)
    updated.total_progress = compute_roadmap_progress_by_tasks(updated)
    return updated
