"""Validation of generated learning content.

The content generator is an external text service. Its replies arrive either
as already-decoded JSON or as raw text that may wrap the JSON in a markdown
code fence or surround it with prose. Everything here turns such a reply
into engine schemas or raises ``ContentValidationError``; no roadmap state
is touched until validation succeeds.
"""

import json
import re
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from learnpath.core.exceptions import ContentValidationError, InputValidationError
from learnpath.core.logging import get_logger
from learnpath.schemas.content import QuizAnalysis, QuizQuestion
from learnpath.schemas.roadmap import MilestoneSchema, RoadmapSchema, TaskSchema

logger = get_logger(__name__)

_CODE_FENCE = re.compile(
    r"```(?:json|javascript|js|text)?\s*\n(.*?)\n\s*```", re.DOTALL | re.IGNORECASE
)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_WEEKS = re.compile(r"(\d+)\s*(?:weeks?|wks?)\b", re.IGNORECASE)

# Field names the generator has used for the same task content
_KEY_ALIASES = {
    "youtube_query": "video_query",
    "correct": "correct_answer",
}


# ============================================================================
# Raw Reply Parsing
# ============================================================================


def _loads(text: str) -> Any | None:
    try:
        return json.loads(_TRAILING_COMMA.sub(r"\1", text.strip()))
    except ValueError:
        return None


def _first_json_block(text: str) -> str | None:
    """First balanced ``{...}`` or ``[...]`` in text, ignoring brackets in strings."""
    start = next((i for i, ch in enumerate(text) if ch in "{["), -1)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            in_string = not in_string
        elif not in_string and ch in "{[":
            depth += 1
        elif not in_string and ch in "}]":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def parse_reply(reply: str | dict | list | None) -> dict[str, Any] | list[Any]:
    """Decode a generator reply.

    Tries, in order: the reply as plain JSON, the first fenced code block,
    then the first balanced JSON value embedded in prose.

    Raises:
        ContentValidationError: If the reply is empty or holds no JSON
    """
    if isinstance(reply, dict | list):
        return reply
    if not reply or not reply.strip():
        raise ContentValidationError("Empty content reply")

    candidates = [reply]
    fence = _CODE_FENCE.search(reply)
    if fence:
        candidates.append(fence.group(1))
    block = _first_json_block(reply)
    if block:
        candidates.append(block)

    for candidate in candidates:
        result = _loads(candidate)
        if isinstance(result, dict | list):
            return result

    logger.warning("Unparseable content reply", content_preview=reply[:200])
    raise ContentValidationError("Content reply holds no valid JSON")


def _snake_keys(value: Any) -> Any:
    """Recursively convert camelCase keys to snake_case and apply aliases."""
    if isinstance(value, list):
        return [_snake_keys(v) for v in value]
    if isinstance(value, dict):
        converted = {}
        for key, item in value.items():
            name = _CAMEL_BOUNDARY.sub("_", str(key)).lower()
            converted[_KEY_ALIASES.get(name, name)] = _snake_keys(item)
        return converted
    return value


def _unwrap(data: Any, key: str) -> Any:
    """Accept either a bare list or an object wrapping it under ``key``."""
    if isinstance(data, dict) and key in data:
        return data[key]
    return data


# ============================================================================
# Validation
# ============================================================================


def validate_milestones(reply: str | dict | list) -> list[MilestoneSchema]:
    """Validate generated milestones (with their tasks).

    Missing ids are filled from position (``"1"``, ``"1-1"``, ...) and a
    missing ``week`` defaults to the milestone's 1-based position. Generated
    completion flags are discarded: new content always starts incomplete.

    Raises:
        ContentValidationError: If the reply is not a non-empty list of
            well-formed milestones
    """
    raw = _unwrap(_snake_keys(parse_reply(reply)), "milestones")
    if not isinstance(raw, list) or not raw:
        raise ContentValidationError("Expected a non-empty list of milestones")

    milestones = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ContentValidationError(f"Milestone {i} is not an object", {"index": i})
        tasks_raw = item.get("tasks") or []
        if not isinstance(tasks_raw, list):
            raise ContentValidationError(f"Milestone {i}: tasks must be a list", {"index": i})

        milestone_id = str(item.get("id") or i + 1)
        try:
            tasks = [
                TaskSchema.model_validate(
                    {
                        **task,
                        "id": str(task.get("id") or f"{milestone_id}-{j + 1}"),
                        "completed": False,
                    }
                )
                for j, task in enumerate(tasks_raw)
            ]
            milestones.append(
                MilestoneSchema(
                    id=milestone_id,
                    title=item.get("title", ""),
                    description=item.get("description") or "",
                    week=item.get("week") or i + 1,
                    tasks=tasks,
                )
            )
        except (ValidationError, TypeError, AttributeError) as e:
            raise ContentValidationError(
                f"Milestone {i} is malformed: {e}", {"index": i}
            ) from e

    if any(not m.title.strip() for m in milestones):
        raise ContentValidationError("Every milestone needs a title")
    ids = [m.id for m in milestones]
    if len(ids) != len(set(ids)):
        raise ContentValidationError("Duplicate milestone ids", {"ids": ids})
    return milestones


def validate_quiz_questions(
    reply: str | dict | list,
    expected_count: int | None = None,
) -> list[QuizQuestion]:
    """Validate generated quiz questions.

    Raises:
        ContentValidationError: If any question is malformed or the count
            differs from ``expected_count``
    """
    raw = _unwrap(_snake_keys(parse_reply(reply)), "questions")
    if not isinstance(raw, list) or not raw:
        raise ContentValidationError("Expected a non-empty list of questions")
    try:
        questions = [QuizQuestion.model_validate(q) for q in raw]
    except ValidationError as e:
        raise ContentValidationError(f"Malformed quiz question: {e}") from e

    if expected_count is not None and len(questions) != expected_count:
        raise ContentValidationError(
            f"Expected {expected_count} questions, got {len(questions)}",
            {"expected": expected_count, "received": len(questions)},
        )
    return questions


def validate_quiz_analysis(reply: str | dict | list) -> QuizAnalysis:
    """Validate generated feedback for a finished quiz."""
    raw = _snake_keys(parse_reply(reply))
    if not isinstance(raw, dict):
        raise ContentValidationError("Expected an analysis object")
    try:
        return QuizAnalysis.model_validate(raw)
    except ValidationError as e:
        raise ContentValidationError(f"Malformed quiz analysis: {e}") from e


def count_correct_answers(questions: Sequence[QuizQuestion], answers: Sequence[int | None]) -> int:
    """Number of answers matching the correct option; unanswered count as wrong.

    Raises:
        ContentValidationError: If there are more answers than questions
    """
    if len(answers) > len(questions):
        raise ContentValidationError(
            "More answers than questions",
            {"questions": len(questions), "answers": len(answers)},
        )
    return sum(1 for q, a in zip(questions, answers) if a == q.correct_answer)


# ============================================================================
# Drafts
# ============================================================================


def parse_timeline_weeks(timeline: str) -> int | None:
    """Week count stated in a timeline label (``"4 weeks"`` -> 4), if any."""
    match = _WEEKS.search(timeline)
    return int(match.group(1)) if match else None


def check_timeline_fits(timeline: str, milestone_count: int) -> None:
    """Require one milestone per week when the timeline states a week count.

    Raises:
        InputValidationError: If the counts differ
    """
    weeks = parse_timeline_weeks(timeline)
    if weeks is not None and weeks != milestone_count:
        raise InputValidationError(
            f"Timeline {timeline!r} needs {weeks} milestones, got {milestone_count}",
            {"expected": weeks, "received": milestone_count},
        )


def build_draft_roadmap(
    *,
    owner_id: str,
    career: str,
    timeline: str,
    reply: str | dict | list,
) -> RoadmapSchema:
    """Build an unsaved roadmap from generated milestones.

    When the timeline states a week count, the generator must have produced
    exactly one milestone per week.

    Raises:
        ContentValidationError: On malformed content or a week-count mismatch
    """
    if not career.strip() or not timeline.strip():
        raise ContentValidationError("Career and timeline are required")

    milestones = validate_milestones(reply)
    try:
        check_timeline_fits(timeline, len(milestones))
    except InputValidationError as e:
        raise ContentValidationError(e.message, e.details) from e

    draft = RoadmapSchema(
        owner_id=owner_id,
        career=career.strip(),
        timeline=timeline.strip(),
        milestones=milestones,
    )
    logger.info("Draft roadmap built", career=draft.career, milestones=len(milestones))
    return draft
