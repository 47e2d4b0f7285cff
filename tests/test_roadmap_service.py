"""Tests for roadmap_service (the store of record)."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from builders import make_report, make_roadmap
from learnpath.core.exceptions import (
    InputValidationError,
    NotFoundError,
    OwnershipError,
    PersistenceError,
)
from learnpath.models import Roadmap
from learnpath.schemas.roadmap import RoadmapCreate
from learnpath.services import progress_service, roadmap_service

OWNER = "learner-1"


def _create_data(milestone_count: int = 3, task_count: int = 2) -> RoadmapCreate:
    draft = make_roadmap(milestone_count, task_count)
    return RoadmapCreate(career=draft.career, timeline=draft.timeline, milestones=draft.milestones)


async def _seed(db: AsyncSession, owner_id: str = OWNER, **kwargs) -> Roadmap:
    return await roadmap_service.create_roadmap(
        db, owner_id=owner_id, roadmap_data=_create_data(**kwargs)
    )


@pytest.mark.asyncio
async def test_create_and_get_roadmap(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    assert roadmap.id is not None
    assert roadmap.owner_id == OWNER
    assert roadmap.total_progress == 0
    assert len(roadmap.milestones) == 3

    fetched = await roadmap_service.get_owned_roadmap(test_session, OWNER, roadmap.id)
    assert fetched.id == roadmap.id
    schema = roadmap_service.to_schema(fetched)
    assert schema.milestones[0].tasks[0].id == "1-1"


@pytest.mark.asyncio
async def test_create_derives_progress(test_session: AsyncSession) -> None:
    data = _create_data(milestone_count=2, task_count=2)
    data.milestones[0].tasks[0].completed = True
    roadmap = await roadmap_service.create_roadmap(test_session, owner_id=OWNER, roadmap_data=data)
    assert roadmap.total_progress == 25


@pytest.mark.asyncio
async def test_create_rejects_week_count_mismatch(test_session: AsyncSession) -> None:
    data = _create_data(milestone_count=3)
    data.timeline = "4 weeks"
    with pytest.raises(InputValidationError, match="needs 4 milestones"):
        await roadmap_service.create_roadmap(test_session, owner_id=OWNER, roadmap_data=data)
    assert await roadmap_service.list_owner_roadmaps(test_session, OWNER) == []


@pytest.mark.asyncio
async def test_create_accepts_free_text_timeline(test_session: AsyncSession) -> None:
    data = _create_data(milestone_count=2)
    data.timeline = "self-paced"
    roadmap = await roadmap_service.create_roadmap(test_session, owner_id=OWNER, roadmap_data=data)
    assert len(roadmap.milestones) == 2


@pytest.mark.asyncio
async def test_list_is_owner_scoped_newest_first(test_session: AsyncSession) -> None:
    first = await _seed(test_session)
    second = await _seed(test_session)
    await _seed(test_session, owner_id="someone-else")

    roadmaps = await roadmap_service.list_owner_roadmaps(test_session, OWNER)
    assert [r.id for r in roadmaps] == [second.id, first.id]


@pytest.mark.asyncio
async def test_get_not_found(test_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError, match="not found"):
        await roadmap_service.get_owned_roadmap(test_session, OWNER, 999999)


@pytest.mark.asyncio
async def test_get_other_owner(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    with pytest.raises(OwnershipError):
        await roadmap_service.get_owned_roadmap(test_session, "intruder", roadmap.id)


@pytest.mark.asyncio
async def test_replace_recomputes_progress(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    schema = roadmap_service.to_schema(roadmap)
    schema = progress_service.toggle_task(schema, "1", "1-1")
    schema = progress_service.toggle_task(schema, "1", "1-2")

    by_tasks = await roadmap_service.replace_roadmap(
        test_session, owner_id=OWNER, roadmap_id=roadmap.id, milestones=schema.milestones
    )
    assert by_tasks.total_progress == 33

    by_milestones = await roadmap_service.replace_roadmap(
        test_session,
        owner_id=OWNER,
        roadmap_id=roadmap.id,
        milestones=schema.milestones,
        progress_basis="milestones",
    )
    assert by_milestones.total_progress == 33
    assert roadmap_service.to_schema(by_milestones).milestones[0].completed is True


@pytest.mark.asyncio
async def test_replace_rejects_reordered_milestones(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    milestones = roadmap_service.to_schema(roadmap).milestones
    with pytest.raises(InputValidationError, match="Milestone order"):
        await roadmap_service.replace_roadmap(
            test_session,
            owner_id=OWNER,
            roadmap_id=roadmap.id,
            milestones=list(reversed(milestones)),
        )


@pytest.mark.asyncio
async def test_replace_rejects_reordered_tasks(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    milestones = roadmap_service.to_schema(roadmap).milestones
    milestones[1].tasks.reverse()
    with pytest.raises(InputValidationError, match="Task order"):
        await roadmap_service.replace_roadmap(
            test_session, owner_id=OWNER, roadmap_id=roadmap.id, milestones=milestones
        )


@pytest.mark.asyncio
async def test_replace_rejects_dropped_quiz_history(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    await roadmap_service.add_quiz_report(
        test_session, owner_id=OWNER, roadmap_id=roadmap.id, milestone_id="1", report=make_report(3)
    )
    milestones = roadmap_service.to_schema(roadmap).milestones
    milestones[0].quiz_reports.clear()
    with pytest.raises(InputValidationError, match="append-only"):
        await roadmap_service.replace_roadmap(
            test_session, owner_id=OWNER, roadmap_id=roadmap.id, milestones=milestones
        )


@pytest.mark.asyncio
async def test_replace_accepts_appended_reports(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    schema = roadmap_service.to_schema(roadmap)
    schema, _ = progress_service.apply_quiz_report(schema, "3", make_report(9))

    updated = await roadmap_service.replace_roadmap(
        test_session,
        owner_id=OWNER,
        roadmap_id=roadmap.id,
        milestones=schema.milestones,
        progress_basis="milestones",
    )
    assert updated.total_progress == 33
    assert len(roadmap_service.to_schema(updated).milestones[2].quiz_reports) == 1


@pytest.mark.asyncio
async def test_add_quiz_report_gates_server_side(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    result = await roadmap_service.add_quiz_report(
        test_session, owner_id=OWNER, roadmap_id=roadmap.id, milestone_id="2", report=make_report(8)
    )
    assert result.passed is True
    assert result.milestone_completed is True
    assert result.new_total_progress == 33

    stored = roadmap_service.to_schema(
        await roadmap_service.get_owned_roadmap(test_session, OWNER, roadmap.id)
    )
    assert stored.total_progress == 33
    assert all(t.completed for t in stored.milestones[1].tasks)
    assert stored.milestones[1].quiz_reports[0].score == 8


@pytest.mark.asyncio
async def test_add_quiz_report_matches_client_mirror(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    report = make_report(5)
    local, local_result = progress_service.apply_quiz_report(
        roadmap_service.to_schema(roadmap), "1", report
    )
    server_result = await roadmap_service.add_quiz_report(
        test_session, owner_id=OWNER, roadmap_id=roadmap.id, milestone_id="1", report=report
    )
    assert server_result == local_result
    stored = await roadmap_service.get_owned_roadmap(test_session, OWNER, roadmap.id)
    assert roadmap_service.to_schema(stored).milestones == local.milestones


@pytest.mark.asyncio
async def test_add_quiz_report_unknown_milestone(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    with pytest.raises(NotFoundError, match="Milestone"):
        await roadmap_service.add_quiz_report(
            test_session,
            owner_id=OWNER,
            roadmap_id=roadmap.id,
            milestone_id="nope",
            report=make_report(5),
        )


@pytest.mark.asyncio
async def test_toggle_task(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    updated = await roadmap_service.toggle_task(
        test_session, owner_id=OWNER, roadmap_id=roadmap.id, milestone_id="1", task_id="1-1"
    )
    assert updated.total_progress == 17
    assert roadmap_service.to_schema(updated).milestones[0].tasks[0].completed is True


@pytest.mark.asyncio
async def test_delete_roadmap(test_session: AsyncSession) -> None:
    roadmap = await _seed(test_session)
    with pytest.raises(OwnershipError):
        await roadmap_service.delete_roadmap(
            test_session, owner_id="intruder", roadmap_id=roadmap.id
        )

    await roadmap_service.delete_roadmap(test_session, owner_id=OWNER, roadmap_id=roadmap.id)
    with pytest.raises(NotFoundError):
        await roadmap_service.get_owned_roadmap(test_session, OWNER, roadmap.id)


def test_get_roadmap_progress() -> None:
    roadmap = make_roadmap(milestone_count=2, task_count=3)
    roadmap = progress_service.toggle_task(roadmap, "1", "1-1")
    roadmap, _ = progress_service.apply_quiz_report(roadmap, "2", make_report(4))
    roadmap, _ = progress_service.apply_quiz_report(roadmap, "2", make_report(7, minutes=5))

    progress = roadmap_service.get_roadmap_progress(roadmap)
    assert progress.task_progress == 67  # 4/6
    assert progress.milestone_progress == 50
    first, second = progress.milestones
    assert first.progress == 33
    assert first.unlocked_task_indexes == [0, 1]
    assert first.quiz_attempts == 0
    assert first.best_quiz_percentage is None
    assert second.completed is True
    assert second.quiz_attempts == 2
    assert second.best_quiz_percentage == 70


@pytest.mark.asyncio
async def test_sql_store_round_trip(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    store = roadmap_service.SqlRoadmapStore(session_factory)
    roadmap_id = await store.create(OWNER, make_roadmap())

    [listed] = await store.list_roadmaps(OWNER)
    assert listed.id == roadmap_id

    result = await store.add_quiz_report(OWNER, roadmap_id, "1", make_report(10))
    assert result.new_total_progress == 33

    fetched = await store.get(OWNER, roadmap_id)
    assert fetched.total_progress == 33

    await store.delete(OWNER, roadmap_id)
    assert await store.list_roadmaps(OWNER) == []


@pytest.mark.asyncio
async def test_sql_store_wraps_database_errors() -> None:
    # No tables created, so every query fails inside the driver
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    store = roadmap_service.SqlRoadmapStore(async_sessionmaker(engine, expire_on_commit=False))
    try:
        with pytest.raises(PersistenceError, match="unavailable"):
            await store.list_roadmaps(OWNER)
    finally:
        await engine.dispose()
