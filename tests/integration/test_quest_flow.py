"""End-to-end quest flows against a real SQLite file."""

import asyncio
from datetime import datetime, timedelta

import pytest

from src.core import db_client
from src.domain.create_models import QuestCreate, TemplateCreate
from src.domain.quest import QuestStatus, QuestType
from src.services import (
    history_service,
    progression_service,
    quest_generator,
    quest_service,
    quest_state_machine,
    template_service,
)


pytestmark = pytest.mark.integration

# Wednesday
NOW = datetime(2026, 10, 14, 7, 0)


async def test_generate_clear_and_regenerate(sqlite_db):
    """A daily quest is generated once per day, cleared for XP, then generated again tomorrow."""
    template = await template_service.create_template(
        user_id="7",
        data=TemplateCreate(quest_name="Stretch", quest_type=QuestType.DAILY, difficulty="2"),
        now=NOW,
    )

    first = await quest_generator.generate_quests_from_templates(user_id="7", now=NOW)
    again = await quest_generator.generate_quests_from_templates(user_id="7", now=NOW)

    assert first.created_count == 1
    assert again.created_count == 0
    quest = first.created[0]
    assert quest.template_id == template.id

    result = await quest_state_machine.change_status(
        quest_id=quest.id, user_id="7", new_status=QuestStatus.CLEARED, now=NOW + timedelta(hours=2)
    )
    assert result.xp_earned == 25

    # Quota of one per day is used up even though nothing is open
    same_day = await quest_generator.generate_quests_from_templates(user_id="7", now=NOW + timedelta(hours=3))
    assert same_day.created_count == 0

    tomorrow = await quest_generator.generate_quests_from_templates(user_id="7", now=NOW + timedelta(days=1))
    assert tomorrow.created_count == 1

    history = await history_service.list_history(user_id="7")
    assert [h.final_status for h in history] == ["cleared"]

    progression = await progression_service.get_progression(user_id="7")
    assert progression.total_xp == 25
    assert progression.current_streak == 1


async def test_weekly_pool_quota(sqlite_db):
    """A three-per-week pool is picked up by hand until the quota is reached."""
    template = await template_service.create_template(
        user_id="7",
        data=TemplateCreate(quest_name="Run", quest_type=QuestType.WEEKLY, frequency=3),
        now=NOW,
    )

    names = []
    for offset in range(3):
        moment = NOW + timedelta(hours=offset)
        quest = await quest_generator.instantiate_template(template_id=template.id, user_id="7", now=moment)
        names.append(quest.quest_name)
        await quest_state_machine.change_status(
            quest_id=quest.id, user_id="7", new_status=QuestStatus.CLEARED, now=moment
        )

    assert names == ["Run (1/3)", "Run (2/3)", "Run (3/3)"]

    with pytest.raises(quest_generator.QuotaReachedError):
        await quest_generator.instantiate_template(template_id=template.id, user_id="7", now=NOW)

    pool = await template_service.list_pool_templates(user_id="7", today=NOW.date())
    assert pool[0].completed_this_period == 3
    assert pool[0].can_pick_up is False


async def test_active_board_includes_quests_finished_today(sqlite_db):
    """The board shows open quests and those finished today."""
    kept = await quest_service.create_quest(user_id="7", data=QuestCreate(quest_name="Open"), now=NOW)
    done = await quest_service.create_quest(user_id="7", data=QuestCreate(quest_name="Done"), now=NOW)
    await quest_state_machine.change_status(quest_id=done.id, user_id="7", new_status=QuestStatus.CANCELLED, now=NOW)

    today = await quest_service.get_active_quests(user_id="7", today=NOW.date())
    tomorrow = await quest_service.get_active_quests(user_id="7", today=NOW.date() + timedelta(days=1))

    assert [q.id for q in today] == [kept.id, done.id]
    assert [q.id for q in tomorrow] == [kept.id]


async def test_user_ids_with_leading_zeros(sqlite_db):
    """A user ID like "007" is matched as text, never as the number 7."""
    await template_service.create_template(
        user_id="007", data=TemplateCreate(quest_name="Stretch", quest_type=QuestType.DAILY), now=NOW
    )
    await template_service.create_template(
        user_id="7", data=TemplateCreate(quest_name="Walk", quest_type=QuestType.DAILY), now=NOW
    )

    result = await quest_generator.generate_quests_from_templates(user_id="007", now=NOW)

    assert [q.quest_name for q in result.created] == ["Stretch"]

    first = await progression_service.get_progression(user_id="007")
    second = await progression_service.get_progression(user_id="007")
    assert first.id == second.id


async def test_concurrent_clears_award_xp_once(sqlite_db):
    """Two simultaneous clears of one quest write a single history row and award XP once."""
    quest = await quest_service.create_quest(
        user_id="7", data=QuestCreate(quest_name="Read", difficulty="2"), now=NOW
    )

    outcomes = await asyncio.gather(
        *[
            quest_state_machine.change_status(
                quest_id=quest.id, user_id="7", new_status=QuestStatus.CLEARED, now=NOW
            )
            for _ in range(2)
        ],
        return_exceptions=True,
    )

    cleared = [o for o in outcomes if not isinstance(o, BaseException)]
    rejected = [o for o in outcomes if isinstance(o, quest_state_machine.InvalidStatusTransitionError)]
    assert len(cleared) == 1
    assert len(rejected) == 1

    assert len(await history_service.list_history(user_id="7")) == 1
    progression = await progression_service.get_progression(user_id="7")
    assert progression.total_xp == 25


async def test_failed_history_write_leaves_quest_open(sqlite_db, monkeypatch):
    """A clear whose history row cannot be written is rolled back completely."""
    quest = await quest_service.create_quest(user_id="7", data=QuestCreate(quest_name="Read"), now=NOW)
    await quest_state_machine.change_status(quest_id=quest.id, user_id="7", new_status=QuestStatus.ALMOST, now=NOW)
    create_record = db_client.create_record

    async def history_unavailable(*, collection, data):
        if collection == "quest_history":
            msg = "Database unavailable while trying to create record in quest_history"
            raise db_client.StoreUnavailableError(msg)
        return await create_record(collection=collection, data=data)

    monkeypatch.setattr(db_client, "create_record", history_unavailable)

    with pytest.raises(db_client.StoreUnavailableError):
        await quest_state_machine.change_status(
            quest_id=quest.id, user_id="7", new_status=QuestStatus.CLEARED, now=NOW
        )

    monkeypatch.setattr(db_client, "create_record", create_record)
    stored = await quest_service.get_quest(quest_id=quest.id, user_id="7")
    assert stored.status == QuestStatus.ALMOST
    assert stored.cleared_at is None
    assert await history_service.list_history(user_id="7") == []

    # The quest can still be cleared once storage recovers
    result = await quest_state_machine.change_status(
        quest_id=quest.id, user_id="7", new_status=QuestStatus.CLEARED, now=NOW
    )
    assert result.xp_earned == 10
