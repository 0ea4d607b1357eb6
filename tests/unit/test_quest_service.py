"""Unit tests for quest_service module."""

from datetime import date, datetime

import pytest

from src.core import db_client
from src.core.config import constants
from src.domain.create_models import QuestCreate
from src.domain.quest import QuestStatus, QuestType
from src.domain.update_models import QuestUpdate
from src.services import quest_service


@pytest.mark.unit
class TestCreateQuest:
    """Tests for create_quest function."""

    async def test_defaults_to_unreceived_free_quest(self, patched_db, now):
        """A bare manual quest is Free, unreceived and has no deadline."""
        quest = await quest_service.create_quest(user_id="7", data=QuestCreate(quest_name="Call mom"), now=now)

        assert quest.quest_type == QuestType.FREE
        assert quest.status == QuestStatus.UNRECEIVED
        assert quest.template_id is None
        assert quest.deadline is None
        assert quest.accepted_at is None

    async def test_auto_deadline_for_daily(self, patched_db, now):
        """A Daily quest without a deadline gets the end of today."""
        quest = await quest_service.create_quest(
            user_id="7", data=QuestCreate(quest_name="Water plants", quest_type=QuestType.DAILY), now=now
        )

        assert quest.deadline == datetime(2026, 10, 14, 23, 59, 59, 999999)

    async def test_explicit_deadline_wins(self, patched_db, now):
        """An explicit deadline overrides the automatic one."""
        deadline = datetime(2026, 10, 20, 18, 0)
        quest = await quest_service.create_quest(
            user_id="7", data=QuestCreate(quest_type=QuestType.WEEKLY, deadline=deadline), now=now
        )

        assert quest.deadline == deadline

    async def test_accept_immediately(self, patched_db, now):
        """accept_immediately starts the quest accepted with accepted_at stamped."""
        quest = await quest_service.create_quest(
            user_id="7", data=QuestCreate(quest_name="Tidy desk", accept_immediately=True), now=now
        )

        assert quest.status == QuestStatus.ACCEPTED
        assert quest.accepted_at == now


@pytest.mark.unit
class TestQuestViews:
    """Tests for the board listing functions."""

    async def test_active_view_includes_quests_finished_today(self, patched_db, make_quest):
        """Open quests and quests finished today appear; older finished ones do not."""
        open_quest = await make_quest(status="challenging")
        today_done = await make_quest(status="cleared", updated="2026-10-14T08:00:00")
        await make_quest(status="failed", updated="2026-10-13T22:00:00")
        await make_quest(status="unreceived", user_id="8")

        quests = await quest_service.get_active_quests(user_id="7", today=date(2026, 10, 14))

        assert [q.id for q in quests] == [open_quest["id"], today_done["id"]]

    async def test_in_progress_view(self, patched_db, make_quest):
        """In-progress lists accepted, challenging and almost quests only."""
        await make_quest(status="unreceived")
        accepted = await make_quest(status="accepted")
        almost = await make_quest(status="almost")
        await make_quest(status="paused")

        quests = await quest_service.get_in_progress_quests(user_id="7")

        assert [q.id for q in quests] == [accepted["id"], almost["id"]]

    async def test_unreceived_view(self, patched_db, make_quest):
        """Unreceived lists quests waiting to be accepted."""
        waiting = await make_quest(status="unreceived")
        await make_quest(status="accepted")

        quests = await quest_service.get_unreceived_quests(user_id="7")

        assert [q.id for q in quests] == [waiting["id"]]

    async def test_open_quests_excludes_terminal(self, patched_db, make_quest):
        """Open quests never include terminal statuses."""
        await make_quest(status="cancelled")
        await make_quest(status="cleared")
        open_quest = await make_quest(status="almost")

        quests = await quest_service.list_open_quests(user_id="7")

        assert [q.id for q in quests] == [open_quest["id"]]


@pytest.mark.unit
class TestQuestEdits:
    """Tests for update_quest, update_deadline and delete_quest."""

    async def test_update_quest_changes_only_set_fields(self, patched_db, make_quest, now):
        """Unset fields keep their stored values."""
        stored = await make_quest(quest_name="Read", planned_time_slot="morning")

        quest = await quest_service.update_quest(
            quest_id=stored["id"], user_id="7", data=QuestUpdate(quest_name="Read a chapter"), now=now
        )

        assert quest.quest_name == "Read a chapter"
        assert quest.planned_time_slot == "morning"
        assert quest.updated == now.isoformat()

    async def test_update_quest_requires_changes(self, patched_db, make_quest):
        """An empty update is rejected."""
        stored = await make_quest()

        with pytest.raises(ValueError, match="No quest fields"):
            await quest_service.update_quest(quest_id=stored["id"], user_id="7", data=QuestUpdate())

    async def test_update_deadline_on_terminal_quest(self, patched_db, make_quest, now):
        """Deadlines can be edited whatever the status, and cleared with None."""
        stored = await make_quest(status="cleared", deadline="2026-10-14T23:59:59")

        quest = await quest_service.update_deadline(quest_id=stored["id"], user_id="7", deadline=None, now=now)

        assert quest.deadline is None

    async def test_delete_quest_keeps_history(self, patched_db, make_quest, make_history):
        """Deleting a quest leaves its history in place."""
        stored = await make_quest(status="cleared")
        await make_history(quest_id=stored["id"])

        await quest_service.delete_quest(quest_id=stored["id"], user_id="7")

        with pytest.raises(db_client.RecordNotFoundError):
            await patched_db.get_record(collection="quests", record_id=stored["id"])
        assert await patched_db.count_records(collection="quest_history") == 1

    async def test_foreign_quest_is_not_found(self, patched_db, make_quest):
        """Other users' quests cannot be read, edited or deleted."""
        stored = await make_quest(user_id="8")

        with pytest.raises(db_client.RecordNotFoundError):
            await quest_service.get_quest(quest_id=stored["id"], user_id="7")
        with pytest.raises(db_client.RecordNotFoundError):
            await quest_service.delete_quest(quest_id=stored["id"], user_id="7")

        assert await patched_db.count_records(collection="quests") == 1


@pytest.mark.unit
class TestFullListing:
    """Listings return every matching row, however many pages that takes."""

    async def test_open_quests_span_several_pages(self, patched_db, make_quest, monkeypatch):
        """Five quests with a page size of two come back complete and in order."""
        monkeypatch.setattr(constants, "DEFAULT_PER_PAGE_LIMIT", 2)
        stored = [await make_quest(quest_name=f"Read {n}") for n in range(5)]

        quests = await quest_service.list_open_quests(user_id="7")

        assert [q.id for q in quests] == [record["id"] for record in stored]

    async def test_exact_multiple_of_page_size(self, patched_db, make_quest, monkeypatch):
        """A final empty page ends the scan without losing rows."""
        monkeypatch.setattr(constants, "DEFAULT_PER_PAGE_LIMIT", 2)
        for n in range(4):
            await make_quest(quest_name=f"Read {n}")

        quests = await quest_service.list_open_quests(user_id="7")

        assert len(quests) == 4
