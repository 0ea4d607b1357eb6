"""Unit tests for template_service module."""

from datetime import date

import pytest
from pydantic import ValidationError

from src.core import db_client
from src.domain.create_models import ProjectCreate, TemplateCreate
from src.domain.quest import QuestType
from src.domain.template import ScheduleMode
from src.domain.update_models import TemplateUpdate
from src.services import project_service, template_service


@pytest.mark.unit
class TestCreateTemplate:
    """Tests for create_template function."""

    async def test_create_weekly_template(self, patched_db, now):
        """Schedule lists round-trip through storage as sorted ints."""
        template = await template_service.create_template(
            user_id="7",
            data=TemplateCreate(quest_name="Gym", quest_type=QuestType.WEEKLY, days_of_week=[5, 1, 3]),
            now=now,
        )

        assert template.days_of_week == [1, 3, 5]
        assert template.is_active is True
        assert template.schedule_mode == ScheduleMode.FIXED

    async def test_links_owned_project(self, patched_db, now):
        """A template may link one of the user's projects."""
        project = await project_service.create_project(user_id="7", data=ProjectCreate(name="Garden"), now=now)

        template = await template_service.create_template(
            user_id="7",
            data=TemplateCreate(quest_type=QuestType.PROJECT, project_id=project.id),
            now=now,
        )

        assert template.project_id == project.id

    async def test_rejects_foreign_project(self, patched_db, now):
        """Linking another user's project fails and stores nothing."""
        project = await project_service.create_project(user_id="8", data=ProjectCreate(name="Theirs"), now=now)

        with pytest.raises(db_client.RecordNotFoundError):
            await template_service.create_template(
                user_id="7",
                data=TemplateCreate(quest_type=QuestType.PROJECT, project_id=project.id),
                now=now,
            )

        assert await patched_db.count_records(collection="quest_templates") == 0


@pytest.mark.unit
class TestListTemplates:
    """Tests for template listings."""

    async def test_list_templates_with_executed_count(self, patched_db, make_template, make_history):
        """Each template carries its total clear count and a readable schedule."""
        template = await make_template(quest_type="Weekly", days_of_week="[1, 3]")
        await make_template(user_id="8")
        await make_history(template_id=template["id"], recorded_date="2026-01-05")
        await make_history(template_id=template["id"])
        await make_history(template_id=template["id"], final_status="failed", xp_earned=0)

        results = await template_service.list_templates(user_id="7")

        assert len(results) == 1
        assert results[0].executed_count == 2
        assert results[0].schedule_description == "every Mon, Wed"

    async def test_list_active_templates_skips_invalid(self, patched_db, make_template):
        """Records that fail validation are left out of the typed listing."""
        good = await make_template()
        await make_template(quest_type="Fortnightly")

        templates = await template_service.list_active_templates(user_id="7")

        assert [t.id for t in templates] == [good["id"]]

    async def test_list_pool_templates(self, patched_db, make_template, make_quest, make_history):
        """Pool and library templates report period progress and whether they can be picked up."""
        pool = await make_template(quest_name="Run", quest_type="Weekly", frequency=3)
        relax = await make_template(quest_name="Read", quest_type="Relax")
        await make_template(quest_name="Stretch")
        await make_history(template_id=pool["id"], recorded_date="2026-10-12")
        await make_history(template_id=pool["id"], recorded_date="2026-10-09")
        await make_quest(template_id=relax["id"], status="accepted")

        results = await template_service.list_pool_templates(user_id="7", today=date(2026, 10, 14))

        by_id = {r.template.id: r for r in results}
        assert set(by_id) == {pool["id"], relax["id"]}
        assert by_id[pool["id"]].completed_this_period == 1
        assert by_id[pool["id"]].remaining_this_period == 2
        assert by_id[pool["id"]].can_pick_up is True
        assert by_id[relax["id"]].has_open_quest is True
        assert by_id[relax["id"]].can_pick_up is False


@pytest.mark.unit
class TestModifyTemplate:
    """Tests for update, toggle and delete."""

    async def test_update_merges_and_revalidates(self, patched_db, make_template, now):
        """Updates keep unset fields and the merged template is validated."""
        stored = await make_template(quest_type="Monthly", dates_of_month="[1]", difficulty="2")

        template = await template_service.update_template(
            template_id=stored["id"], user_id="7", data=TemplateUpdate(dates_of_month=[15, 1]), now=now
        )

        assert template.dates_of_month == [1, 15]
        assert template.difficulty == "2"
        assert template.updated == now.isoformat()

    async def test_update_rejects_invalid_result(self, patched_db, make_template):
        """An update producing an invalid template is rejected and nothing changes."""
        stored = await make_template(quest_type="Weekly", days_of_week="[2]")

        with pytest.raises(ValidationError):
            await template_service.update_template(
                template_id=stored["id"], user_id="7", data=TemplateUpdate(days_of_week=[9])
            )

        record = await patched_db.get_record(collection="quest_templates", record_id=stored["id"])
        assert record["days_of_week"] == "[2]"

    async def test_update_requires_changes(self, patched_db, make_template):
        """An empty update is rejected."""
        stored = await make_template()

        with pytest.raises(ValueError, match="No template fields"):
            await template_service.update_template(template_id=stored["id"], user_id="7", data=TemplateUpdate())

    async def test_toggle_active(self, patched_db, make_template):
        """Deactivated templates drop out of the active listing."""
        stored = await make_template()

        template = await template_service.set_template_active(template_id=stored["id"], user_id="7", is_active=False)

        assert template.is_active is False
        assert await template_service.list_active_templates(user_id="7") == []

    async def test_delete_keeps_quests(self, patched_db, make_template, make_quest):
        """Deleting a template leaves its quests alone."""
        stored = await make_template()
        await make_quest(template_id=stored["id"])

        await template_service.delete_template(template_id=stored["id"], user_id="7")

        assert await patched_db.count_records(collection="quest_templates") == 0
        assert await patched_db.count_records(collection="quests") == 1

    async def test_foreign_template_not_found(self, patched_db, make_template):
        """Other users' templates cannot be changed."""
        stored = await make_template(user_id="8")

        with pytest.raises(db_client.RecordNotFoundError):
            await template_service.set_template_active(template_id=stored["id"], user_id="7", is_active=False)
