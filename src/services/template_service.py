"""Quest template service for CRUD operations and pool listings."""

import logging
from datetime import date, datetime
from typing import Any

from src.core import db_client
from src.core.logging import span
from src.core.recurrence import describe_schedule
from src.domain.create_models import TemplateCreate
from src.domain.template import QuestTemplate, ScheduleMode
from src.domain.update_models import TemplateUpdate
from src.models.service_models import PoolTemplateProgress, TemplateWithStats
from src.services import history_service, period_counter, project_service, quest_service


logger = logging.getLogger(__name__)

COLLECTION = "quest_templates"


def _user_filter(user_id: str) -> str:
    return f'user_id = "{db_client.sanitize_param(user_id)}"'


def _to_record_data(data: TemplateCreate) -> dict[str, Any]:
    payload = data.model_dump()
    payload["is_active"] = 1 if data.is_active else 0
    return payload


async def list_active_template_records(*, user_id: str) -> list[dict[str, Any]]:
    """List raw active template records, unvalidated."""
    return await db_client.list_all_records(
        collection=COLLECTION,
        filter_query=f'{_user_filter(user_id)} && is_active = "1"',
    )


async def list_active_templates(*, user_id: str) -> list[QuestTemplate]:
    """List a user's active templates, skipping records that fail validation."""
    with span("template_service.list_active_templates"):
        templates = []
        for record in await list_active_template_records(user_id=user_id):
            try:
                templates.append(QuestTemplate(**record))
            except ValueError as e:
                logger.warning("Skipping invalid template", extra={"template_id": record.get("id"), "error": str(e)})
        return templates


async def get_template(*, template_id: str, user_id: str) -> QuestTemplate:
    """Get a template owned by the user.

    Raises:
        db_client.RecordNotFoundError: If missing or owned by someone else
    """
    record = await db_client.get_record(collection=COLLECTION, record_id=template_id)
    if record["user_id"] != user_id:
        msg = f"Record not found in {COLLECTION}: {template_id}"
        raise db_client.RecordNotFoundError(msg)
    return QuestTemplate(**record)


async def list_templates(*, user_id: str) -> list[TemplateWithStats]:
    """List all of a user's templates with their total clear count."""
    with span("template_service.list_templates"):
        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=_user_filter(user_id),
        )

        results = []
        for record in records:
            template = QuestTemplate(**record)
            results.append(
                TemplateWithStats(
                    template=template,
                    executed_count=await history_service.count_template_clears(template_id=template.id),
                    schedule_description=describe_schedule(template),
                )
            )
        return results


async def create_template(*, user_id: str, data: TemplateCreate, now: datetime | None = None) -> QuestTemplate:
    """Create a quest template.

    Raises:
        db_client.RecordNotFoundError: If project_id names a project the user does not own
    """
    with span("template_service.create_template"):
        if data.project_id:
            await project_service.get_project(project_id=data.project_id, user_id=user_id)

        timestamp = (now or datetime.now()).isoformat()
        record = await db_client.create_record(
            collection=COLLECTION,
            data={"user_id": user_id, **_to_record_data(data), "created": timestamp, "updated": timestamp},
        )

        logger.info(
            "Created template",
            extra={"user_id": user_id, "template_id": record["id"], "quest_type": str(data.quest_type)},
        )
        return QuestTemplate(**record)


async def update_template(
    *,
    template_id: str,
    user_id: str,
    data: TemplateUpdate,
    now: datetime | None = None,
) -> QuestTemplate:
    """Update the fields set on the payload; the merged template is revalidated."""
    with span("template_service.update_template"):
        existing = await get_template(template_id=template_id, user_id=user_id)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            msg = "No template fields to update"
            raise ValueError(msg)

        merged = TemplateCreate(
            **{**existing.model_dump(include=set(TemplateCreate.model_fields)), **changes},
        )
        if merged.project_id and merged.project_id != existing.project_id:
            await project_service.get_project(project_id=merged.project_id, user_id=user_id)

        payload = _to_record_data(merged)
        payload["updated"] = (now or datetime.now()).isoformat()

        record = await db_client.update_record(collection=COLLECTION, record_id=template_id, data=payload)
        logger.info("Updated template", extra={"template_id": template_id, "fields": sorted(changes)})
        return QuestTemplate(**record)


async def set_template_active(*, template_id: str, user_id: str, is_active: bool) -> QuestTemplate:
    """Turn a template's generation on or off."""
    with span("template_service.set_template_active"):
        await get_template(template_id=template_id, user_id=user_id)
        record = await db_client.update_record(
            collection=COLLECTION,
            record_id=template_id,
            data={"is_active": 1 if is_active else 0, "updated": datetime.now().isoformat()},
        )
        logger.info("Toggled template", extra={"template_id": template_id, "is_active": is_active})
        return QuestTemplate(**record)


async def delete_template(*, template_id: str, user_id: str) -> None:
    """Delete a template. Its quests and history stay."""
    with span("template_service.delete_template"):
        await get_template(template_id=template_id, user_id=user_id)
        await db_client.delete_record(collection=COLLECTION, record_id=template_id)
        logger.info("Deleted template", extra={"template_id": template_id, "user_id": user_id})


async def mark_generated(*, template_id: str, now: datetime) -> None:
    """Stamp last_generated_at (informational)."""
    await db_client.update_record(
        collection=COLLECTION,
        record_id=template_id,
        data={"last_generated_at": now.isoformat()},
    )


async def list_pool_templates(*, user_id: str, today: date) -> list[PoolTemplateProgress]:
    """List quota-pool and library templates with progress in the current period."""
    with span("template_service.list_pool_templates"):
        templates = [
            t
            for t in await list_active_templates(user_id=user_id)
            if t.schedule_mode in (ScheduleMode.POOL, ScheduleMode.MANUAL)
        ]
        open_template_ids = {q.template_id for q in await quest_service.list_open_quests(user_id=user_id)}

        results = []
        for template in templates:
            completed = await period_counter.count_completions(
                template_id=template.id, period_kind=template.quest_type, as_of=today
            )
            remaining = max(0, template.frequency - completed)
            has_open = template.id in open_template_ids
            quota_left = template.schedule_mode == ScheduleMode.MANUAL or remaining > 0
            results.append(
                PoolTemplateProgress(
                    template=template,
                    completed_this_period=completed,
                    remaining_this_period=remaining,
                    has_open_quest=has_open,
                    can_pick_up=quota_left and not has_open,
                )
            )
        return results
