"""Quest service for CRUD operations and board views."""

import logging
from datetime import date, datetime, timedelta
from typing import Any

from src.core import db_client
from src.core.logging import span
from src.domain.create_models import QuestCreate
from src.domain.quest import Quest, QuestStatus
from src.domain.update_models import QuestUpdate
from src.services.quest_state_machine import calculate_auto_deadline


logger = logging.getLogger(__name__)

COLLECTION = "quests"


def _status_group(statuses: tuple[QuestStatus, ...]) -> str:
    return "(" + " || ".join(f'status = "{s}"' for s in statuses) + ")"


def _user_filter(user_id: str) -> str:
    return f'user_id = "{db_client.sanitize_param(user_id)}"'


async def _list(filter_query: str) -> list[Quest]:
    records = await db_client.list_all_records(
        collection=COLLECTION,
        filter_query=filter_query,
    )
    return [Quest(**record) for record in records]


async def insert_quest(*, data: dict[str, Any]) -> Quest:
    """Persist a fully built quest record.

    Raises:
        db_client.DuplicateRecordError: If the template already has an open quest
    """
    record = await db_client.create_record(collection=COLLECTION, data=data)
    logger.info(
        "Created quest",
        extra={"quest_id": record["id"], "template_id": record.get("template_id"), "user_id": record["user_id"]},
    )
    return Quest(**record)


async def get_quest(*, quest_id: str, user_id: str) -> Quest:
    """Get a quest owned by the user.

    Raises:
        db_client.RecordNotFoundError: If missing or owned by someone else
    """
    record = await db_client.get_record(collection=COLLECTION, record_id=quest_id)
    if record["user_id"] != user_id:
        msg = f"Record not found in {COLLECTION}: {quest_id}"
        raise db_client.RecordNotFoundError(msg)
    return Quest(**record)


async def create_quest(*, user_id: str, data: QuestCreate, now: datetime | None = None) -> Quest:
    """Create a manual (template-less) quest.

    The deadline defaults to the automatic deadline for the quest type.
    With accept_immediately the quest starts in the accepted status.
    """
    with span("quest_service.create_quest"):
        now = now or datetime.now()
        deadline = data.deadline or calculate_auto_deadline(data.quest_type, now)
        status = QuestStatus.ACCEPTED if data.accept_immediately else QuestStatus.UNRECEIVED

        return await insert_quest(
            data={
                "user_id": user_id,
                "template_id": None,
                "quest_name": data.quest_name,
                "project_name": data.project_name,
                "quest_type": data.quest_type,
                "difficulty": data.difficulty,
                "status": status,
                "planned_time_slot": data.planned_time_slot,
                "start_date": data.start_date,
                "deadline": deadline,
                "accepted_at": now if data.accept_immediately else None,
                "created": now.isoformat(),
                "updated": now.isoformat(),
            }
        )


async def list_open_quests(*, user_id: str) -> list[Quest]:
    """List every non-terminal quest of a user."""
    return await _list(f"{_user_filter(user_id)} && {_status_group(QuestStatus.open_statuses())}")


async def get_in_progress_quests(*, user_id: str) -> list[Quest]:
    """List accepted, challenging and almost-done quests."""
    with span("quest_service.get_in_progress_quests"):
        return await _list(f"{_user_filter(user_id)} && {_status_group(QuestStatus.in_progress_statuses())}")


async def get_unreceived_quests(*, user_id: str) -> list[Quest]:
    """List quests waiting to be accepted."""
    with span("quest_service.get_unreceived_quests"):
        return await _list(f'{_user_filter(user_id)} && status = "{QuestStatus.UNRECEIVED}"')


async def get_active_quests(*, user_id: str, today: date) -> list[Quest]:
    """List the quest board: open quests plus quests finished today."""
    with span("quest_service.get_active_quests"):
        open_quests = await list_open_quests(user_id=user_id)

        terminal = tuple(s for s in QuestStatus if s.is_terminal)
        finished_today = await _list(
            f"{_user_filter(user_id)} && {_status_group(terminal)}"
            f' && updated >= "{today.isoformat()}"'
            f' && updated < "{(today + timedelta(days=1)).isoformat()}"'
        )

        return sorted(open_quests + finished_today, key=lambda q: int(q.id))


async def update_quest(
    *,
    quest_id: str,
    user_id: str,
    data: QuestUpdate,
    now: datetime | None = None,
) -> Quest:
    """Edit a quest's descriptive fields. Status changes go through the state machine."""
    with span("quest_service.update_quest"):
        await get_quest(quest_id=quest_id, user_id=user_id)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            msg = "No quest fields to update"
            raise ValueError(msg)
        changes["updated"] = (now or datetime.now()).isoformat()

        record = await db_client.update_record(collection=COLLECTION, record_id=quest_id, data=changes)
        logger.info("Updated quest", extra={"quest_id": quest_id, "fields": sorted(changes)})
        return Quest(**record)


async def update_deadline(
    *,
    quest_id: str,
    user_id: str,
    deadline: datetime | None,
    now: datetime | None = None,
) -> Quest:
    """Set or clear a quest's deadline, regardless of its status."""
    with span("quest_service.update_deadline"):
        await get_quest(quest_id=quest_id, user_id=user_id)
        record = await db_client.update_record(
            collection=COLLECTION,
            record_id=quest_id,
            data={"deadline": deadline, "updated": (now or datetime.now()).isoformat()},
        )
        logger.info("Updated quest deadline", extra={"quest_id": quest_id, "deadline": str(deadline)})
        return Quest(**record)


async def delete_quest(*, quest_id: str, user_id: str) -> None:
    """Delete a quest. History records already written are kept."""
    with span("quest_service.delete_quest"):
        await get_quest(quest_id=quest_id, user_id=user_id)
        await db_client.delete_record(collection=COLLECTION, record_id=quest_id)
        logger.info("Deleted quest", extra={"quest_id": quest_id, "user_id": user_id})
