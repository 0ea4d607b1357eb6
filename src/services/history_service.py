"""History service: immutable records of quests reaching a terminal state."""

import logging
from datetime import date, datetime

from src.core import db_client
from src.core.logging import span
from src.domain.history import FinalStatus, HistoryRecord
from src.domain.quest import Quest


logger = logging.getLogger(__name__)

COLLECTION = "quest_history"


async def insert_history_record(
    *,
    quest: Quest,
    final_status: FinalStatus,
    xp_earned: int,
    now: datetime,
) -> HistoryRecord:
    """Write the snapshot of a quest that just reached a terminal state.

    Args:
        quest: Quest as it was when the transition happened
        final_status: Terminal status reached
        xp_earned: XP awarded (0 unless cleared)
        now: Local time of the transition; its date becomes recorded_date

    Returns:
        Created history record
    """
    with span("history_service.insert_history_record"):
        record = await db_client.create_record(
            collection=COLLECTION,
            data={
                "user_id": quest.user_id,
                "quest_id": quest.id,
                "template_id": quest.template_id,
                "quest_name": quest.quest_name,
                "project_name": quest.project_name,
                "quest_type": quest.quest_type,
                "difficulty": quest.difficulty,
                "final_status": final_status,
                "xp_earned": xp_earned,
                "planned_time_slot": quest.planned_time_slot,
                "recorded_at": now.isoformat(),
                "recorded_date": now.date().isoformat(),
                "created": now.isoformat(),
                "updated": now.isoformat(),
            },
        )

        logger.info(
            "Recorded quest history",
            extra={"quest_id": quest.id, "final_status": str(final_status), "xp_earned": xp_earned},
        )
        return HistoryRecord(**record)


async def count_history(
    *,
    template_id: str,
    start: date,
    end: date,
    status: FinalStatus | None = FinalStatus.CLEARED,
) -> int:
    """Count history records for a template with recorded_date in [start, end].

    Args:
        template_id: Template to count for
        start: First day of the window (inclusive)
        end: Last day of the window (inclusive)
        status: Only count this final status; None counts every status
    """
    filters = [
        f'template_id = "{db_client.sanitize_param(template_id)}"',
        f'recorded_date >= "{start.isoformat()}"',
        f'recorded_date <= "{end.isoformat()}"',
    ]
    if status is not None:
        filters.append(f'final_status = "{status}"')

    return await db_client.count_records(collection=COLLECTION, filter_query=" && ".join(filters))


async def count_template_clears(*, template_id: str) -> int:
    """Count every time a template's quests have been cleared."""
    filter_query = f'template_id = "{db_client.sanitize_param(template_id)}" && final_status = "{FinalStatus.CLEARED}"'
    return await db_client.count_records(collection=COLLECTION, filter_query=filter_query)


async def list_history(
    *,
    user_id: str,
    start: date | None = None,
    end: date | None = None,
    final_status: FinalStatus | None = None,
) -> list[HistoryRecord]:
    """List a user's history, newest first, optionally limited to a date range."""
    with span("history_service.list_history"):
        filters = [f'user_id = "{db_client.sanitize_param(user_id)}"']
        if start is not None:
            filters.append(f'recorded_date >= "{start.isoformat()}"')
        if end is not None:
            filters.append(f'recorded_date <= "{end.isoformat()}"')
        if final_status is not None:
            filters.append(f'final_status = "{final_status}"')

        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=" && ".join(filters),
            sort="-recorded_at",
        )
        return [HistoryRecord(**record) for record in records]
