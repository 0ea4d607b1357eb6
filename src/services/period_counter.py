"""Completion counting over a template's current quota period."""

from datetime import date, timedelta

from src.core.recurrence import sunday_weekday
from src.domain.quest import QuestType
from src.services import history_service


def period_window(period_kind: QuestType, as_of: date) -> tuple[date, date]:
    """Return the inclusive [start, end] window of the period containing as_of.

    Weeks start on Sunday. Periods end at as_of, never in the future.
    Project, Relax and Free quests count per day, like Daily.
    """
    if period_kind == QuestType.WEEKLY:
        return as_of - timedelta(days=sunday_weekday(as_of)), as_of
    if period_kind == QuestType.MONTHLY:
        return as_of.replace(day=1), as_of
    if period_kind == QuestType.YEARLY:
        return as_of.replace(month=1, day=1), as_of
    return as_of, as_of


async def count_completions(*, template_id: str, period_kind: QuestType, as_of: date) -> int:
    """Count cleared quests for a template within the current period."""
    start, end = period_window(period_kind, as_of)
    return await history_service.count_history(template_id=template_id, start=start, end=end)
