"""Progression service: XP totals and daily clear streaks."""

import logging
from datetime import date, datetime, timedelta
from typing import Any

from src.core import db_client
from src.core.logging import span
from src.domain.progression import ProgressionState


logger = logging.getLogger(__name__)

COLLECTION = "user_progression"


def advance_streak(state: ProgressionState, today: date) -> ProgressionState:
    """Apply a quest clear on the given day to the streak counters.

    Same day as the last clear leaves the streak unchanged; the day after
    extends it; any longer gap (or no previous clear) restarts it at 1.
    """
    last = state.last_cleared_date
    if last == today:
        current = state.current_streak
    elif last is not None and last == today - timedelta(days=1):
        current = state.current_streak + 1
    else:
        current = 1

    return state.model_copy(
        update={
            "current_streak": current,
            "longest_streak": max(state.longest_streak, current),
            "last_cleared_date": today,
        }
    )


def decay_streak(state: ProgressionState, today: date) -> ProgressionState:
    """Zero the current streak if the last clear is older than yesterday."""
    last = state.last_cleared_date
    if last is None or last in (today, today - timedelta(days=1)):
        return state
    if state.current_streak == 0:
        return state
    return state.model_copy(update={"current_streak": 0})


def _to_state(record: dict[str, Any]) -> ProgressionState:
    return ProgressionState(**record)


async def get_progression(*, user_id: str) -> ProgressionState:
    """Get a user's progression, creating an empty one on first access."""
    with span("progression_service.get_progression"):
        record = await db_client.get_first_record(
            collection=COLLECTION,
            filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
        )
        if record is not None:
            return _to_state(record)

        now = datetime.now().isoformat()
        try:
            record = await db_client.create_record(
                collection=COLLECTION,
                data={"user_id": user_id, "created": now, "updated": now},
            )
        except db_client.DuplicateRecordError:
            # Created concurrently by another request
            record = await db_client.get_first_record(
                collection=COLLECTION,
                filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
            )
            if record is None:
                raise

        logger.info("Created progression record", extra={"user_id": user_id})
        return _to_state(record)


async def _save(state: ProgressionState) -> ProgressionState:
    record = await db_client.update_record(
        collection=COLLECTION,
        record_id=state.id or "",
        data={
            "total_xp": state.total_xp,
            "current_streak": state.current_streak,
            "longest_streak": state.longest_streak,
            "last_cleared_date": state.last_cleared_date.isoformat() if state.last_cleared_date else None,
            "updated": datetime.now().isoformat(),
        },
    )
    return _to_state(record)


async def update_progression(
    *,
    user_id: str,
    xp_gain: int,
    quest_cleared: bool,
    today: date,
) -> ProgressionState:
    """Add XP and, for a cleared quest, advance the streak.

    Args:
        user_id: User whose progression changes
        xp_gain: XP to add (may be 0)
        quest_cleared: Whether a quest was cleared (advances the streak)
        today: Local day of the clear

    Returns:
        Persisted progression state
    """
    with span("progression_service.update_progression"):
        state = await get_progression(user_id=user_id)
        state = state.model_copy(update={"total_xp": state.total_xp + xp_gain})
        if quest_cleared:
            state = advance_streak(state, today)

        saved = await _save(state)
        logger.info(
            "Updated progression",
            extra={
                "user_id": user_id,
                "xp_gain": xp_gain,
                "total_xp": saved.total_xp,
                "current_streak": saved.current_streak,
            },
        )
        return saved


async def reset_streak_if_needed(*, user_id: str, today: date) -> ProgressionState:
    """Lazily break a lapsed streak; called whenever progression is read."""
    with span("progression_service.reset_streak_if_needed"):
        state = await get_progression(user_id=user_id)
        decayed = decay_streak(state, today)
        if decayed is state:
            return state

        logger.info(
            "Streak lapsed",
            extra={"user_id": user_id, "last_cleared_date": str(state.last_cleared_date)},
        )
        return await _save(decayed)
