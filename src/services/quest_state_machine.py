"""Quest status transitions and their side effects (XP, history, streak)."""

import calendar
import logging
from datetime import date, datetime, time, timedelta

from src.core import db_client
from src.core.config import constants
from src.core.logging import span
from src.domain.history import FinalStatus
from src.domain.quest import Quest, QuestStatus, QuestType
from src.models.service_models import StatusChangeResult
from src.services import history_service, progression_service


logger = logging.getLogger(__name__)

COLLECTION = "quests"

_HAPPY_PATH = (
    QuestStatus.UNRECEIVED,
    QuestStatus.ACCEPTED,
    QuestStatus.CHALLENGING,
    QuestStatus.ALMOST,
    QuestStatus.CLEARED,
)
_ABORT_STATUSES = (QuestStatus.PAUSED, QuestStatus.CANCELLED, QuestStatus.FAILED)


class InvalidStatusTransitionError(ValueError):
    """Raised when a quest cannot move from its current status to the requested one."""


def calculate_xp_reward(difficulty: str) -> int:
    """Return the XP awarded for clearing a quest of the given difficulty."""
    return constants.XP_REWARD_BY_DIFFICULTY.get(str(difficulty), constants.XP_REWARD_FALLBACK)


def _end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)


def calculate_auto_deadline(quest_type: QuestType, now: datetime) -> datetime | None:
    """Calculate the informational deadline for a new quest.

    Daily ends today, Weekly ends on the coming Sunday (today if it is
    Sunday), Monthly at the end of the month and Yearly on Dec 31.
    Free, Relax and Project quests have no automatic deadline.
    """
    today = now.date()
    if quest_type == QuestType.DAILY:
        return _end_of_day(today)
    if quest_type == QuestType.WEEKLY:
        # date.weekday(): Monday=0 .. Sunday=6
        return _end_of_day(today + timedelta(days=6 - today.weekday()))
    if quest_type == QuestType.MONTHLY:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return _end_of_day(today.replace(day=last_day))
    if quest_type == QuestType.YEARLY:
        return _end_of_day(today.replace(month=12, day=31))
    return None


def is_transition_allowed(current: QuestStatus, new: QuestStatus) -> bool:
    """Check whether a quest may move from current to new status.

    Terminal statuses accept nothing. From an open status a quest may move
    forward along the happy path (skipping steps is allowed) or be paused,
    cancelled or failed. Backward and same-status moves are rejected.
    """
    if current.is_terminal:
        return False
    if new in _ABORT_STATUSES:
        return True
    return _HAPPY_PATH.index(new) > _HAPPY_PATH.index(current)


async def _get_owned_quest(*, quest_id: str, user_id: str) -> Quest:
    record = await db_client.get_record(collection=COLLECTION, record_id=quest_id)
    if record["user_id"] != user_id:
        # Foreign quests are indistinguishable from missing ones
        msg = f"Record not found in {COLLECTION}: {quest_id}"
        raise db_client.RecordNotFoundError(msg)
    return Quest(**record)


async def change_status(
    *,
    quest_id: str,
    user_id: str,
    new_status: QuestStatus,
    now: datetime | None = None,
) -> StatusChangeResult:
    """Move a quest to a new status and apply the side effects.

    Args:
        quest_id: Quest to change
        user_id: Caller; must own the quest
        new_status: Requested status
        now: Local time of the change (defaults to now)

    Returns:
        The updated quest, XP earned, and any history/progression written

    Raises:
        db_client.RecordNotFoundError: If the quest does not exist or belongs to another user
        InvalidStatusTransitionError: If the move is not allowed, or another
            caller changed the status first
        db_client.StoreUnavailableError: If storage fails; the status change,
            history row and progression are rolled back together
    """
    with span("quest_state_machine.change_status"):
        now = now or datetime.now()
        quest = await _get_owned_quest(quest_id=quest_id, user_id=user_id)

        if not is_transition_allowed(quest.status, new_status):
            msg = f"Cannot transition quest {quest_id} from {quest.status} to {new_status}"
            raise InvalidStatusTransitionError(msg)

        data: dict[str, str] = {"status": new_status, "updated": now.isoformat()}
        if new_status == QuestStatus.ACCEPTED:
            data["accepted_at"] = now.isoformat()
        elif new_status == QuestStatus.CLEARED:
            data["cleared_at"] = now.isoformat()

        async with db_client.transaction():
            record = await db_client.compare_and_update_record(
                collection=COLLECTION, record_id=quest_id, expected={"status": quest.status}, data=data
            )
            if record is None:
                msg = f"Quest {quest_id} changed status concurrently; it is no longer {quest.status}"
                raise InvalidStatusTransitionError(msg)

            updated_quest = Quest(**record)
            result = StatusChangeResult(quest=updated_quest)

            if new_status == QuestStatus.CLEARED:
                xp = calculate_xp_reward(updated_quest.difficulty)
                result.xp_earned = xp
                result.history = await history_service.insert_history_record(
                    quest=updated_quest, final_status=FinalStatus.CLEARED, xp_earned=xp, now=now
                )
                result.progression = await progression_service.update_progression(
                    user_id=user_id, xp_gain=xp, quest_cleared=True, today=now.date()
                )
            elif new_status in _ABORT_STATUSES:
                result.history = await history_service.insert_history_record(
                    quest=updated_quest, final_status=FinalStatus(new_status.value), xp_earned=0, now=now
                )

        logger.info(
            "Changed quest status",
            extra={
                "quest_id": quest_id,
                "user_id": user_id,
                "from_status": str(quest.status),
                "to_status": str(new_status),
                "xp_earned": result.xp_earned,
            },
        )
        return result
