"""Quest history domain model."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.quest import Difficulty, QuestType


class FinalStatus(StrEnum):
    """Terminal status recorded in history."""

    CLEARED = "cleared"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    FAILED = "failed"


class HistoryRecord(BaseModel):
    """Immutable snapshot of a quest at the moment it reached a terminal state."""

    id: str = Field(..., description="Unique history record ID from database")
    user_id: str = Field(..., description="Owning user ID")
    quest_id: str = Field(..., description="Quest that finished")
    template_id: str | None = Field(default=None, description="Template of the quest, if any")
    quest_name: str | None = Field(default=None, description="Quest name at completion")
    project_name: str | None = Field(default=None, description="Project name at completion")
    quest_type: QuestType = Field(..., description="Quest kind at completion")
    difficulty: Difficulty = Field(default=Difficulty.ONE, description="Difficulty at completion")
    final_status: FinalStatus = Field(..., description="Terminal status reached")
    xp_earned: int = Field(default=0, description="XP awarded (0 unless cleared)")
    planned_time_slot: str | None = Field(default=None, description="Planned time slot at completion")
    recorded_at: datetime = Field(..., description="Moment of the terminal transition")
    recorded_date: str = Field(..., description="Local calendar day of the transition (YYYY-MM-DD)")
