"""Quest domain models and enums."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class QuestType(StrEnum):
    """Recurrence kind of a quest or template."""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"
    FREE = "Free"  # Manual one-offs only, never on a template
    PROJECT = "Project"
    RELAX = "Relax"


class Difficulty(StrEnum):
    """Star rating of a quest (★ to ★★★)."""

    ONE = "1"
    TWO = "2"
    THREE = "3"


class QuestStatus(StrEnum):
    """Quest lifecycle state."""

    UNRECEIVED = "unreceived"
    ACCEPTED = "accepted"
    CHALLENGING = "challenging"
    ALMOST = "almost"
    CLEARED = "cleared"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @classmethod
    def open_statuses(cls) -> tuple["QuestStatus", ...]:
        """Statuses of a quest that still needs action."""
        return (cls.UNRECEIVED, cls.ACCEPTED, cls.CHALLENGING, cls.ALMOST)

    @classmethod
    def in_progress_statuses(cls) -> tuple["QuestStatus", ...]:
        """Statuses of a quest that has been accepted but not finished."""
        return (cls.ACCEPTED, cls.CHALLENGING, cls.ALMOST)

    @property
    def is_terminal(self) -> bool:
        """Whether the quest is finished and can no longer change."""
        return self not in QuestStatus.open_statuses()


class Quest(BaseModel):
    """Quest (task instance) data transfer object."""

    id: str = Field(..., description="Unique quest ID from database")
    created: str = Field(..., description="Creation timestamp (ISO format)")
    updated: str = Field(..., description="Last update timestamp (ISO format)")
    user_id: str = Field(..., description="Owning user ID")
    template_id: str | None = Field(default=None, description="Template that generated this quest, if any")
    quest_name: str | None = Field(default=None, description="What to do (optional)")
    project_name: str | None = Field(default=None, description="What the quest is about (optional)")
    quest_type: QuestType = Field(..., description="Recurrence kind copied at creation")
    difficulty: Difficulty = Field(default=Difficulty.ONE, description="Difficulty rating")
    status: QuestStatus = Field(default=QuestStatus.UNRECEIVED, description="Current lifecycle state")
    planned_time_slot: str | None = Field(default=None, description="Intended time slot, e.g. '06:00-07:00'")
    start_date: datetime | None = Field(default=None, description="When the quest should start")
    deadline: datetime | None = Field(default=None, description="Informational deadline")
    accepted_at: datetime | None = Field(default=None, description="When the quest was accepted")
    cleared_at: datetime | None = Field(default=None, description="When the quest was cleared")

    @property
    def is_open(self) -> bool:
        """Whether the quest is still non-terminal."""
        return not self.status.is_terminal
