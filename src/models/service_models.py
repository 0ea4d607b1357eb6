"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.history import HistoryRecord
from src.domain.progression import ProgressionState
from src.domain.quest import Quest
from src.domain.template import QuestTemplate


class SkipReason(StrEnum):
    """Why the generator did not create a quest for a template."""

    INACTIVE = "inactive"
    NOT_SCHEDULED = "not_scheduled"
    ALREADY_OPEN = "already_open"
    QUOTA_REACHED = "quota_reached"


class GenerationDecision(BaseModel):
    """Outcome of evaluating one template for one day."""

    should_create: bool
    skip_reason: SkipReason | None = None
    quest_name: str | None = None


class GenerationFailure(BaseModel):
    """A template that could not be processed during a pass."""

    template_id: str
    error: str


class GenerationResult(BaseModel):
    """Summary of one generation pass for a user."""

    user_id: str
    generated_on: date
    created: list[Quest] = Field(default_factory=list)
    skipped: dict[str, SkipReason] = Field(default_factory=dict)
    failures: list[GenerationFailure] = Field(default_factory=list)

    @property
    def created_count(self) -> int:
        """Number of quests created in this pass."""
        return len(self.created)


class StatusChangeResult(BaseModel):
    """Everything a status change wrote."""

    quest: Quest
    xp_earned: int = 0
    history: HistoryRecord | None = None
    progression: ProgressionState | None = None


class TemplateWithStats(BaseModel):
    """Template plus how many times it has been cleared in total."""

    template: QuestTemplate
    executed_count: int
    schedule_description: str


class PoolTemplateProgress(BaseModel):
    """Quota-pool or library template with its progress in the current period."""

    template: QuestTemplate
    completed_this_period: int
    remaining_this_period: int
    has_open_quest: bool
    can_pick_up: bool
