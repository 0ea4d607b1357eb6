"""User progression (XP and streak) domain model."""

from datetime import date

from pydantic import BaseModel, Field


class ProgressionState(BaseModel):
    """Per-user XP and streak counters."""

    id: str | None = Field(default=None, description="Record ID, None before first persist")
    user_id: str = Field(..., description="Owning user ID")
    total_xp: int = Field(default=0, ge=0, description="Accumulated XP")
    current_streak: int = Field(default=0, ge=0, description="Consecutive days with a cleared quest")
    longest_streak: int = Field(default=0, ge=0, description="Best streak ever reached")
    last_cleared_date: date | None = Field(default=None, description="Last local day a quest was cleared")
