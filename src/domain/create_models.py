"""Pydantic models for creating records in database."""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.config import constants
from src.domain.quest import Difficulty, QuestType


def _check_range(values: list[int], low: int, high: int, label: str) -> list[int]:
    bad = [v for v in values if not low <= v <= high]
    if bad:
        msg = f"{label} must be between {low} and {high}, got {bad}"
        raise ValueError(msg)
    return sorted(set(values))


class QuestCreate(BaseModel):
    """Pydantic model for creating a manual quest."""

    quest_name: str | None = Field(default=None, description="What to do")
    project_name: str | None = Field(default=None, description="What it is about")
    quest_type: QuestType = Field(default=QuestType.FREE, description="Quest kind")
    difficulty: Difficulty = Field(default=Difficulty(constants.DEFAULT_DIFFICULTY), description="Difficulty rating")
    planned_time_slot: str | None = Field(default=None, description="Intended time slot")
    start_date: datetime | None = Field(default=None, description="When to start")
    deadline: datetime | None = Field(default=None, description="Overrides the automatic deadline")
    accept_immediately: bool = Field(default=False, description="Create the quest already accepted")


class TemplateCreate(BaseModel):
    """Pydantic model for creating a quest template."""

    quest_name: str | None = Field(default=None, description="Name copied onto generated quests")
    project_name: str | None = Field(default=None, description="Free-text project label")
    project_id: str | None = Field(default=None, description="Linked project ID")
    quest_type: QuestType = Field(..., description="Recurrence kind")
    difficulty: Difficulty = Field(default=Difficulty(constants.DEFAULT_DIFFICULTY), description="Difficulty rating")
    frequency: int = Field(default=constants.DEFAULT_FREQUENCY, ge=1, description="Times per period")
    days_of_week: list[int] = Field(default_factory=list, description="0=Sunday..6=Saturday")
    weeks_of_month: list[int] = Field(default_factory=list, description="1..5")
    dates_of_month: list[int] = Field(default_factory=list, description="1..31")
    month_of_year: int | None = Field(default=None, ge=1, le=12, description="Yearly only")
    start_date: date | None = Field(default=None, description="First valid day (Project)")
    end_date: date | None = Field(default=None, description="Last valid day (Project)")
    is_active: bool = Field(default=True, description="Whether the template generates")

    @field_validator("quest_type")
    @classmethod
    def validate_not_free(cls, v: QuestType) -> QuestType:
        """Free is reserved for manual one-off quests."""
        if v == QuestType.FREE:
            msg = "Templates cannot have quest type Free"
            raise ValueError(msg)
        return v

    @field_validator("days_of_week")
    @classmethod
    def validate_days_of_week(cls, v: list[int]) -> list[int]:
        """Validate weekday indices."""
        return _check_range(v, 0, 6, "days_of_week")

    @field_validator("weeks_of_month")
    @classmethod
    def validate_weeks_of_month(cls, v: list[int]) -> list[int]:
        """Validate week-of-month ordinals."""
        return _check_range(v, 1, 5, "weeks_of_month")

    @field_validator("dates_of_month")
    @classmethod
    def validate_dates_of_month(cls, v: list[int]) -> list[int]:
        """Validate days of month."""
        return _check_range(v, 1, 31, "dates_of_month")

    @model_validator(mode="after")
    def validate_window(self) -> "TemplateCreate":
        """Validate the project validity window is ordered."""
        if self.start_date and self.end_date and self.start_date > self.end_date:
            msg = "start_date must not be after end_date"
            raise ValueError(msg)
        return self


class ProjectCreate(BaseModel):
    """Pydantic model for creating a project."""

    name: str = Field(..., min_length=1, description="Project name")
    description: str | None = Field(default=None, description="Free-text description")
    start_date: date | None = Field(default=None, description="Planned start")
    end_date: date | None = Field(default=None, description="Planned end")
