"""Quest template domain models.

A template is a recurrence rule. Constraint lists are stored as JSON text and
are parsed leniently: anything that is not a JSON list of integers is treated
as "not configured" so a single bad row degrades instead of failing.
"""

import json
import logging
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, computed_field, field_validator

from src.core.config import constants
from src.domain.quest import Difficulty, QuestType


logger = logging.getLogger(__name__)


class ScheduleMode(StrEnum):
    """How a template reaches the quest board."""

    FIXED = "fixed"  # Auto-generated on matching days
    POOL = "pool"  # Quota only, no fixed day; picked up manually
    MANUAL = "manual"  # Library template (Relax); picked up manually


def parse_int_list(value: Any) -> list[int]:
    """Parse a stored constraint list, returning [] for anything malformed."""
    if value is None or value == "":
        return []

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Ignoring unparseable constraint list", extra={"raw": value[:100]})
            return []

    if not isinstance(value, list | tuple | set):
        return []

    if not all(isinstance(item, int) and not isinstance(item, bool) for item in value):
        logger.warning("Ignoring constraint list with non-integer members", extra={"raw": str(value)[:100]})
        return []

    return sorted(set(value))


def parse_optional_date(value: Any) -> date | None:
    """Parse a stored date or datetime into a calendar date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            logger.warning("Ignoring unparseable template date", extra={"raw": value[:40]})
            return None
    return None


class QuestTemplate(BaseModel):
    """Quest template data transfer object."""

    id: str = Field(..., description="Unique template ID from database")
    user_id: str = Field(..., description="Owning user ID")
    quest_name: str | None = Field(default=None, description="Name copied onto generated quests")
    project_name: str | None = Field(default=None, description="Free-text project label")
    project_id: str | None = Field(default=None, description="Linked project ID")
    quest_type: QuestType = Field(..., description="Recurrence kind")
    difficulty: Difficulty = Field(
        default=Difficulty(constants.DEFAULT_DIFFICULTY), description="Difficulty copied onto generated quests"
    )
    frequency: int = Field(default=constants.DEFAULT_FREQUENCY, description="Quota: times per period")
    days_of_week: list[int] = Field(default_factory=list, description="Weekdays, 0=Sunday..6=Saturday")
    weeks_of_month: list[int] = Field(default_factory=list, description="Week-of-month ordinals 1..5")
    dates_of_month: list[int] = Field(default_factory=list, description="Days of month 1..31")
    month_of_year: int | None = Field(default=None, description="Month 1..12 (Yearly only)")
    start_date: date | None = Field(default=None, description="First valid day (Project)")
    end_date: date | None = Field(default=None, description="Last valid day (Project)")
    is_active: bool = Field(default=True, description="Inactive templates never generate")
    last_generated_at: str | None = Field(default=None, description="Last generation time (informational)")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    updated: str | None = Field(default=None, description="Last update timestamp (ISO format)")

    @field_validator("days_of_week", "weeks_of_month", "dates_of_month", mode="before")
    @classmethod
    def validate_constraint_list(cls, v: Any) -> list[int]:
        """Degrade malformed constraint lists to empty."""
        return parse_int_list(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_range_date(cls, v: Any) -> date | None:
        """Accept dates, datetimes and ISO strings."""
        return parse_optional_date(v)

    @field_validator("month_of_year", mode="before")
    @classmethod
    def validate_month(cls, v: Any) -> int | None:
        """Treat unparseable months as unset."""
        if v is None or v == "":
            return None
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    @field_validator("frequency", mode="before")
    @classmethod
    def validate_frequency(cls, v: Any) -> int:
        """Frequency is at least 1."""
        try:
            return max(constants.DEFAULT_FREQUENCY, int(v))
        except (TypeError, ValueError):
            return constants.DEFAULT_FREQUENCY

    @computed_field  # type: ignore[prop-decorator]
    @property
    def schedule_mode(self) -> ScheduleMode:
        """Classify the template as fixed-schedule, quota-only pool or manual library."""
        if self.quest_type == QuestType.RELAX:
            return ScheduleMode.MANUAL
        if self.quest_type == QuestType.WEEKLY and not self.days_of_week:
            return ScheduleMode.POOL
        if self.quest_type == QuestType.MONTHLY and not self.dates_of_month and not self.weeks_of_month:
            return ScheduleMode.POOL
        return ScheduleMode.FIXED
