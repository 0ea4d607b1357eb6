"""Update models for database operations."""

from datetime import date, datetime

from pydantic import BaseModel

from src.domain.project import ProjectStatus
from src.domain.quest import Difficulty, QuestStatus, QuestType


class QuestUpdate(BaseModel):
    """Update payload for editing a quest's descriptive fields."""

    quest_name: str | None = None
    project_name: str | None = None
    quest_type: QuestType | None = None
    difficulty: Difficulty | None = None
    planned_time_slot: str | None = None
    start_date: datetime | None = None


class StatusUpdate(BaseModel):
    """Update payload for a quest status change."""

    status: QuestStatus


class DeadlineUpdate(BaseModel):
    """Update payload for a quest deadline (None clears it)."""

    deadline: datetime | None


class TemplateUpdate(BaseModel):
    """Update payload for a quest template; unset fields are left untouched."""

    quest_name: str | None = None
    project_name: str | None = None
    project_id: str | None = None
    quest_type: QuestType | None = None
    difficulty: Difficulty | None = None
    frequency: int | None = None
    days_of_week: list[int] | None = None
    weeks_of_month: list[int] | None = None
    dates_of_month: list[int] | None = None
    month_of_year: int | None = None
    start_date: date | None = None
    end_date: date | None = None


class TemplateActiveUpdate(BaseModel):
    """Update payload for toggling a template on or off."""

    is_active: bool


class ProjectUpdate(BaseModel):
    """Update payload for a project."""

    name: str | None = None
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: ProjectStatus | None = None
