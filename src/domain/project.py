"""Project domain model."""

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, Field


class ProjectStatus(StrEnum):
    """Project lifecycle status."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class Project(BaseModel):
    """A named long-running effort that templates can be linked to."""

    id: str = Field(..., description="Unique project ID from database")
    user_id: str = Field(..., description="Owning user ID")
    name: str = Field(..., description="Project name, stamped on generated quests")
    description: str | None = Field(default=None, description="Free-text description")
    start_date: date | None = Field(default=None, description="Planned start")
    end_date: date | None = Field(default=None, description="Planned end")
    status: ProjectStatus = Field(default=ProjectStatus.ACTIVE, description="Lifecycle status")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    updated: str | None = Field(default=None, description="Last update timestamp (ISO format)")
