"""Quest log HTTP router.

Thin glue over the service layer. Every route is scoped to the user in the
path; errors propagate to the handlers registered in src.main.
"""

import logging
from datetime import date, datetime
from enum import StrEnum

from fastapi import APIRouter, Query, Response, status

from src.domain.create_models import ProjectCreate, QuestCreate, TemplateCreate
from src.domain.history import FinalStatus, HistoryRecord
from src.domain.progression import ProgressionState
from src.domain.project import Project, ProjectStatus
from src.domain.quest import Quest
from src.domain.template import QuestTemplate
from src.domain.update_models import (
    DeadlineUpdate,
    ProjectUpdate,
    QuestUpdate,
    StatusUpdate,
    TemplateActiveUpdate,
    TemplateUpdate,
)
from src.models.service_models import GenerationResult, PoolTemplateProgress, StatusChangeResult, TemplateWithStats
from src.services import (
    history_service,
    progression_service,
    project_service,
    quest_generator,
    quest_service,
    quest_state_machine,
    template_service,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users/{user_id}", tags=["quests"])


class QuestView(StrEnum):
    """Which slice of the quest board to list."""

    ACTIVE = "active"
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    UNRECEIVED = "unreceived"


# Generation


@router.post("/generate")
async def generate(user_id: str) -> GenerationResult:
    """Run a generation pass for today."""
    return await quest_generator.generate_quests_from_templates(user_id=user_id)


# Quests


@router.get("/quests")
async def list_quests(user_id: str, view: QuestView = QuestView.ACTIVE) -> list[Quest]:
    """List quests on the board."""
    if view == QuestView.OPEN:
        return await quest_service.list_open_quests(user_id=user_id)
    if view == QuestView.IN_PROGRESS:
        return await quest_service.get_in_progress_quests(user_id=user_id)
    if view == QuestView.UNRECEIVED:
        return await quest_service.get_unreceived_quests(user_id=user_id)
    return await quest_service.get_active_quests(user_id=user_id, today=datetime.now().date())


@router.post("/quests", status_code=status.HTTP_201_CREATED)
async def create_quest(user_id: str, payload: QuestCreate) -> Quest:
    """Create a manual quest."""
    return await quest_service.create_quest(user_id=user_id, data=payload)


@router.patch("/quests/{quest_id}")
async def update_quest(user_id: str, quest_id: str, payload: QuestUpdate) -> Quest:
    """Edit a quest's descriptive fields."""
    return await quest_service.update_quest(quest_id=quest_id, user_id=user_id, data=payload)


@router.post("/quests/{quest_id}/status")
async def change_status(user_id: str, quest_id: str, payload: StatusUpdate) -> StatusChangeResult:
    """Move a quest through its lifecycle."""
    return await quest_state_machine.change_status(quest_id=quest_id, user_id=user_id, new_status=payload.status)


@router.put("/quests/{quest_id}/deadline")
async def update_deadline(user_id: str, quest_id: str, payload: DeadlineUpdate) -> Quest:
    """Set or clear a quest's deadline."""
    return await quest_service.update_deadline(quest_id=quest_id, user_id=user_id, deadline=payload.deadline)


@router.delete("/quests/{quest_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quest(user_id: str, quest_id: str) -> Response:
    """Delete a quest."""
    await quest_service.delete_quest(quest_id=quest_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Templates


@router.get("/templates")
async def list_templates(user_id: str) -> list[TemplateWithStats]:
    """List templates with their clear counts."""
    return await template_service.list_templates(user_id=user_id)


@router.get("/templates/pool")
async def list_pool_templates(user_id: str) -> list[PoolTemplateProgress]:
    """List quota-pool and library templates with this period's progress."""
    return await template_service.list_pool_templates(user_id=user_id, today=datetime.now().date())


@router.post("/templates", status_code=status.HTTP_201_CREATED)
async def create_template(user_id: str, payload: TemplateCreate) -> QuestTemplate:
    """Create a template."""
    return await template_service.create_template(user_id=user_id, data=payload)


@router.patch("/templates/{template_id}")
async def update_template(user_id: str, template_id: str, payload: TemplateUpdate) -> QuestTemplate:
    """Update a template."""
    return await template_service.update_template(template_id=template_id, user_id=user_id, data=payload)


@router.put("/templates/{template_id}/active")
async def set_template_active(user_id: str, template_id: str, payload: TemplateActiveUpdate) -> QuestTemplate:
    """Turn a template on or off."""
    return await template_service.set_template_active(
        template_id=template_id, user_id=user_id, is_active=payload.is_active
    )


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(user_id: str, template_id: str) -> Response:
    """Delete a template."""
    await template_service.delete_template(template_id=template_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/templates/{template_id}/instantiate", status_code=status.HTTP_201_CREATED)
async def instantiate_template(user_id: str, template_id: str) -> Quest:
    """Pick up a template by hand."""
    return await quest_generator.instantiate_template(template_id=template_id, user_id=user_id)


# History and progression


@router.get("/history")
async def list_history(
    user_id: str,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    final_status: FinalStatus | None = Query(default=None),
) -> list[HistoryRecord]:
    """List history records in a date range."""
    return await history_service.list_history(user_id=user_id, start=start, end=end, final_status=final_status)


@router.get("/progression")
async def get_progression(user_id: str) -> ProgressionState:
    """Get XP and streak, breaking a lapsed streak first."""
    return await progression_service.reset_streak_if_needed(user_id=user_id, today=datetime.now().date())


# Projects


@router.get("/projects")
async def list_projects(
    user_id: str,
    project_status: ProjectStatus | None = Query(default=None, alias="status"),
) -> list[Project]:
    """List projects."""
    return await project_service.list_projects(user_id=user_id, status=project_status)


@router.post("/projects", status_code=status.HTTP_201_CREATED)
async def create_project(user_id: str, payload: ProjectCreate) -> Project:
    """Create a project."""
    return await project_service.create_project(user_id=user_id, data=payload)


@router.patch("/projects/{project_id}")
async def update_project(user_id: str, project_id: str, payload: ProjectUpdate) -> Project:
    """Update a project."""
    return await project_service.update_project(project_id=project_id, user_id=user_id, data=payload)


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(user_id: str, project_id: str) -> Response:
    """Delete a project and unlink its templates."""
    await project_service.delete_project(project_id=project_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
