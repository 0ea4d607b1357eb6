"""Domain models and DTOs."""

from src.domain.create_models import ProjectCreate, QuestCreate, TemplateCreate
from src.domain.history import FinalStatus, HistoryRecord
from src.domain.progression import ProgressionState
from src.domain.project import Project, ProjectStatus
from src.domain.quest import Difficulty, Quest, QuestStatus, QuestType
from src.domain.template import QuestTemplate, ScheduleMode
from src.domain.update_models import (
    DeadlineUpdate,
    ProjectUpdate,
    QuestUpdate,
    StatusUpdate,
    TemplateActiveUpdate,
    TemplateUpdate,
)


__all__ = [
    "DeadlineUpdate",
    "Difficulty",
    "FinalStatus",
    "HistoryRecord",
    "ProgressionState",
    "Project",
    "ProjectCreate",
    "ProjectStatus",
    "ProjectUpdate",
    "Quest",
    "QuestCreate",
    "QuestStatus",
    "QuestTemplate",
    "QuestType",
    "QuestUpdate",
    "ScheduleMode",
    "StatusUpdate",
    "TemplateActiveUpdate",
    "TemplateCreate",
    "TemplateUpdate",
]
