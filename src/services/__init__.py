from src.services import (
    history_service,
    period_counter,
    progression_service,
    project_service,
    quest_generator,
    quest_service,
    quest_state_machine,
    template_service,
)


__all__ = [
    "history_service",
    "period_counter",
    "progression_service",
    "project_service",
    "quest_generator",
    "quest_service",
    "quest_state_machine",
    "template_service",
]
