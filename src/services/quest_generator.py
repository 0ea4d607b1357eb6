"""Quest generation: turning recurring templates into concrete quests.

A generation pass walks a user's active templates for one calendar day and
creates at most one quest per template, honoring the template's schedule,
its per-period quota and the rule that a template never has two open quests.
Running a pass twice without any state change in between creates nothing.
"""

import logging
from datetime import date, datetime
from typing import Any

from src.core import db_client
from src.core.generation_tracker import generation_tracker
from src.core.logging import span
from src.core.recurrence import matches
from src.domain.quest import Quest, QuestStatus
from src.domain.template import QuestTemplate, ScheduleMode
from src.models.service_models import GenerationDecision, GenerationFailure, GenerationResult, SkipReason
from src.services import period_counter, project_service, quest_service, template_service
from src.services.quest_state_machine import calculate_auto_deadline


logger = logging.getLogger(__name__)


class QuestAlreadyOpenError(ValueError):
    """Raised when picking up a template that already has an open quest."""


class QuotaReachedError(ValueError):
    """Raised when picking up a pool template whose period quota is used up."""


def build_quest_name(template: QuestTemplate, completed_count: int) -> str | None:
    """Return the quest name, annotated with quota progress when frequency > 1.

    Example: "Run (2/3)" for the second run of a three-times-a-week template.
    """
    if template.frequency <= 1:
        return template.quest_name
    return f"{template.quest_name or ''} ({completed_count + 1}/{template.frequency})".strip()


def decide(
    template: QuestTemplate,
    today: date,
    has_open_quest: bool,
    completed_count: int,
) -> GenerationDecision:
    """Decide whether a template should produce a quest today.

    Checks run in order: active, scheduled for today, no open quest, quota not
    yet reached. The first failing check becomes the skip reason.
    """
    if not template.is_active:
        return GenerationDecision(should_create=False, skip_reason=SkipReason.INACTIVE)
    if not matches(template, today):
        return GenerationDecision(should_create=False, skip_reason=SkipReason.NOT_SCHEDULED)
    if has_open_quest:
        return GenerationDecision(should_create=False, skip_reason=SkipReason.ALREADY_OPEN)
    if completed_count >= template.frequency:
        return GenerationDecision(should_create=False, skip_reason=SkipReason.QUOTA_REACHED)
    return GenerationDecision(should_create=True, quest_name=build_quest_name(template, completed_count))


async def _resolve_project_name(template: QuestTemplate) -> str | None:
    if not template.project_id:
        return template.project_name
    try:
        project = await project_service.get_project(project_id=template.project_id, user_id=template.user_id)
    except db_client.RecordNotFoundError:
        logger.warning(
            "Template links a missing project, using its own label",
            extra={"template_id": template.id, "project_id": template.project_id},
        )
        return template.project_name
    return project.name


async def _build_quest_data(
    template: QuestTemplate,
    *,
    quest_name: str | None,
    now: datetime,
    status: QuestStatus,
) -> dict[str, Any]:
    return {
        "user_id": template.user_id,
        "template_id": template.id,
        "quest_name": quest_name,
        "project_name": await _resolve_project_name(template),
        "quest_type": template.quest_type,
        "difficulty": template.difficulty,
        "status": status,
        "deadline": calculate_auto_deadline(template.quest_type, now),
        "accepted_at": now if status == QuestStatus.ACCEPTED else None,
        "created": now.isoformat(),
        "updated": now.isoformat(),
    }


async def _process_template(
    record: dict[str, Any],
    *,
    now: datetime,
    open_template_ids: set[str],
    result: GenerationResult,
) -> None:
    template = QuestTemplate(**record)
    today = now.date()

    # Cheap checks first so the history count only runs for candidates
    decision = decide(template, today, template.id in open_template_ids, completed_count=0)
    if not decision.should_create:
        result.skipped[template.id] = decision.skip_reason
        return

    completed = await period_counter.count_completions(
        template_id=template.id, period_kind=template.quest_type, as_of=today
    )
    decision = decide(template, today, has_open_quest=False, completed_count=completed)
    if not decision.should_create:
        result.skipped[template.id] = decision.skip_reason
        return

    data = await _build_quest_data(template, quest_name=decision.quest_name, now=now, status=QuestStatus.UNRECEIVED)
    try:
        quest = await quest_service.insert_quest(data=data)
    except db_client.DuplicateRecordError:
        # Another pass created the open quest between our read and write
        logger.info("Open quest already exists, skipping", extra={"template_id": template.id})
        open_template_ids.add(template.id)
        result.skipped[template.id] = SkipReason.ALREADY_OPEN
        return

    open_template_ids.add(template.id)
    result.created.append(quest)
    await template_service.mark_generated(template_id=template.id, now=now)


async def generate_quests_from_templates(*, user_id: str, now: datetime | None = None) -> GenerationResult:
    """Run one generation pass for a user.

    Args:
        user_id: User whose active templates are evaluated
        now: Local time of the pass (defaults to now); its date is the day evaluated

    Returns:
        Created quests, skip reasons per template and isolated failures

    Raises:
        db_client.StoreUnavailableError: If storage is unreachable; the pass is aborted
    """
    with span("quest_generator.generate_quests_from_templates"):
        now = now or datetime.now()
        result = GenerationResult(user_id=user_id, generated_on=now.date())
        generation_tracker.record_pass_start(user_id, now)

        try:
            records = await template_service.list_active_template_records(user_id=user_id)
            open_quests = await quest_service.list_open_quests(user_id=user_id)
            open_template_ids = {q.template_id for q in open_quests if q.template_id}

            for record in records:
                template_id = str(record.get("id"))
                try:
                    await _process_template(record, now=now, open_template_ids=open_template_ids, result=result)
                except db_client.StoreUnavailableError:
                    raise
                except Exception as e:
                    logger.exception("Failed to generate quest for template", extra={"template_id": template_id})
                    result.failures.append(GenerationFailure(template_id=template_id, error=str(e)))
                    generation_tracker.add_to_dead_letter_queue(
                        user_id=user_id, template_id=template_id, error=str(e), now=now
                    )
        except db_client.StoreUnavailableError as e:
            generation_tracker.record_pass_failure(user_id, now, str(e))
            logger.error("Generation pass aborted", extra={"user_id": user_id, "error": str(e)})
            raise

        generation_tracker.record_pass_success(
            user_id, now, created=result.created_count, failed=len(result.failures)
        )
        logger.info(
            "Generation pass complete",
            extra={
                "user_id": user_id,
                "created": result.created_count,
                "skipped": len(result.skipped),
                "failed": len(result.failures),
            },
        )
        return result


async def instantiate_template(*, template_id: str, user_id: str, now: datetime | None = None) -> Quest:
    """Manually pick up a template, creating an accepted quest from it.

    This is how pool, library (Relax) and project templates reach the board.
    The one-open-quest rule and pool quotas still apply.

    Raises:
        db_client.RecordNotFoundError: If the template is missing or foreign
        QuestAlreadyOpenError: If the template already has an open quest
        QuotaReachedError: If a pool template's period quota is used up
    """
    with span("quest_generator.instantiate_template"):
        now = now or datetime.now()
        template = await template_service.get_template(template_id=template_id, user_id=user_id)

        open_quests = await quest_service.list_open_quests(user_id=user_id)
        if any(q.template_id == template.id for q in open_quests):
            msg = f"Template {template_id} already has an open quest"
            raise QuestAlreadyOpenError(msg)

        completed = await period_counter.count_completions(
            template_id=template.id, period_kind=template.quest_type, as_of=now.date()
        )
        if template.schedule_mode == ScheduleMode.POOL and completed >= template.frequency:
            msg = f"Template {template_id} quota reached for this period ({completed}/{template.frequency})"
            raise QuotaReachedError(msg)

        data = await _build_quest_data(
            template,
            quest_name=build_quest_name(template, completed),
            now=now,
            status=QuestStatus.ACCEPTED,
        )
        try:
            quest = await quest_service.insert_quest(data=data)
        except db_client.DuplicateRecordError as e:
            msg = f"Template {template_id} already has an open quest"
            raise QuestAlreadyOpenError(msg) from e

        logger.info("Picked up template", extra={"template_id": template_id, "quest_id": quest.id})
        return quest
