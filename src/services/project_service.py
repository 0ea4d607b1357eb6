"""Project service for CRUD operations."""

import logging
from datetime import datetime

from src.core import db_client
from src.core.logging import span
from src.domain.create_models import ProjectCreate
from src.domain.project import Project, ProjectStatus
from src.domain.update_models import ProjectUpdate


logger = logging.getLogger(__name__)

COLLECTION = "projects"


async def get_project(*, project_id: str, user_id: str) -> Project:
    """Get a project owned by the user.

    Raises:
        db_client.RecordNotFoundError: If missing or owned by someone else
    """
    record = await db_client.get_record(collection=COLLECTION, record_id=project_id)
    if record["user_id"] != user_id:
        msg = f"Record not found in {COLLECTION}: {project_id}"
        raise db_client.RecordNotFoundError(msg)
    return Project(**record)


async def list_projects(*, user_id: str, status: ProjectStatus | None = None) -> list[Project]:
    """List a user's projects, newest first."""
    with span("project_service.list_projects"):
        filter_query = f'user_id = "{db_client.sanitize_param(user_id)}"'
        if status is not None:
            filter_query += f' && status = "{status}"'

        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=filter_query,
            sort="-created",
        )
        return [Project(**record) for record in records]


async def create_project(*, user_id: str, data: ProjectCreate, now: datetime | None = None) -> Project:
    """Create a project."""
    with span("project_service.create_project"):
        timestamp = (now or datetime.now()).isoformat()
        record = await db_client.create_record(
            collection=COLLECTION,
            data={
                "user_id": user_id,
                **data.model_dump(),
                "status": ProjectStatus.ACTIVE,
                "created": timestamp,
                "updated": timestamp,
            },
        )
        logger.info("Created project", extra={"user_id": user_id, "project_id": record["id"]})
        return Project(**record)


async def update_project(
    *,
    project_id: str,
    user_id: str,
    data: ProjectUpdate,
    now: datetime | None = None,
) -> Project:
    """Update the fields that are set on the payload."""
    with span("project_service.update_project"):
        await get_project(project_id=project_id, user_id=user_id)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            msg = "No project fields to update"
            raise ValueError(msg)
        changes["updated"] = (now or datetime.now()).isoformat()

        record = await db_client.update_record(collection=COLLECTION, record_id=project_id, data=changes)
        logger.info("Updated project", extra={"project_id": project_id, "fields": sorted(changes)})
        return Project(**record)


async def delete_project(*, project_id: str, user_id: str) -> None:
    """Delete a project and unlink the templates that pointed at it."""
    with span("project_service.delete_project"):
        await get_project(project_id=project_id, user_id=user_id)

        linked = await db_client.list_all_records(
            collection="quest_templates",
            filter_query=f'project_id = "{db_client.sanitize_param(project_id)}"',
        )
        for template in linked:
            await db_client.update_record(
                collection="quest_templates",
                record_id=template["id"],
                data={"project_id": None},
            )

        await db_client.delete_record(collection=COLLECTION, record_id=project_id)
        logger.info("Deleted project", extra={"project_id": project_id, "unlinked_templates": len(linked)})
