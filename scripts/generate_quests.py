#!/usr/bin/env python3
"""Run one quest generation pass for a user against the configured database.

Usage:
    uv run python scripts/generate_quests.py <user_id>
    uv run python scripts/generate_quests.py <user_id> --date 2026-10-14
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from src.core import db_client
from src.core.logging import configure_logfire, log_with_user_context
from src.services import quest_generator


logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


async def run(user_id: str, day: str | None) -> int:
    """Generate quests and report what happened; returns the exit code."""
    now = datetime.now()
    if day:
        now = datetime.combine(datetime.strptime(day, "%Y-%m-%d").date(), now.time())

    try:
        await db_client.init_db()
        result = await quest_generator.generate_quests_from_templates(user_id=user_id, now=now)
    except db_client.StoreUnavailableError as e:
        log_with_user_context(logger, "error", f"Database unavailable: {e}", user_id=user_id)
        return 1
    finally:
        await db_client.close_connection()

    for quest in result.created:
        logger.info(f"Created quest {quest.id}: {quest.quest_name or '(unnamed)'} [{quest.quest_type}]")
    for template_id, reason in result.skipped.items():
        logger.info(f"Skipped template {template_id}: {reason}")
    for failure in result.failures:
        logger.error(f"Template {failure.template_id} failed: {failure.error}")

    log_with_user_context(
        logger,
        "info",
        f"Generated {result.created_count} quest(s) for {result.generated_on}",
        user_id=user_id,
        skipped=len(result.skipped),
        failed=len(result.failures),
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one quest generation pass for a user.")
    parser.add_argument("user_id", help="User whose templates to process")
    parser.add_argument("--date", dest="day", help="Day to generate for (YYYY-MM-DD), defaults to today")
    args = parser.parse_args()

    configure_logfire()
    sys.exit(asyncio.run(run(args.user_id, args.day)))


if __name__ == "__main__":
    main()
