"""Generation pass tracking and monitoring."""

import logging
from collections import OrderedDict, deque
from datetime import datetime
from typing import Any

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


class GenerationTracker:
    """Track quest generation passes per user and isolated template failures."""

    def __init__(self, dead_letter_maxlen: int | None = None, max_users: int | None = None) -> None:
        """Initialize generation tracker.

        Only the ``max_users`` most recently active users are kept; older
        entries are evicted as new users run passes.
        """
        self._passes: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._max_users = max_users or settings.generation_tracker_max_users
        self._dead_letter_queue: deque[dict[str, str]] = deque(
            maxlen=dead_letter_maxlen or settings.generation_dead_letter_maxlen
        )

    def _entry(self, user_id: str) -> dict[str, Any]:
        entry = self._passes.setdefault(user_id, {})
        self._passes.move_to_end(user_id)
        while len(self._passes) > self._max_users:
            evicted, _ = self._passes.popitem(last=False)
            logger.debug("Evicted generation status", extra={"user_id": evicted})
        return entry

    def record_pass_start(self, user_id: str, now: datetime) -> None:
        """Record the start of a generation pass.

        Args:
            user_id: User whose templates are being processed
            now: Local time the pass started
        """
        self._entry(user_id)["current_run"] = now.isoformat()

    def record_pass_success(self, user_id: str, now: datetime, *, created: int, failed: int) -> None:
        """Record a completed generation pass.

        A pass with isolated template failures still completes; the failures
        are counted but do not reset the success bookkeeping.
        """
        entry = self._entry(user_id)
        entry["last_success"] = now.isoformat()
        entry["consecutive_failures"] = 0
        entry["success_count"] = entry.get("success_count", 0) + 1
        entry["last_created"] = created
        entry["template_failures"] = entry.get("template_failures", 0) + failed
        entry.pop("current_run", None)

    def record_pass_failure(self, user_id: str, now: datetime, error: str) -> int:
        """Record an aborted generation pass.

        Returns:
            Number of consecutive aborted passes for this user
        """
        entry = self._entry(user_id)
        entry["last_failure"] = now.isoformat()
        entry["last_error"] = error[: constants.MAX_ERROR_LENGTH]

        consecutive_failures = entry.get("consecutive_failures", 0) + 1
        entry["consecutive_failures"] = consecutive_failures
        entry["failure_count"] = entry.get("failure_count", 0) + 1
        entry.pop("current_run", None)

        return consecutive_failures

    def add_to_dead_letter_queue(self, *, user_id: str, template_id: str, error: str, now: datetime) -> None:
        """Record a template that failed during a pass.

        Args:
            user_id: Owner of the template
            template_id: Template that could not be processed
            error: Error message
            now: Local time of the failure
        """
        item = {
            "user_id": user_id,
            "template_id": template_id,
            "error": error[: constants.MAX_ERROR_LENGTH],
            "timestamp": now.isoformat(),
        }
        self._dead_letter_queue.append(item)

        logger.error("Template added to generation dead letter queue", extra=item)

    def get_status(self, user_id: str) -> dict[str, Any]:
        """Get generation status for a user."""
        entry = self._passes.get(user_id, {})
        return {
            "user_id": user_id,
            "last_success": entry.get("last_success"),
            "last_failure": entry.get("last_failure"),
            "last_error": entry.get("last_error"),
            "last_created": entry.get("last_created", 0),
            "consecutive_failures": entry.get("consecutive_failures", 0),
            "success_count": entry.get("success_count", 0),
            "failure_count": entry.get("failure_count", 0),
            "template_failures": entry.get("template_failures", 0),
            "currently_running": "current_run" in entry,
        }

    def get_all_statuses(self) -> list[dict[str, Any]]:
        """Get generation status for every tracked user."""
        return [self.get_status(user_id) for user_id in sorted(self._passes)]

    def get_dead_letter_queue(self) -> list[dict[str, str]]:
        """Get all items in the dead letter queue, oldest first."""
        return list(self._dead_letter_queue)

    def reset(self) -> None:
        """Forget all tracked passes and failures."""
        self._passes.clear()
        self._dead_letter_queue.clear()


# Global generation tracker instance
generation_tracker = GenerationTracker()
