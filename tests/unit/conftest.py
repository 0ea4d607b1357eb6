"""Pytest configuration and fixtures for unit tests."""

from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from src.core.generation_tracker import generation_tracker
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)
    monkeypatch.setattr("src.core.db_client.count_records", in_memory_db.count_records)
    monkeypatch.setattr("src.core.db_client.compare_and_update_record", in_memory_db.compare_and_update_record)
    monkeypatch.setattr("src.core.db_client.transaction", in_memory_db.transaction)

    return in_memory_db


@pytest.fixture(autouse=True)
def reset_generation_tracker():
    """Each test starts with an empty generation tracker."""
    generation_tracker.reset()
    yield
    generation_tracker.reset()


@pytest.fixture
def make_template(patched_db) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Factory that stores a raw template record (as the database holds it)."""

    async def _make(**overrides: Any) -> dict[str, Any]:
        data = {
            "user_id": "7",
            "quest_name": "Stretch",
            "project_name": None,
            "project_id": None,
            "quest_type": "Daily",
            "difficulty": "1",
            "frequency": 1,
            "days_of_week": None,
            "weeks_of_month": None,
            "dates_of_month": None,
            "month_of_year": None,
            "start_date": None,
            "end_date": None,
            "is_active": 1,
            "last_generated_at": None,
        }
        data.update(overrides)
        return await patched_db.create_record(collection="quest_templates", data=data)

    return _make


@pytest.fixture
def make_quest(patched_db) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Factory that stores a raw quest record."""

    async def _make(**overrides: Any) -> dict[str, Any]:
        data = {
            "user_id": "7",
            "template_id": None,
            "quest_name": "Read",
            "project_name": None,
            "quest_type": "Free",
            "difficulty": "1",
            "status": "unreceived",
            "planned_time_slot": None,
            "start_date": None,
            "deadline": None,
            "accepted_at": None,
            "cleared_at": None,
        }
        data.update(overrides)
        return await patched_db.create_record(collection="quests", data=data)

    return _make


@pytest.fixture
def make_history(patched_db) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Factory that stores a raw history record."""

    async def _make(**overrides: Any) -> dict[str, Any]:
        data = {
            "user_id": "7",
            "quest_id": "1",
            "template_id": None,
            "quest_name": "Read",
            "project_name": None,
            "quest_type": "Daily",
            "difficulty": "1",
            "final_status": "cleared",
            "xp_earned": 10,
            "planned_time_slot": None,
            "recorded_at": "2026-10-14T09:00:00",
            "recorded_date": "2026-10-14",
        }
        data.update(overrides)
        return await patched_db.create_record(collection="quest_history", data=data)

    return _make
