"""Tests for configuration validation."""

import pytest

from src.core.config import Settings, constants
from src.domain.create_models import QuestCreate, TemplateCreate
from src.domain.quest import QuestType
from src.domain.template import QuestTemplate


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test settings are loaded from environment variables."""
    monkeypatch.setenv("SQLITE_DB_PATH", "/tmp/quests.db")
    monkeypatch.setenv("GENERATION_TRACKER_MAX_USERS", "5")

    settings = Settings()

    assert settings.sqlite_db_path == "/tmp/quests.db"
    assert settings.generation_tracker_max_users == 5


def test_xp_rewards() -> None:
    """Test the XP table rewards harder quests more."""
    assert constants.XP_REWARD_BY_DIFFICULTY == {"1": 10, "2": 25, "3": 50}
    assert constants.XP_REWARD_FALLBACK == 10


def test_template_defaults_come_from_constants() -> None:
    """Test new quests and templates default to the configured difficulty and frequency."""
    quest = QuestCreate(quest_name="Read", quest_type=QuestType.FREE)
    template = TemplateCreate(quest_name="Stretch", quest_type=QuestType.DAILY)

    assert quest.difficulty == constants.DEFAULT_DIFFICULTY
    assert template.difficulty == constants.DEFAULT_DIFFICULTY
    assert template.frequency == constants.DEFAULT_FREQUENCY


def test_unreadable_frequency_falls_back_to_default() -> None:
    """Test a stored frequency that is not a number reads as the default."""
    template = QuestTemplate(id="1", user_id="7", quest_type=QuestType.WEEKLY, frequency="often")

    assert template.frequency == constants.DEFAULT_FREQUENCY
