"""Pytest configuration and shared fixtures."""

from datetime import datetime

import pytest


# Wednesday 14 October 2026, mid-morning local time
FIXED_NOW = datetime(2026, 10, 14, 9, 30)


@pytest.fixture
def now() -> datetime:
    """A fixed local wall-clock time used as "now" across tests."""
    return FIXED_NOW
