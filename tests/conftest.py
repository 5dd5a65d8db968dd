"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import pytest
import structlog

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = T0.timestamp()) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Keep settings and logging configuration from leaking between tests."""
    from mac_data_core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    structlog.reset_defaults()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_settings(tmp_path):
    """Provide settings pointing at a temporary cache directory."""
    from mac_data_core.config import Settings

    return Settings(cache_dir=tmp_path / "cache", log_level="DEBUG", debug=True)


@pytest.fixture
def make_message() -> Callable[..., object]:
    """Factory for UnifiedMessage instances with sensible defaults."""
    from mac_data_core.models import MessageSource, UnifiedMessage

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "id": f"msg-{counter['n']}",
            "subject": "Quarterly report",
            "sender": "Alice <alice@example.com>",
            "date": T0,
            "account": "Work",
            "source": MessageSource.MAC_MAIL,
        }
        fields.update(overrides)
        return UnifiedMessage(**fields)

    return _make


@pytest.fixture
def sample_email_data() -> dict:
    """Provide a Gmail API metadata message."""
    return {
        "id": "msg123456",
        "threadId": "thread789",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "Weekly Newsletter - Python Tips",
        "payload": {
            "headers": [
                {"name": "Subject", "value": "Weekly Newsletter - Python Tips"},
                {"name": "From", "value": "Python <newsletter@python.org>"},
                {"name": "To", "value": "user@example.com"},
                {"name": "Date", "value": "Mon, 10 Mar 2025 09:00:00 +0000"},
                {"name": "Message-ID", "value": "<abc123@python.org>"},
            ],
        },
    }
