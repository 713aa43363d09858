"""
Shared test fixtures and configuration for pytest
"""
from datetime import datetime, timezone

import pytest

from rutt.core.mailbox import MailboxState

from .test_helpers import ConfigTestHelper, IMAPTestHelper, MessageTestHelper


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point config lookups at a temp dir and clear credential env vars"""
    monkeypatch.setenv("RUTT_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.delenv("RUTT_APP_PASSWORD", raising=False)
    yield


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"


@pytest.fixture
def app_config():
    """AppConfig with a test account and password"""
    return ConfigTestHelper.create_test_config()


@pytest.fixture
def credentials():
    return ConfigTestHelper.credentials()


@pytest.fixture
def now():
    """Fixed reference time: Monday 2024-06-10 12:00 UTC"""
    return datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def raw_messages():
    """Three messages as the server might send them: seq 3, 1, 2"""
    return [
        MessageTestHelper.raw_message(
            3, subject="Third", date="Mon, 10 Jun 2024 11:00:00 +0000"
        ),
        MessageTestHelper.raw_message(
            1, subject="First", date="Mon, 10 Jun 2024 09:00:00 +0000", flags=["\\Seen"]
        ),
        MessageTestHelper.raw_message(
            2, subject="Second", date="Mon, 10 Jun 2024 10:00:00 +0000"
        ),
    ]


@pytest.fixture
def mock_client(raw_messages):
    """aioimaplib stand-in for a mailbox holding three messages"""
    return IMAPTestHelper.create_mock_client(exists=3, messages=raw_messages)


@pytest.fixture
def state():
    return MailboxState()


@pytest.fixture
def loaded_state():
    """State holding five records, newest first after loading"""
    state = MailboxState()
    state.load(MessageTestHelper.records_at_hours(8, 9, 10, 11, 12))
    return state
