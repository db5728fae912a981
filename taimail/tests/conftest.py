"""
Shared pytest fixtures for taimail tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from taimail.config import Settings
from taimail.core.models import Credentials, DispatchResult, Message
from taimail.handlers.base import MessageHandler
from taimail.services.api_client import MailApiClient
from taimail.tests.fake_service import FakeMailService


class FakeClock:
    """Controllable replacement for utcnow()."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class RecordingHandler(MessageHandler):
    """Captures dispatched ids instead of spawning anything."""

    def __init__(self):
        self.dispatched: list[int] = []
        self.fail_on: set[int] = set()

    async def dispatch(self, message: Message) -> DispatchResult:
        self.dispatched.append(message.id)
        if message.id in self.fail_on:
            raise RuntimeError(f"handler blew up on {message.id}")
        return DispatchResult(success=True, message_id=message.id, action="recorded")


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username="testuser", password="testpassword")


# Variables Settings reads, including the legacy names
SETTINGS_ENV_VARS = (
    "NAME", "PASSWORD", "INSTANCE", "USEREMAIL", "USER_EMAIL",
    "LOG_LEVEL", "LOG_JSON", "API_BASE_URL",
    "API_TIMEOUT", "API_TIMEOUT_MS", "POLL_INTERVAL", "POLL_INTERVAL_MS",
    "POLL_PAGE_SIZE", "POLL_MAX_PAGES", "POLL_DISPATCH_BACKLOG",
    "HANDLER_COMMAND", "HANDLER_TIMEOUT_SECONDS",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Hide any real configuration in the environment."""
    for var in SETTINGS_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def settings(clean_env) -> Settings:
    """Settings for the fake account, independent of the real environment."""
    return Settings(
        _env_file=None,
        name="testuser",
        password="testpassword",
        instance="desktop",
        api_base_url="https://tai.test",
        api_timeout_ms=5000,
        poll_interval_ms=1000,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_service() -> FakeMailService:
    return FakeMailService()


@pytest.fixture
async def client(settings, fake_service):
    """API client wired to the in-process fake service."""
    api = MailApiClient.from_settings(settings, transport=fake_service.transport())
    yield api
    await api.aclose()


@pytest.fixture
def recording_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def sample_message_data() -> dict:
    """Message as returned by the listing endpoint."""
    return {
        "id": 42,
        "message_id": "<abc-123@example.com>",
        "from": "Alice <alice@example.com>",
        "to": "desktop.testuser@tai.chat",
        "subject": "Quarterly report",
        "body_text": "",
        "body_html": "<p>Please see the <b>attached</b> report.</p>",
        "is_read": False,
        "received_at": "2026-03-01T09:30:00Z",
        "size": 2048,
    }
