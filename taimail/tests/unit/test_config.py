"""Unit tests for settings loading."""

from datetime import timedelta

import pytest

from taimail.config import DEFAULT_HANDLER_COMMAND, Settings, load_settings
from taimail.core.exceptions import ValidationError

pytestmark = pytest.mark.usefixtures("clean_env")


class TestSettings:
    """Tests for derived settings."""

    def test_instance_email(self, settings):
        assert settings.instance_email == "desktop.testuser@tai.chat"

    def test_api_url_has_version_prefix(self, settings):
        assert settings.api_url == "https://tai.test/api/v1"

    def test_api_url_strips_trailing_slash(self):
        s = Settings(_env_file=None, name="abc", password="12345678", instance="x", api_base_url="https://tai.test/")
        assert s.api_url == "https://tai.test/api/v1"

    def test_durations(self, settings):
        assert settings.api_timeout == 5.0
        assert settings.poll_interval == timedelta(seconds=1)

    def test_defaults(self):
        s = Settings(_env_file=None, name="abc", password="12345678", instance="x")
        assert s.api_base_url == "https://tai.chat"
        assert s.api_timeout_ms == 30000
        assert s.poll_interval_ms == 5000
        assert s.poll_dispatch_backlog is True
        assert s.handler_command == DEFAULT_HANDLER_COMMAND

    def test_password_not_in_repr(self, settings):
        assert "testpassword" not in repr(settings)


class TestLoadSettings:
    """Tests for load_settings validation."""

    def test_loads_from_environment(self, monkeypatch):
        monkeypatch.setenv("NAME", "agentbot")
        monkeypatch.setenv("PASSWORD", "supersecret")
        monkeypatch.setenv("INSTANCE", "laptop")
        monkeypatch.setenv("POLL_INTERVAL_MS", "2000")

        s = load_settings(_env_file=None)

        assert s.instance_email == "laptop.agentbot@tai.chat"
        assert s.poll_interval_ms == 2000

    def test_missing_required(self):
        with pytest.raises(ValidationError, match="NAME"):
            load_settings(_env_file=None, password="12345678", instance="x")

    def test_short_password(self):
        with pytest.raises(ValidationError, match="PASSWORD"):
            load_settings(_env_file=None, name="abc", password="short", instance="x")

    @pytest.mark.parametrize("field, value", [
        ("poll_interval_ms", 500),
        ("poll_interval_ms", 60001),
        ("api_timeout_ms", 999),
        ("api_timeout_ms", 300001),
    ])
    def test_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            load_settings(_env_file=None, name="abc", password="12345678", instance="x", **{field: value})

    def test_legacy_variable_names(self, monkeypatch):
        monkeypatch.setenv("NAME", "agentbot")
        monkeypatch.setenv("PASSWORD", "supersecret")
        monkeypatch.setenv("INSTANCE", "laptop")
        monkeypatch.setenv("API_TIMEOUT", "45000")
        monkeypatch.setenv("POLL_INTERVAL", "10000")
        monkeypatch.setenv("USEREMAIL", "owner@example.com")

        s = load_settings(_env_file=None)

        assert s.api_timeout_ms == 45000
        assert s.poll_interval_ms == 10000
        assert s.user_email == "owner@example.com"

    def test_legacy_variable_out_of_range(self, monkeypatch):
        monkeypatch.setenv("POLL_INTERVAL", "100")

        with pytest.raises(ValidationError):
            load_settings(_env_file=None, name="abc", password="12345678", instance="x")
