"""
Centralized configuration using Pydantic Settings.

Settings are loaded from the environment (or `.env`) and validated here,
then passed explicitly to the components that need them.
"""

from datetime import timedelta

from pydantic import AliasChoices, Field, ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from taimail.core.exceptions import ValidationError

MAIL_DOMAIN = "tai.chat"
API_PREFIX = "/api/v1"

DEFAULT_HANDLER_COMMAND = [
    "claude",
    "--dangerously-skip-permissions",
    "-p",
    "Please resolve the unread email and send the response back to the user "
    "after the email is resolved",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Account
    name: str = Field(min_length=3)
    password: str = Field(min_length=8, repr=False)
    instance: str = Field(min_length=1)
    # Default recipient for outgoing mail
    user_email: str | None = Field(
        default=None,
        validation_alias=AliasChoices("USEREMAIL", "USER_EMAIL"),
    )

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Remote API
    api_base_url: str = f"https://{MAIL_DOMAIN}"
    api_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        le=300000,
        validation_alias=AliasChoices("API_TIMEOUT", "API_TIMEOUT_MS"),
    )

    # Polling
    poll_interval_ms: int = Field(
        default=5000,
        ge=1000,
        le=60000,
        validation_alias=AliasChoices("POLL_INTERVAL", "POLL_INTERVAL_MS"),
    )
    poll_page_size: int = Field(default=10, ge=1, le=200)
    poll_max_pages: int = Field(default=10, ge=1)
    # First cycle: dispatch the whole unread backlog (True) or only prime the mark
    poll_dispatch_backlog: bool = True

    # Handler spawned once per new message
    handler_command: list[str] = Field(default_factory=lambda: list(DEFAULT_HANDLER_COMMAND))
    handler_timeout_seconds: float = Field(default=300.0, gt=0)

    @property
    def instance_email(self) -> str:
        """Mailbox address owned by this instance."""
        return f"{self.instance}.{self.name}@{MAIL_DOMAIN}"

    @property
    def api_url(self) -> str:
        """Base URL including the API version prefix."""
        return f"{self.api_base_url.rstrip('/')}{API_PREFIX}"

    @property
    def api_timeout(self) -> float:
        """Request timeout in seconds."""
        return self.api_timeout_ms / 1000

    @property
    def poll_interval(self) -> timedelta:
        return timedelta(milliseconds=self.poll_interval_ms)


def load_settings(**overrides) -> Settings:
    """
    Load and validate settings.

    Args:
        **overrides: Explicit values that take precedence over the environment

    Returns:
        Validated Settings

    Raises:
        ValidationError: If a required value is missing or out of range
    """
    try:
        return Settings(**overrides)
    except PydanticValidationError as e:
        problems = []
        for err in e.errors():
            field_name = ".".join(str(part) for part in err["loc"]) or "settings"
            problems.append(f"{field_name.upper()}: {err['msg']}")
        raise ValidationError("Invalid configuration: " + "; ".join(problems)) from e
