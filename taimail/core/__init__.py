"""Core modules for the mail client."""

from .logging import configure_logging, get_logger
from .exceptions import (
    TaiMailError,
    AuthError,
    TransportError,
    ApiError,
    ValidationError,
)
from .models import (
    Credentials,
    Session,
    Message,
    MessagesPage,
    SendEmailResult,
    UnreadCount,
    PollerState,
    DispatchResult,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "TaiMailError",
    "AuthError",
    "TransportError",
    "ApiError",
    "ValidationError",
    "Credentials",
    "Session",
    "Message",
    "MessagesPage",
    "SendEmailResult",
    "UnreadCount",
    "PollerState",
    "DispatchResult",
]
