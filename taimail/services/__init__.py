"""HTTP-facing services: session, executor and API client."""

from .auth import SessionManager, SessionStore, REFRESH_SKEW
from .executor import RequestExecutor
from .api_client import MailApiClient

__all__ = [
    "SessionManager",
    "SessionStore",
    "REFRESH_SKEW",
    "RequestExecutor",
    "MailApiClient",
]
