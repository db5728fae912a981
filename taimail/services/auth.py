"""
Session handling: token storage and the login/refresh policy around it.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx

from taimail.core.exceptions import ApiError, AuthError, TransportError
from taimail.core.logging import get_logger
from taimail.core.models import Credentials, Session, parse_timestamp
from taimail.services.transport import send, unwrap

# Renew this long before the server-side expiry
REFRESH_SKEW = timedelta(minutes=5)

# The register endpoint does not report an expiry
REGISTER_TOKEN_TTL = timedelta(hours=24)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """In-memory holder for the current session. Never persisted."""

    def __init__(self):
        self._session: Session | None = None

    @property
    def session(self) -> Session | None:
        return self._session

    def set(self, session: Session) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class SessionManager:
    """Decides when to (re)authenticate and produces the auth header."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
        timeout: float = 30.0,
        store: SessionStore | None = None,
        refresh_skew: timedelta = REFRESH_SKEW,
        clock: Callable[[], datetime] = utcnow,
        log=None,
    ):
        self._client = client
        self._credentials = credentials
        self.timeout = timeout
        self.store = store or SessionStore()
        self.refresh_skew = refresh_skew
        self._clock = clock
        self.log = log or get_logger(__name__)
        self._refresh_lock = asyncio.Lock()

    @property
    def session(self) -> Session | None:
        return self.store.session

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def is_authenticated(self) -> bool:
        """True if a session exists and is outside the refresh window."""
        session = self.store.session
        return session is not None and session.is_valid(self._clock(), self.refresh_skew)

    async def ensure_valid(self) -> None:
        """
        Log in if there is no session or it is about to expire.

        Concurrent callers share one login: whoever waits on the lock finds
        the fresh session and returns.
        """
        if self.is_authenticated():
            return
        async with self._refresh_lock:
            if not self.is_authenticated():
                await self.login()

    async def login(self, credentials: Credentials | None = None) -> Session:
        """
        Exchange credentials for a fresh token and replace the session.

        Args:
            credentials: Overrides the configured credentials for this call

        Returns:
            The new Session

        Raises:
            AuthError: On rejected credentials, malformed response or network failure
        """
        creds = credentials or self._credentials
        self.log.info("login_starting", username=creds.username)

        data = await self._authenticate("/login", creds, "Login")
        token = data.get("token")
        expires_at = parse_timestamp(data.get("expires_at"))
        if not token or expires_at is None:
            self.log.error("login_malformed_response", username=creds.username)
            raise AuthError("Login failed: response is missing token or expires_at")

        session = Session(token=token, expires_at=expires_at)
        self.store.set(session)
        self.log.info(
            "login_success",
            username=creds.username,
            expires_at=expires_at.isoformat(),
        )
        return session

    async def register(self, credentials: Credentials | None = None) -> dict:
        """
        Create the account and keep the token it comes with.

        Returns:
            The registration data ({username, email, token})
        """
        creds = credentials or self._credentials
        self.log.info("register_starting", username=creds.username)

        data = await self._authenticate("/register", creds, "Registration")
        token = data.get("token")
        if not token:
            raise AuthError("Registration failed: response is missing token")

        self.store.set(Session(token=token, expires_at=self._clock() + REGISTER_TOKEN_TTL))
        self.log.info("register_success", username=creds.username, email=data.get("email"))
        return data

    def auth_header(self) -> dict[str, str]:
        """Authorization header for the current token."""
        session = self.store.session
        if session is None:
            raise AuthError("no token")
        return {"Authorization": f"Bearer {session.token}"}

    def clear(self) -> None:
        """Drop the session (logout or terminal auth failure)."""
        if self.store.session is not None:
            self.log.info("session_cleared")
        self.store.clear()

    async def _authenticate(self, path: str, creds: Credentials, label: str) -> dict:
        try:
            response = await send(
                self._client,
                "POST",
                path,
                timeout=self.timeout,
                json=creds.to_dict(),
            )
            data = unwrap(response)
        except TransportError as e:
            self.log.error("auth_request_failed", path=path, error=str(e))
            raise AuthError(f"{label} failed: {e}") from e
        except ApiError as e:
            self.log.error(
                "auth_rejected",
                path=path,
                status=e.status,
                code=e.code,
                error=e.message,
            )
            raise AuthError(f"{label} failed: {e.message}") from e

        if not isinstance(data, dict):
            raise AuthError(f"{label} failed: malformed response")
        return data
