"""
TAI mail API client.

Typed operations over the resilient executor. One client owns one HTTP
connection pool and one session.
"""

from datetime import datetime
from typing import Callable

import httpx

from taimail.config import Settings
from taimail.core.exceptions import ApiError
from taimail.core.logging import get_logger
from taimail.core.models import (
    Credentials,
    Message,
    MessagesPage,
    SendEmailResult,
    UnreadCount,
)
from taimail.services.auth import SessionManager, utcnow
from taimail.services.executor import RequestExecutor


class MailApiClient:
    """Async client for the TAI mail service."""

    def __init__(
        self,
        base_url: str,
        credentials: Credentials,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = utcnow,
        log=None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.log = log or get_logger(__name__)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self.sessions = SessionManager(
            self._client,
            credentials,
            timeout=timeout,
            clock=clock,
            log=self.log,
        )
        self.executor = RequestExecutor(self._client, self.sessions, timeout=timeout, log=self.log)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs,
    ) -> "MailApiClient":
        """Build a client for the account described by `settings`."""
        return cls(
            base_url=settings.api_url,
            credentials=Credentials(username=settings.name, password=settings.password),
            timeout=settings.api_timeout,
            transport=transport,
            log=get_logger(__name__, instance_email=settings.instance_email),
            **kwargs,
        )

    async def login(self) -> None:
        await self.sessions.login()

    async def register(self, username: str | None = None, password: str | None = None) -> dict:
        """Register the configured account, or a custom one."""
        credentials = None
        if username or password:
            current = self.sessions.credentials
            credentials = Credentials(
                username=username or current.username,
                password=password or current.password,
            )
        return await self.sessions.register(credentials)

    async def get_auth_header(self) -> dict[str, str]:
        """Authorization header for sibling request logic sharing this session."""
        await self.sessions.ensure_valid()
        return self.sessions.auth_header()

    async def fetch_messages(
        self,
        limit: int | None = None,
        offset: int | None = None,
        prefix: str | None = None,
        show_read: bool | None = None,
    ) -> MessagesPage:
        """List messages, newest first."""
        params = {
            "limit": limit,
            "offset": offset,
            "prefix": prefix or None,
            "show_read": show_read,
        }
        self.log.debug("fetching_messages", **{k: v for k, v in params.items() if v is not None})
        data = await self.executor.execute("GET", "/messages", params=params)
        if not isinstance(data, dict):
            raise ApiError("Failed to fetch messages: empty response", code="INVALID_RESPONSE")
        return MessagesPage.from_dict(data)

    async def fetch_message(self, message_id: int | str) -> Message:
        self.log.debug("fetching_message", message_id=message_id)
        data = await self.executor.execute("GET", f"/messages/{message_id}")
        if not isinstance(data, dict):
            raise ApiError("Failed to fetch message: empty response", code="INVALID_RESPONSE")
        return Message.from_dict(data)

    async def mark_as_read(self, message_id: int | str) -> None:
        self.log.debug("marking_message_read", message_id=message_id)
        await self.executor.execute("PUT", f"/messages/{message_id}/read")

    async def delete_message(self, message_id: int | str) -> None:
        self.log.debug("deleting_message", message_id=message_id)
        await self.executor.execute("DELETE", f"/messages/{message_id}")

    async def fetch_oldest_unread(self, prefix: str | None = None, limit: int = 50) -> Message | None:
        """
        Fetch the oldest unread message and mark it as read.

        The listing's show_read filter is not reliable server-side, so a
        larger page is fetched and filtered here.

        Returns:
            The message (as it was before marking), or None if nothing is unread
        """
        page = await self.fetch_messages(limit=limit, offset=0, prefix=prefix)
        unread = [m for m in page.messages if not m.is_read]
        if not unread:
            return None

        message = min(unread, key=lambda m: m.id)
        await self.mark_as_read(message.id)
        self.log.info(
            "oldest_unread_fetched",
            message_id=message.id,
            sender=message.sender,
            subject=message.subject,
        )
        return message

    async def send_email(
        self,
        to: str,
        subject: str | None = None,
        message: str | None = None,
        html: str | None = None,
        sender: str | None = None,
    ) -> SendEmailResult:
        """Send an email. Never retried except after a rejected token."""
        payload = {
            "to": to,
            "from": sender,
            "subject": subject,
            "message": message,
            "html": html,
        }
        payload = {k: v for k, v in payload.items() if v is not None}

        self.log.info("sending_email", to=to, subject=subject)
        data = await self.executor.execute("POST", "/send-email", body=payload)
        if not isinstance(data, dict):
            raise ApiError("Failed to send email: empty response", code="INVALID_RESPONSE")

        result = SendEmailResult.from_dict(data)
        self.log.info("email_sent", message_id=result.message_id, to=result.to)
        return result

    async def get_unread_count(self, to: str, sender: str) -> UnreadCount:
        """Unread count between two addresses (no session needed)."""
        self.log.debug("getting_unread_count", to=to, sender=sender)
        data = await self.executor.execute_public("GET", "/unread", params={"to": to, "from": sender})
        if not isinstance(data, dict):
            raise ApiError("Failed to get unread count: empty response", code="INVALID_RESPONSE")
        return UnreadCount.from_dict(data)

    async def aclose(self) -> None:
        """Drop the session and close the HTTP client."""
        self.sessions.clear()
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
