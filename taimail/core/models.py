"""
Data models for the mail client.

Uses dataclasses for clean, typed data structures.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse an ISO timestamp from the API into an aware UTC datetime.

    Anything that is not an ISO string (numbers included) gives None.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Credentials:
    """Username/password pair exchanged for a session token."""

    username: str
    password: str

    def to_dict(self) -> dict[str, str]:
        return {"username": self.username, "password": self.password}

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class Session:
    """Bearer token plus the instant it stops being accepted."""

    token: str
    expires_at: datetime

    def is_valid(self, now: datetime, skew: timedelta = timedelta(0)) -> bool:
        """True while `now` is earlier than expiry minus the refresh skew."""
        return now < self.expires_at - skew


@dataclass
class Message:
    """A message in the instance mailbox."""

    id: int
    message_id: str | None = None
    sender: str = ""
    recipient: str = ""
    subject: str | None = None
    body_text: str | None = None
    body_html: str | None = None
    is_read: bool = False
    received_at: datetime | None = None
    size: int | None = None

    @property
    def body(self) -> str:
        """Get message body, preferring plain text."""
        if self.body_text:
            return self.body_text
        if not self.body_html:
            return ""
        text = re.sub(r"<[^>]+>", " ", self.body_html)
        return re.sub(r"\s+", " ", text).strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create a Message from the API message shape."""
        return cls(
            id=int(data["id"]),
            message_id=data.get("message_id"),
            sender=data.get("from", ""),
            recipient=data.get("to", ""),
            subject=data.get("subject"),
            body_text=data.get("body_text"),
            body_html=data.get("body_html"),
            is_read=bool(data.get("is_read", False)),
            received_at=parse_timestamp(data.get("received_at")),
            size=data.get("size"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert back to the API message shape."""
        return {
            "id": self.id,
            "message_id": self.message_id,
            "from": self.sender,
            "to": self.recipient,
            "subject": self.subject,
            "body_text": self.body_text,
            "body_html": self.body_html,
            "is_read": self.is_read,
            "received_at": self.received_at.isoformat() if self.received_at else None,
            "size": self.size,
        }


@dataclass
class MessagesPage:
    """One page of the message listing."""

    messages: list[Message] = field(default_factory=list)
    count: int = 0
    has_more: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessagesPage":
        messages = [Message.from_dict(m) for m in data.get("messages") or []]
        return cls(
            messages=messages,
            count=int(data.get("count", len(messages))),
            has_more=bool(data.get("has_more", False)),
        )


@dataclass
class SendEmailResult:
    """Acknowledgement returned by the send endpoint."""

    message_id: str
    to: str
    subject: str | None = None
    timestamp: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SendEmailResult":
        return cls(
            message_id=data.get("messageId", ""),
            to=data.get("to", ""),
            subject=data.get("subject"),
            timestamp=parse_timestamp(data.get("timestamp")),
        )


@dataclass
class UnreadCount:
    """Unread message count between two addresses."""

    to: str
    sender: str
    unread_count: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UnreadCount":
        return cls(
            to=data.get("to", ""),
            sender=data.get("from", ""),
            unread_count=int(data.get("unread_count", 0)),
        )


@dataclass
class PollerState:
    """Lifecycle flag, high-water-mark and backlog scan progress of one poller."""

    running: bool = False
    high_water_mark: int | None = None
    # Listing offset to resume from when a backlog scan spans several cycles
    scan_offset: int = 0
    scan_pending: dict[int, Message] = field(default_factory=dict)


@dataclass
class DispatchResult:
    """Result from handing one message to a handler."""

    success: bool
    message_id: int
    action: str  # e.g., "command_completed", "command_failed", "recorded"
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
