"""Unit tests for core models."""

from datetime import datetime, timedelta, timezone

from taimail.core.models import (
    Credentials,
    Message,
    MessagesPage,
    SendEmailResult,
    Session,
    UnreadCount,
    parse_timestamp,
)


class TestSession:
    """Tests for Session validity."""

    def test_valid_before_expiry(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        session = Session(token="t", expires_at=now + timedelta(hours=1))
        assert session.is_valid(now) is True

    def test_invalid_inside_skew(self):
        """A token 4 minutes from expiry is not valid with a 5 minute skew."""
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        session = Session(token="t", expires_at=now + timedelta(minutes=4))
        assert session.is_valid(now) is True
        assert session.is_valid(now, skew=timedelta(minutes=5)) is False

    def test_invalid_at_exact_boundary(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        session = Session(token="t", expires_at=now + timedelta(minutes=5))
        assert session.is_valid(now, skew=timedelta(minutes=5)) is False


class TestMessage:
    """Tests for Message model."""

    def test_from_dict(self, sample_message_data):
        message = Message.from_dict(sample_message_data)

        assert message.id == 42
        assert message.sender == "Alice <alice@example.com>"
        assert message.recipient == "desktop.testuser@tai.chat"
        assert message.is_read is False
        assert message.received_at == datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)

    def test_body_strips_html_when_no_text(self, sample_message_data):
        message = Message.from_dict(sample_message_data)
        assert message.body == "Please see the attached report."

    def test_body_prefers_text(self):
        message = Message(id=1, body_text="plain", body_html="<p>html</p>")
        assert message.body == "plain"

    def test_to_dict_uses_api_field_names(self, sample_message_data):
        data = Message.from_dict(sample_message_data).to_dict()
        assert data["from"] == "Alice <alice@example.com>"
        assert data["to"] == "desktop.testuser@tai.chat"
        assert data["id"] == 42


class TestMessagesPage:
    def test_from_dict(self, sample_message_data):
        page = MessagesPage.from_dict({"messages": [sample_message_data], "count": 7, "has_more": True})
        assert [m.id for m in page.messages] == [42]
        assert page.count == 7
        assert page.has_more is True

    def test_from_dict_missing_messages(self):
        page = MessagesPage.from_dict({"messages": None})
        assert page.messages == []
        assert page.has_more is False


class TestSmallModels:
    def test_send_email_result(self):
        result = SendEmailResult.from_dict({
            "messageId": "<sent-1@tai.chat>",
            "to": "bob@example.com",
            "subject": "Hi",
            "timestamp": "2026-03-01T10:00:00+00:00",
        })
        assert result.message_id == "<sent-1@tai.chat>"
        assert result.timestamp.tzinfo is not None

    def test_unread_count(self):
        count = UnreadCount.from_dict({"to": "a@x", "from": "b@x", "unread_count": 3})
        assert count.sender == "b@x"
        assert count.unread_count == 3

    def test_credentials_repr_hides_password(self):
        assert "secret-pass" not in repr(Credentials("user", "secret-pass"))

    def test_parse_timestamp_rejects_garbage(self):
        assert parse_timestamp("not-a-date") is None
        assert parse_timestamp(None) is None

    def test_parse_timestamp_assumes_utc(self):
        assert parse_timestamp("2026-03-01T10:00:00").tzinfo == timezone.utc

    def test_parse_timestamp_ignores_non_strings(self):
        assert parse_timestamp(1893456000) is None
        assert parse_timestamp(1893456000.5) is None
        assert parse_timestamp({"at": "2026-03-01"}) is None

    def test_message_with_numeric_received_at(self, sample_message_data):
        sample_message_data["received_at"] = 1893456000

        message = Message.from_dict(sample_message_data)

        assert message.id == 42
        assert message.received_at is None
