"""Unit tests for data models."""

from datetime import datetime, timezone

import pydantic
import pytest

from mac_data_core.models import (
    NO_SUBJECT,
    DeduplicationStats,
    MessageSource,
    UnifiedMessage,
)


class TestUnifiedMessage:
    """Test suite for UnifiedMessage model."""

    def test_message_creation(self) -> None:
        message = UnifiedMessage(
            id="mac-mail-1",
            global_message_id=42,
            subject="Hi",
            sender="bob@example.com",
            date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            source=MessageSource.MAC_MAIL,
        )

        assert message.global_message_id == 42
        assert message.mailbox == "INBOX"
        assert message.is_read is False

    def test_sender_accepts_from_alias(self) -> None:
        message = UnifiedMessage.model_validate(
            {
                "id": "x",
                "from": "bob@example.com",
                "date": "2025-01-01T10:00:00Z",
                "source": "imap",
            }
        )

        assert message.sender == "bob@example.com"
        assert message.source is MessageSource.IMAP

    @pytest.mark.parametrize("subject", [None, "", "   "])
    def test_subject_defaults_to_placeholder(self, subject) -> None:
        message = UnifiedMessage(
            id="x",
            subject=subject,
            sender="bob@example.com",
            date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            source=MessageSource.IMAP,
        )

        assert message.subject == NO_SUBJECT

    def test_naive_date_is_utc(self) -> None:
        message = UnifiedMessage(
            id="x",
            sender="bob@example.com",
            date=datetime(2025, 1, 1, 12, 0),
            source=MessageSource.IMAP,
        )

        assert message.date.tzinfo is timezone.utc

    def test_missing_date_is_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            UnifiedMessage(id="x", sender="bob@example.com", source=MessageSource.IMAP)

    def test_empty_sender_is_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            UnifiedMessage(
                id="x",
                sender="",
                date=datetime(2025, 1, 1, tzinfo=timezone.utc),
                source=MessageSource.IMAP,
            )

    def test_message_is_immutable(self, make_message) -> None:
        message = make_message()

        with pytest.raises(pydantic.ValidationError):
            message.subject = "changed"

    def test_without_content_drops_bodies(self, make_message) -> None:
        message = make_message(text_content="body", html_content="<p>body</p>")

        stripped = message.without_content()

        assert stripped.text_content is None
        assert stripped.html_content is None
        assert message.text_content == "body"


class TestDeduplicationStats:
    def test_defaults_are_zero(self) -> None:
        stats = DeduplicationStats()

        assert stats.total_messages == 0
        assert stats.by_source == {source: 0 for source in MessageSource}
        assert stats.deduplication_methods.total() == 0

    def test_json_round_trip_keeps_source_keys(self) -> None:
        stats = DeduplicationStats(total_messages=2, by_source={MessageSource.IMAP: 2})

        restored = DeduplicationStats.model_validate(stats.model_dump(mode="json"))

        assert restored.by_source[MessageSource.IMAP] == 2
