"""Unified message model shared by every mail source.

Messages are built fresh from source records on every fetch cycle, consumed
once by the deduplicator and never mutated afterwards.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_SUBJECT = "(no subject)"


class MessageSource(str, Enum):
    """Origin of a unified message."""

    MAC_MAIL = "mac-mail"
    IMAP = "imap"
    GMAIL = "gmail"


class UnifiedMessage(BaseModel):
    """A mail message normalized across Mail.app, IMAP and Gmail."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Source-qualified message identifier")

    # At most one of these is authoritative for a given source.
    global_message_id: int | None = Field(
        default=None, description="Mail.app sync identifier, stable within one source"
    )
    message_id_header: str | None = Field(default=None, description="RFC 5322 Message-ID header")

    subject: str = Field(default=NO_SUBJECT, description="Subject header")
    sender: str = Field(alias="from", min_length=1, description="Sender display name and/or address")
    to: list[str] = Field(default_factory=list, description="Recipient addresses")
    cc: list[str] = Field(default_factory=list, description="Cc addresses")
    date: datetime = Field(description="Received date (timezone aware)")

    is_read: bool = Field(default=False, description="Whether message is read")
    is_flagged: bool = Field(default=False, description="Whether message is flagged or starred")
    has_attachments: bool = Field(default=False, description="Whether message has attachments")

    account: str = Field(default="", description="Account display name")
    account_type: str = Field(default="", description="Account type (IMAP, iCloud, Gmail, ...)")
    mailbox: str = Field(default="INBOX", description="Mailbox the message was found in")
    source: MessageSource = Field(description="Source the message was fetched from")

    text_content: str | None = Field(default=None, description="Plain text body")
    html_content: str | None = Field(default=None, description="HTML body")

    remote_id: str | None = Field(default=None, description="Server-side identifier")
    conversation_id: int | None = Field(default=None, description="Mail.app conversation id")

    @field_validator("subject", mode="before")
    @classmethod
    def _default_subject(cls, v: object) -> object:
        if v is None or (isinstance(v, str) and not v.strip()):
            return NO_SUBJECT
        return v

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Naive datetimes from local stores are taken as UTC.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def without_content(self) -> UnifiedMessage:
        """Return a copy with body fields dropped."""

        return self.model_copy(update={"text_content": None, "html_content": None})


class DeduplicationMethodCounts(BaseModel):
    """Number of duplicates caught by each strategy."""

    global_message_id: int = 0
    message_id_header: int = 0
    content_hash: int = 0
    fuzzy_match: int = 0

    def total(self) -> int:
        return self.global_message_id + self.message_id_header + self.content_hash + self.fuzzy_match


class DeduplicationStats(BaseModel):
    """Aggregate counters produced by one deduplication pass."""

    total_messages: int = 0
    unique_messages: int = 0
    duplicates_removed: int = 0
    by_source: dict[MessageSource, int] = Field(
        default_factory=lambda: {source: 0 for source in MessageSource}
    )
    deduplication_methods: DeduplicationMethodCounts = Field(default_factory=DeduplicationMethodCounts)
