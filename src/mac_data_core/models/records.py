"""Source-specific record shapes handed over by mail fetchers.

Each source gets its own narrow model; conversion into UnifiedMessage lives in
``mac_data_core.mail.conversion``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MacMailRecord(BaseModel):
    """A row from the Mail.app envelope index."""

    message_id: int = Field(description="Row id in the envelope index")
    global_message_id: int | None = Field(default=None, description="Sync identifier")
    subject: str | None = None
    sender: str
    date_received: datetime | None = None
    date_sent: datetime | None = None
    is_read: bool = False
    is_flagged: bool = False
    has_attachments: bool = False
    mailbox_name: str = "INBOX"
    account_name: str = ""
    account_type: str = ""
    message_id_header: str | None = None
    conversation_id: int | None = None
    remote_id: str | None = None
    text_content: str | None = None
    html_content: str | None = None


class ImapRecord(BaseModel):
    """A message fetched over IMAP."""

    model_config = ConfigDict(populate_by_name=True)

    account: str
    message_id: str | None = Field(default=None, description="Message-ID header")
    subject: str | None = None
    sender: str | None = Field(default=None, alias="from")
    to: str | None = None
    date: datetime | None = None
    is_read: bool = False
    is_flagged: bool = False
    has_attachments: bool = False
    text_content: str | None = None
    html_content: str | None = None


class GmailRecord(BaseModel):
    """A Gmail API message parsed from ``format=metadata``."""

    gmail_id: str
    thread_id: str | None = None
    account: str = ""
    subject: str | None = None
    from_raw: str | None = None
    to_addrs: list[str] = Field(default_factory=list)
    cc_addrs: list[str] = Field(default_factory=list)
    date: datetime | None = None
    message_id_header: str | None = None
    label_ids: list[str] = Field(default_factory=list)
    snippet: str | None = None
