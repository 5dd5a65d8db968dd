"""Helpers for converting source-specific records into UnifiedMessage."""

from __future__ import annotations

from datetime import datetime
from email.utils import getaddresses, parsedate_to_datetime
from functools import singledispatch
from typing import Any

import pydantic

from mac_data_core.exceptions import MessageValidationError
from mac_data_core.models import (
    GmailRecord,
    ImapRecord,
    MacMailRecord,
    MessageSource,
    UnifiedMessage,
)


def _header_map(message: dict[str, Any]) -> dict[str, str]:
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    result: dict[str, str] = {}
    for h in headers:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first.
            result.setdefault(name.lower(), value)
    return result


def _parse_address_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [addr for _, addr in getaddresses([value]) if addr]


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, OverflowError):
        return None


def gmail_message_to_record(message: dict[str, Any], account: str = "") -> GmailRecord:
    """Convert a Gmail API message (format=metadata) to GmailRecord.

    Args:
        message: Gmail API message dict.
        account: Account the message was fetched for.

    Returns:
        GmailRecord: Parsed metadata record.
    """

    hm = _header_map(message)

    label_ids = message.get("labelIds") or []
    if not isinstance(label_ids, list):
        label_ids = []

    return GmailRecord(
        gmail_id=str(message.get("id") or ""),
        thread_id=str(message.get("threadId") or "") or None,
        account=account,
        subject=hm.get("subject"),
        from_raw=hm.get("from"),
        to_addrs=_parse_address_list(hm.get("to")),
        cc_addrs=_parse_address_list(hm.get("cc")),
        date=_parse_date(hm.get("date")),
        message_id_header=hm.get("message-id"),
        label_ids=[str(x) for x in label_ids if isinstance(x, str)],
        snippet=message.get("snippet"),
    )


def _build(record_id: str, **fields: Any) -> UnifiedMessage:
    if fields.get("date") is None:
        raise MessageValidationError(f"message {record_id} has no date")
    try:
        return UnifiedMessage(id=record_id, **fields)
    except pydantic.ValidationError as exc:
        raise MessageValidationError(f"message {record_id} is malformed: {exc}") from exc


@singledispatch
def to_unified_message(record: object) -> UnifiedMessage:
    """Convert a source record into a UnifiedMessage.

    Raises:
        MessageValidationError: If the record lacks a date or sender.
        TypeError: If the record type has no registered conversion.
    """

    raise TypeError(f"no conversion registered for {type(record).__name__}")


@to_unified_message.register
def _from_mac_mail(record: MacMailRecord) -> UnifiedMessage:
    return _build(
        f"mac-mail-{record.message_id}",
        global_message_id=record.global_message_id,
        message_id_header=record.message_id_header,
        subject=record.subject,
        sender=record.sender,
        date=record.date_received,
        is_read=record.is_read,
        is_flagged=record.is_flagged,
        has_attachments=record.has_attachments,
        account=record.account_name,
        account_type=record.account_type,
        mailbox=record.mailbox_name,
        source=MessageSource.MAC_MAIL,
        text_content=record.text_content,
        html_content=record.html_content,
        remote_id=record.remote_id,
        conversation_id=record.conversation_id,
    )


@to_unified_message.register
def _from_imap(record: ImapRecord) -> UnifiedMessage:
    stamp = int(record.date.timestamp() * 1000) if record.date else "undated"
    return _build(
        f"imap-{record.account}-{record.message_id or stamp}",
        message_id_header=record.message_id,
        subject=record.subject,
        sender=record.sender or "Unknown",
        to=[record.to] if record.to else [],
        date=record.date,
        is_read=record.is_read,
        is_flagged=record.is_flagged,
        has_attachments=record.has_attachments,
        account=record.account,
        account_type="IMAP",
        mailbox="INBOX",
        source=MessageSource.IMAP,
        text_content=record.text_content,
        html_content=record.html_content,
    )


@to_unified_message.register
def _from_gmail(record: GmailRecord) -> UnifiedMessage:
    return _build(
        f"gmail-{record.gmail_id}",
        message_id_header=record.message_id_header,
        subject=record.subject,
        sender=record.from_raw or "Unknown",
        to=record.to_addrs,
        cc=record.cc_addrs,
        date=record.date,
        is_read="UNREAD" not in record.label_ids,
        is_flagged="STARRED" in record.label_ids,
        account=record.account,
        account_type="Gmail",
        mailbox="INBOX" if "INBOX" in record.label_ids else "",
        source=MessageSource.GMAIL,
        text_content=record.snippet,
        remote_id=record.thread_id,
    )
