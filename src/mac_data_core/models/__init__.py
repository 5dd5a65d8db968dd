"""Data models for mac-data-core.

This module contains Pydantic models for data validation and serialization.
"""

from .cache import CachedCalendar, CalendarEvent, MailFolder, MessageListPage
from .message import (
    NO_SUBJECT,
    DeduplicationMethodCounts,
    DeduplicationStats,
    MessageSource,
    UnifiedMessage,
)
from .records import GmailRecord, ImapRecord, MacMailRecord

__all__ = [
    "NO_SUBJECT",
    "CachedCalendar",
    "CalendarEvent",
    "DeduplicationMethodCounts",
    "DeduplicationStats",
    "GmailRecord",
    "ImapRecord",
    "MacMailRecord",
    "MailFolder",
    "MessageListPage",
    "MessageSource",
    "UnifiedMessage",
]
