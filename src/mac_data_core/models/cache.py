"""Payload models stored in the local result caches."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .message import DeduplicationStats


class MailFolder(BaseModel):
    """A mailbox listing entry."""

    name: str
    account_name: str
    message_count: int = 0
    unread_count: int = 0


class MessageListPage(BaseModel):
    """The unique message ids answering one query shape."""

    message_ids: list[str] = Field(default_factory=list)
    total_count: int = 0
    stats: DeduplicationStats | None = None


class CalendarEvent(BaseModel):
    """A calendar event as returned by the calendar fetchers."""

    id: str
    title: str
    start_date: datetime
    end_date: datetime
    location: str | None = None
    description: str | None = None
    calendar_name: str
    is_all_day: bool = False


class CachedCalendar(BaseModel):
    """A calendar known to the calendar cache."""

    name: str
    last_sync: datetime
    event_count: int = 0
    access_count: int = 0
    last_accessed: datetime | None = None
