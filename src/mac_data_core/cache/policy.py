"""Freshness classes for cached entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from mac_data_core.config import Settings


class EntityType(str, Enum):
    """Kind of cached row; each kind has its own TTL class."""

    FOLDER = "folder"
    MESSAGE_LIST = "message_list"
    MESSAGE = "message"
    SEARCH = "search"
    CALENDAR_LIST = "calendar_list"
    EVENT = "event"


@dataclass(frozen=True)
class TTLPolicy:
    """Time-to-live, in seconds, per entity type."""

    folder: float = 60 * 60
    message_list: float = 5 * 60
    message_content: float = 24 * 60 * 60
    search: float = 2 * 60
    calendar_list: float = 24 * 60 * 60
    recent_event: float = 15 * 60
    old_event: float = 60 * 60
    recent_event_window: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, settings: Settings) -> TTLPolicy:
        return cls(
            folder=settings.folder_ttl_seconds,
            message_list=settings.message_list_ttl_seconds,
            message_content=settings.message_content_ttl_seconds,
            search=settings.search_ttl_seconds,
            calendar_list=settings.calendar_list_ttl_seconds,
            recent_event=settings.recent_event_ttl_seconds,
            old_event=settings.old_event_ttl_seconds,
            recent_event_window=timedelta(days=settings.recent_event_window_days),
        )

    def ttl_for(self, entity_type: EntityType) -> float:
        if entity_type is EntityType.FOLDER:
            return self.folder
        if entity_type is EntityType.MESSAGE_LIST:
            return self.message_list
        if entity_type is EntityType.MESSAGE:
            return self.message_content
        if entity_type is EntityType.SEARCH:
            return self.search
        if entity_type is EntityType.CALENDAR_LIST:
            return self.calendar_list
        return self.old_event

    def event_ttl(self, start: datetime, now: datetime) -> float:
        """Events close to now change more often and expire sooner."""

        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if abs(start - now) <= self.recent_event_window:
            return self.recent_event
        return self.old_event
