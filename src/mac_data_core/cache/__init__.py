"""Local SQLite result caches fronting slow source-store queries.

Each logical cache (mail, calendar) lives in its own file. Every row is
re-derivable from the source stores, so a cache file may be deleted at any time.
"""

from .base import CacheKey, CacheStats, SQLiteCache
from .calendar_cache import CalendarCache, open_calendar_cache
from .mail_cache import MailCache, open_mail_cache
from .policy import EntityType, TTLPolicy

__all__ = [
    "CacheKey",
    "CacheStats",
    "CalendarCache",
    "EntityType",
    "MailCache",
    "SQLiteCache",
    "TTLPolicy",
    "open_calendar_cache",
    "open_mail_cache",
]
