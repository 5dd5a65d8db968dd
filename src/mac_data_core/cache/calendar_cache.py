"""Calendar result cache.

Events carry an absolute expiry chosen when they are written: events close to
the present are refreshed sooner than events far in the past or future.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from datetime import datetime, timezone

import structlog

from mac_data_core.cache.base import SQLiteCache
from mac_data_core.cache.policy import TTLPolicy
from mac_data_core.config import Settings
from mac_data_core.models import CachedCalendar, CalendarEvent

logger = structlog.get_logger()

_EVENT_COLUMNS = """
    id, calendar_name, title, start_date, end_date, location, description, is_all_day
"""

_SEARCH_LIMIT = 500


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_ms(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class CalendarCache(SQLiteCache):
    """Calendars and events, with per-calendar access statistics."""

    _tables = ("cache_entries", "calendars", "events")

    def cache_calendars(self, calendars: Sequence[str]) -> None:
        now_ms = self._now_ms()
        with self._transaction() as conn:
            conn.executemany(
                """
                INSERT INTO calendars (name, cached_at, is_active)
                VALUES (?, ?, 1)
                ON CONFLICT(name) DO UPDATE SET
                    cached_at=excluded.cached_at,
                    is_active=1
                """,
                [(name, now_ms) for name in calendars],
            )

    def get_cached_calendars(self) -> list[CachedCalendar] | None:
        """Fresh calendars, most accessed first; None when nothing is fresh."""

        min_ms = self._now_ms() - int(self.policy.calendar_list * 1000)
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT name, cached_at, event_count, access_count, last_accessed
                FROM calendars
                WHERE cached_at > ?
                ORDER BY access_count DESC, name ASC;
                """,
                (min_ms,),
            ).fetchall()

        return [self._row_to_calendar(row) for row in rows] or None

    def cache_events(
        self, events: Sequence[CalendarEvent], calendar_name: str | None = None
    ) -> None:
        """Replace the cached events of the affected calendars.

        Args:
            events: Freshly fetched events.
            calendar_name: Calendar whose events are replaced. When omitted,
                every calendar appearing in ``events`` is replaced.
        """

        now_ms = self._now_ms()
        now = _from_ms(now_ms)
        calendars = {calendar_name} if calendar_name else {e.calendar_name for e in events}

        with self._transaction() as conn:
            for name in calendars:
                conn.execute("DELETE FROM events WHERE calendar_name = ?", (name,))

            for event in events:
                ttl = self.policy.event_ttl(event.start_date, now)
                conn.execute(
                    """
                    INSERT OR REPLACE INTO events (
                        id, calendar_name, title, start_date, end_date,
                        location, description, is_all_day, cached_at, expires_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.id,
                        event.calendar_name,
                        event.title,
                        _iso(event.start_date),
                        _iso(event.end_date),
                        event.location,
                        event.description,
                        1 if event.is_all_day else 0,
                        now_ms,
                        now_ms + int(ttl * 1000),
                    ),
                )

            for name in calendars | {e.calendar_name for e in events}:
                conn.execute(
                    """
                    INSERT INTO calendars (name, cached_at, event_count)
                    VALUES (?, ?, (SELECT COUNT(*) FROM events WHERE calendar_name = ?))
                    ON CONFLICT(name) DO UPDATE SET
                        cached_at=excluded.cached_at,
                        event_count=excluded.event_count
                    """,
                    (name, now_ms, name),
                )

        logger.debug("calendar_events_cached", calendars=sorted(calendars), events=len(events))

    def get_cached_events(
        self,
        calendar_name: str | None,
        start: datetime,
        end: datetime,
    ) -> list[CalendarEvent] | None:
        """Unexpired events starting within [start, end], ordered by start."""

        params: list[object] = [_iso(start), _iso(end), self._now_ms()]
        where = "start_date >= ? AND start_date <= ? AND expires_at > ?"
        if calendar_name:
            where = "calendar_name = ? AND " + where
            params.insert(0, calendar_name)

        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE {where} ORDER BY start_date ASC;",
                params,
            ).fetchall()

            if calendar_name:
                conn.execute(
                    """
                    UPDATE calendars
                    SET access_count = access_count + 1, last_accessed = ?
                    WHERE name = ?
                    """,
                    (self._now_ms(), calendar_name),
                )

        return [self._row_to_event(row) for row in rows] or None

    def search_cached_events(
        self,
        query: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[CalendarEvent] | None:
        """Unexpired events whose title or description contains ``query``."""

        pattern = f"%{query}%"
        params: list[object] = [pattern, pattern, self._now_ms()]
        sql = f"""
            SELECT {_EVENT_COLUMNS}
            FROM events
            WHERE (title LIKE ? OR description LIKE ?)
              AND expires_at > ?
        """
        if start is not None and end is not None:
            sql += " AND start_date >= ? AND start_date <= ?"
            params.extend([_iso(start), _iso(end)])
        sql += " ORDER BY start_date ASC LIMIT ?"
        params.append(_SEARCH_LIMIT)

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()

        return [self._row_to_event(row) for row in rows] or None

    def get_cached_event(self, event_id: str) -> CalendarEvent | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE id = ? AND expires_at > ?;",
                (event_id, self._now_ms()),
            ).fetchone()
        return None if row is None else self._row_to_event(row)

    def clear_expired(self) -> int:
        """Delete expired events. Returns the number of deleted rows."""

        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM events WHERE expires_at < ?", (self._now_ms(),))
            cleared = max(cursor.rowcount, 0)

        logger.info("calendar_expired_events_cleared", cleared=cleared)
        return cleared

    def get_calendar_stats(self) -> list[CachedCalendar]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT name, cached_at, event_count, access_count, last_accessed
                FROM calendars
                ORDER BY access_count DESC, name ASC;
                """
            ).fetchall()
        return [self._row_to_calendar(row) for row in rows]

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        super()._create_schema(conn)
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS calendars (
                name TEXT PRIMARY KEY,
                cached_at INTEGER NOT NULL,
                event_count INTEGER NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 1,
                access_count INTEGER NOT NULL DEFAULT 0,
                last_accessed INTEGER
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS events (
                id TEXT PRIMARY KEY,
                calendar_name TEXT NOT NULL,
                title TEXT NOT NULL,
                start_date TEXT NOT NULL,
                end_date TEXT NOT NULL,
                location TEXT,
                description TEXT,
                is_all_day INTEGER NOT NULL DEFAULT 0,
                cached_at INTEGER NOT NULL,
                expires_at INTEGER NOT NULL
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_events_calendar ON events(calendar_name);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_events_dates ON events(start_date, end_date);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_events_expires ON events(expires_at);")

    def _row_to_event(self, row: sqlite3.Row) -> CalendarEvent:
        return CalendarEvent(
            id=row["id"],
            calendar_name=row["calendar_name"],
            title=row["title"],
            start_date=datetime.fromisoformat(row["start_date"]),
            end_date=datetime.fromisoformat(row["end_date"]),
            location=row["location"],
            description=row["description"],
            is_all_day=bool(row["is_all_day"]),
        )

    def _row_to_calendar(self, row: sqlite3.Row) -> CachedCalendar:
        return CachedCalendar(
            name=row["name"],
            last_sync=_from_ms(row["cached_at"]),
            event_count=int(row["event_count"] or 0),
            access_count=int(row["access_count"] or 0),
            last_accessed=_from_ms(row["last_accessed"]),
        )


def open_calendar_cache(settings: Settings) -> CalendarCache:
    """Build and initialize the calendar cache configured by ``settings``."""

    cache = CalendarCache(
        settings.calendar_cache_path,
        policy=TTLPolicy.from_settings(settings),
        retention_seconds=settings.cache_retention_seconds,
    )
    cache.initialize()
    return cache
