"""SQLite-backed result cache with per-entity freshness.

A cache file holds nothing that cannot be fetched again from the source stores,
so its schema is private and is rebuilt whenever the stored version differs.
Reads older than the entity's TTL class are misses; stale rows are never
returned. Storage is reclaimed only by an explicit ``cleanup()``.
"""

from __future__ import annotations

import json
import sqlite3
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from mac_data_core.cache.policy import EntityType, TTLPolicy
from mac_data_core.exceptions import CacheUnavailableError

logger = structlog.get_logger()


_SCHEMA_VERSION = 1
DEFAULT_RETENTION_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class CacheKey:
    """Composite key of a cached row."""

    entity_type: EntityType
    key: str


@dataclass(frozen=True)
class CacheStats:
    """Row counts per table and on-disk size."""

    rows: dict[str, int]
    size_kb: float


class SQLiteCache:
    """Key/value cache over a single SQLite file."""

    _tables: tuple[str, ...] = ("cache_entries",)

    def __init__(
        self,
        db_path: Path,
        *,
        policy: TTLPolicy | None = None,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create a cache.

        Args:
            db_path: Path to the SQLite cache file.
            policy: TTL classes; defaults to the built-in policy.
            retention_seconds: Age after which cleanup() deletes rows.
            clock: Returns the current time in epoch seconds.
        """

        self._db_path = Path(db_path)
        self.policy = policy or TTLPolicy()
        self._retention_seconds = retention_seconds
        self._clock = clock

    @property
    def db_path(self) -> Path:
        return self._db_path

    def initialize(self) -> None:
        """Create the schema, rebuilding it if the stored version differs."""

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheUnavailableError(f"cannot create cache directory: {exc}") from exc

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS _schema_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

            current_version = self._get_schema_version(conn)
            if current_version == _SCHEMA_VERSION:
                return

            if current_version is not None:
                logger.warning(
                    "cache_schema_rebuilt",
                    path=str(self._db_path),
                    found=current_version,
                    expected=_SCHEMA_VERSION,
                )
                for table in self._tables:
                    conn.execute(f"DROP TABLE IF EXISTS {table}")

            conn.execute("BEGIN")
            self._create_schema(conn)
            self._set_schema_version(conn, _SCHEMA_VERSION)
            conn.execute("COMMIT")
            logger.info("cache_schema_created", path=str(self._db_path), version=_SCHEMA_VERSION)

    def get(self, key: CacheKey, *, ttl: float | None = None) -> Any | None:
        """Return the cached value for ``key``, or None on a miss.

        Args:
            key: Row key.
            ttl: Overrides the TTL class of the entity type, in seconds.
        """

        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT payload, cached_at, expires_at
                FROM cache_entries
                WHERE entity_type = ? AND cache_key = ?;
                """,
                (key.entity_type.value, key.key),
            ).fetchone()

        if row is None or not self._is_fresh(row, key.entity_type, ttl):
            return None
        return json.loads(row["payload"])

    def put(self, key: CacheKey, value: Any, *, expires_at: float | None = None) -> None:
        """Store ``value`` under ``key``, replacing any existing row.

        Args:
            key: Row key.
            value: JSON-serializable value.
            expires_at: Absolute expiry in epoch seconds; when omitted the
                entity's TTL class applies.
        """

        self.put_many([(key, value)], expires_at=expires_at)

    def put_many(
        self,
        items: Iterable[tuple[CacheKey, Any]],
        *,
        expires_at: float | None = None,
    ) -> None:
        """Store several rows atomically: readers see all of them or none."""

        with self._transaction() as conn:
            self._upsert_entries(conn, items, expires_at=expires_at)

    def cleanup(self) -> int:
        """Delete rows older than the retention horizon and compact the file.

        Returns:
            Number of deleted rows.
        """

        cutoff = self._now_ms() - int(self._retention_seconds * 1000)
        deleted = 0
        with self._transaction() as conn:
            for table in self._tables:
                cursor = conn.execute(f"DELETE FROM {table} WHERE cached_at < ?", (cutoff,))
                deleted += max(cursor.rowcount, 0)

        with self._connect() as conn:
            conn.execute("VACUUM")

        logger.info("cache_cleanup_completed", path=str(self._db_path), deleted=deleted)
        return deleted

    def stats(self) -> CacheStats:
        """Count rows per table and report the file size."""

        with self._connect() as conn:
            rows = {
                table: int(conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])
                for table in self._tables
            }
            (page_count,) = conn.execute("PRAGMA page_count").fetchone()
            (page_size,) = conn.execute("PRAGMA page_size").fetchone()

        return CacheStats(rows=rows, size_kb=(page_count or 0) * (page_size or 4096) / 1024)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _fresh_values(self, entity_type: EntityType, *, ttl: float | None = None) -> list[Any]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT payload, cached_at, expires_at
                FROM cache_entries
                WHERE entity_type = ?
                ORDER BY cache_key;
                """,
                (entity_type.value,),
            ).fetchall()

        return [json.loads(row["payload"]) for row in rows if self._is_fresh(row, entity_type, ttl)]

    def _is_fresh(self, row: sqlite3.Row, entity_type: EntityType, ttl: float | None) -> bool:
        now_ms = self._now_ms()
        if row["expires_at"] is not None:
            return row["expires_at"] > now_ms
        ttl_seconds = self.policy.ttl_for(entity_type) if ttl is None else ttl
        return row["cached_at"] > now_ms - int(ttl_seconds * 1000)

    def _upsert_entries(
        self,
        conn: sqlite3.Connection,
        items: Iterable[tuple[CacheKey, Any]],
        *,
        expires_at: float | None = None,
    ) -> None:
        now_ms = self._now_ms()
        expires_ms = int(expires_at * 1000) if expires_at is not None else None
        for key, value in items:
            conn.execute(
                """
                INSERT INTO cache_entries (entity_type, cache_key, payload, cached_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(entity_type, cache_key) DO UPDATE SET
                    payload=excluded.payload,
                    cached_at=excluded.cached_at,
                    expires_at=excluded.expires_at
                """,
                (key.entity_type.value, key.key, json.dumps(value), now_ms, expires_ms),
            )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path, isolation_level=None)
        except sqlite3.Error as exc:
            raise CacheUnavailableError(f"cannot open cache {self._db_path}: {exc}") from exc
        try:
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as exc:
            raise CacheUnavailableError(f"cache {self._db_path} failed: {exc}") from exc
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS cache_entries (
                entity_type TEXT NOT NULL,
                cache_key TEXT NOT NULL,
                payload TEXT NOT NULL,
                cached_at INTEGER NOT NULL,
                expires_at INTEGER,
                PRIMARY KEY (entity_type, cache_key)
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_cache_entries_cached_at ON cache_entries(cached_at);"
        )

    def _get_schema_version(self, conn: sqlite3.Connection) -> int | None:
        row = conn.execute(
            "SELECT value FROM _schema_meta WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            return None
        return int(row[0])

    def _set_schema_version(self, conn: sqlite3.Connection, version: int) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO _schema_meta(key, value) VALUES('schema_version', ?) ",
            (str(version),),
        )
