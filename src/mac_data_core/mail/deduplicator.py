"""Multi-strategy duplicate detection for messages gathered from several sources.

The same email frequently shows up more than once in a batch: Mail.app may hold
it in two mailboxes, and an IMAP or Gmail fetch of the same account returns it
again without any shared sync identifier. Four strategies are tried in a fixed
priority, and the first one that matches decides the attribution:

1. Mail.app global message id.
2. RFC Message-ID header.
3. Content hash of subject, sender, minute and account.
4. Fuzzy match on normalized subject and sender within a time window.
"""

from __future__ import annotations

import hashlib
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import timedelta, timezone
from enum import Enum

import structlog

from mac_data_core.config import Settings
from mac_data_core.exceptions import ConfigurationError
from mac_data_core.models import (
    DeduplicationMethodCounts,
    DeduplicationStats,
    MessageSource,
    UnifiedMessage,
)
from mac_data_core.utils import normalize_sender, normalize_subject, similarity

logger = structlog.get_logger()


class DeduplicationMethod(str, Enum):
    """Strategy that identified a duplicate, in priority order."""

    GLOBAL_MESSAGE_ID = "global_message_id"
    MESSAGE_ID_HEADER = "message_id_header"
    CONTENT_HASH = "content_hash"
    FUZZY_MATCH = "fuzzy_match"


@dataclass(frozen=True)
class DeduplicationConfig:
    """Tunable thresholds for the fuzzy strategy."""

    similarity_threshold: float = 0.8
    time_window: timedelta = timedelta(hours=24)
    bucket: timedelta = timedelta(hours=1)
    subject_key_length: int = 50

    def __post_init__(self) -> None:
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ConfigurationError("similarity_threshold must be within [0, 1]")
        if self.time_window <= timedelta(0) or self.bucket <= timedelta(0):
            raise ConfigurationError("time_window and bucket must be positive")
        if self.subject_key_length <= 0:
            raise ConfigurationError("subject_key_length must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> DeduplicationConfig:
        return cls(
            similarity_threshold=settings.fuzzy_similarity_threshold,
            time_window=timedelta(hours=settings.fuzzy_time_window_hours),
            bucket=timedelta(minutes=settings.fuzzy_bucket_minutes),
            subject_key_length=settings.fuzzy_subject_length,
        )


@dataclass(frozen=True)
class DeduplicationResult:
    """Unique messages (newest first) and the statistics of the pass."""

    unique: list[UnifiedMessage]
    stats: DeduplicationStats


@dataclass
class _SeenIndex:
    """Lookup state for a single deduplication pass."""

    global_ids: set[int] = field(default_factory=set)
    header_ids: set[str] = field(default_factory=set)
    content_hashes: set[str] = field(default_factory=set)
    fuzzy: dict[str, list[UnifiedMessage]] = field(default_factory=dict)


class MessageDeduplicator:
    """Collapse a batch of messages into a unique set.

    The deduplicator holds configuration only. Matching state is created per
    call, so one instance can be shared freely.
    """

    def __init__(self, config: DeduplicationConfig | None = None) -> None:
        self.config = config or DeduplicationConfig()

    def deduplicate(self, messages: Sequence[UnifiedMessage]) -> DeduplicationResult:
        """Remove duplicates, keeping the most recently dated instance.

        Args:
            messages: Messages from any mix of sources, in any order.

        Returns:
            DeduplicationResult with unique messages in date-descending order.
        """

        index = _SeenIndex()
        methods: Counter[DeduplicationMethod] = Counter()
        by_source = {source: 0 for source in MessageSource}
        unique: list[UnifiedMessage] = []

        # Python's sort is stable with reverse=True, so equal dates keep input order.
        for message in sorted(messages, key=lambda m: m.date, reverse=True):
            by_source[message.source] += 1

            method = self._match(message, index)
            if method is not None:
                methods[method] += 1
                continue

            unique.append(message)
            self._record(message, index)

        stats = DeduplicationStats(
            total_messages=len(messages),
            unique_messages=len(unique),
            duplicates_removed=len(messages) - len(unique),
            by_source=by_source,
            deduplication_methods=DeduplicationMethodCounts(
                **{method.value: count for method, count in methods.items()}
            ),
        )

        logger.debug(
            "deduplication_completed",
            total=stats.total_messages,
            unique=stats.unique_messages,
            removed=stats.duplicates_removed,
        )
        return DeduplicationResult(unique=unique, stats=stats)

    def find_potential_duplicates(
        self, messages: Sequence[UnifiedMessage]
    ) -> list[list[UnifiedMessage]]:
        """Group related messages without removing anything.

        Two messages are related when they share a global id, a Message-ID
        header or a content hash, or when they fuzzy-match. Groups are the
        connected components of that relation; single messages are left out.
        """

        parent = list(range(len(messages)))

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        hashes = [self.content_hash(m) for m in messages]
        for i in range(len(messages)):
            for j in range(i + 1, len(messages)):
                if find(i) == find(j):
                    continue
                if self._related(messages[i], messages[j], hashes[i], hashes[j]):
                    parent[find(j)] = find(i)

        groups: dict[int, list[UnifiedMessage]] = {}
        for i, message in enumerate(messages):
            groups.setdefault(find(i), []).append(message)

        return [group for group in groups.values() if len(group) > 1]

    def content_hash(self, message: UnifiedMessage) -> str:
        """Hash of subject, sender, minute-truncated UTC date and account."""

        parts = [
            message.subject.lower().strip(),
            message.sender.lower().strip(),
            message.date.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M"),
            message.account.lower(),
        ]
        return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()

    def fuzzy_key(self, message: UnifiedMessage) -> str:
        """Coarse bucket key limiting fuzzy comparisons to likely candidates."""

        subject = normalize_subject(message.subject)[: self.config.subject_key_length]
        sender = normalize_sender(message.sender)
        bucket = int(message.date.timestamp() // self.config.bucket.total_seconds())
        return f"{subject}|{sender}|{bucket}"

    def is_fuzzy_match(self, first: UnifiedMessage, second: UnifiedMessage) -> bool:
        """Pairwise check: same sender, similar subject, close in time."""

        if normalize_sender(first.sender) != normalize_sender(second.sender):
            return False

        score = similarity(normalize_subject(first.subject), normalize_subject(second.subject))
        if score < self.config.similarity_threshold:
            return False

        return abs(first.date - second.date) <= self.config.time_window

    def _match(self, message: UnifiedMessage, index: _SeenIndex) -> DeduplicationMethod | None:
        if message.global_message_id is not None and message.global_message_id in index.global_ids:
            return DeduplicationMethod.GLOBAL_MESSAGE_ID

        if message.message_id_header and message.message_id_header in index.header_ids:
            return DeduplicationMethod.MESSAGE_ID_HEADER

        if self.content_hash(message) in index.content_hashes:
            return DeduplicationMethod.CONTENT_HASH

        candidates = index.fuzzy.get(self.fuzzy_key(message), [])
        if any(self.is_fuzzy_match(message, other) for other in candidates):
            return DeduplicationMethod.FUZZY_MATCH

        return None

    def _record(self, message: UnifiedMessage, index: _SeenIndex) -> None:
        if message.global_message_id is not None:
            index.global_ids.add(message.global_message_id)
        if message.message_id_header:
            index.header_ids.add(message.message_id_header)
        index.content_hashes.add(self.content_hash(message))
        index.fuzzy.setdefault(self.fuzzy_key(message), []).append(message)

    def _related(
        self,
        first: UnifiedMessage,
        second: UnifiedMessage,
        first_hash: str,
        second_hash: str,
    ) -> bool:
        if (
            first.global_message_id is not None
            and first.global_message_id == second.global_message_id
        ):
            return True
        if first.message_id_header and first.message_id_header == second.message_id_header:
            return True
        if first_hash == second_hash:
            return True
        return self.is_fuzzy_match(first, second)
