"""Hybrid mail client combining every configured mail source.

Messages for a query are served from the mail cache while fresh. On a miss the
sources are queried, records converted and filtered, duplicates removed, and the
resulting page written back in a single transaction. Messages are always cached
with their bodies and stripped on the way out, so queries with and without
content share rows. The cache is only an optimization: any cache failure is
logged and handled as a miss.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field

from mac_data_core.cache import MailCache
from mac_data_core.config import Settings
from mac_data_core.exceptions import CacheUnavailableError, SourceFetchError
from mac_data_core.mail.conversion import to_unified_message
from mac_data_core.mail.deduplicator import DeduplicationConfig, MessageDeduplicator
from mac_data_core.mail.sources import MailSource
from mac_data_core.models import DeduplicationStats, MessageSource, UnifiedMessage
from mac_data_core.utils import RE_ANGLE_ADDR

logger = structlog.get_logger()


class MailQuery(BaseModel):
    """Shape of a message request; also the cache key of its result page."""

    model_config = ConfigDict(frozen=True)

    days_back: int = Field(default=2, ge=1, description="Days of mail to fetch")
    limit: int = Field(default=1000, ge=1, description="Maximum messages returned")
    include_content: bool = Field(default=False, description="Keep message bodies")
    accounts: list[str] = Field(default_factory=list, description="Account name filters")
    unread_only: bool = False
    flagged_only: bool = False

    def cache_key(self) -> str:
        return "messages:" + self.model_dump_json()


class MailResult(BaseModel):
    """Unique messages for a query plus the statistics of the dedup pass."""

    messages: list[UnifiedMessage]
    total_count: int
    stats: DeduplicationStats
    from_cache: bool = False


class AccountStats(BaseModel):
    total: int = 0
    unread: int = 0
    source: MessageSource
    account_type: str = ""


class SenderCount(BaseModel):
    sender: str
    count: int


class MailStatistics(BaseModel):
    """Summary of the unique messages answering a query."""

    total_messages: int
    unread_messages: int
    flagged_messages: int
    by_account: dict[str, AccountStats]
    by_source: dict[MessageSource, int]
    top_senders: list[SenderCount]
    deduplication_stats: DeduplicationStats


class DuplicateReport(BaseModel):
    """Clusters of related messages found before deduplication."""

    groups: list[list[UnifiedMessage]]
    stats: DeduplicationStats


def _display_sender(sender: str) -> str:
    name = RE_ANGLE_ADDR.sub("", sender, count=1).replace('"', "").strip()
    return name or sender.strip()


def _shape(messages: Sequence[UnifiedMessage], query: MailQuery) -> list[UnifiedMessage]:
    if query.include_content:
        return list(messages)
    return [m.without_content() for m in messages]


def _matches(message: UnifiedMessage, terms: Sequence[str]) -> bool:
    searchable = " ".join(
        part
        for part in (message.subject, message.sender, message.text_content, message.html_content)
        if part
    ).lower()
    return all(term in searchable for term in terms)


class HybridMailClient:
    """Unified, deduplicated view over Mail.app, IMAP and Gmail sources."""

    def __init__(
        self,
        sources: Sequence[MailSource],
        cache: MailCache | None = None,
        deduplicator: MessageDeduplicator | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            sources: Upstream fetchers, queried in order.
            cache: Mail cache; when None every request hits the sources.
            deduplicator: Defaults to one configured from settings.
            settings: Application settings. If None, uses default settings.
        """
        from mac_data_core.config import get_settings

        self.settings = settings or get_settings()
        self.sources = list(sources)
        self.cache = cache
        self.deduplicator = deduplicator or MessageDeduplicator(
            DeduplicationConfig.from_settings(self.settings)
        )

    def default_query(self) -> MailQuery:
        return MailQuery(days_back=self.settings.default_days_back, limit=self.settings.default_limit)

    def get_messages(self, query: MailQuery | None = None) -> MailResult:
        """Return unique messages for ``query``, newest first."""

        query = query or self.default_query()
        cache_key = query.cache_key()

        cached = self._read_page(cache_key, query)
        if cached is not None:
            logger.info("mail_cache_hit", messages=len(cached.messages))
            return cached

        messages = self._fetch(query)
        result = self.deduplicator.deduplicate(messages)
        page = result.unique[: query.limit]

        logger.info(
            "mail_messages_deduplicated",
            fetched=result.stats.total_messages,
            unique=result.stats.unique_messages,
            returned=len(page),
        )

        if self.cache is not None:
            try:
                self.cache.store_page(cache_key, page, len(result.unique), result.stats)
            except CacheUnavailableError as exc:
                logger.warning("mail_cache_write_failed", error=str(exc))

        return MailResult(
            messages=_shape(page, query),
            total_count=len(result.unique),
            stats=result.stats,
            from_cache=False,
        )

    def search_messages(self, text: str, query: MailQuery | None = None) -> list[UnifiedMessage]:
        """Messages containing every whitespace-separated term of ``text``."""

        query = (query or self.default_query()).model_copy(update={"include_content": True})
        search_in = query.cache_key()

        cached = self._read_search(text, search_in)
        if cached is not None:
            return cached

        terms = text.lower().split()
        matches = [m for m in self.get_messages(query).messages if _matches(m, terms)]

        if self.cache is not None:
            try:
                self.cache.cache_search_results(text, search_in, [m.id for m in matches])
            except CacheUnavailableError as exc:
                logger.warning("mail_cache_write_failed", error=str(exc))

        return matches

    def get_statistics(self, query: MailQuery | None = None) -> MailStatistics:
        """Aggregate counts over the unique messages answering ``query``."""

        result = self.get_messages(query)
        messages = result.messages

        by_account: dict[str, AccountStats] = {}
        for message in messages:
            stats = by_account.setdefault(
                message.account,
                AccountStats(source=message.source, account_type=message.account_type),
            )
            stats.total += 1
            if not message.is_read:
                stats.unread += 1

        by_source = {source: 0 for source in MessageSource}
        for message in messages:
            by_source[message.source] += 1

        senders = Counter(_display_sender(m.sender) for m in messages)

        return MailStatistics(
            total_messages=len(messages),
            unread_messages=sum(1 for m in messages if not m.is_read),
            flagged_messages=sum(1 for m in messages if m.is_flagged),
            by_account=by_account,
            by_source=by_source,
            top_senders=[
                SenderCount(sender=sender, count=count)
                for sender, count in senders.most_common(self.settings.top_senders_limit)
            ],
            deduplication_stats=result.stats,
        )

    def find_duplicates(self, query: MailQuery | None = None) -> DuplicateReport:
        """Group related messages across sources without removing any."""

        query = query or self.default_query()
        messages = self._fetch(query)
        return DuplicateReport(
            groups=[
                _shape(group, query)
                for group in self.deduplicator.find_potential_duplicates(messages)
            ],
            stats=self.deduplicator.deduplicate(messages).stats,
        )

    def _fetch(self, query: MailQuery) -> list[UnifiedMessage]:
        messages: list[UnifiedMessage] = []
        for source in self.sources:
            try:
                records = source.fetch_records(query.days_back, query.limit)
            except SourceFetchError as exc:
                logger.warning("mail_source_failed", source=source.source.value, error=str(exc))
                continue

            kept = 0
            for record in records:
                message = to_unified_message(record)
                if query.unread_only and message.is_read:
                    continue
                if query.flagged_only and not message.is_flagged:
                    continue
                if query.accounts and not any(acc in message.account for acc in query.accounts):
                    continue
                messages.append(message)
                kept += 1

            logger.info(
                "mail_source_fetched",
                source=source.source.value,
                records=len(records),
                kept=kept,
            )
        return messages

    def _read_page(self, cache_key: str, query: MailQuery) -> MailResult | None:
        if self.cache is None:
            return None
        try:
            page = self.cache.get_cached_message_list(cache_key)
            if page is None or page.stats is None:
                return None

            messages: list[UnifiedMessage] = []
            for message_id in page.message_ids:
                message = self.cache.get_cached_message(message_id, include_content=query.include_content)
                if message is None:
                    return None
                messages.append(message)
        except CacheUnavailableError as exc:
            logger.warning("mail_cache_read_failed", error=str(exc))
            return None

        return MailResult(
            messages=messages,
            total_count=page.total_count,
            stats=page.stats,
            from_cache=True,
        )

    def _read_search(self, text: str, search_in: str) -> list[UnifiedMessage] | None:
        if self.cache is None:
            return None
        try:
            ids = self.cache.get_cached_search_results(text, search_in)
            if ids is None:
                return None
            messages = [self.cache.get_cached_message(i) for i in ids]
        except CacheUnavailableError as exc:
            logger.warning("mail_cache_read_failed", error=str(exc))
            return None

        if any(m is None for m in messages):
            return None
        logger.info("mail_search_cache_hit", query=text, matches=len(messages))
        return [m for m in messages if m is not None]
