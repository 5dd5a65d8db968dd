"""Mail result cache: folders, messages, list pages and search results."""

from __future__ import annotations

import json
from collections.abc import Sequence

import structlog

from mac_data_core.cache.base import CacheKey, SQLiteCache
from mac_data_core.cache.policy import EntityType, TTLPolicy
from mac_data_core.config import Settings
from mac_data_core.models import DeduplicationStats, MailFolder, MessageListPage, UnifiedMessage

logger = structlog.get_logger()


def _message_entry(message: UnifiedMessage) -> tuple[CacheKey, dict]:
    key = CacheKey(EntityType.MESSAGE, message.id)
    return key, message.model_dump(mode="json", by_alias=True)


def _search_key(query: str, search_in: str) -> CacheKey:
    return CacheKey(EntityType.SEARCH, json.dumps([query, search_in]))


class MailCache(SQLiteCache):
    """Typed access to the mail cache file."""

    def cache_folders(self, folders: Sequence[MailFolder]) -> None:
        self.put_many(
            (CacheKey(EntityType.FOLDER, f"{f.account_name}/{f.name}"), f.model_dump(mode="json"))
            for f in folders
        )

    def get_cached_folders(self) -> list[MailFolder] | None:
        """Return every fresh folder, or None when there are none."""

        folders = [MailFolder.model_validate(v) for v in self._fresh_values(EntityType.FOLDER)]
        return folders or None

    def cache_message(self, message: UnifiedMessage) -> None:
        key, value = _message_entry(message)
        self.put(key, value)

    def cache_messages(self, messages: Sequence[UnifiedMessage]) -> None:
        self.put_many(_message_entry(m) for m in messages)

    def get_cached_message(
        self, message_id: str, include_content: bool = True
    ) -> UnifiedMessage | None:
        """Return a cached message.

        Content is kept for a day, but a message served without content follows
        the shorter list TTL because its flags (read, flagged) go stale faster.
        """

        ttl = self.policy.message_content if include_content else self.policy.message_list
        value = self.get(CacheKey(EntityType.MESSAGE, message_id), ttl=ttl)
        if value is None:
            return None

        message = UnifiedMessage.model_validate(value)
        return message if include_content else message.without_content()

    def cache_message_list(
        self,
        cache_key: str,
        message_ids: Sequence[str],
        total_count: int,
        stats: DeduplicationStats | None = None,
    ) -> None:
        page = MessageListPage(message_ids=list(message_ids), total_count=total_count, stats=stats)
        self.put(CacheKey(EntityType.MESSAGE_LIST, cache_key), page.model_dump(mode="json"))

    def get_cached_message_list(self, cache_key: str) -> MessageListPage | None:
        value = self.get(CacheKey(EntityType.MESSAGE_LIST, cache_key))
        return None if value is None else MessageListPage.model_validate(value)

    def store_page(
        self,
        cache_key: str,
        messages: Sequence[UnifiedMessage],
        total_count: int,
        stats: DeduplicationStats | None = None,
    ) -> None:
        """Write a page of messages and its id list in one transaction."""

        page = MessageListPage(
            message_ids=[m.id for m in messages], total_count=total_count, stats=stats
        )
        entries = [_message_entry(m) for m in messages]
        entries.append((CacheKey(EntityType.MESSAGE_LIST, cache_key), page.model_dump(mode="json")))
        self.put_many(entries)
        logger.debug("mail_page_cached", cache_key=cache_key, messages=len(messages))

    def cache_search_results(self, query: str, search_in: str, message_ids: Sequence[str]) -> None:
        self.put(_search_key(query, search_in), list(message_ids))

    def get_cached_search_results(self, query: str, search_in: str) -> list[str] | None:
        value = self.get(_search_key(query, search_in))
        return None if value is None else [str(v) for v in value]


def open_mail_cache(settings: Settings) -> MailCache:
    """Build and initialize the mail cache configured by ``settings``."""

    cache = MailCache(
        settings.mail_cache_path,
        policy=TTLPolicy.from_settings(settings),
        retention_seconds=settings.cache_retention_seconds,
    )
    cache.initialize()
    return cache
