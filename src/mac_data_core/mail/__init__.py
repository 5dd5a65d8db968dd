"""Mail deduplication and the hybrid multi-source mail client."""

from .client import DuplicateReport, HybridMailClient, MailQuery, MailResult, MailStatistics
from .conversion import gmail_message_to_record, to_unified_message
from .deduplicator import (
    DeduplicationConfig,
    DeduplicationMethod,
    DeduplicationResult,
    MessageDeduplicator,
)
from .sources import MailSource, StaticMailSource, load_sources, parse_record

__all__ = [
    "DeduplicationConfig",
    "DeduplicationMethod",
    "DeduplicationResult",
    "DuplicateReport",
    "HybridMailClient",
    "MailQuery",
    "MailResult",
    "MailSource",
    "MailStatistics",
    "MessageDeduplicator",
    "StaticMailSource",
    "gmail_message_to_record",
    "load_sources",
    "parse_record",
    "to_unified_message",
]
