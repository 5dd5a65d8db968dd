"""Boundary between the mail core and the upstream fetchers.

Fetchers (Mail.app envelope index queries, IMAP, Gmail) live outside this
package. They only need to satisfy ``MailSource`` and hand back records of one
of the shapes in ``mac_data_core.models.records``.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol, Union, runtime_checkable

from mac_data_core.exceptions import MessageValidationError, SourceFetchError
from mac_data_core.models import GmailRecord, ImapRecord, MacMailRecord, MessageSource

SourceRecord = Union[MacMailRecord, ImapRecord, GmailRecord]

_RECORD_TYPES: dict[MessageSource, type[SourceRecord]] = {
    MessageSource.MAC_MAIL: MacMailRecord,
    MessageSource.IMAP: ImapRecord,
    MessageSource.GMAIL: GmailRecord,
}


@runtime_checkable
class MailSource(Protocol):
    """A fetcher able to return recent raw records for one source."""

    source: MessageSource

    def fetch_records(self, days_back: int, limit: int) -> Sequence[SourceRecord]:
        """Return up to ``limit`` records received within ``days_back`` days.

        Raises:
            SourceFetchError: If the upstream store cannot be queried.
        """
        ...


class StaticMailSource:
    """In-memory source serving a fixed list of records."""

    def __init__(self, source: MessageSource, records: Sequence[SourceRecord]) -> None:
        self.source = source
        self._records = list(records)
        self.fetch_count = 0

    def fetch_records(self, days_back: int, limit: int) -> Sequence[SourceRecord]:
        self.fetch_count += 1
        return self._records[:limit]


def parse_record(data: dict[str, Any]) -> SourceRecord:
    """Build a record from a dict tagged with ``"source"``.

    Raises:
        MessageValidationError: If the tag is unknown or the fields are invalid.
    """

    if not isinstance(data, dict):
        raise MessageValidationError(f"record must be an object, got {type(data).__name__}")

    fields = dict(data)
    tag = fields.pop("source", None)
    try:
        source = MessageSource(tag)
    except ValueError as exc:
        raise MessageValidationError(f"unknown message source: {tag!r}") from exc

    try:
        return _RECORD_TYPES[source].model_validate(fields)
    except ValueError as exc:
        raise MessageValidationError(f"invalid {source.value} record: {exc}") from exc


def load_sources(path: Path) -> list[StaticMailSource]:
    """Load a JSON array of tagged records into one static source per tag."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SourceFetchError(f"cannot read records from {path}: {exc}") from exc

    if not isinstance(raw, list):
        raise SourceFetchError(f"{path} must contain a JSON array of records")

    grouped: dict[MessageSource, list[SourceRecord]] = {}
    for item in raw:
        record = parse_record(item)
        grouped.setdefault(_source_of(record), []).append(record)

    return [StaticMailSource(source, records) for source, records in grouped.items()]


def _source_of(record: SourceRecord) -> MessageSource:
    for source, record_type in _RECORD_TYPES.items():
        if isinstance(record, record_type):
            return source
    raise TypeError(f"unsupported record type {type(record).__name__}")
