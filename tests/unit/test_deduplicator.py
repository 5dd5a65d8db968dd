"""Unit tests for the multi-strategy message deduplicator."""

from __future__ import annotations

from datetime import timedelta

import pytest

from mac_data_core.config import Settings
from mac_data_core.exceptions import ConfigurationError
from mac_data_core.mail import DeduplicationConfig, MessageDeduplicator
from mac_data_core.models import MessageSource

from conftest import T0


@pytest.fixture
def dedup() -> MessageDeduplicator:
    return MessageDeduplicator()


@pytest.fixture
def mixed_batch(make_message):
    """Messages covering every strategy plus a few distinct ones."""
    return [
        make_message(global_message_id=1, subject="Invoice", date=T0),
        make_message(global_message_id=1, subject="Invoice", date=T0 + timedelta(minutes=5)),
        make_message(
            message_id_header="<a@x>", subject="Lunch", date=T0, source=MessageSource.IMAP
        ),
        make_message(
            message_id_header="<a@x>",
            subject="Lunch?",
            date=T0 + timedelta(hours=2),
            source=MessageSource.GMAIL,
        ),
        make_message(subject="Status", sender="Bob <bob@x.com>", date=T0 + timedelta(seconds=10)),
        make_message(
            subject="Status",
            sender="Bob <bob@x.com>",
            date=T0 + timedelta(seconds=40),
            source=MessageSource.IMAP,
        ),
        make_message(subject="Re: Budget", sender="a@x.com", date=T0),
        make_message(subject="Budget", sender="a@x.com", date=T0 + timedelta(minutes=10)),
        make_message(subject="Holiday plans", sender="carol@x.com", date=T0 - timedelta(days=1)),
        make_message(subject="Weekly sync", sender="dave@x.com", date=T0 - timedelta(days=2)),
    ]


class TestDeduplicate:
    def test_empty_input(self, dedup) -> None:
        result = dedup.deduplicate([])

        assert result.unique == []
        assert result.stats.total_messages == 0
        assert result.stats.unique_messages == 0
        assert result.stats.duplicates_removed == 0
        assert all(count == 0 for count in result.stats.by_source.values())
        assert result.stats.deduplication_methods.total() == 0

    def test_same_global_id_keeps_newest(self, dedup, make_message) -> None:
        older = make_message(global_message_id=42, subject="Hi", date=T0)
        newer = make_message(global_message_id=42, subject="Hi", date=T0 + timedelta(hours=1))

        result = dedup.deduplicate([older, newer])

        assert result.unique == [newer]
        assert result.stats.deduplication_methods.global_message_id == 1
        assert result.stats.duplicates_removed == 1

    def test_reply_prefix_fuzzy_match(self, dedup, make_message) -> None:
        reply = make_message(subject="Re: Budget", sender="a@x.com", date=T0)
        plain = make_message(subject="Budget", sender="a@x.com", date=T0 + timedelta(minutes=10))

        result = dedup.deduplicate([reply, plain])

        assert result.unique == [plain]
        assert result.stats.deduplication_methods.fuzzy_match == 1

    def test_header_id_match(self, dedup, make_message) -> None:
        first = make_message(message_id_header="<m1@x>", subject="A", date=T0)
        second = make_message(
            message_id_header="<m1@x>",
            subject="Completely different",
            date=T0 + timedelta(days=3),
            source=MessageSource.IMAP,
        )

        result = dedup.deduplicate([first, second])

        assert result.unique == [second]
        assert result.stats.deduplication_methods.message_id_header == 1

    def test_content_hash_match_within_same_minute(self, dedup, make_message) -> None:
        first = make_message(subject=" Status ", date=T0 + timedelta(seconds=5))
        second = make_message(
            subject="status", date=T0 + timedelta(seconds=50), source=MessageSource.IMAP
        )

        result = dedup.deduplicate([first, second])

        assert result.unique == [second]
        assert result.stats.deduplication_methods.content_hash == 1

    def test_content_hash_considers_account(self, dedup, make_message) -> None:
        work = make_message(subject="Standup", sender="x@y.com", account="Work", date=T0)
        home = make_message(
            subject="Standup", sender="x@y.com", account="Home", date=T0 + timedelta(seconds=1)
        )

        result = dedup.deduplicate([work, home])

        # Different accounts defeat the hash but the fuzzy check still links them.
        assert result.stats.deduplication_methods.content_hash == 0
        assert result.stats.deduplication_methods.fuzzy_match == 1

    def test_first_matching_strategy_wins(self, dedup, make_message) -> None:
        first = make_message(global_message_id=7, message_id_header="<h@x>", date=T0)
        second = make_message(global_message_id=7, message_id_header="<h@x>", date=T0)

        result = dedup.deduplicate([first, second])

        methods = result.stats.deduplication_methods
        assert methods.global_message_id == 1
        assert methods.message_id_header == 0
        assert methods.content_hash == 0

    def test_different_senders_are_distinct(self, dedup, make_message) -> None:
        first = make_message(subject="Budget", sender="a@x.com", date=T0)
        second = make_message(subject="Budget", sender="b@x.com", date=T0 + timedelta(minutes=1))

        result = dedup.deduplicate([first, second])

        assert len(result.unique) == 2

    def test_dissimilar_subjects_are_distinct(self, dedup, make_message) -> None:
        first = make_message(subject="Budget", sender="a@x.com", date=T0)
        second = make_message(
            subject="Budget review meeting notes", sender="a@x.com", date=T0 + timedelta(minutes=1)
        )

        result = dedup.deduplicate([first, second])

        assert len(result.unique) == 2

    def test_fuzzy_key_is_bucketed_by_hour(self, dedup, make_message) -> None:
        first = make_message(subject="Re: Budget", sender="a@x.com", date=T0 - timedelta(minutes=5))
        second = make_message(subject="Budget", sender="a@x.com", date=T0 + timedelta(minutes=5))

        result = dedup.deduplicate([first, second])

        assert len(result.unique) == 2

    def test_unique_is_date_descending(self, dedup, mixed_batch) -> None:
        result = dedup.deduplicate(mixed_batch)

        dates = [m.date for m in result.unique]
        assert dates == sorted(dates, reverse=True)

    def test_mixed_batch_attribution(self, dedup, mixed_batch) -> None:
        result = dedup.deduplicate(mixed_batch)
        methods = result.stats.deduplication_methods

        assert methods.global_message_id == 1
        assert methods.message_id_header == 1
        assert methods.content_hash == 1
        assert methods.fuzzy_match == 1
        assert len(result.unique) == 6

    def test_conservation_and_partition(self, dedup, mixed_batch) -> None:
        stats = dedup.deduplicate(mixed_batch).stats

        assert stats.unique_messages + stats.duplicates_removed == stats.total_messages
        assert stats.total_messages == len(mixed_batch)
        assert stats.deduplication_methods.total() == stats.duplicates_removed

    def test_by_source_counts_every_input(self, dedup, mixed_batch) -> None:
        stats = dedup.deduplicate(mixed_batch).stats

        assert stats.by_source[MessageSource.MAC_MAIL] == 7
        assert stats.by_source[MessageSource.IMAP] == 2
        assert stats.by_source[MessageSource.GMAIL] == 1
        assert sum(stats.by_source.values()) == stats.total_messages

    def test_idempotent(self, dedup, mixed_batch) -> None:
        once = dedup.deduplicate(mixed_batch).unique
        twice = dedup.deduplicate(once)

        assert twice.unique == once
        assert twice.stats.duplicates_removed == 0

    def test_no_state_between_calls(self, dedup, make_message) -> None:
        message = make_message(global_message_id=5)

        assert dedup.deduplicate([message]).unique == [message]
        assert dedup.deduplicate([message]).unique == [message]

    def test_input_order_is_irrelevant(self, dedup, mixed_batch) -> None:
        forward = dedup.deduplicate(mixed_batch).unique
        backward = dedup.deduplicate(list(reversed(mixed_batch))).unique

        assert {m.id for m in forward} == {m.id for m in backward}


class TestFuzzyMatch:
    def test_symmetric(self, dedup, make_message) -> None:
        a = make_message(subject="Re: Budget Q1", sender="Ann <a@x.com>", date=T0)
        b = make_message(subject="Budget Q1!", sender='"Ann" <ann@other.com>', date=T0 + timedelta(hours=5))

        assert dedup.is_fuzzy_match(a, b) is True
        assert dedup.is_fuzzy_match(b, a) is True

    def test_outside_time_window(self, dedup, make_message) -> None:
        a = make_message(subject="Budget", sender="a@x.com", date=T0)
        b = make_message(subject="Budget", sender="a@x.com", date=T0 + timedelta(hours=25))

        assert dedup.is_fuzzy_match(a, b) is False
        assert dedup.is_fuzzy_match(b, a) is False

    def test_threshold_is_configurable(self, make_message) -> None:
        strict = MessageDeduplicator(DeduplicationConfig(similarity_threshold=1.0))
        a = make_message(subject="Budget v1", sender="a@x.com", date=T0)
        b = make_message(subject="Budget v2", sender="a@x.com", date=T0)

        assert MessageDeduplicator().is_fuzzy_match(a, b) is True
        assert strict.is_fuzzy_match(a, b) is False

    def test_fuzzy_key_truncates_subject(self, dedup, make_message) -> None:
        long_subject = "x" * 80
        key = dedup.fuzzy_key(make_message(subject=long_subject, sender="a@x.com"))

        assert key.split("|")[0] == "x" * 50


class TestDeduplicationConfig:
    def test_from_settings(self) -> None:
        settings = Settings(
            fuzzy_similarity_threshold=0.9,
            fuzzy_time_window_hours=12,
            fuzzy_bucket_minutes=30,
            fuzzy_subject_length=40,
        )

        config = DeduplicationConfig.from_settings(settings)

        assert config.similarity_threshold == 0.9
        assert config.time_window == timedelta(hours=12)
        assert config.bucket == timedelta(minutes=30)
        assert config.subject_key_length == 40

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"similarity_threshold": 1.2},
            {"time_window": timedelta(0)},
            {"bucket": timedelta(minutes=-1)},
            {"subject_key_length": 0},
        ],
    )
    def test_invalid_values(self, kwargs) -> None:
        with pytest.raises(ConfigurationError):
            DeduplicationConfig(**kwargs)


class TestFindPotentialDuplicates:
    def test_groups_related_messages(self, dedup, mixed_batch) -> None:
        groups = dedup.find_potential_duplicates(mixed_batch)

        assert [[m.id for m in g] for g in groups] == [
            [mixed_batch[0].id, mixed_batch[1].id],
            [mixed_batch[2].id, mixed_batch[3].id],
            [mixed_batch[4].id, mixed_batch[5].id],
            [mixed_batch[6].id, mixed_batch[7].id],
        ]

    def test_nothing_removed_and_singletons_excluded(self, dedup, make_message) -> None:
        a = make_message(subject="One", sender="a@x.com")
        b = make_message(subject="Two completely unrelated", sender="b@x.com")

        assert dedup.find_potential_duplicates([a, b]) == []

    def test_clusters_are_transitive(self, dedup, make_message) -> None:
        a = make_message(global_message_id=1, subject="A", date=T0)
        b = make_message(global_message_id=1, message_id_header="<h@x>", subject="B", date=T0)
        c = make_message(message_id_header="<h@x>", subject="C", date=T0 + timedelta(days=4))

        groups = dedup.find_potential_duplicates([c, a, b])

        assert len(groups) == 1
        assert [m.id for m in groups[0]] == [c.id, a.id, b.id]

    def test_fuzzy_relation_ignores_hour_bucket(self, dedup, make_message) -> None:
        first = make_message(subject="Re: Budget", sender="a@x.com", date=T0 - timedelta(minutes=5))
        second = make_message(subject="Budget", sender="a@x.com", date=T0 + timedelta(minutes=5))

        groups = dedup.find_potential_duplicates([first, second])

        assert len(groups) == 1
