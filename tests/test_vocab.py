from __future__ import annotations

import pytest

from ankimark.vocab import (
    Bucket,
    CardDecodeError,
    VocabularyEntry,
    VocabularySnapshot,
    decode_card,
    fetch_vocabulary,
    strip_markup,
)


def test_interval_threshold_splits_buckets(card) -> None:
    assert decode_card(card(1, "猫", 22)).bucket is Bucket.KNOWN
    assert decode_card(card(2, "犬", 21)).bucket is Bucket.UNKNOWN
    assert decode_card(card(3, "鳥", -600)).bucket is Bucket.UNKNOWN


def test_decode_card_strips_markup_and_reads_reading(card) -> None:
    entry = decode_card(card(1, "<b>猫</b>&nbsp;", 30, reading="<span>ねこ</span>"))
    assert entry == VocabularyEntry(surface="猫", reading="ねこ", bucket=Bucket.KNOWN)


def test_decode_card_without_reading_field(card) -> None:
    assert decode_card(card(1, "cat", 5)).reading is None
    assert decode_card(card(1, "猫", 5, reading="ねこ"), reading_field=None).reading is None


@pytest.mark.parametrize(
    "record",
    [
        {"cardId": 1},
        {"cardId": 1, "fields": {"Front": {"value": "猫"}}, "interval": 3},
        {"cardId": 1, "fields": {"Word": {"value": "<br>"}}, "interval": 3},
        {"cardId": 1, "fields": {"Word": {"value": "猫"}}, "interval": "soon"},
    ],
)
def test_decode_card_rejects_malformed_records(record) -> None:
    with pytest.raises(CardDecodeError):
        decode_card(record)


def test_strip_markup_passes_plain_text_through() -> None:
    assert strip_markup("  猫 ") == "猫"
    assert strip_markup("a <i>b</i> c") == "a b c"


def test_snapshot_buckets_are_disjoint_last_write_wins() -> None:
    snapshot = VocabularySnapshot(
        [
            VocabularyEntry("猫", "ねこ", Bucket.KNOWN),
            VocabularyEntry("犬", None, Bucket.UNKNOWN),
            VocabularyEntry("猫", "ねこ", Bucket.UNKNOWN),
        ]
    )
    assert [entry.surface for entry in snapshot.known] == []
    assert [entry.surface for entry in snapshot.unknown] == ["猫", "犬"]


def test_snapshot_find_uses_reading_alias_only_when_asked() -> None:
    snapshot = VocabularySnapshot([VocabularyEntry("猫", "ねこ", Bucket.KNOWN)])
    assert snapshot.find("ねこ", Bucket.KNOWN) is not None
    assert snapshot.find("ねこ", Bucket.KNOWN, use_readings=False) is None
    assert snapshot.find("猫", Bucket.UNKNOWN) is None


def test_fetch_vocabulary_builds_snapshot(fake_client, card) -> None:
    client = fake_client(
        [card(1, "猫", 30, reading="ねこ"), card(2, "犬", 3, reading="いぬ"), card(3, "鳥", 50)]
    )
    fetch = fetch_vocabulary(client, "JP", {"猫", "犬"}, generation=4)
    assert fetch.errors == []
    assert sorted(fetch.card_ids) == [1, 2]
    assert fetch.snapshot is not None
    assert fetch.snapshot.generation == 4
    assert [entry.surface for entry in fetch.snapshot.known] == ["猫"]
    assert [entry.surface for entry in fetch.snapshot.unknown] == ["犬"]
    assert client.info_calls == [fetch.card_ids]
    assert all(query.startswith('deck:"JP" ') for query in client.queries)


def test_fetch_vocabulary_batches_by_five(fake_client, card) -> None:
    client = fake_client([card(1, "w3", 30)])
    words = {f"w{idx}" for idx in range(11)}
    fetch = fetch_vocabulary(client, "EN", words)
    assert len(client.queries) == 3
    assert fetch.card_ids == [1]


def test_fetch_vocabulary_unions_duplicate_card_ids(fake_client, card) -> None:
    client = fake_client([card(1, "猫", 30, reading="ねこ")])
    fetch = fetch_vocabulary(client, "JP", {"猫", "ねこ"}, batch_size=1)
    assert len(client.queries) == 2
    assert fetch.card_ids == [1]


def test_failed_batch_contributes_nothing(fake_client, card) -> None:
    client = fake_client([card(1, "猫", 30), card(2, "犬", 30)])
    client.fail_queries_containing = ('"犬"',)
    fetch = fetch_vocabulary(client, "JP", {"猫", "犬"}, batch_size=1)
    assert len(fetch.errors) == 1
    assert fetch.snapshot is not None
    assert [entry.surface for entry in fetch.snapshot.known] == ["猫"]


def test_every_search_failing_leaves_no_snapshot(fake_client, card) -> None:
    client = fake_client([card(1, "猫", 30)])
    client.unreachable = True
    fetch = fetch_vocabulary(client, "JP", {"猫"})
    assert fetch.snapshot is None
    assert fetch.errors


def test_detail_failure_leaves_no_snapshot(fake_client, card) -> None:
    client = fake_client([card(1, "猫", 30)])
    client.fail_info = True
    fetch = fetch_vocabulary(client, "JP", {"猫"})
    assert fetch.snapshot is None
    assert fetch.card_ids == [1]
    assert fetch.errors == ["cardsInfo error: unexpected"]


def test_no_matches_yields_empty_snapshot(fake_client) -> None:
    client = fake_client([])
    fetch = fetch_vocabulary(client, "JP", {"猫"})
    assert fetch.snapshot is not None
    assert len(fetch.snapshot) == 0
    assert client.info_calls == []


def test_malformed_record_is_skipped(fake_client, card) -> None:
    broken = {"cardId": 2, "fields": {"Word": {"value": "犬"}}, "interval": None}
    client = fake_client([card(1, "猫", 30), broken])
    fetch = fetch_vocabulary(client, "JP", {"猫", "犬"})
    assert fetch.snapshot is not None
    assert [entry.surface for entry in fetch.snapshot.entries()] == ["猫"]
    assert len(fetch.errors) == 1


def test_concurrent_searches_match_sequential(fake_client, card) -> None:
    cards = [card(idx, f"w{idx}", 30 if idx % 2 else 1) for idx in range(12)]
    words = {f"w{idx}" for idx in range(12)}
    sequential = fetch_vocabulary(fake_client(cards), "EN", words)
    concurrent = fetch_vocabulary(fake_client(cards), "EN", words, workers=4)
    assert sequential.snapshot is not None and concurrent.snapshot is not None
    assert {e.surface for e in sequential.snapshot.known} == {e.surface for e in concurrent.snapshot.known}
    assert {e.surface for e in sequential.snapshot.unknown} == {e.surface for e in concurrent.snapshot.unknown}
