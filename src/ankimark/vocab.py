from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Mapping

from bs4 import BeautifulSoup

from .anki import AnkiConnectError, AnkiConnectUnavailableError
from .logging_utils import debug_log
from .query import DEFAULT_BATCH_SIZE, build_query_batches

if TYPE_CHECKING:
    from .anki import AnkiConnectClient

__all__ = [
    "Bucket",
    "CardDecodeError",
    "DEFAULT_KNOWN_THRESHOLD",
    "VocabularyEntry",
    "VocabularyFetch",
    "VocabularySnapshot",
    "decode_card",
    "fetch_vocabulary",
    "strip_markup",
]

DEFAULT_KNOWN_THRESHOLD = 21


class Bucket(str, Enum):
    KNOWN = "known"
    UNKNOWN = "unknown"


class CardDecodeError(ValueError):
    """Raised when a card record lacks the fields needed for classification."""


@dataclass(frozen=True, slots=True)
class VocabularyEntry:
    surface: str
    reading: str | None
    bucket: Bucket


class VocabularySnapshot:
    """
    Known/unknown vocabulary of one deck, keyed by surface form.

    Buckets are disjoint: adding a surface form that already exists
    replaces the earlier entry (last write wins) while keeping its
    original position in iteration order.
    """

    def __init__(self, entries: Iterable[VocabularyEntry] = (), *, generation: int = 0) -> None:
        self.generation = generation
        self._entries: dict[str, VocabularyEntry] = {}
        for entry in entries:
            self._entries[entry.surface] = entry
        self._indexes: dict[tuple[Bucket, bool], dict[str, VocabularyEntry]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, surface: object) -> bool:
        return surface in self._entries

    def get(self, surface: str) -> VocabularyEntry | None:
        return self._entries.get(surface)

    def entries(self, bucket: Bucket | None = None) -> list[VocabularyEntry]:
        if bucket is None:
            return list(self._entries.values())
        return [entry for entry in self._entries.values() if entry.bucket is bucket]

    @property
    def known(self) -> list[VocabularyEntry]:
        return self.entries(Bucket.KNOWN)

    @property
    def unknown(self) -> list[VocabularyEntry]:
        return self.entries(Bucket.UNKNOWN)

    def find(self, token: str, bucket: Bucket, *, use_readings: bool = True) -> VocabularyEntry | None:
        """
        Return the first entry of ``bucket`` whose surface (or reading, when
        ``use_readings``) equals ``token``.
        """
        key = (bucket, use_readings)
        index = self._indexes.get(key)
        if index is None:
            index = {}
            for entry in self.entries(bucket):
                index.setdefault(entry.surface, entry)
                if use_readings and entry.reading:
                    index.setdefault(entry.reading, entry)
            self._indexes[key] = index
        return index.get(token)


@dataclass
class VocabularyFetch:
    """Outcome of one vocabulary fetch; ``snapshot`` is None when nothing usable arrived."""

    snapshot: VocabularySnapshot | None
    queries: list[str] = field(default_factory=list)
    card_ids: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def strip_markup(value: str) -> str:
    if "<" not in value and "&" not in value:
        return value.strip()
    return BeautifulSoup(value, "html.parser").get_text().strip()


def _field_value(fields: Mapping[str, object], name: str) -> str | None:
    entry = fields.get(name)
    if entry is None:
        return None
    if isinstance(entry, Mapping):
        entry = entry.get("value")
    if not isinstance(entry, str):
        return None
    return entry


def decode_card(
    card: Mapping[str, object],
    *,
    word_field: str = "Word",
    reading_field: str | None = "Reading",
    known_threshold: int = DEFAULT_KNOWN_THRESHOLD,
) -> VocabularyEntry:
    fields = card.get("fields")
    if not isinstance(fields, Mapping):
        raise CardDecodeError(f"card {card.get('cardId')} has no fields")
    raw_word = _field_value(fields, word_field)
    if raw_word is None:
        raise CardDecodeError(f"card {card.get('cardId')} has no {word_field} field")
    surface = strip_markup(raw_word)
    if not surface:
        raise CardDecodeError(f"card {card.get('cardId')} has an empty {word_field} field")
    reading: str | None = None
    if reading_field:
        raw_reading = _field_value(fields, reading_field)
        if raw_reading is not None:
            reading = strip_markup(raw_reading) or None
    interval = card.get("interval")
    if isinstance(interval, bool) or not isinstance(interval, (int, float)):
        raise CardDecodeError(f"card {card.get('cardId')} has no numeric interval")
    bucket = Bucket.KNOWN if interval > known_threshold else Bucket.UNKNOWN
    return VocabularyEntry(surface=surface, reading=reading, bucket=bucket)


def _search(client: "AnkiConnectClient", query: str) -> tuple[list[int], str | None]:
    try:
        return client.find_cards(query), None
    except (AnkiConnectError, AnkiConnectUnavailableError) as exc:
        debug_log(f"findCards failed for {query!r}: {exc}")
        return [], str(exc)


def fetch_vocabulary(
    client: "AnkiConnectClient",
    deck_name: str,
    words: Iterable[str],
    *,
    word_field: str = "Word",
    reading_field: str | None = "Reading",
    known_threshold: int = DEFAULT_KNOWN_THRESHOLD,
    batch_size: int = DEFAULT_BATCH_SIZE,
    workers: int = 1,
    generation: int = 0,
) -> VocabularyFetch:
    """
    Search ``deck_name`` for ``words`` and build a fresh snapshot.

    Failed searches contribute nothing. When every search fails, or the
    card detail request fails, the returned snapshot is None so callers
    keep their previous one.
    """
    queries = build_query_batches(
        deck_name,
        sorted(words),
        word_field=word_field,
        reading_field=reading_field,
        batch_size=batch_size,
    )
    fetch = VocabularyFetch(snapshot=None, queries=queries)
    if not queries:
        fetch.snapshot = VocabularySnapshot(generation=generation)
        return fetch

    if workers > 1 and len(queries) > 1:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ankimark-search") as executor:
            results = list(executor.map(lambda query: _search(client, query), queries))
    else:
        results = [_search(client, query) for query in queries]

    seen: set[int] = set()
    succeeded = 0
    for card_ids, error in results:
        if error is not None:
            fetch.errors.append(error)
            continue
        succeeded += 1
        for card_id in card_ids:
            if card_id not in seen:
                seen.add(card_id)
                fetch.card_ids.append(card_id)

    if succeeded == 0:
        return fetch
    if not fetch.card_ids:
        fetch.snapshot = VocabularySnapshot(generation=generation)
        return fetch

    try:
        cards = client.cards_info(fetch.card_ids)
    except (AnkiConnectError, AnkiConnectUnavailableError) as exc:
        debug_log(f"cardsInfo failed for {len(fetch.card_ids)} cards: {exc}")
        fetch.errors.append(str(exc))
        return fetch

    entries: list[VocabularyEntry] = []
    for card in cards:
        try:
            entries.append(
                decode_card(
                    card,
                    word_field=word_field,
                    reading_field=reading_field,
                    known_threshold=known_threshold,
                )
            )
        except CardDecodeError as exc:
            debug_log(str(exc))
            fetch.errors.append(str(exc))
    fetch.snapshot = VocabularySnapshot(entries, generation=generation)
    debug_log(
        f"snapshot for {deck_name!r}: {len(fetch.snapshot.known)} known, "
        f"{len(fetch.snapshot.unknown)} unknown from {len(queries)} queries"
    )
    return fetch
