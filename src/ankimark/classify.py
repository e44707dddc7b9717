from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .vocab import Bucket, VocabularyEntry, VocabularySnapshot

__all__ = [
    "PageStats",
    "WordClass",
    "classify_token",
    "compute_stats",
    "match_entry",
]


class WordClass(str, Enum):
    KNOWN = "known"
    UNKNOWN = "unknown"
    NEW = "new"


@dataclass(frozen=True, slots=True)
class PageStats:
    known: int = 0
    unknown: int = 0
    new: int = 0
    deck_percentage: int = 0

    def as_payload(self, *, include_percentage: bool = True) -> dict[str, int]:
        payload = {"known": self.known, "unknown": self.unknown, "new": self.new}
        if include_percentage:
            payload["deckPercentage"] = self.deck_percentage
        return payload


def match_entry(
    token: str,
    snapshot: VocabularySnapshot,
    *,
    use_readings: bool = True,
) -> VocabularyEntry | None:
    """Find the entry ``token`` maps to, searching Known before Unknown."""
    cleaned = token.strip()
    if not cleaned:
        return None
    for bucket in (Bucket.KNOWN, Bucket.UNKNOWN):
        entry = snapshot.find(cleaned, bucket, use_readings=use_readings)
        if entry is not None:
            return entry
    return None


def classify_token(
    token: str,
    snapshot: VocabularySnapshot,
    *,
    use_readings: bool = True,
) -> WordClass:
    entry = match_entry(token, snapshot, use_readings=use_readings)
    if entry is None:
        return WordClass.NEW
    if entry.bucket is Bucket.KNOWN:
        return WordClass.KNOWN
    return WordClass.UNKNOWN


def compute_stats(
    words: Iterable[str],
    snapshot: VocabularySnapshot,
    *,
    use_readings: bool = True,
) -> PageStats:
    """
    Count distinct page words per class.

    With ``use_readings`` a word may also match an entry's reading, and an
    entry reached by several words is counted once. Without it every
    distinct word counts on its own by exact surface match. The deck
    percentage is taken over the distinct words either way.
    """
    distinct = {word for word in words if word.strip()}
    known = unknown = new = 0
    counted: set[str] = set()
    for word in distinct:
        entry = match_entry(word, snapshot, use_readings=use_readings)
        if entry is None:
            new += 1
            continue
        if use_readings:
            if entry.surface in counted:
                continue
            counted.add(entry.surface)
        if entry.bucket is Bucket.KNOWN:
            known += 1
        else:
            unknown += 1

    total = len(distinct)
    # half-up rounding
    percentage = math.floor(100 * (known + unknown) / total + 0.5) if total else 0
    return PageStats(known=known, unknown=unknown, new=new, deck_percentage=percentage)
