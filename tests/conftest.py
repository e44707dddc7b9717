from __future__ import annotations

import re
from typing import Callable, Iterable

import pytest

from ankimark.anki import AnkiConnectError, AnkiConnectUnavailableError


def make_card(card_id: int, word: str, interval: int, reading: str | None = None) -> dict[str, object]:
    fields: dict[str, object] = {"Word": {"value": word, "order": 0}}
    if reading is not None:
        fields["Reading"] = {"value": reading, "order": 1}
    return {"cardId": card_id, "fields": fields, "interval": interval}


class FakeAnkiClient:
    """In-memory stand-in for AnkiConnect keyed by card id."""

    def __init__(self, cards: Iterable[dict[str, object]] = (), decks: Iterable[str] = ("Default",)) -> None:
        self.cards = {int(card["cardId"]): card for card in cards}
        self.decks = list(decks)
        self.queries: list[str] = []
        self.info_calls: list[list[int]] = []
        self.fail_queries_containing: tuple[str, ...] = ()
        self.fail_info = False
        self.unreachable = False
        self.before_search: Callable[[str], None] | None = None
        self.closed = False

    def _check(self) -> None:
        if self.unreachable:
            raise AnkiConnectUnavailableError("Failed to contact AnkiConnect")

    def deck_names(self) -> list[str]:
        self._check()
        return list(self.decks)

    def find_cards(self, query: str) -> list[int]:
        self._check()
        self.queries.append(query)
        if self.before_search is not None:
            self.before_search(query)
        if any(marker in query for marker in self.fail_queries_containing):
            raise AnkiConnectError("findCards error: collection is busy")
        matched: list[int] = []
        for card_id, card in self.cards.items():
            fields = card.get("fields", {})
            values = [
                re.sub(r"<[^>]+>", "", entry.get("value", ""))
                for entry in fields.values()
                if isinstance(entry, dict)
            ]
            if any(f'"{value}"' in query or f":{value}*" in query for value in values):
                matched.append(card_id)
        return matched

    def cards_info(self, card_ids: Iterable[int]) -> list[dict[str, object]]:
        self._check()
        ids = list(card_ids)
        self.info_calls.append(ids)
        if self.fail_info:
            raise AnkiConnectError("cardsInfo error: unexpected")
        return [self.cards[card_id] for card_id in ids if card_id in self.cards]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def card() -> Callable[..., dict[str, object]]:
    return make_card


@pytest.fixture
def fake_client() -> Callable[..., FakeAnkiClient]:
    return FakeAnkiClient
