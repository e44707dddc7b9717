from __future__ import annotations

import json
import os
from typing import Any, Iterable

import requests

from .logging_utils import debug_log

__all__ = [
    "ANKI_CONNECT_VERSION",
    "DEFAULT_ANKI_URL",
    "AnkiConnectClient",
    "AnkiConnectError",
    "AnkiConnectUnavailableError",
    "resolve_anki_url",
]

DEFAULT_ANKI_URL = "http://127.0.0.1:8765"
ANKI_CONNECT_VERSION = 6
_ANKI_URL_ENV = "ANKIMARK_ANKI_URL"


class AnkiConnectError(RuntimeError):
    """Raised when AnkiConnect answers with an error payload or bad response."""


class AnkiConnectUnavailableError(ConnectionError):
    """Raised when AnkiConnect cannot be reached."""


def resolve_anki_url(url: str | None = None) -> str:
    """Return the explicit URL, else ``$ANKIMARK_ANKI_URL``, else the default."""
    if url:
        return url.rstrip("/")
    env_url = os.environ.get(_ANKI_URL_ENV, "").strip()
    if env_url:
        return env_url.rstrip("/")
    return DEFAULT_ANKI_URL


class AnkiConnectClient:
    """
    Thin wrapper around the AnkiConnect JSON RPC endpoint.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        *,
        version: int = ANKI_CONNECT_VERSION,
    ) -> None:
        self.base_url = resolve_anki_url(base_url)
        self.timeout = timeout
        self.version = version
        self._session = requests.Session()

    def request(self, action: str, **params: Any) -> Any:
        payload = {"action": action, "version": self.version, "params": params}
        try:
            resp = self._session.post(self.base_url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise AnkiConnectUnavailableError(
                f"Failed to contact AnkiConnect at {self.base_url}"
            ) from exc

        if resp.status_code != 200:
            raise AnkiConnectError(
                f"{action} failed with status {resp.status_code}: {resp.text}"
            )

        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise AnkiConnectError(f"AnkiConnect returned invalid JSON for {action}") from exc

        if not isinstance(data, dict):
            raise AnkiConnectError(f"AnkiConnect returned an unexpected payload for {action}")
        error = data.get("error")
        if error:
            raise AnkiConnectError(f"{action} error: {error}")
        debug_log(f"{action} ok ({len(json.dumps(params, ensure_ascii=False))} byte params)")
        return data.get("result")

    def deck_names(self) -> list[str]:
        result = self.request("deckNames")
        if not isinstance(result, list):
            return []
        return [name for name in result if isinstance(name, str)]

    def find_cards(self, query: str) -> list[int]:
        result = self.request("findCards", query=query)
        if not isinstance(result, list):
            return []
        return [card_id for card_id in result if isinstance(card_id, int)]

    def cards_info(self, card_ids: Iterable[int]) -> list[dict[str, Any]]:
        result = self.request("cardsInfo", cards=list(card_ids))
        if not isinstance(result, list):
            raise AnkiConnectError("cardsInfo returned no card list")
        return [card for card in result if isinstance(card, dict)]

    def close(self) -> None:
        self._session.close()
