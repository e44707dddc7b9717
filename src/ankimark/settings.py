from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from .anki import ANKI_CONNECT_VERSION, resolve_anki_url

__all__ = [
    "EngineConfig",
    "SETTINGS_FILENAME",
    "SettingsStore",
    "StoredSettings",
    "load_config",
]

SETTINGS_FILENAME = ".ankimark-settings.json"
SETTINGS_STATE_VERSION = 1


@dataclass(slots=True)
class EngineConfig:
    anki_url: str | None = None
    anki_version: int = ANKI_CONNECT_VERSION
    request_timeout: float = 10.0
    word_field: str = "Word"
    reading_field: str = "Reading"
    known_threshold: int = 21
    batch_size: int = 5
    query_workers: int = 1
    debounce_seconds: float = 1.0
    known_class: str = "anki-highlight-known"
    unknown_class: str = "anki-highlight-unknown"
    new_class: str = "anki-highlight-new"
    use_readings: bool = True
    mark_new: bool = False
    report_percentage: bool = True
    han_as_chinese: bool = False

    def resolved_anki_url(self) -> str:
        return resolve_anki_url(self.anki_url)

    def marker_classes(self) -> tuple[str, ...]:
        return (self.known_class, self.unknown_class, self.new_class)

    def query_reading_field(self) -> str | None:
        return self.reading_field if self.use_readings else None


def _coerce(name: str, expected: Any, value: Any) -> Any:
    if expected in ("bool", bool):
        if isinstance(value, bool):
            return value
    elif expected in ("int", int):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif expected in ("float", float):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif isinstance(value, str):
        return value
    raise ValueError(f"Invalid value for {name}: {value!r}")


def load_config(path: Path | None = None, **overrides: Any) -> EngineConfig:
    """
    Build an :class:`EngineConfig` from an optional TOML file.

    Settings live in an ``[ankimark]`` table; unknown keys are ignored.
    Keyword ``overrides`` that are not None win over the file.
    """
    config = EngineConfig()
    known = {f.name: f.type for f in fields(EngineConfig)}
    values: dict[str, Any] = {}
    if path is not None:
        try:
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ValueError(f"Failed to read config file: {path}") from exc
        table = data.get("ankimark", {})
        if not isinstance(table, dict):
            raise ValueError(f"{path.name} must contain an [ankimark] table.")
        for key, value in table.items():
            name = key.replace("-", "_")
            if name not in known:
                continue
            expected = known[name]
            if name == "anki_url":
                expected = "str"
            values[name] = _coerce(name, expected, value)
    for key, value in overrides.items():
        if value is not None and key in known:
            values[key] = value
    return replace(config, **values)


@dataclass(slots=True)
class StoredSettings:
    is_enabled: bool = False
    selected_deck: str = ""


class SettingsStore:
    """Small JSON key-value file remembering the toggle and selected deck."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> StoredSettings:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return StoredSettings()
        if not isinstance(raw, dict):
            return StoredSettings()
        enabled = raw.get("is_enabled")
        deck = raw.get("selected_deck")
        return StoredSettings(
            is_enabled=enabled if isinstance(enabled, bool) else False,
            selected_deck=deck if isinstance(deck, str) else "",
        )

    def save(self, settings: StoredSettings) -> None:
        payload = {
            "version": SETTINGS_STATE_VERSION,
            "is_enabled": settings.is_enabled,
            "selected_deck": settings.selected_deck,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    def update(self, *, is_enabled: bool | None = None, selected_deck: str | None = None) -> StoredSettings:
        current = self.load()
        if is_enabled is not None:
            current.is_enabled = is_enabled
        if selected_deck is not None:
            current.selected_deck = selected_deck
        self.save(current)
        return current
