from __future__ import annotations

from enum import Enum

__all__ = [
    "ScriptTag",
    "contains_cjk",
    "detect_script",
    "is_han",
    "is_hangul",
    "is_kana",
]


class ScriptTag(str, Enum):
    """Writing system a text fragment predominantly uses."""

    JAPANESE = "ja"
    KOREAN = "ko"
    CHINESE = "zh"
    OTHER = "other"


def is_kana(ch: str) -> bool:
    if not ch:
        return False
    code = ord(ch)
    return 0x3040 <= code <= 0x309F or 0x30A0 <= code <= 0x30FF


def is_han(ch: str) -> bool:
    if not ch:
        return False
    code = ord(ch)
    return 0x4E00 <= code <= 0x9FFF


def is_hangul(ch: str) -> bool:
    if not ch:
        return False
    code = ord(ch)
    return 0xAC00 <= code <= 0xD7AF


def contains_cjk(text: str) -> bool:
    """Return True when any Han, kana or Hangul syllable is present."""
    return any(is_han(ch) or is_kana(ch) or is_hangul(ch) for ch in text)


def detect_script(text: str, *, han_as_chinese: bool = False) -> ScriptTag:
    """
    Classify ``text`` by the code points it contains.

    Kana or Han selects Japanese first, so Han-only text is reported as
    Japanese unless ``han_as_chinese`` is set, in which case Japanese
    requires kana and Han-only text falls through to Chinese. Empty input
    is ``ScriptTag.OTHER``.
    """
    if han_as_chinese:
        has_japanese = any(is_kana(ch) for ch in text)
    else:
        has_japanese = any(is_kana(ch) or is_han(ch) for ch in text)
    has_korean = any(is_hangul(ch) for ch in text)
    has_chinese = not has_japanese and any(is_han(ch) for ch in text)
    if has_japanese:
        return ScriptTag.JAPANESE
    if has_korean:
        return ScriptTag.KOREAN
    if has_chinese:
        return ScriptTag.CHINESE
    return ScriptTag.OTHER
