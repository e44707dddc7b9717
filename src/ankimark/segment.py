from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from .script import ScriptTag, contains_cjk, detect_script

__all__ = [
    "TokenSpan",
    "cascade_spans",
    "cascade_tokens",
    "page_words",
    "pattern_table",
    "simple_words",
    "tokenize",
]

_KANJI = "一-龯々"
_DIGITS = "0-9０-９"
_HANGUL = "\uac00-\ud7af"

_JAPANESE_PATTERNS = (
    # kanji stem + okurigana
    re.compile(rf"[{_KANJI}]+[ぁ-ん]+"),
    re.compile(rf"[{_KANJI}]+(?:する|できる|たい|な|に|の)"),
    re.compile(rf"[{_KANJI}]{{2,}}"),
    re.compile(r"[ぁ-ん]{2,}"),
    re.compile(rf"[{_KANJI}]"),
    re.compile(r"[ぁ-ん]+"),
    re.compile(r"[ァ-ヺー]+"),
)

_KOREAN_PATTERNS = (
    re.compile(rf"[{_DIGITS}]+년[{_DIGITS}]+월[{_DIGITS}]+일"),
    re.compile(rf"[{_DIGITS}]+시[{_DIGITS}]+분"),
    re.compile(rf"[{_DIGITS}]+[개명원초대건장통분초년월일주회차례]"),
    re.compile(
        rf"[{_HANGUL}]+(?:하다|되다|스럽다|답다|적이다|같다|있다|없다|보다|싶다|만하다)"
    ),
    re.compile(
        rf"[{_HANGUL}]+(?:[은는이가을를에서도와과의로부터까지처럼보다만이나마도든지라도며]+)"
    ),
    re.compile(
        rf"[{_HANGUL}]+(?:공부|준비|시작|포기|노력|걱정|생각|시도|계획|희망|기대|상상|판단|결정|선택|고민|결심)하다"
    ),
    re.compile(rf"[{_HANGUL}]+"),
    re.compile(rf"[{_DIGITS}]+"),
)

_CHINESE_PATTERNS = (
    re.compile(rf"[{_DIGITS}]+年[{_DIGITS}]+月[{_DIGITS}]+[日號号]"),
    re.compile(rf"[{_DIGITS}]+[时時][{_DIGITS}]+分"),
    re.compile(rf"[{_DIGITS}]+[个個件條条份張张包双對对]"),
    re.compile(r"[一二三四五六七八九十百千万億]{1,2}[个個件條条份張张包双對对]"),
    re.compile(
        rf"[{_KANJI}]{{2}}(?:时间|地方|东西|事情|问题|工作|学习|生活|历史|文化|社会|国家|世界|科技|经济|政治|教育|研究|发展|管理)"
    ),
    re.compile(rf"[{_KANJI}]{{2}}"),
    re.compile(rf"[{_KANJI}]"),
    re.compile(rf"[{_DIGITS}]+"),
)

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class TokenSpan:
    """A token together with the offsets it was claimed from."""

    text: str
    start: int
    end: int


def pattern_table(tag: ScriptTag) -> tuple[re.Pattern[str], ...] | None:
    """Return the priority-ordered patterns for ``tag`` (``None`` for Other)."""
    if tag is ScriptTag.JAPANESE:
        return _JAPANESE_PATTERNS
    if tag is ScriptTag.KOREAN:
        return _KOREAN_PATTERNS
    if tag is ScriptTag.CHINESE:
        return _CHINESE_PATTERNS
    if tag is ScriptTag.OTHER:
        return None
    raise ValueError(f"Unsupported script tag: {tag!r}")


def cascade_spans(text: str, tag: ScriptTag) -> list[TokenSpan]:
    """
    Run the pattern cascade for ``tag`` over ``text``.

    Patterns are applied from most to least specific against a masked
    working copy; every claimed span is blanked out so lower-priority
    patterns never see the same characters again. Spans are returned in
    the order they were claimed (pattern priority first, then position).
    A tag without a pattern table yields the whole trimmed fragment.
    """
    patterns = pattern_table(tag)
    if patterns is None:
        stripped = text.strip()
        if not stripped:
            return []
        start = len(text) - len(text.lstrip())
        return [TokenSpan(stripped, start, start + len(stripped))]

    working = list(text)
    spans: list[TokenSpan] = []
    for pattern in patterns:
        masked = "".join(working)
        for match in pattern.finditer(masked):
            raw = match.group(0)
            cleaned = raw.strip()
            if cleaned:
                start = match.start() + (len(raw) - len(raw.lstrip()))
                spans.append(TokenSpan(cleaned, start, start + len(cleaned)))
            for idx in range(match.start(), match.end()):
                working[idx] = " "
    return spans


def cascade_tokens(text: str, tag: ScriptTag) -> list[str]:
    return [span.text for span in cascade_spans(text, tag)]


def simple_words(text: str) -> list[str]:
    """Lowercase, drop punctuation and split on whitespace runs."""
    cleaned = _NON_WORD_RE.sub("", text.lower())
    return [word for word in _WHITESPACE_RE.split(cleaned) if word]


def tokenize(text: str, *, han_as_chinese: bool = False) -> list[str]:
    """Tokenize one text fragment, choosing the cascade only for CJK input."""
    if contains_cjk(text):
        tag = detect_script(text, han_as_chinese=han_as_chinese)
        return cascade_tokens(text, tag)
    return simple_words(text)


def page_words(fragments: Iterable[Iterable[str]]) -> set[str]:
    """Collect the distinct non-blank tokens across tokenized fragments."""
    words: set[str] = set()
    for tokens in fragments:
        for token in tokens:
            if token.strip():
                words.add(token)
    return words
