from __future__ import annotations

from typing import Iterable

from .script import contains_cjk

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "build_query_batches",
    "build_word_clause",
    "deck_clause",
    "escape_search",
    "unescape_search",
]

DEFAULT_BATCH_SIZE = 5

# Backslash must come first so later substitutions are not escaped twice.
_SEARCH_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    (":", "\\:"),
    ("(", "\\("),
    (")", "\\)"),
)


def escape_search(text: str | None) -> str:
    """Escape a literal for interpolation into an Anki search expression."""
    if not text:
        return ""
    escaped = text
    for raw, replacement in _SEARCH_ESCAPES:
        escaped = escaped.replace(raw, replacement)
    return escaped.strip()


def unescape_search(text: str) -> str:
    """Reverse :func:`escape_search` (whitespace trimming is not undone)."""
    result: list[str] = []
    idx = 0
    while idx < len(text):
        ch = text[idx]
        if ch == "\\" and idx + 1 < len(text) and text[idx + 1] in '\\":()':
            result.append(text[idx + 1])
            idx += 2
            continue
        result.append(ch)
        idx += 1
    return "".join(result)


def deck_clause(deck_name: str) -> str:
    # Colons stay literal here: "::" separates subdecks in deck names.
    quoted = deck_name.replace("\\", "\\\\").replace('"', '\\"')
    return f'deck:"{quoted}"'


def build_word_clause(
    escaped_word: str,
    *,
    word_field: str = "Word",
    reading_field: str | None = "Reading",
) -> str:
    """
    Build the search clause for one already-escaped word.

    CJK words are matched as exact phrases, everything else as a prefix.
    With ``reading_field`` set the word is OR'ed against both fields,
    otherwise only the primary field is searched.
    """
    if contains_cjk(escaped_word):
        term = f'"{escaped_word}"'
    else:
        term = f"{escaped_word}*"
    if reading_field:
        return f"({word_field}:{term} OR {reading_field}:{term})"
    return f"{word_field}:{term}"


def build_query_batches(
    deck_name: str,
    words: Iterable[str],
    *,
    word_field: str = "Word",
    reading_field: str | None = "Reading",
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[str]:
    """
    Turn candidate words into deck-scoped search expressions.

    Each word is escaped once and dropped if nothing remains; the clauses
    are grouped ``batch_size`` at a time, OR'ed inside a batch and AND'ed
    with the deck clause. Returns one query string per batch.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    clauses: list[str] = []
    for word in words:
        escaped = escape_search(word)
        if not escaped:
            continue
        clauses.append(
            build_word_clause(
                escaped,
                word_field=word_field,
                reading_field=reading_field,
            )
        )
    scope = deck_clause(deck_name)
    queries: list[str] = []
    for start in range(0, len(clauses), batch_size):
        batch = clauses[start : start + batch_size]
        queries.append(f"{scope} ({' OR '.join(batch)})")
    return queries
