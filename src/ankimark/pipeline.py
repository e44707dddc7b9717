from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable
from urllib.parse import urlsplit, urlunsplit

from .classify import PageStats, compute_stats
from .document import PageDocument
from .logging_utils import debug_log
from .reconcile import ReconcileResult, Reconciler
from .segment import page_words, tokenize
from .settings import EngineConfig
from .vocab import VocabularyFetch, VocabularySnapshot, fetch_vocabulary

if TYPE_CHECKING:
    from .anki import AnkiConnectClient

__all__ = [
    "AnalysisResult",
    "PageCache",
    "PipelineState",
    "VocabularyEngine",
    "normalize_url",
]


def normalize_url(url: str) -> str:
    """Trim ``url`` and lowercase its scheme and host; path, query and fragment are kept."""
    stripped = (url or "").strip()
    if not stripped:
        return ""
    parts = urlsplit(stripped)
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, parts.fragment)
    )


@dataclass
class PageCache:
    url: str
    stats: PageStats
    fragments: list[list[str]]
    words: set[str]


@dataclass
class PipelineState:
    """Everything one engine owns between calls."""

    enabled: bool = False
    deck: str = ""
    snapshot: VocabularySnapshot = field(default_factory=VocabularySnapshot)
    cache: PageCache | None = None
    current_url: str = ""
    generation: int = 0


@dataclass
class AnalysisResult:
    url: str
    stats: PageStats
    from_cache: bool = False
    fetch: VocabularyFetch | None = None
    render: ReconcileResult | None = None


class VocabularyEngine:
    """
    Runs tokenize → fetch → classify → reconcile for one page at a time.

    Every navigation, toggle or forced refresh bumps the state generation;
    an analysis whose generation is stale when its store calls return is
    discarded without touching the snapshot, the cache or the document.
    """

    def __init__(
        self,
        client: "AnkiConnectClient",
        config: EngineConfig | None = None,
        *,
        state: PipelineState | None = None,
        reconciler: Reconciler | None = None,
        on_stats: Callable[[PageStats], None] | None = None,
    ) -> None:
        self.client = client
        self.config = config or EngineConfig()
        self.state = state or PipelineState()
        self.reconciler = reconciler or Reconciler(self.config)
        self.on_stats = on_stats
        self._lock = threading.Lock()

    def stats_payload(self, stats: PageStats) -> dict[str, int]:
        return stats.as_payload(include_percentage=self.config.report_percentage)

    def _emit(self, stats: PageStats) -> None:
        if self.on_stats is not None:
            self.on_stats(stats)

    def _invalidate_locked(self) -> None:
        self.state.generation += 1
        self.state.cache = None

    def current_stats(self) -> PageStats | None:
        with self._lock:
            cache = self.state.cache
            return cache.stats if cache is not None else None

    def set_enabled(
        self,
        enabled: bool,
        deck: str | None = None,
        *,
        url: str | None = None,
        document: PageDocument | None = None,
    ) -> AnalysisResult | None:
        """
        Apply a toggle from the control surface.

        Enabling forces a fresh analysis when a page is supplied; disabling
        strips every marker from ``document`` and drops the page cache.
        """
        with self._lock:
            self.state.enabled = enabled
            if deck is not None:
                self.state.deck = deck
            self._invalidate_locked()
        self.reconciler.reset()
        if not enabled:
            if document is not None:
                removed = document.clear_markers(self.config.marker_classes())
                debug_log(f"removed {removed} markers")
            return None
        if document is None or url is None:
            return None
        return self.analyze(url, document, force=True)

    def navigate(self, url: str, document: PageDocument | None = None) -> AnalysisResult | None:
        """Handle an in-place address change reported by the host."""
        key = normalize_url(url)
        with self._lock:
            changed = key != self.state.current_url
            if changed:
                self.state.current_url = key
                self._invalidate_locked()
            enabled = self.state.enabled
        if changed:
            self.reconciler.reset()
        if not enabled or document is None:
            return None
        # An unchanged address is served from the page cache.
        return self.analyze(url, document)

    def analyze(
        self,
        url: str,
        document: PageDocument,
        *,
        force: bool = False,
    ) -> AnalysisResult | None:
        """
        Classify ``document`` against the selected deck.

        Returns None when the engine is disabled, has no deck, or the run
        was superseded while waiting on the store.
        """
        key = normalize_url(url)
        with self._lock:
            if not self.state.enabled or not self.state.deck:
                return None
            if key != self.state.current_url:
                self.state.current_url = key
                self._invalidate_locked()
            elif force:
                self._invalidate_locked()
            cache = self.state.cache
            if cache is not None and cache.url == key:
                cached_stats = cache.stats
            else:
                cached_stats = None
            generation = self.state.generation
            deck = self.state.deck

        if cached_stats is not None:
            self._emit(cached_stats)
            return AnalysisResult(url=key, stats=cached_stats, from_cache=True)

        fragments = [
            tokenize(text, han_as_chinese=self.config.han_as_chinese)
            for text in document.texts()
        ]
        words = page_words(fragments)
        fetch: VocabularyFetch | None = None
        if words:
            fetch = fetch_vocabulary(
                self.client,
                deck,
                words,
                word_field=self.config.word_field,
                reading_field=self.config.query_reading_field(),
                known_threshold=self.config.known_threshold,
                batch_size=self.config.batch_size,
                workers=self.config.query_workers,
                generation=generation,
            )
            for error in fetch.errors:
                debug_log(f"vocabulary fetch: {error}")

        with self._lock:
            if self.state.generation != generation or self.state.current_url != key:
                debug_log(f"discarding stale analysis for {key}")
                return None
            if fetch is not None and fetch.snapshot is not None:
                self.state.snapshot = fetch.snapshot
            snapshot = self.state.snapshot
            stats = compute_stats(words, snapshot, use_readings=self.config.use_readings)
            self.state.cache = PageCache(url=key, stats=stats, fragments=fragments, words=words)

        self._emit(stats)
        render = self.reconciler.reconcile(document, snapshot)
        return AnalysisResult(url=key, stats=stats, fetch=fetch, render=render)
