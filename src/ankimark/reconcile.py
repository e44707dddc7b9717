from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Callable

from .classify import WordClass, classify_token
from .document import MarkerDescriptor, PageDocument, Piece
from .logging_utils import debug_log
from .script import contains_cjk, detect_script
from .segment import cascade_spans, simple_words
from .settings import EngineConfig
from .vocab import VocabularySnapshot

__all__ = [
    "MarkerDescriptor",
    "ReconcileResult",
    "Reconciler",
]

_WHITESPACE_SPLIT_RE = re.compile(r"(\s+)")


@dataclass
class ReconcileResult:
    segments_replaced: int = 0
    segments_skipped: int = 0
    markers_created: int = 0
    markers_reused: int = 0


class Reconciler:
    """
    Re-applies word classes to a live document as inline markers.

    Calls inside the debounce window are dropped, not queued. Markers are
    reused by their exact text: the classes seen in the document (and on
    the previous pass) win over a fresh classification, wherever the
    token now sits. Text already inside a marker is never annotated again.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or EngineConfig()
        self._clock = clock
        self._last_render: float | None = None
        self._previous: dict[str, MarkerDescriptor] = {}

    @property
    def last_render(self) -> float | None:
        return self._last_render

    def reset(self) -> None:
        """Forget the markers of the previous pass; the debounce window still holds."""
        self._previous = {}

    def css_class_for(self, word_class: WordClass) -> str | None:
        if word_class is WordClass.KNOWN:
            return self.config.known_class
        if word_class is WordClass.UNKNOWN:
            return self.config.unknown_class
        if self.config.mark_new:
            return self.config.new_class
        return None

    def reconcile(
        self,
        document: PageDocument,
        snapshot: VocabularySnapshot,
        *,
        now: float | None = None,
    ) -> ReconcileResult | None:
        """Annotate ``document``; returns None when debounced."""
        current = self._clock() if now is None else now
        if (
            self._last_render is not None
            and current - self._last_render < self.config.debounce_seconds
        ):
            debug_log("reconcile skipped inside debounce window")
            return None
        self._last_render = current

        classes = self.config.marker_classes()
        index = dict(self._previous)
        for marker in document.markers(classes):
            index[marker.text] = marker

        result = ReconcileResult()
        for segment in document.text_segments():
            if segment.parent is None or PageDocument.is_marker(segment.parent, classes):
                result.segments_skipped += 1
                continue
            text = str(segment)
            if not text.strip():
                continue
            pieces = self.render_pieces(text, snapshot, index, result)
            if not any(isinstance(piece, MarkerDescriptor) for piece in pieces):
                continue
            if document.replace_segment(segment, pieces):
                result.segments_replaced += 1

        self._previous = index
        debug_log(
            f"reconciled {result.segments_replaced} segments "
            f"({result.markers_created} new markers, {result.markers_reused} reused)"
        )
        return result

    def render_pieces(
        self,
        text: str,
        snapshot: VocabularySnapshot,
        index: dict[str, MarkerDescriptor] | None = None,
        result: ReconcileResult | None = None,
    ) -> list[Piece]:
        """Lay out ``text`` in document order as plain strings and markers."""
        if index is None:
            index = {}
        if result is None:
            result = ReconcileResult()
        pieces: list[Piece] = []
        if contains_cjk(text):
            tag = detect_script(text, han_as_chinese=self.config.han_as_chinese)
            spans = sorted(cascade_spans(text, tag), key=lambda span: span.start)
            pos = 0
            for span in spans:
                if span.start > pos:
                    pieces.append(text[pos : span.start])
                pieces.append(self._piece(span.text, span.text, snapshot, index, result))
                pos = span.end
            if pos < len(text):
                pieces.append(text[pos:])
            return pieces

        for part in _WHITESPACE_SPLIT_RE.split(text):
            if not part:
                continue
            if part.isspace():
                pieces.append(part)
                continue
            key = "".join(simple_words(part))
            if not key and part not in index:
                pieces.append(part)
                continue
            pieces.append(self._piece(part, key, snapshot, index, result))
        return pieces

    def _piece(
        self,
        display: str,
        key: str,
        snapshot: VocabularySnapshot,
        index: dict[str, MarkerDescriptor],
        result: ReconcileResult,
    ) -> Piece:
        existing = index.get(display)
        if existing is not None:
            result.markers_reused += 1
            return existing
        word_class = classify_token(key, snapshot, use_readings=self.config.use_readings)
        css_class = self.css_class_for(word_class)
        if css_class is None:
            return display
        marker = MarkerDescriptor(text=display, css_class=css_class)
        index[display] = marker
        result.markers_created += 1
        return marker
