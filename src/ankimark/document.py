from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Iterable, Sequence

from bs4 import BeautifulSoup, FeatureNotFound, NavigableString, Tag, XMLParsedAsHTMLWarning

__all__ = [
    "MarkerDescriptor",
    "PageDocument",
    "SKIPPED_CONTAINERS",
]

# Containers whose text is never rendered as page content.
SKIPPED_CONTAINERS = {"script", "style", "noscript", "template"}

MARKER_TAG = "span"


@dataclass(frozen=True, slots=True)
class MarkerDescriptor:
    """What a rendered marker shows and how it is styled."""

    text: str
    css_class: str


Piece = str | MarkerDescriptor


def _soup_from_html(html: str) -> BeautifulSoup:
    for parser in ("lxml", "html.parser"):
        try:
            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
                return BeautifulSoup(html, parser)
        except FeatureNotFound:
            continue
    return BeautifulSoup(html, "html.parser")


def _tag_classes(tag: Tag) -> list[str]:
    classes = tag.get("class")
    if classes is None:
        return []
    if isinstance(classes, str):
        return classes.split()
    return list(classes)


class PageDocument:
    """
    HTML page exposed as a sequence of leaf text segments.

    Segments are the ``NavigableString`` leaves of the body (or of the
    whole document when there is no body) outside script/style/noscript
    containers. Each segment can be swapped for a run of plain strings
    and marker spans.
    """

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup

    @classmethod
    def from_html(cls, html: str) -> "PageDocument":
        return cls(_soup_from_html(html))

    def html(self) -> str:
        return str(self.soup)

    def _root(self) -> Tag:
        body = self.soup.body
        return body if body is not None else self.soup

    def text_segments(self) -> list[NavigableString]:
        segments: list[NavigableString] = []
        for node in self._root().find_all(string=True):
            # Comments, CDATA and doctypes subclass NavigableString.
            if type(node) is not NavigableString:
                continue
            if node.find_parent(sorted(SKIPPED_CONTAINERS)) is not None:
                continue
            segments.append(node)
        return segments

    def texts(self) -> list[str]:
        return [str(segment) for segment in self.text_segments()]

    @staticmethod
    def is_marker(tag: object, classes: Iterable[str]) -> bool:
        if not isinstance(tag, Tag) or tag.name != MARKER_TAG:
            return False
        wanted = set(classes)
        return any(name in wanted for name in _tag_classes(tag))

    def markers(self, classes: Iterable[str]) -> list[MarkerDescriptor]:
        """Describe every rendered marker carrying one of ``classes``."""
        wanted = set(classes)
        found: list[MarkerDescriptor] = []
        for tag in self._root().find_all(MARKER_TAG):
            names = _tag_classes(tag)
            if any(name in wanted for name in names):
                found.append(MarkerDescriptor(text=tag.get_text(), css_class=" ".join(names)))
        return found

    def _build_marker(self, marker: MarkerDescriptor) -> Tag:
        tag = self.soup.new_tag(MARKER_TAG)
        tag["class"] = marker.css_class.split()
        tag.string = marker.text
        return tag

    def replace_segment(self, segment: NavigableString, pieces: Sequence[Piece]) -> bool:
        """
        Swap ``segment`` for ``pieces``; a detached segment is left alone.

        Returns True when the replacement happened.
        """
        if segment.parent is None:
            return False
        nodes: list[NavigableString | Tag] = []
        for piece in pieces:
            if isinstance(piece, MarkerDescriptor):
                nodes.append(self._build_marker(piece))
            elif piece:
                nodes.append(NavigableString(piece))
        if not nodes:
            segment.extract()
            return True
        first = nodes[0]
        segment.replace_with(first)
        anchor = first
        for node in nodes[1:]:
            anchor.insert_after(node)
            anchor = node
        return True

    def clear_markers(self, classes: Iterable[str]) -> int:
        """Unwrap every marker back into plain text. Returns how many were removed."""
        wanted = set(classes)
        removed = 0
        for tag in list(self._root().find_all(MARKER_TAG)):
            if tag.parent is None:
                continue
            if any(name in wanted for name in _tag_classes(tag)):
                tag.replace_with(NavigableString(tag.get_text()))
                removed += 1
        if removed:
            self.soup.smooth()
        return removed
