from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from lxml import etree

from navsync.models import BookmarkEntry
from navsync.services.common import is_valid_url

logger = logging.getLogger(__name__)

EVENT_OPEN = "open"
EVENT_TEXT = "text"
EVENT_CLOSE = "close"


@dataclass(frozen=True)
class TagEvent:
    kind: str
    name: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""


def iter_tag_events(markup: str) -> Iterator[TagEvent]:
    """Tokenize markup into open/text/close events in document order.

    libxml2's recovering HTML parser does the tolerant part: tag and attribute
    names come out lower-cased, unclosed elements are closed implicitly and
    stray close tags are dropped.
    """
    if not markup or not markup.strip():
        return

    parser = etree.HTMLPullParser(events=("start", "end", "comment"), recover=True)
    parser.feed(markup)
    try:
        parser.close()
    except etree.XMLSyntaxError as exc:
        logger.debug("Bookmark markup ended early: %s", exc)

    for action, element in parser.read_events():
        if action == "comment":
            if element.tail:
                yield TagEvent(EVENT_TEXT, text=element.tail)
            continue
        if not isinstance(element.tag, str):
            continue

        name = element.tag.lower()
        if action == "start":
            attrs = {str(k).lower(): v or "" for k, v in element.attrib.items()}
            yield TagEvent(EVENT_OPEN, name=name, attrs=attrs)
            if element.text:
                yield TagEvent(EVENT_TEXT, text=element.text)
        else:
            yield TagEvent(EVENT_CLOSE, name=name)
            if element.tail:
                yield TagEvent(EVENT_TEXT, text=element.tail)


def accept_href(href: str) -> bool:
    if not href or href == "#":
        return False
    if href.lower().startswith("javascript:"):
        return False
    return is_valid_url(href)


def _make_entry(href: str, parts: list[str]) -> BookmarkEntry | None:
    if not accept_href(href):
        logger.debug("Skipping bookmark with unusable href %r", href)
        return None
    name = "".join(parts).strip()
    return BookmarkEntry(url=href, name=name or href)


def _iter_entries(markup: str) -> Iterator[BookmarkEntry]:
    href: str | None = None
    parts: list[str] = []

    for event in iter_tag_events(markup):
        if event.kind == EVENT_OPEN and event.name == "a":
            # nested anchor: the open one ends here
            if href is not None:
                entry = _make_entry(href, parts)
                if entry:
                    yield entry
            href = event.attrs.get("href", "").strip()
            parts = []
        elif event.kind == EVENT_TEXT and href is not None:
            parts.append(event.text)
        elif event.kind == EVENT_CLOSE and event.name == "a" and href is not None:
            entry = _make_entry(href, parts)
            href = None
            if entry:
                yield entry

    if href is not None:
        entry = _make_entry(href, parts)
        if entry:
            yield entry


class ParsedBookmarks:
    """Lazy view over the anchors of a bookmark export.

    Every iteration re-tokenizes the markup, so the sequence can be walked
    more than once.
    """

    def __init__(self, markup: str):
        self.markup = markup

    def __iter__(self) -> Iterator[BookmarkEntry]:
        return _iter_entries(self.markup)


def parse_bookmark_html(markup: str) -> ParsedBookmarks:
    return ParsedBookmarks(markup)
