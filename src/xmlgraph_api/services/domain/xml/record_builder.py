#!/usr/bin/env python3
"""Nested-record builder.

Turns parse events into plain dictionaries suitable for traversal by a query
layer::

    <book id="bk101"><author>Gambardella, Matthew</author></book>

    {"_type": "book", "id": "bk101",
     "_children": [{"_type": "author", "_text": "Gambardella, Matthew"}]}

Children keys come in three flavours:

* default: all children in one ``_children`` list;
* simple mode (``simple_mode=True``): the key is derived from the owning
  element's tag (``<table><tr/></table>`` gives ``{"_type": "table", "_table": [...]}``);
* child-tag grouping (``simple_mode="child"``): children are grouped by their
  own tag, ``<parent><child/><child/></parent>`` gives
  ``{"_type": "parent", "_child": [{...}, {...}]}``.

In the first two flavours a children list may mix child records, text
fragments (mixed content) and ``None`` for entity references whose
declaration was never read. Grouped records keep their text fragments joined
under ``_text`` and have no place for absence markers.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .errors import MalformedDocument, ReservedKeyCollision
from .events import ElementEnd, ElementStart, ParseEvent, SkippedEntity, Text

logger = logging.getLogger(__name__)

TYPE_KEY = "_type"
TEXT_KEY = "_text"
CHILDREN_KEY = "_children"
GROUP_BY_CHILD_TAG = "child"

Record = dict[str, Any]


def children_key(tag: str, simple_mode: bool = False) -> str:
    """Key holding the children of element ``tag``."""
    return f"_{tag}" if simple_mode else CHILDREN_KEY


def normalize_text(text: str) -> str:
    """Trim every line, drop blank lines and join the rest with single spaces."""
    return " ".join(line.strip() for line in text.split("\n") if line.strip())


@dataclass
class _Frame:
    name: str
    attributes: dict[str, str]
    entries: list[Any] = field(default_factory=list)
    pending_text: list[str] = field(default_factory=list)
    has_children: bool = False

    def flush_text(self):
        if self.pending_text:
            fragment = normalize_text("".join(self.pending_text))
            self.pending_text = []
            if fragment:
                self.entries.append(fragment)

    def add_child(self, child: Record | None):
        # Text seen so far becomes a fragment positioned before the child
        self.flush_text()
        self.entries.append(child)
        self.has_children = True


class RecordBuilder:
    """Stack-based builder consuming one event at a time."""

    def __init__(self, simple_mode: bool | str = False):
        if simple_mode not in (False, True, GROUP_BY_CHILD_TAG):
            raise ValueError(f"simple_mode must be a boolean or {GROUP_BY_CHILD_TAG!r}, got {simple_mode!r}")
        self.simple_mode = simple_mode is True
        self.group_by_child = simple_mode == GROUP_BY_CHILD_TAG
        self._stack: list[_Frame] = []
        self.result: Record | None = None

    def _content(self, frame: _Frame) -> Record:
        """Text and children keys of a finished element."""
        if not frame.has_children:
            text = normalize_text("".join(frame.pending_text))
            return {TEXT_KEY: text} if text else {}

        frame.flush_text()
        if not self.group_by_child:
            return {children_key(frame.name, self.simple_mode): frame.entries}

        content: Record = {}
        fragments = [entry for entry in frame.entries if isinstance(entry, str)]
        if fragments:
            content[TEXT_KEY] = " ".join(fragments)
        for entry in frame.entries:
            if isinstance(entry, dict):
                key = f"_{entry[TYPE_KEY]}"
                if key in (TYPE_KEY, TEXT_KEY):
                    raise ReservedKeyCollision(frame.name, key, kind="Child group")
                content.setdefault(key, []).append(entry)
        return content

    def _finish(self, frame: _Frame) -> Record:
        content = self._content(frame)
        if self.group_by_child:
            reserved = {TYPE_KEY, TEXT_KEY, *content}
        else:
            reserved = {TYPE_KEY, TEXT_KEY, children_key(frame.name, self.simple_mode)}

        record: Record = {TYPE_KEY: frame.name}
        for attribute, value in frame.attributes.items():
            if attribute in reserved:
                raise ReservedKeyCollision(frame.name, attribute)
            record[attribute] = value
        record.update(content)
        return record

    def feed(self, event: ParseEvent) -> Record | None:
        """Consume one event; returns the top-level record once it is complete."""
        if isinstance(event, ElementStart):
            self._stack.append(_Frame(event.name, dict(event.attributes)))
        elif isinstance(event, Text):
            if self._stack:
                self._stack[-1].pending_text.append(event.content)
        elif isinstance(event, SkippedEntity):
            if self._stack:
                self._stack[-1].add_child(None)
        elif isinstance(event, ElementEnd):
            if not self._stack or self._stack[-1].name != event.name:
                raise MalformedDocument(f"Unexpected end tag </{event.name}>")
            record = self._finish(self._stack.pop())
            if self._stack:
                self._stack[-1].add_child(record)
            else:
                self.result = record
                return record
        return None


def build_record(events: Iterable[ParseEvent], simple_mode: bool | str = False) -> Record | None:
    """Build the record of the first top-level element in ``events``.

    The whole event sequence is consumed so that parse errors after the
    root element still surface.

    Args:
        events: Parse events of a document or of a replayed subtree
        simple_mode: True to name children keys after the owning element,
            "child" to group children under their own tag

    Returns:
        The record, or None when the events contain no element
    """
    builder = RecordBuilder(simple_mode)
    for event in events:
        builder.feed(event)
    if builder.result is None:
        logger.debug("No element found in event sequence")
    return builder.result
