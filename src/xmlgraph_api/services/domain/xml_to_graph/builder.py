#!/usr/bin/env python3
"""XML to graph builder.

Walks parse events and emits the mutations that store a document as a graph:

* one ``XmlDocument`` node, then ``XmlTag``, ``XmlProcessingInstruction`` and
  content leaves (``XmlWord`` or ``XmlCharacters``) in document order;
* ``FIRST_CHILD_OF`` / ``LAST_CHILD_OF`` from the first/last structural child
  to its container and ``NEXT_SIBLING`` between consecutive children;
* ``NEXT`` from every node to its depth-first successor;
* a content chain (``NEXT_WORD`` or the characters relationship type) that
  links all content leaves of the document in reading order, whatever their
  nesting depth.

Each node receives at most one outgoing relationship of each type because
every relationship is created from a cursor that is moved on right after.
"""

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from ..xml.errors import MalformedDocument, ReservedKeyCollision
from ..xml.events import DocumentEnd, ElementEnd, ElementStart, ParseEvent, ProcessingInstruction, Text
from .mutations import (
    CHARACTERS_LABEL,
    DEFAULT_CHARACTERS_REL_TYPE,
    DOCUMENT_LABEL,
    FIRST_CHILD_OF,
    LAST_CHILD_OF,
    NEXT,
    NEXT_SIBLING,
    NEXT_WORD,
    PROCESSING_INSTRUCTION_LABEL,
    TAG_LABEL,
    WORD_LABEL,
    CreateNode,
    CreateRelationship,
    GraphMutation,
)

logger = logging.getLogger(__name__)

TAG_NAME_PROPERTY = "_name"


@dataclass
class _Container:
    key: int
    name: str | None = None
    last_child: int | None = None


@dataclass
class _BuildState:
    """Cursors threaded through one build."""

    next_key: int = 0
    stack: list[_Container] = field(default_factory=list)
    last: int | None = None
    last_leaf: int | None = None

    def new_key(self) -> int:
        key = self.next_key
        self.next_key += 1
        return key


class GraphBuilder:
    """Turns parse events into graph mutations.

    Args:
        connect_characters: One XmlCharacters node per text run, chained with
            ``characters_rel_type``; otherwise one XmlWord node per token
        create_next_word_relationships: Chain XmlWord nodes with NEXT_WORD
        filter_leading_whitespace: Strip leading whitespace from each text run
        characters_rel_type: Relationship type of the characters chain
        delimiter: Regular expression splitting text into words (default: whitespace)
    """

    def __init__(
        self,
        connect_characters: bool = False,
        create_next_word_relationships: bool = False,
        filter_leading_whitespace: bool = False,
        characters_rel_type: str = DEFAULT_CHARACTERS_REL_TYPE,
        delimiter: str | None = None,
    ):
        self.connect_characters = connect_characters
        self.create_next_word_relationships = create_next_word_relationships
        self.filter_leading_whitespace = filter_leading_whitespace
        self.characters_rel_type = characters_rel_type
        self.delimiter = re.compile(delimiter) if delimiter else re.compile(r"\s+")

    @classmethod
    def from_options(cls, options) -> "GraphBuilder":
        """Create a builder from an ImportOptions model."""
        return cls(
            connect_characters=options.connect_characters,
            create_next_word_relationships=options.create_next_word_relationships,
            filter_leading_whitespace=options.filter_leading_whitespace,
            characters_rel_type=options.characters_rel_type,
            delimiter=options.delimiter,
        )

    @property
    def leaf_label(self) -> str:
        return CHARACTERS_LABEL if self.connect_characters else WORD_LABEL

    @property
    def chain_type(self) -> str | None:
        if self.connect_characters:
            return self.characters_rel_type
        return NEXT_WORD if self.create_next_word_relationships else None

    def tokens(self, text: str) -> list[str]:
        """Split a text run into the texts of its content leaves."""
        if self.filter_leading_whitespace:
            text = text.lstrip()
        if self.connect_characters:
            return [text] if text else []
        return [token for token in self.delimiter.split(text) if token]

    def _attach(self, state: _BuildState, labels: tuple[str, ...], properties: dict[str, Any]) -> Iterator[GraphMutation]:
        """Create a node and link it into document order and its container."""
        key = state.new_key()
        yield CreateNode(key, labels, properties)

        if state.last is not None:
            yield CreateRelationship(state.last, NEXT, key)
        state.last = key

        container = state.stack[-1]
        if container.last_child is None:
            yield CreateRelationship(key, FIRST_CHILD_OF, container.key)
        else:
            yield CreateRelationship(container.last_child, NEXT_SIBLING, key)
        container.last_child = key
        return key

    def _close(self, container: _Container) -> Iterator[GraphMutation]:
        if container.last_child is not None:
            yield CreateRelationship(container.last_child, LAST_CHILD_OF, container.key)

    def build(
        self, events: Iterable[ParseEvent], url: str | None = None, encoding: str | None = None
    ) -> Iterator[GraphMutation]:
        """Generate the mutations for one document.

        Args:
            events: Parse events of the document
            url: Locator stored on the XmlDocument node
            encoding: Encoding stored on the XmlDocument node

        Yields:
            CreateNode and CreateRelationship mutations; a relationship always
            follows the creation of both its nodes
        """
        state = _BuildState()
        chain_type = self.chain_type

        document_properties = {}
        if url is not None:
            document_properties["url"] = url
        if encoding is not None:
            document_properties["_xmlEncoding"] = encoding

        document_key = state.new_key()
        yield CreateNode(document_key, (DOCUMENT_LABEL,), document_properties)
        state.stack.append(_Container(document_key))
        state.last = document_key

        for event in events:
            if isinstance(event, ElementStart):
                if TAG_NAME_PROPERTY in event.attributes:
                    raise ReservedKeyCollision(event.name, TAG_NAME_PROPERTY)
                properties = {TAG_NAME_PROPERTY: event.name, **event.attributes}
                key = yield from self._attach(state, (TAG_LABEL,), properties)
                state.stack.append(_Container(key, event.name))

            elif isinstance(event, ElementEnd):
                if len(state.stack) < 2 or state.stack[-1].name != event.name:
                    raise MalformedDocument(f"Unexpected end tag </{event.name}>")
                yield from self._close(state.stack.pop())

            elif isinstance(event, ProcessingInstruction):
                properties = {"_piTarget": event.target, "_piData": event.data}
                yield from self._attach(state, (PROCESSING_INSTRUCTION_LABEL,), properties)

            elif isinstance(event, Text):
                for token in self.tokens(event.content):
                    key = yield from self._attach(state, (self.leaf_label,), {"text": token})
                    if chain_type and state.last_leaf is not None:
                        yield CreateRelationship(state.last_leaf, chain_type, key)
                    state.last_leaf = key

            elif isinstance(event, DocumentEnd):
                break

        if len(state.stack) != 1:
            raise MalformedDocument(f"Unclosed element <{state.stack[-1].name}>")
        yield from self._close(state.stack.pop())
        logger.debug(f"Graph build created {state.next_key} node(s)")
