#!/usr/bin/env python3
"""Graph mutations emitted by the XML graph builder.

Node keys are builder-local integers (the document node is always 0); a sink
maps them to its own identities when the mutations are applied.
"""

from dataclasses import dataclass, field
from typing import Any, Union

# Node labels
DOCUMENT_LABEL = "XmlDocument"
PROCESSING_INSTRUCTION_LABEL = "XmlProcessingInstruction"
TAG_LABEL = "XmlTag"
WORD_LABEL = "XmlWord"
CHARACTERS_LABEL = "XmlCharacters"

# Relationship types
FIRST_CHILD_OF = "FIRST_CHILD_OF"
LAST_CHILD_OF = "LAST_CHILD_OF"
NEXT_SIBLING = "NEXT_SIBLING"
NEXT = "NEXT"
NEXT_WORD = "NEXT_WORD"
DEFAULT_CHARACTERS_REL_TYPE = "NE"


@dataclass(frozen=True)
class CreateNode:
    key: int
    labels: tuple[str, ...]
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CreateRelationship:
    start: int
    rel_type: str
    end: int


GraphMutation = Union[CreateNode, CreateRelationship]
