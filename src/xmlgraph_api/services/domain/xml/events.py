#!/usr/bin/env python3
"""Parse events shared by the tree, record and graph builders."""

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class ElementStart:
    name: str
    attributes: dict[str, str] = field(default_factory=dict)
    is_self_closing: bool = False


@dataclass(frozen=True)
class Text:
    content: str
    is_cdata: bool = False


@dataclass(frozen=True)
class ElementEnd:
    name: str


@dataclass(frozen=True)
class ProcessingInstruction:
    target: str
    data: str


@dataclass(frozen=True)
class SkippedEntity:
    """Reference to an entity whose declaration was never read (external DTD not loaded)."""

    name: str


@dataclass(frozen=True)
class DocumentEnd:
    pass


ParseEvent = Union[ElementStart, Text, ElementEnd, ProcessingInstruction, SkippedEntity, DocumentEnd]
