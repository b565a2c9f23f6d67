#!/usr/bin/env python3
"""lxml document tree used for path selection.

The tree is built from the hardened parser's events rather than by a second
parse, so selection sees exactly what the builders see: expanded internal
entities, ``etree.Entity`` nodes where a reference could not be resolved and
processing instructions inside the root element. Prefixed names are bound to
their namespaces so that paths can use the document's own prefixes.

``replay_events`` replays a selected element as parse events for the record
builder, restoring the prefixed names and ``xmlns`` attributes.
"""

from collections.abc import Iterable, Iterator

from lxml import etree

from .errors import MalformedDocument
from .events import (
    DocumentEnd,
    ElementEnd,
    ElementStart,
    ParseEvent,
    ProcessingInstruction,
    SkippedEntity,
    Text,
)

XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

Scope = dict[str | None, str]


def _declarations(attributes: dict[str, str]) -> Scope:
    """Namespace declarations among the attributes of a start tag."""
    declared: Scope = {}
    for name, value in attributes.items():
        if name == "xmlns":
            declared[None] = value
        elif name.startswith("xmlns:"):
            declared[name[6:]] = value
    return declared


def _clark_name(name: str, scope: Scope, is_attribute: bool = False) -> str:
    """Turn a prefixed name into lxml's ``{uri}local`` form."""
    prefix, _, local = name.rpartition(":")
    if not prefix:
        # Unprefixed attributes are in no namespace
        uri = None if is_attribute else scope.get(None)
        return f"{{{uri}}}{name}" if uri else name
    if prefix == "xml":
        return f"{{{XML_NAMESPACE}}}{local}"
    if prefix not in scope:
        raise MalformedDocument(f"Unbound namespace prefix in <{name}>")
    return f"{{{scope[prefix]}}}{local}"


def _append_text(parent: etree._Element, content: str):
    if len(parent):
        last = parent[-1]
        last.tail = (last.tail or "") + content
    else:
        parent.text = (parent.text or "") + content


def build_tree(events: Iterable[ParseEvent]) -> etree._ElementTree:
    """Build an lxml tree from parse events.

    Processing instructions outside the root element are dropped; they never
    take part in selection.

    Raises:
        MalformedDocument: If the events are unbalanced, hold more than one
            root element or use an unbound prefix
    """
    root = None
    stack: list[tuple[etree._Element, str, Scope]] = []

    for event in events:
        if isinstance(event, ElementStart):
            parent_scope = stack[-1][2] if stack else {}
            declared = _declarations(event.attributes)
            scope = {**parent_scope, **declared}
            if scope.get(None) == "":
                del scope[None]
            nsmap = {prefix: uri for prefix, uri in declared.items() if uri}

            tag = _clark_name(event.name, scope)
            if stack:
                element = etree.SubElement(stack[-1][0], tag, nsmap=nsmap)
            elif root is None:
                element = root = etree.Element(tag, nsmap=nsmap)
            else:
                raise MalformedDocument(f"Second root element <{event.name}>")

            for name, value in event.attributes.items():
                if name != "xmlns" and not name.startswith("xmlns:"):
                    element.set(_clark_name(name, scope, is_attribute=True), value)
            stack.append((element, event.name, scope))
        elif isinstance(event, ElementEnd):
            if not stack or stack[-1][1] != event.name:
                raise MalformedDocument(f"Unexpected end tag </{event.name}>")
            stack.pop()
        elif isinstance(event, Text):
            if stack:
                _append_text(stack[-1][0], event.content)
        elif isinstance(event, SkippedEntity):
            if stack:
                stack[-1][0].append(etree.Entity(event.name))
        elif isinstance(event, ProcessingInstruction):
            if stack:
                stack[-1][0].append(etree.ProcessingInstruction(event.target, event.data or None))
        elif isinstance(event, DocumentEnd):
            break

    if stack:
        raise MalformedDocument(f"Unclosed element <{stack[-1][1]}>")
    if root is None:
        raise MalformedDocument("Document has no root element")
    return etree.ElementTree(root)


def prefixed_name(element: etree._Element, name: str | None = None) -> str:
    """Name of an element (or of one of its attributes) as written in the document."""
    qname = etree.QName(name if name is not None else element)
    if qname.namespace is None:
        return qname.localname
    if qname.namespace == XML_NAMESPACE:
        return f"xml:{qname.localname}"
    prefixes = [prefix for prefix, uri in element.nsmap.items() if uri == qname.namespace]
    if name is None and None in prefixes:
        return qname.localname
    named = [prefix for prefix in prefixes if prefix is not None]
    return f"{named[0]}:{qname.localname}" if named else qname.localname


def _attributes(element: etree._Element) -> dict[str, str]:
    parent = element.getparent()
    inherited = parent.nsmap if parent is not None else {}
    attributes = {}
    for prefix, uri in element.nsmap.items():
        if inherited.get(prefix) != uri:
            attributes["xmlns" if prefix is None else f"xmlns:{prefix}"] = uri
    for name, value in element.attrib.items():
        attributes[prefixed_name(element, name)] = value
    return attributes


def replay_events(element: etree._Element) -> Iterator[ParseEvent]:
    """Replay an element and its subtree as parse events (without DocumentEnd)."""
    name = prefixed_name(element)
    yield ElementStart(name, _attributes(element), is_self_closing=not len(element) and not element.text)
    if element.text:
        yield Text(element.text)
    for child in element:
        if isinstance(child, etree._Entity):
            yield SkippedEntity(child.name)
        elif isinstance(child, etree._ProcessingInstruction):
            yield ProcessingInstruction(child.target, child.text or "")
        elif isinstance(child.tag, str):
            yield from replay_events(child)
        if child.tail:
            yield Text(child.tail)
    yield ElementEnd(name)
