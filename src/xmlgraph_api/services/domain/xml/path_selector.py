#!/usr/bin/env python3
"""XPath element selection over the lxml document tree.

Paths are XPath 1.0 expressions evaluated by lxml. A path has to select
elements: expressions yielding attributes, text, numbers or booleans are
rejected. Relative location paths are evaluated from the document node,
exactly like absolute ones, and ``""`` and ``"/"`` select the root element.
Namespaced elements are addressed with the prefixes the document itself
declares.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache

from lxml import etree

from .errors import InvalidPathExpression

logger = logging.getLogger(__name__)

ROOT_EXPRESSIONS = ("", "/")
NODE_TYPE_TESTS = ("node", "text", "comment", "processing-instruction")

_FUNCTION_CALL = re.compile(r"^([A-Za-z_][\w.-]*(?::[A-Za-z_][\w.-]*)?)\s*\(")


@dataclass(frozen=True)
class PathExpression:
    source: str
    xpath: etree.XPath | None = None  # None selects the root element

    @property
    def expression(self) -> str:
        return self.xpath.path if self.xpath is not None else "/"


def _anchor(source: str) -> str:
    """Prefix a relative location path with "/"; other expressions are left alone."""
    if source.startswith(("/", "(", "$", "-", "\"", "'")) or source[0].isdigit():
        return source
    call = _FUNCTION_CALL.match(source)
    if call and call.group(1) not in NODE_TYPE_TESTS:
        return source
    return f"/{source}"


@lru_cache(maxsize=256)
def compile_path(expression: str | None) -> PathExpression:
    """Compile a path expression.

    Raises:
        InvalidPathExpression: If the expression is not valid XPath
    """
    source = (expression or "").strip()
    if source in ROOT_EXPRESSIONS:
        return PathExpression(source)

    try:
        return PathExpression(source, etree.XPath(_anchor(source)))
    except etree.XPathError as e:
        raise InvalidPathExpression(source, str(e)) from e


def _namespaces(tree: etree._ElementTree) -> dict[str, str]:
    """Prefixes declared anywhere in the document, first declaration wins."""
    namespaces: dict[str, str] = {}
    for element in tree.iter(tag=etree.Element):
        for prefix, uri in element.nsmap.items():
            if prefix is not None:
                namespaces.setdefault(prefix, uri)
    return namespaces


def _is_element(node) -> bool:
    return isinstance(node, etree._Element) and isinstance(node.tag, str)


def select(tree: etree._ElementTree, expression: str | PathExpression | None) -> list[etree._Element]:
    """Select the element subtrees matching a path expression.

    Args:
        tree: Document tree built by build_tree
        expression: Path expression or a compiled PathExpression

    Returns:
        Matching elements in document order; empty when nothing matches

    Raises:
        InvalidPathExpression: If the expression cannot be evaluated or does
            not select elements
    """
    path = expression if isinstance(expression, PathExpression) else compile_path(expression)
    root = tree.getroot()
    if path.xpath is None:
        return [root]

    namespaces = _namespaces(tree)
    evaluate = etree.XPath(path.expression, namespaces=namespaces) if namespaces else path.xpath
    try:
        result = evaluate(root)
    except etree.XPathError as e:
        raise InvalidPathExpression(path.source, str(e)) from e

    if not isinstance(result, list) or not all(_is_element(node) for node in result):
        raise InvalidPathExpression(path.source, "expression does not select elements")

    logger.debug(f"Path {path.source!r} matched {len(result)} element(s)")
    return result
