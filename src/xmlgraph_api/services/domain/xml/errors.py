#!/usr/bin/env python3
"""Error taxonomy for XML loading and graph import.

Only ``LoadFailed`` and its subclasses are subject to ``failOnError=false``;
security, source and path errors always reach the caller.
"""


class XmlProcessingError(Exception):
    """Base class for every error raised while loading or importing XML."""


class SourceUnavailable(XmlProcessingError):
    """The locator could not be opened (missing file, HTTP error, bad archive entry, ...)."""

    def __init__(self, locator: str, reason: str):
        self.locator = locator
        self.reason = reason
        super().__init__(f"Cannot open {locator}: {reason}")


class SecurityViolation(XmlProcessingError):
    """The document declares entities or a DTD that the current trust level forbids."""


class InvalidPathExpression(XmlProcessingError):
    """The path expression is outside the supported grammar."""

    def __init__(self, expression: str, reason: str, position: int | None = None):
        self.expression = expression
        self.reason = reason
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid path expression {expression!r}{where}: {reason}")


class LoadFailed(XmlProcessingError):
    """Reading or building the document failed."""


class MalformedDocument(LoadFailed):
    """The input is not well-formed XML."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.line = line
        self.column = column
        location = f" (line {line}, column {column})" if line is not None else ""
        super().__init__(f"{message}{location}")


class ReservedKeyCollision(MalformedDocument):
    """An attribute name (or a grouped child key) equals a structural key of the output record or node."""

    def __init__(self, element: str, attribute: str, kind: str = "Attribute"):
        self.element = element
        self.attribute = attribute
        super().__init__(f"{kind} {attribute!r} on <{element}> collides with a reserved key")
