#!/usr/bin/env python3
"""Hardened streaming XML parser.

Wraps defusedxml's SAX expat reader and turns its callbacks into a flat
sequence of parse events. The reader is fed chunk by chunk, so events are
yielded while the input is still being read and errors surface at the chunk
that contains them.

Trust levels:

* default: internal entities are expanded (within expat's amplification
  limit), declarations of external entities are rejected, the external DTD
  subset is never fetched and references to entities it would have declared
  come through as ``SkippedEntity`` events.
* ``allow_dtd=True``: external entities and the external DTD subset are read
  through the caller's ``entity_opener``. A reference that cannot be read is
  treated as empty. Only for trusted input.
* ``forbid_dtd=True``: any document type declaration is rejected.
"""

import io
import logging
from collections.abc import Callable, Iterator
from typing import IO
from urllib.parse import urlsplit

from defusedxml.common import DefusedXmlException, EntitiesForbidden
from defusedxml.expatreader import DefusedExpatParser
from xml.sax import SAXParseException
from xml.sax.handler import (
    ContentHandler,
    EntityResolver,
    ErrorHandler,
    feature_external_ges,
    property_lexical_handler,
)
from xml.sax.xmlreader import InputSource

from .errors import MalformedDocument, SecurityViolation, SourceUnavailable
from .events import (
    DocumentEnd,
    ElementEnd,
    ElementStart,
    ParseEvent,
    ProcessingInstruction,
    SkippedEntity,
    Text,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 2**16 - 20

EntityOpener = Callable[[str], bytes]


class _HardenedReader(DefusedExpatParser):
    """DefusedExpatParser that knows its encoding and base URL before the first feed().

    With ``forbid_external_entities`` it rejects entity declarations that carry
    a system or public identifier while leaving internal entities alone.
    """

    def __init__(
        self,
        encoding: str | None = None,
        system_id: str | None = None,
        forbid_external_entities: bool = True,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.forbid_external_entities = forbid_external_entities
        self._source.setEncoding(encoding)
        self._source.setSystemId(system_id)

    def external_entity_decl(self, name, is_parameter_entity, value, base, sysid, pubid, notation_name):
        if sysid or pubid:
            raise EntitiesForbidden(name, value, base, sysid, pubid, notation_name)

    def reset(self):
        super().reset()
        if self.forbid_external_entities:
            self._parser.EntityDeclHandler = self.external_entity_decl


def resolve_system_id(base: str | None, system_id: str) -> str:
    """Resolve a relative system identifier against the locator of the referencing document.

    Works for plain paths, URLs, ``s3://`` URIs and ``archive!entry`` locators alike.
    """
    if not base or urlsplit(system_id).scheme or system_id.startswith("/"):
        return system_id
    # Keep everything up to the last "/" or, for a top-level archive entry, the "!"
    cut = max(base.rfind("/"), base.rfind("!"))
    return base[: cut + 1] + system_id if cut >= 0 else system_id


class _EntityFetcher(EntityResolver):
    """Reads external DTDs and entities through an opener instead of urllib."""

    def __init__(self, reader: _HardenedReader, opener: EntityOpener | None):
        self._reader = reader
        self._opener = opener

    def resolveEntity(self, publicId, systemId):
        location = resolve_system_id(self._reader.getSystemId(), systemId)
        data = b""
        if self._opener is None:
            logger.warning(f"No opener for external entity {location}; treating it as empty")
        else:
            try:
                data = self._opener(location)
            except SourceUnavailable as e:
                logger.warning(f"External entity {location} is unavailable; treating it as empty: {e}")

        source = InputSource(location)
        source.setPublicId(publicId)
        source.setByteStream(io.BytesIO(data))
        return source


class _EventCollector(ContentHandler):
    """SAX content + lexical handler buffering parse events between feeds.

    Adjacent character callbacks are merged into one Text event. An element
    start is held back until the next callback so that empty elements can be
    flagged as self-closing.
    """

    def __init__(self):
        super().__init__()
        self._events: list[ParseEvent] = []
        self._text: list[str] = []
        self._in_cdata = False
        self._pending_start: tuple[str, dict[str, str]] | None = None

    def drain(self) -> list[ParseEvent]:
        events, self._events = self._events, []
        return events

    def _flush_start(self):
        if self._pending_start is not None:
            name, attributes = self._pending_start
            self._pending_start = None
            self._events.append(ElementStart(name, attributes, is_self_closing=False))

    def _flush_text(self):
        if self._text:
            content = "".join(self._text)
            self._text = []
            if content:
                self._events.append(Text(content, is_cdata=self._in_cdata))

    def _flush(self):
        self._flush_start()
        self._flush_text()

    # ContentHandler

    def startElement(self, name, attrs):
        self._flush()
        self._pending_start = (name, {key: attrs[key] for key in attrs.getNames()})

    def endElement(self, name):
        if self._pending_start is not None and self._pending_start[0] == name:
            _, attributes = self._pending_start
            self._pending_start = None
            self._events.append(ElementStart(name, attributes, is_self_closing=True))
        else:
            self._flush()
        self._events.append(ElementEnd(name))

    def characters(self, content):
        self._flush_start()
        self._text.append(content)

    def processingInstruction(self, target, data):
        self._flush()
        self._events.append(ProcessingInstruction(target, data or ""))

    def skippedEntity(self, name):
        # Parameter entities are only skipped inside the DTD
        if name.startswith("%"):
            return
        self._flush()
        logger.debug(f"Entity &{name}; was not declared in any DTD that was read")
        self._events.append(SkippedEntity(name))

    def endDocument(self):
        self._flush()
        self._events.append(DocumentEnd())

    # LexicalHandler

    def comment(self, content):
        pass

    def startCDATA(self):
        self._flush()
        self._in_cdata = True

    def endCDATA(self):
        self._flush_text()
        self._in_cdata = False

    def startDTD(self, name, public_id, system_id):
        logger.debug(f"Document type {name} (public={public_id}, system={system_id})")

    def endDTD(self):
        pass


def iter_events(
    stream: IO[bytes],
    encoding: str | None = None,
    allow_dtd: bool = False,
    forbid_dtd: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    system_id: str | None = None,
    entity_opener: EntityOpener | None = None,
) -> Iterator[ParseEvent]:
    """Parse a byte stream into parse events.

    Args:
        stream: Binary file-like object positioned at the start of the document
        encoding: Encoding that overrides the XML declaration (e.g. an HTTP charset)
        allow_dtd: Accept external entity declarations and read external entities/DTDs
        forbid_dtd: Reject any DOCTYPE declaration
        chunk_size: Bytes read from the stream per feed
        system_id: Locator of the document, base for relative external references
        entity_opener: Returns the bytes of an external DTD or entity (trusted mode only)

    Yields:
        Parse events in document order, ending with DocumentEnd

    Raises:
        MalformedDocument: If the document is not well-formed
        SecurityViolation: If the document uses a forbidden DTD/entity feature
            or exceeds the entity amplification limit
    """
    collector = _EventCollector()
    reader = _HardenedReader(
        encoding=encoding,
        system_id=system_id,
        forbid_external_entities=not allow_dtd,
        forbid_dtd=forbid_dtd,
        forbid_entities=False,
        forbid_external=False,
    )
    reader.setContentHandler(collector)
    reader.setErrorHandler(ErrorHandler())
    reader.setEntityResolver(_EntityFetcher(reader, entity_opener))
    reader.setProperty(property_lexical_handler, collector)
    # External entities and the external DTD subset are only read for trusted input
    reader.setFeature(feature_external_ges, allow_dtd)

    try:
        # Start the parser even for an empty stream so close() reports "no element found"
        reader.feed(b"")
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            reader.feed(chunk)
            yield from collector.drain()
        reader.close()
    except SAXParseException as e:
        message = e.getMessage()
        if "amplification" in message:
            raise SecurityViolation(f"Entity expansion limit exceeded: {message}") from e
        raise MalformedDocument(message, e.getLineNumber(), e.getColumnNumber()) from e
    except DefusedXmlException as e:
        raise SecurityViolation(f"Forbidden DTD or entity usage: {e}") from e

    yield from collector.drain()


def parse_events(data: bytes | str, **kwargs) -> list[ParseEvent]:
    """Parse an in-memory document into a list of events.

    A str is encoded as UTF-8 and parsed as such, whatever its XML declaration says.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
        kwargs["encoding"] = "UTF-8"
    return list(iter_events(io.BytesIO(data), **kwargs))
