#!/usr/bin/env python3
"""
XML loading service.

Connects the source reader, the hardened parser, the path selector and the
two builders:

    load_xml / parse_xml  -> nested records
    import_xml            -> graph mutations applied to a sink

``failOnError=false`` turns a malformed document into a single empty record
(or an empty import summary); security and path errors are never suppressed.
External DTDs and entities of trusted documents (``allowDtd``) are read through
the same source reader as the document, so the file-import settings apply to
them too.
"""

import io
import logging
from collections.abc import Iterable, Iterator
from typing import IO

from ..models.models import ImportOptions, LoadOptions, SourceOptions
from .domain.xml.errors import LoadFailed, SourceUnavailable
from .domain.xml.events import ParseEvent
from .domain.xml.parser import DEFAULT_CHUNK_SIZE, iter_events
from .domain.xml.path_selector import PathExpression, compile_path, select
from .domain.xml.record_builder import Record, build_record
from .domain.xml.tree import build_tree, replay_events
from .domain.xml_to_graph.builder import GraphBuilder
from .domain.xml_to_graph.sink import GraphSink, ImportSummary, apply_mutations
from .source_reader import SourceReader

logger = logging.getLogger(__name__)


def _events(
    stream: IO[bytes],
    options: SourceOptions,
    reader: SourceReader | None,
    encoding: str | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    system_id: str | None = None,
) -> Iterator[ParseEvent]:
    entity_opener = None
    if reader is not None and options.allow_dtd:

        def entity_opener(location: str) -> bytes:
            return reader.read(location, options.headers)

    return iter_events(
        stream,
        encoding=encoding,
        allow_dtd=options.allow_dtd,
        forbid_dtd=options.forbid_dtd,
        chunk_size=chunk_size,
        system_id=system_id,
        entity_opener=entity_opener,
    )


def _records(events: Iterable[ParseEvent], expression: PathExpression | None, simple_mode: bool | str) -> list[Record]:
    """Build the records of the whole document or of every selected element."""
    if expression is None:
        record = build_record(events, simple_mode)
        return [record] if record is not None else []

    tree = build_tree(events)
    return [build_record(replay_events(element), simple_mode) for element in select(tree, expression)]


def load_xml(
    locator: str,
    path: str | None = None,
    options: LoadOptions | None = None,
    reader: SourceReader | None = None,
) -> Iterator[Record]:
    """Load an XML document into nested records.

    The path is compiled before any I/O, so an invalid expression raises
    immediately from this call.

    Args:
        locator: Path, URL, S3 URI or ``archive!entry`` reference
        path: Optional path expression selecting the elements to return
        options: Load options (failOnError, simpleMode, DTD handling, headers)
        reader: Source reader; one configured from the environment when omitted

    Returns:
        Iterator over one record per selected element (the root element
        when no path is given), in document order

    Raises:
        InvalidPathExpression: If the path is outside the supported grammar
        SecurityViolation: If the document uses a forbidden DTD/entity feature
        SourceUnavailable: If the locator cannot be opened and failOnError is true
        MalformedDocument: If the document is not well-formed and failOnError is true
    """
    options = options or LoadOptions()
    expression = compile_path(path) if path is not None else None
    reader = reader or SourceReader()
    return _load(locator, expression, options, reader)


def _load(locator: str, expression: PathExpression | None, options: LoadOptions, reader: SourceReader) -> Iterator[Record]:
    try:
        with reader.open(locator, options.headers) as source:
            events = _events(source.stream, options, reader, source.encoding, reader.config.chunk_size, source.url)
            records = _records(events, expression, options.simple_mode)
    except (LoadFailed, SourceUnavailable) as e:
        if options.fail_on_error:
            raise
        logger.warning(f"Skipping {locator}: {e}")
        yield {}
        return

    logger.info(
        f"Loaded {len(records)} record(s) from {locator}",
        extra={"locator": locator, "path": expression.source if expression else None},
    )
    yield from records


def parse_xml(
    xml: str,
    path: str | None = None,
    options: LoadOptions | None = None,
    reader: SourceReader | None = None,
) -> list[Record]:
    """Parse an XML string into nested records.

    Same semantics as load_xml for a document given inline; the string is
    parsed as UTF-8 whatever its XML declaration says. With allowDtd, external
    DTDs and entities are read through ``reader`` (one configured from the
    environment when omitted).

    Raises:
        InvalidPathExpression: If the path is outside the supported grammar
        SecurityViolation: If the document uses a forbidden DTD/entity feature
        MalformedDocument: If the document is not well-formed and failOnError is true
    """
    options = options or LoadOptions()
    expression = compile_path(path) if path is not None else None
    if options.allow_dtd:
        reader = reader or SourceReader()

    try:
        events = _events(io.BytesIO(xml.encode("utf-8")), options, reader, encoding="UTF-8")
        return _records(events, expression, options.simple_mode)
    except LoadFailed as e:
        if options.fail_on_error:
            raise
        logger.warning(f"Skipping inline document: {e}")
        return [{}]


def import_xml(
    locator: str,
    sink: GraphSink,
    options: ImportOptions | None = None,
    reader: SourceReader | None = None,
) -> ImportSummary:
    """Import an XML document as an ordered graph.

    The whole document is parsed and converted before anything reaches the
    sink, so a malformed document writes nothing.

    Args:
        locator: Path, URL, S3 URI or ``archive!entry`` reference
        sink: Storage collaborator (InMemoryGraph, Neo4jGraphSink, ...)
        options: Tokenization and source options
        reader: Source reader; one configured from the environment when omitted

    Returns:
        ImportSummary with the document node identity and counts; an empty
        summary when failOnError is false and the document is malformed

    Raises:
        SourceUnavailable: If the locator cannot be opened
        SecurityViolation: If the document uses a forbidden DTD/entity feature
        MalformedDocument: If the document is not well-formed and failOnError is true
    """
    options = options or ImportOptions()
    reader = reader or SourceReader()
    builder = GraphBuilder.from_options(options)

    try:
        with reader.open(locator, options.headers) as source:
            events = _events(source.stream, options, reader, source.encoding, reader.config.chunk_size, source.url)
            mutations = list(builder.build(events, url=source.url, encoding=source.encoding))
    except LoadFailed as e:
        if options.fail_on_error:
            raise
        logger.warning(f"Skipping import of {locator}: {e}")
        return ImportSummary()

    summary = apply_mutations(mutations, sink)
    logger.info(
        f"Imported {locator}: {summary.node_count} node(s), {summary.relationship_count} relationship(s)",
        extra={"locator": locator},
    )
    return summary
