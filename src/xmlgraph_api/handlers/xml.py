#!/usr/bin/env python3

import logging
from typing import Any

from fastapi import HTTPException

from ..models.models import (
    XmlImportRequest,
    XmlImportResponse,
    XmlLoadRequest,
    XmlLoadResponse,
    XmlParseRequest,
)
from ..services.domain.xml.errors import (
    InvalidPathExpression,
    LoadFailed,
    SecurityViolation,
    SourceUnavailable,
    XmlProcessingError,
)
from ..services.source_reader import SourceReader

logger = logging.getLogger(__name__)


def _http_error(error: XmlProcessingError) -> HTTPException:
    """Map a processing error to the HTTP status reported to the client.

    Args:
        error: Error raised by the loader, parser or builders

    Returns:
        HTTPException carrying the status code and error message
    """
    if isinstance(error, SourceUnavailable):
        status_code = 404
    elif isinstance(error, SecurityViolation):
        status_code = 403
    elif isinstance(error, InvalidPathExpression):
        status_code = 400
    elif isinstance(error, LoadFailed):
        status_code = 422
    else:
        status_code = 500
    logger.warning(f"XML request failed with {status_code}: {error}")
    return HTTPException(status_code=status_code, detail=str(error))


def handle_load(request: XmlLoadRequest, reader: SourceReader) -> XmlLoadResponse:
    """Load a document by locator and return its records.

    Args:
        request: Locator, optional path and load options
        reader: Source reader used to open the locator

    Returns:
        XmlLoadResponse with the records in document order
    """
    from ..services.xml_loader import load_xml

    try:
        results = list(load_xml(request.locator, request.path, request.options, reader))
    except XmlProcessingError as e:
        raise _http_error(e) from e

    return XmlLoadResponse(results=results, count=len(results))


def handle_parse(request: XmlParseRequest, reader: SourceReader | None = None) -> XmlLoadResponse:
    """Parse an inline document and return its records; ``reader`` serves external DTDs with allowDtd."""
    from ..services.xml_loader import parse_xml

    try:
        results = parse_xml(request.xml, request.path, request.options, reader)
    except XmlProcessingError as e:
        raise _http_error(e) from e

    return XmlLoadResponse(results=results, count=len(results))


def handle_import(request: XmlImportRequest, reader: SourceReader, neo4j_client: Any, batch_size: int) -> XmlImportResponse:
    """Import a document into Neo4j inside one transaction.

    Args:
        request: Locator and import options
        reader: Source reader used to open the locator
        neo4j_client: Neo4jClient providing the write transaction
        batch_size: Creations per UNWIND statement

    Returns:
        XmlImportResponse with the document node id and node/relationship counts;
        status is 'skipped' when failOnError is false and the document was malformed
    """
    from ..services.domain.xml_to_graph.sink import Neo4jGraphSink
    from ..services.xml_loader import import_xml

    try:
        with neo4j_client.transaction() as tx:
            summary = import_xml(request.locator, Neo4jGraphSink(tx, batch_size), request.options, reader)
    except XmlProcessingError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.error(f"Graph import of {request.locator} failed: {e}")
        raise HTTPException(status_code=500, detail=f"Graph import failed: {str(e)}") from e

    return XmlImportResponse(
        status="success" if summary.document is not None else "skipped",
        locator=request.locator,
        document=summary.document,
        nodes=summary.nodes,
        relationships=summary.relationships,
        node_count=summary.node_count,
        relationship_count=summary.relationship_count,
    )
