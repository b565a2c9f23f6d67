#!/usr/bin/env python3

import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException

from .core.dependencies import cleanup_connections, get_neo4j_client, get_source_reader
from .core.logging import setup_logging
from .models.models import (
    XmlImportRequest,
    XmlImportResponse,
    XmlLoadRequest,
    XmlLoadResponse,
    XmlParseRequest,
)

logger = logging.getLogger(__name__)

# Application start time for uptime calculation
_app_start_time = time.time()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    setup_logging()
    logger.info("Starting XML graph API service")

    yield

    # Shutdown
    logger.info("Shutting down XML graph API service")
    cleanup_connections()


app = FastAPI(
    title="XML Graph API",
    description="API for loading XML documents as nested records and importing them as ordered graphs",
    version=os.getenv("APP_VERSION", "unknown"),
    lifespan=lifespan
)

# Add version header middleware
@app.middleware("http")
async def add_version_header(request, call_next):
    """Add version information to response headers"""
    response = await call_next(request)
    response.headers["X-API-Version"] = os.getenv("APP_VERSION", "unknown")
    return response

@app.get("/healthz")
async def health_check():
    """Liveness check - checks if application is alive and can serve requests"""
    current_time = time.time()
    return {
        "status": "healthy",
        "timestamp": current_time,
        "uptime": current_time - _app_start_time,
        "api_version": os.getenv("APP_VERSION", "unknown"),
    }


@app.get("/readyz")
async def readiness_check():
    """Readiness check - checks that Neo4j answers a trivial query"""
    try:
        get_neo4j_client().query("RETURN 1")
        return {"status": "ready"}

    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail={"status": "not_ready"}) from e


# XML Routes

@app.post("/api/xml/load", response_model=XmlLoadResponse)
async def load_xml_document(request: XmlLoadRequest, reader=Depends(get_source_reader)):
    """Load an XML document (file, URL, S3 object or archive entry) as nested records"""
    from .handlers.xml import handle_load
    return handle_load(request, reader)


@app.post("/api/xml/parse", response_model=XmlLoadResponse)
async def parse_xml_document(request: XmlParseRequest, reader=Depends(get_source_reader)):
    """Parse an inline XML string as nested records"""
    from .handlers.xml import handle_parse
    return handle_parse(request, reader)


@app.post("/api/xml/import", response_model=XmlImportResponse)
async def import_xml_document(request: XmlImportRequest, reader=Depends(get_source_reader)):
    """Import an XML document into Neo4j as an ordered graph"""
    from .core.config import get_import_config
    from .handlers.xml import handle_import
    return handle_import(request, reader, get_neo4j_client(), get_import_config().batch_size)
