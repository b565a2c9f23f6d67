#!/usr/bin/env python3
"""Shared clients for the HTTP handlers and the CLI."""

from functools import lru_cache
from urllib.parse import urlsplit

from minio import Minio

from ..clients.neo4j_client import Neo4jClient
from .config import get_import_config
from .env_utils import env_flag, env_str


def minio_endpoint() -> tuple[str, bool]:
    """MINIO_ENDPOINT as host:port plus the TLS switch.

    A scheme on the endpoint decides TLS; MINIO_SECURE is only consulted
    for bare host:port values.
    """
    endpoint = env_str("MINIO_ENDPOINT", "localhost:9000")
    parts = urlsplit(endpoint if "://" in endpoint else f"//{endpoint}")
    if parts.scheme:
        return parts.netloc, parts.scheme == "https"
    return parts.netloc, env_flag("MINIO_SECURE", False)


def get_s3_client() -> Minio:
    """MinIO client used for s3:// locators; built per call, MinIO clients are cheap"""
    host, secure = minio_endpoint()
    return Minio(
        host,
        access_key=env_str("MINIO_ACCESS_KEY", "minio"),
        secret_key=env_str("MINIO_SECRET_KEY", "minio123"),
        secure=secure,
    )


@lru_cache(maxsize=1)
def get_neo4j_client() -> Neo4jClient:
    """Process-wide Neo4j client; connection settings come from NEO4J_* variables"""
    return Neo4jClient()


def cleanup_connections():
    """Close the Neo4j driver if one was opened"""
    if get_neo4j_client.cache_info().currsize:
        get_neo4j_client().close()
        get_neo4j_client.cache_clear()


def get_source_reader():
    """SourceReader configured from the environment"""
    from ..services.source_reader import SourceReader

    return SourceReader(get_import_config(), s3_client_factory=get_s3_client)
