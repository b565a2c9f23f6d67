"""
Client Layer

This package contains low-level client wrappers for external services.
Clients handle communication with external systems but contain no business logic.

Modules:
- neo4j_client: Neo4j graph database client
- s3_client: MinIO/S3 object storage client
"""

from .neo4j_client import Neo4jClient
from .s3_client import get_object_bytes, split_s3_uri

__all__ = [
    # Neo4j client
    'Neo4jClient',
    # S3 client
    'get_object_bytes',
    'split_s3_uri',
]
