#!/usr/bin/env python3
"""
S3/MinIO Object Storage Client

A low-level client wrapper for reading XML documents stored in MinIO/S3.

This client is pure infrastructure - it contains no business logic.
Use services layer for business logic that uses this client.
"""

import logging
from urllib.parse import urlparse

from minio import Minio
from minio.error import S3Error

logger = logging.getLogger(__name__)


def split_s3_uri(uri: str) -> tuple[str, str]:
    """
    Split an ``s3://bucket/object`` URI into bucket and object name.

    Raises:
        ValueError: If the URI has no bucket or no object name
    """
    parsed = urlparse(uri)
    bucket = parsed.netloc
    object_name = parsed.path.lstrip("/")
    if parsed.scheme != "s3" or not bucket or not object_name:
        raise ValueError(f"Not an s3://bucket/object URI: {uri}")
    return bucket, object_name


def get_object_bytes(client: Minio, bucket: str, object_name: str) -> bytes:
    """
    Download an object from MinIO object storage.

    Args:
        client: MinIO client instance
        bucket: Source bucket name
        object_name: Object key/path within bucket

    Returns:
        Object content as bytes

    Raises:
        S3Error: If the object or bucket does not exist or access is denied
    """
    response = None
    try:
        response = client.get_object(bucket, object_name)
        data = response.read()
        logger.info(f"Downloaded s3://{bucket}/{object_name} ({len(data)} bytes)")
        return data
    except S3Error as e:
        logger.error(f"Failed to download s3://{bucket}/{object_name}: {e}")
        raise
    finally:
        if response is not None:
            response.close()
            response.release_conn()
