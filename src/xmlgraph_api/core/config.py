#!/usr/bin/env python3
"""
Configuration settings for XML loading and graph import.

These settings can be overridden via environment variables to adjust
resource limits and source access based on deployment environment.
"""

import logging
from pathlib import Path

from .env_utils import env_flag, env_path, env_positive_int

logger = logging.getLogger(__name__)


class ImportConfig:
    """Source access and import limits.

    Values are read once per instance, so tests and embedding callers can
    build a fresh config after changing the environment. Per-request
    behaviour (failOnError, simpleMode, ...) lives in the pydantic option
    models, not here.
    """

    def __init__(
        self,
        file_import_enabled: bool | None = None,
        import_root: str | Path | None = None,
        url_timeout: int | None = None,
        chunk_size: int | None = None,
        batch_size: int | None = None,
    ):
        # Local file access: disable in shared deployments
        self.file_import_enabled = (
            env_flag("XML_FILE_IMPORT_ENABLED", True) if file_import_enabled is None else file_import_enabled
        )

        # Relative paths resolve against this directory; absolute paths must stay inside it
        root = import_root if import_root is not None else env_path("XML_IMPORT_ROOT")
        self.import_root = Path(root).resolve() if root else None

        # Seconds to wait for a remote document
        self.url_timeout = url_timeout or env_positive_int("XML_URL_TIMEOUT", 30)

        # Bytes handed to the parser per feed() call
        self.chunk_size = chunk_size or env_positive_int("XML_CHUNK_SIZE", 2**16 - 20)

        # Nodes/relationships per UNWIND statement when writing to Neo4j
        self.batch_size = batch_size or env_positive_int("XML_IMPORT_BATCH_SIZE", 1000)

    def __repr__(self) -> str:
        return (
            f"ImportConfig(file_import_enabled={self.file_import_enabled}, import_root={self.import_root}, "
            f"url_timeout={self.url_timeout}, chunk_size={self.chunk_size}, batch_size={self.batch_size})"
        )


def get_import_config() -> ImportConfig:
    """Build an ImportConfig from the current environment."""
    config = ImportConfig()
    logger.debug(f"Loaded {config!r}")
    return config
