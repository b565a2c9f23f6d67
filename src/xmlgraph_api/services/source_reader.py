#!/usr/bin/env python3
"""
Source reader: resolves a locator to a byte stream.

Supported locators:
- plain paths and ``file:`` URLs (subject to the file-import toggle and the import root)
- ``http://`` / ``https://`` URLs
- ``s3://bucket/object`` objects in MinIO/S3
- ``<archive>!<entry>`` for zip, tar, tar.gz and tgz archives; the archive
  itself may be any of the above
- ``.gz`` files, decompressed transparently
"""

import gzip
import io
import logging
import re
import tarfile
import zipfile
from collections.abc import Callable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO
from urllib.parse import unquote, urlparse

import requests
from minio.error import S3Error

from ..clients.s3_client import get_object_bytes, split_s3_uri
from ..core.config import ImportConfig, get_import_config
from .domain.xml.errors import SourceUnavailable

logger = logging.getLogger(__name__)

ARCHIVE_SEPARATOR = "!"
ZIP_SUFFIXES = (".zip",)
TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz")
GZIP_SUFFIX = ".gz"

_CHARSET = re.compile(r"charset\s*=\s*[\"']?([^\"';\s]+)", re.IGNORECASE)


@dataclass
class OpenedSource:
    """An open document: binary stream, optional encoding hint and the locator it came from."""

    stream: IO[bytes]
    encoding: str | None
    url: str


def charset_from_content_type(content_type: str | None) -> str | None:
    """Extract the charset parameter of a Content-Type header, if any."""
    if not content_type:
        return None
    match = _CHARSET.search(content_type)
    return match.group(1) if match else None


def _suffix_of(locator: str) -> str:
    """Lower-cased path part of a locator, without any URL query."""
    return urlparse(locator).path.lower()


def split_archive_locator(locator: str) -> tuple[str, str | None]:
    """Split ``archive!entry`` into its parts.

    The separator only counts when the part before it names a supported
    archive; otherwise the whole locator is returned with no entry.
    """
    if ARCHIVE_SEPARATOR not in locator:
        return locator, None
    archive, entry = locator.split(ARCHIVE_SEPARATOR, 1)
    if _suffix_of(archive).endswith(ZIP_SUFFIXES + TAR_SUFFIXES):
        return archive, entry.lstrip("/")
    return locator, None


class SourceReader:
    """Opens locators as binary streams.

    Args:
        config: Source access settings; read from the environment when omitted
        s3_client_factory: Callable returning a MinIO client, used for ``s3://`` locators
    """

    def __init__(self, config: ImportConfig | None = None, s3_client_factory: Callable | None = None):
        self.config = config or get_import_config()
        self.s3_client_factory = s3_client_factory

    @contextmanager
    def open(self, locator: str, headers: dict[str, str] | None = None) -> Iterator[OpenedSource]:
        """Open a locator for reading.

        Args:
            locator: Path, URL, S3 URI or ``archive!entry`` reference
            headers: Extra HTTP headers for URL locators

        Yields:
            OpenedSource; the stream is closed when the block exits

        Raises:
            SourceUnavailable: If the locator cannot be resolved or read
        """
        if not locator or not locator.strip():
            raise SourceUnavailable(str(locator), "empty locator")

        with ExitStack() as stack:
            archive, entry = split_archive_locator(locator)
            if entry is not None:
                stream, _ = self._fetch(archive, headers or {}, stack)
                source = OpenedSource(self._extract(archive, entry, stream, stack), None, locator)
            else:
                stream, encoding = self._fetch(locator, headers or {}, stack)
                if _suffix_of(locator).endswith(GZIP_SUFFIX):
                    source = OpenedSource(self._gunzip(locator, stream), None, locator)
                else:
                    source = OpenedSource(stream, encoding, locator)

            logger.info(f"Opened source {locator}")
            yield source

    def _fetch(self, location: str, headers: dict[str, str], stack: ExitStack) -> tuple[IO[bytes], str | None]:
        parsed = urlparse(location)
        scheme = parsed.scheme.lower()

        if scheme in ("http", "https"):
            return self._download(location, headers)
        if scheme == "s3":
            return io.BytesIO(self._read_s3(location)), None
        # Single-letter schemes are Windows drive letters
        if scheme == "file" or scheme == "" or len(scheme) == 1:
            path = unquote(parsed.path) if scheme == "file" else location
            return stack.enter_context(self._open_file(location, path)), None
        raise SourceUnavailable(location, f"unsupported scheme {scheme!r}")

    def _download(self, url: str, headers: dict[str, str]) -> tuple[IO[bytes], str | None]:
        try:
            response = requests.get(url, headers=headers, timeout=self.config.url_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {url}: {e}")
            raise SourceUnavailable(url, str(e)) from e

        encoding = charset_from_content_type(response.headers.get("Content-Type"))
        logger.debug(f"Fetched {url} ({len(response.content)} bytes, charset={encoding})")
        return io.BytesIO(response.content), encoding

    def _read_s3(self, uri: str) -> bytes:
        if self.s3_client_factory is None:
            raise SourceUnavailable(uri, "no S3 client configured")
        try:
            bucket, object_name = split_s3_uri(uri)
            return get_object_bytes(self.s3_client_factory(), bucket, object_name)
        except (S3Error, ValueError) as e:
            raise SourceUnavailable(uri, str(e)) from e

    def _resolve_path(self, locator: str, path: str) -> Path:
        if not self.config.file_import_enabled:
            raise SourceUnavailable(locator, "file import is disabled")

        candidate = Path(path).expanduser()
        root = self.config.import_root
        if root is None:
            return candidate.resolve()

        if not candidate.is_absolute():
            candidate = root / candidate
        resolved = candidate.resolve()
        if not resolved.is_relative_to(root):
            raise SourceUnavailable(locator, f"path is outside the import root {root}")
        return resolved

    def _open_file(self, locator: str, path: str) -> IO[bytes]:
        resolved = self._resolve_path(locator, path)
        try:
            return open(resolved, "rb")
        except OSError as e:
            raise SourceUnavailable(locator, e.strerror or str(e)) from e

    def _extract(self, archive: str, entry: str, stream: IO[bytes], stack: ExitStack) -> IO[bytes]:
        try:
            if _suffix_of(archive).endswith(ZIP_SUFFIXES):
                bundle = stack.enter_context(zipfile.ZipFile(stream))
                return stack.enter_context(bundle.open(entry))

            bundle = stack.enter_context(tarfile.open(fileobj=stream, mode="r:*"))
            member = bundle.extractfile(entry)
            if member is None:
                raise SourceUnavailable(f"{archive}!{entry}", "archive entry is not a regular file")
            return stack.enter_context(member)
        except KeyError as e:
            raise SourceUnavailable(f"{archive}!{entry}", "entry not found in archive") from e
        except (zipfile.BadZipFile, tarfile.TarError) as e:
            raise SourceUnavailable(archive, f"unreadable archive: {e}") from e

    def _gunzip(self, locator: str, stream: IO[bytes]) -> IO[bytes]:
        try:
            return io.BytesIO(gzip.decompress(stream.read()))
        except (OSError, EOFError) as e:
            raise SourceUnavailable(locator, f"unreadable gzip data: {e}") from e

    def read(self, locator: str, headers: dict[str, str] | None = None) -> bytes:
        """Read a locator completely; used for the external DTDs and entities of trusted documents."""
        with self.open(locator, headers) as source:
            return source.stream.read()
