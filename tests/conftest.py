#!/usr/bin/env python3
"""Shared fixtures: XML documents on disk and archives built from them."""

import gzip
import io
import tarfile
import zipfile
from pathlib import Path

import pytest

from xmlgraph_api.core.config import ImportConfig
from xmlgraph_api.services.source_reader import SourceReader

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "xml"


@pytest.fixture
def xml_fixture():
    """Return the absolute path of a fixture document."""
    def _path(name: str) -> str:
        return str(FIXTURES_DIR / name)
    return _path


@pytest.fixture
def reader():
    """Source reader with file import enabled and no import root."""
    return SourceReader(ImportConfig(file_import_enabled=True, import_root=""))


@pytest.fixture
def archives(tmp_path):
    """Build zip, tar, tar.gz, tgz and gz archives holding xml/books.xml."""
    books = (FIXTURES_DIR / "books.xml").read_bytes()

    with zipfile.ZipFile(tmp_path / "testload.zip", "w") as bundle:
        bundle.writestr("xml/books.xml", books)

    for name, mode in (("testload.tar", "w"), ("testload.tar.gz", "w:gz"), ("testload.tgz", "w:gz")):
        with tarfile.open(tmp_path / name, mode) as bundle:
            info = tarfile.TarInfo("xml/books.xml")
            info.size = len(books)
            bundle.addfile(info, io.BytesIO(books))

    (tmp_path / "books.xml.gz").write_bytes(gzip.compress(books))
    return tmp_path
