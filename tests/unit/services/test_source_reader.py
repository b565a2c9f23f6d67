#!/usr/bin/env python3
"""Tests for locator resolution."""

from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from xmlgraph_api.core.config import ImportConfig
from xmlgraph_api.services.domain.xml.errors import SourceUnavailable
from xmlgraph_api.services.source_reader import (
    SourceReader,
    charset_from_content_type,
    split_archive_locator,
)


def read_all(reader: SourceReader, locator: str, **kwargs) -> bytes:
    with reader.open(locator, **kwargs) as source:
        return source.stream.read()


def http_response(content: bytes, content_type: str = "application/xml") -> Mock:
    response = Mock()
    response.content = content
    response.headers = {"Content-Type": content_type}
    response.raise_for_status.return_value = None
    return response


@pytest.mark.unit
class TestLocalFiles:
    """Test suite for paths and file: URLs"""

    def test_plain_path(self, reader, xml_fixture):
        assert read_all(reader, xml_fixture("singleLine.xml")).startswith(b"<?xml")

    def test_file_url(self, reader, xml_fixture):
        url = Path(xml_fixture("singleLine.xml")).as_uri()

        with reader.open(url) as source:
            assert source.url == url
            assert source.encoding is None
            assert b"<table>" in source.stream.read()

    def test_missing_file(self, reader, tmp_path):
        with pytest.raises(SourceUnavailable) as exc_info:
            read_all(reader, str(tmp_path / "books.xm"))

        assert exc_info.value.locator.endswith("books.xm")

    def test_read_whole_source(self, reader, xml_fixture):
        """Test reading a locator into bytes in one call"""
        content = reader.read(Path(xml_fixture("singleLine.xml")).as_uri())

        assert content == read_all(reader, xml_fixture("singleLine.xml"))

    def test_read_missing_file(self, reader, tmp_path):
        with pytest.raises(SourceUnavailable):
            reader.read(str(tmp_path / "missing.dtd"))

    def test_stream_closed_after_block(self, reader, xml_fixture):
        with reader.open(xml_fixture("singleLine.xml")) as source:
            stream = source.stream

        assert stream.closed

    def test_file_import_disabled(self, xml_fixture):
        reader = SourceReader(ImportConfig(file_import_enabled=False, import_root=""))

        with pytest.raises(SourceUnavailable, match="disabled"):
            read_all(reader, xml_fixture("singleLine.xml"))

    def test_relative_path_resolves_against_import_root(self, tmp_path):
        (tmp_path / "doc.xml").write_bytes(b"<doc/>")
        reader = SourceReader(ImportConfig(file_import_enabled=True, import_root=tmp_path))

        assert read_all(reader, "doc.xml") == b"<doc/>"
        assert read_all(reader, "file:doc.xml") == b"<doc/>"

    @pytest.mark.parametrize("locator", ["../outside.xml", "/etc/hosts"])
    def test_paths_outside_import_root_are_refused(self, tmp_path, locator):
        root = tmp_path / "root"
        root.mkdir()
        reader = SourceReader(ImportConfig(file_import_enabled=True, import_root=root))

        with pytest.raises(SourceUnavailable, match="outside the import root"):
            read_all(reader, locator)

    @pytest.mark.parametrize("locator", ["", "   "])
    def test_empty_locator(self, reader, locator):
        with pytest.raises(SourceUnavailable):
            read_all(reader, locator)

    def test_unsupported_scheme(self, reader):
        with pytest.raises(SourceUnavailable, match="unsupported scheme"):
            read_all(reader, "ftp://example.com/books.xml")


@pytest.mark.unit
class TestArchives:
    """Test suite for archive entries and gzip files"""

    @pytest.mark.parametrize("archive", ["testload.zip", "testload.tar", "testload.tar.gz", "testload.tgz"])
    def test_archive_entry(self, reader, archives, xml_fixture, archive):
        expected = Path(xml_fixture("books.xml")).read_bytes()

        assert read_all(reader, f"{archives / archive}!xml/books.xml") == expected

    def test_entry_with_leading_slash(self, reader, archives):
        assert b"<catalog>" in read_all(reader, f"{archives / 'testload.zip'}!/xml/books.xml")

    @pytest.mark.parametrize("archive", ["testload.zip", "testload.tgz"])
    def test_missing_entry(self, reader, archives, archive):
        with pytest.raises(SourceUnavailable, match="entry not found"):
            read_all(reader, f"{archives / archive}!xml/magazines.xml")

    def test_corrupt_archive(self, reader, tmp_path):
        (tmp_path / "broken.zip").write_bytes(b"not a zip file")

        with pytest.raises(SourceUnavailable, match="unreadable archive"):
            read_all(reader, f"{tmp_path / 'broken.zip'}!xml/books.xml")

    def test_gzip_file(self, reader, archives, xml_fixture):
        expected = Path(xml_fixture("books.xml")).read_bytes()

        assert read_all(reader, str(archives / "books.xml.gz")) == expected

    def test_corrupt_gzip(self, reader, tmp_path):
        (tmp_path / "broken.xml.gz").write_bytes(b"plain text")

        with pytest.raises(SourceUnavailable, match="gzip"):
            read_all(reader, str(tmp_path / "broken.xml.gz"))


@pytest.mark.unit
class TestRemoteSources:
    """Test suite for HTTP and S3 locators"""

    def test_http_with_charset(self, reader):
        response = http_response(b"<a/>", "text/xml; charset=ISO-8859-1")

        with patch("xmlgraph_api.services.source_reader.requests.get", return_value=response) as mock_get:
            with reader.open("https://example.com/a.xml", headers={"Authorization": "Bearer t"}) as source:
                assert source.stream.read() == b"<a/>"
                assert source.encoding == "ISO-8859-1"

        mock_get.assert_called_once_with(
            "https://example.com/a.xml",
            headers={"Authorization": "Bearer t"},
            timeout=reader.config.url_timeout,
        )

    def test_http_error(self, reader):
        response = http_response(b"")
        response.raise_for_status.side_effect = requests.HTTPError("404 Client Error")

        with patch("xmlgraph_api.services.source_reader.requests.get", return_value=response):
            with pytest.raises(SourceUnavailable, match="404"):
                read_all(reader, "https://example.com/missing.xml")

    def test_http_connection_error(self, reader):
        with patch(
            "xmlgraph_api.services.source_reader.requests.get",
            side_effect=requests.ConnectionError("connection refused"),
        ):
            with pytest.raises(SourceUnavailable):
                read_all(reader, "http://localhost:1/a.xml")

    def test_archive_over_http(self, reader, archives, xml_fixture):
        response = http_response((archives / "testload.zip").read_bytes(), "application/zip")

        with patch("xmlgraph_api.services.source_reader.requests.get", return_value=response) as mock_get:
            data = read_all(reader, "https://example.com/testload.zip?raw=true!xml/books.xml")

        assert data == Path(xml_fixture("books.xml")).read_bytes()
        assert mock_get.call_args.args[0] == "https://example.com/testload.zip?raw=true"

    def test_s3_object(self):
        client = MagicMock()
        client.get_object.return_value.read.return_value = b"<doc/>"
        reader = SourceReader(ImportConfig(import_root=""), s3_client_factory=lambda: client)

        assert read_all(reader, "s3://xml-data/docs/doc.xml") == b"<doc/>"
        client.get_object.assert_called_once_with("xml-data", "docs/doc.xml")
        client.get_object.return_value.release_conn.assert_called_once()

    def test_s3_without_client(self, reader):
        with pytest.raises(SourceUnavailable, match="no S3 client"):
            read_all(reader, "s3://xml-data/doc.xml")

    def test_s3_uri_without_object(self):
        reader = SourceReader(ImportConfig(import_root=""), s3_client_factory=MagicMock)

        with pytest.raises(SourceUnavailable):
            read_all(reader, "s3://xml-data")


@pytest.mark.unit
class TestLocatorHelpers:
    """Test suite for locator parsing helpers"""

    @pytest.mark.parametrize("locator,expected", [
        ("data.zip!xml/books.xml", ("data.zip", "xml/books.xml")),
        ("data.TGZ!/books.xml", ("data.TGZ", "books.xml")),
        ("https://host/a.tar.gz?raw=true!x.xml", ("https://host/a.tar.gz?raw=true", "x.xml")),
        ("books.xml", ("books.xml", None)),
        ("weird!name.xml", ("weird!name.xml", None)),
    ])
    def test_split_archive_locator(self, locator, expected):
        assert split_archive_locator(locator) == expected

    @pytest.mark.parametrize("header,expected", [
        ("text/xml; charset=UTF-8", "UTF-8"),
        ('application/xml; charset="iso-8859-1"', "iso-8859-1"),
        ("application/xml", None),
        (None, None),
    ])
    def test_charset_from_content_type(self, header, expected):
        assert charset_from_content_type(header) == expected
