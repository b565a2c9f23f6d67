#!/usr/bin/env python3

from unittest.mock import MagicMock

import pytest

from xmlgraph_api.clients.s3_client import get_object_bytes, split_s3_uri


class TestS3Client:
    """Test suite for S3 helpers"""

    def test_split_s3_uri(self):
        assert split_s3_uri("s3://xml-data/2024/books.xml") == ("xml-data", "2024/books.xml")

    @pytest.mark.parametrize("uri", ["s3://bucket", "s3:///books.xml", "http://bucket/books.xml"])
    def test_split_s3_uri_rejects_incomplete(self, uri):
        with pytest.raises(ValueError):
            split_s3_uri(uri)

    def test_get_object_bytes_releases_connection(self):
        client = MagicMock()
        response = client.get_object.return_value
        response.read.return_value = b"<catalog/>"

        assert get_object_bytes(client, "xml-data", "books.xml") == b"<catalog/>"
        response.close.assert_called_once()
        response.release_conn.assert_called_once()
