"""
Unit tests for token URI resolution.

Tests follow the Given/When/Then pattern for clarity.
"""

import json

import pytest
import requests
import responses

from conftest import data_uri
from metadata_miner.lib.models import decode_metadata
from metadata_miner.lib.uri_resolver import (
    DEFAULT_IPFS_GATEWAY,
    DecodeError,
    NetworkError,
    UriResolver,
    UriScheme,
    build_request_url,
    classify_uri,
    decode_embedded,
)


class TestClassifyUri:
    """Tests for classify_uri."""

    @pytest.mark.parametrize(
        "uri, scheme",
        [
            ("data:application/json;base64,eyJ9", UriScheme.EMBEDDED),
            ("ipfs://bafyABC/1.json", UriScheme.IPFS),
            ("https://ipfs.io/ipfs://QmHash", UriScheme.IPFS),
            ("https://api.example.com/token/1", UriScheme.HTTP),
            ("api.example.com/token/1", UriScheme.HTTP),
            ("data:application/json,{}", UriScheme.HTTP),
        ],
    )
    def test_classifies_uri_schemes(self, uri, scheme):
        """
        Given token URIs of each kind
        When classifying them
        Then the matching resolution strategy should be returned
        """
        # When / Then
        assert classify_uri(uri) is scheme

    def test_embedded_takes_precedence_over_ipfs(self):
        """
        Given a data URI whose payload mentions ipfs://
        When classifying it
        Then it should be treated as embedded data
        """
        # Given
        uri = "data:application/json;base64,aXBmczovLw==ipfs://"

        # When / Then
        assert classify_uri(uri) is UriScheme.EMBEDDED


class TestBuildRequestUrl:
    """Tests for build_request_url."""

    def test_ipfs_uri_uses_gateway_path(self):
        """
        Given an ipfs:// URI
        When building the request URL
        Then it should point at /ipfs/<cid> on the default gateway
        """
        # When
        url = build_request_url("ipfs://bafyABC")

        # Then
        assert url == "https://gateway.pinata.cloud/ipfs/bafyABC"

    def test_ipfs_uses_text_after_last_marker(self):
        """
        Given a URI containing ipfs:// twice
        When building the request URL
        Then only the text after the last marker should be used
        """
        # When
        url = build_request_url("ipfs://ipfs://QmHash/12.json", gateway="https://ipfs.io/")

        # Then
        assert url == "https://ipfs.io/ipfs/QmHash/12.json"

    def test_https_uri_is_unchanged(self):
        """
        Given an https:// URI
        When building the request URL
        Then it should be returned as-is
        """
        # When / Then
        assert build_request_url("https://example.com/1") == "https://example.com/1"

    def test_scheme_less_uri_gets_https_prefix(self):
        """
        Given a URI without https://
        When building the request URL
        Then https:// should be prepended
        """
        # When / Then
        assert build_request_url("example.com/1") == "https://example.com/1"


class TestDecodeEmbedded:
    """Tests for decode_embedded."""

    def test_decodes_base64_payload(self):
        """
        Given a base64 JSON data URI
        When decoding
        Then the JSON bytes should be returned
        """
        # Given
        uri = data_uri({"name": "x", "attributes": []})

        # When
        payload = decode_embedded(uri)

        # Then
        assert json.loads(payload) == {"name": "x", "attributes": []}

    def test_splits_on_last_marker(self):
        """
        Given a data URI with the base64 marker repeated
        When decoding
        Then only the text after the last marker should be decoded
        """
        # Given
        uri = "data:base64,AAAA;base64,eyJhIjogMX0="

        # When / Then
        assert decode_embedded(uri) == b'{"a": 1}'

    def test_invalid_base64_raises_decode_error(self):
        """
        Given a data URI whose payload is not base64
        When decoding
        Then DecodeError should be raised
        """
        # When / Then
        with pytest.raises(DecodeError, match="Invalid base64"):
            decode_embedded("data:application/json;base64,not*base64!")


class TestUriResolver:
    """Tests for UriResolver.resolve."""

    @responses.activate
    def test_resolves_ipfs_through_gateway(self):
        """
        Given an ipfs:// URI
        When resolving
        Then the document should be fetched from the gateway
        """
        # Given
        responses.add(
            responses.GET,
            f"{DEFAULT_IPFS_GATEWAY}/ipfs/bafyABC",
            body=b'{"name": "x", "attributes": []}',
        )
        resolver = UriResolver()

        # When
        payload = resolver.resolve("ipfs://bafyABC")

        # Then
        assert payload == b'{"name": "x", "attributes": []}'
        assert responses.calls[0].request.url == "https://gateway.pinata.cloud/ipfs/bafyABC"

    @responses.activate
    def test_resolves_generic_uri_over_https(self):
        """
        Given a URI without scheme
        When resolving
        Then it should be fetched over https
        """
        # Given
        responses.add(responses.GET, "https://api.example.com/token/3", body=b"{}")
        resolver = UriResolver()

        # When
        payload = resolver.resolve("api.example.com/token/3")

        # Then
        assert payload == b"{}"

    @responses.activate
    def test_embedded_data_does_not_touch_network(self, sample_metadata_document):
        """
        Given an embedded data URI
        When resolving
        Then no HTTP request should be made
        """
        # Given
        resolver = UriResolver()

        # When
        resolver.resolve(data_uri(sample_metadata_document))

        # Then
        assert len(responses.calls) == 0

    @responses.activate
    def test_embedded_and_fetched_payloads_decode_identically(self, sample_metadata_document):
        """
        Given the same metadata document embedded and served over HTTP
        When resolving and decoding both
        Then the decoded Metadata should be equal
        """
        # Given
        body = json.dumps(sample_metadata_document).encode("utf-8")
        responses.add(responses.GET, "https://api.example.com/token/1", body=body)
        resolver = UriResolver()

        # When
        embedded = decode_metadata(resolver.resolve(data_uri(sample_metadata_document)))
        fetched = decode_metadata(resolver.resolve("https://api.example.com/token/1"))

        # Then
        assert embedded == fetched

    @responses.activate
    def test_non_2xx_raises_network_error(self):
        """
        Given a server returning 404
        When resolving
        Then NetworkError should carry the status code
        """
        # Given
        responses.add(responses.GET, "https://api.example.com/token/9", status=404)
        resolver = UriResolver()

        # When / Then
        with pytest.raises(NetworkError, match="HTTP 404") as exc_info:
            resolver.resolve("https://api.example.com/token/9")
        assert exc_info.value.status_code == 404

    @responses.activate
    def test_transport_failure_raises_network_error(self):
        """
        Given a host that cannot be reached
        When resolving
        Then NetworkError should be raised without retrying
        """
        # Given
        responses.add(
            responses.GET,
            "https://api.example.com/token/1",
            body=requests.ConnectionError("unreachable"),
        )
        resolver = UriResolver()

        # When / Then
        with pytest.raises(NetworkError, match="failed"):
            resolver.resolve("https://api.example.com/token/1")
        assert len(responses.calls) == 1
