"""
Token URI resolution.

Classifies a tokenURI string as an embedded base64 data URI, an IPFS
content address, or a plain web URL, and returns the raw bytes of the
metadata document it points to.
"""

import base64
import binascii
from enum import Enum
from typing import Optional

import requests


DEFAULT_IPFS_GATEWAY = "https://gateway.pinata.cloud"
DEFAULT_TIMEOUT = 30.0  # seconds

DATA_PREFIX = "data:"
BASE64_MARKER = "base64"
IPFS_MARKER = "ipfs://"
HTTPS_PREFIX = "https://"


class UriScheme(Enum):
    EMBEDDED = "embedded"
    IPFS = "ipfs"
    HTTP = "http"


class ResolverError(Exception):
    """Base exception for token URI resolution failures."""

    pass


class DecodeError(ResolverError):
    """Exception raised when an embedded data URI cannot be decoded."""

    pass


class NetworkError(ResolverError):
    """Exception raised when fetching a metadata document fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def classify_uri(uri: str) -> UriScheme:
    """
    Classify a token URI. The first matching rule wins.

    Args:
        uri: Token URI returned by the contract

    Returns:
        The resolution strategy for the URI
    """
    if uri.startswith(DATA_PREFIX) and BASE64_MARKER in uri:
        return UriScheme.EMBEDDED
    if IPFS_MARKER in uri:
        return UriScheme.IPFS
    return UriScheme.HTTP


def build_request_url(uri: str, gateway: str = DEFAULT_IPFS_GATEWAY) -> str:
    """
    Build the URL to fetch for a network-resolved token URI.

    Examples:
        build_request_url("ipfs://bafyABC/1.json")
        -> "https://gateway.pinata.cloud/ipfs/bafyABC/1.json"
        build_request_url("example.com/1.json") -> "https://example.com/1.json"
    """
    if IPFS_MARKER in uri:
        content_path = uri.rsplit(IPFS_MARKER, 1)[1]
        return f"{gateway.rstrip('/')}/ipfs/{content_path}"
    if uri.startswith(HTTPS_PREFIX):
        return uri
    return HTTPS_PREFIX + uri


def decode_embedded(uri: str) -> bytes:
    """
    Decode a data URI carrying a base64 payload.

    Raises:
        DecodeError: If the payload is not valid base64
    """
    marker = BASE64_MARKER + ","
    if marker in uri:
        encoded = uri.rsplit(marker, 1)[1]
    else:
        encoded = uri.rsplit(BASE64_MARKER, 1)[1]

    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 payload: {e}") from e


class UriResolver:
    """Resolves token URIs to metadata document bytes. Never retries."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        gateway: str = DEFAULT_IPFS_GATEWAY,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the resolver.

        Args:
            session: Optional requests session to reuse
            gateway: Public IPFS HTTP gateway base URL
            timeout: Per-request timeout in seconds
        """
        self.session = session or requests.Session()
        self.gateway = gateway
        self.timeout = timeout

    def fetch(self, url: str) -> bytes:
        """
        GET a URL and return the response body.

        Raises:
            NetworkError: On transport failure or a non-2xx status
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"Request to {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.content

    def resolve(self, uri: str) -> bytes:
        """
        Resolve a token URI to the bytes of its metadata document.

        Args:
            uri: Token URI returned by the contract

        Returns:
            Raw metadata document bytes

        Raises:
            DecodeError: For malformed embedded data
            NetworkError: For failed fetches
        """
        if classify_uri(uri) is UriScheme.EMBEDDED:
            return decode_embedded(uri)
        return self.fetch(build_request_url(uri, self.gateway))
