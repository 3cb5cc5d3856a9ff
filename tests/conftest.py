"""
Pytest configuration and shared fixtures for nft-metadata-miner tests.
"""

import base64
import json

import pytest
from eth_abi import encode as abi_encode


def abi_encode_string(value: str) -> str:
    """ABI-encode a string return value as an eth_call would return it."""
    return "0x" + abi_encode(["string"], [value]).hex()


def abi_encode_uint(value: int) -> str:
    """ABI-encode a uint256 return value."""
    return "0x" + abi_encode(["uint256"], [value]).hex()


def data_uri(document: dict) -> str:
    """Build a base64 JSON data URI for a metadata document."""
    encoded = base64.b64encode(json.dumps(document).encode("utf-8")).decode("ascii")
    return f"data:application/json;base64,{encoded}"


@pytest.fixture
def sample_contract_address():
    """Sample ERC-721 contract address for testing."""
    return "0xBC4CA0EdA7647A8aB7C2061c2E118A18a936f13D"  # BAYC


@pytest.fixture
def rpc_url():
    """Mock JSON-RPC endpoint for testing."""
    return "https://rpc.example.test/eth"


@pytest.fixture
def sample_metadata_document():
    """Metadata document with one string and one numeric attribute value."""
    return {
        "name": "Ape #1",
        "image": "ipfs://QmImage/1.png",
        "attributes": [
            {"trait_type": "Fur", "value": "Golden Brown"},
            {"trait_type": "Level", "value": 42, "display_type": "number"},
        ],
    }
