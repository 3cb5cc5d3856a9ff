"""
Read-only Ethereum JSON-RPC client for ERC-721 collection queries.

This module issues eth_call requests against a contract and decodes the
ABI-encoded results of the two view functions the miner needs:
totalSupply() and tokenURI(uint256).
"""

import random
import time
from typing import Any, Callable, Optional

import requests
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import decode_hex, function_signature_to_4byte_selector, is_address


DEFAULT_RPC_URL = "https://api.mycryptoapi.com/eth"

# Function selectors, hex without 0x prefix
TOTAL_SUPPLY_SELECTOR = function_signature_to_4byte_selector("totalSupply()").hex()
TOKEN_URI_SELECTOR = function_signature_to_4byte_selector("tokenURI(uint256)").hex()

# Request configuration
DEFAULT_TIMEOUT = 30.0  # seconds
DEFAULT_MAX_RETRIES = 0
DEFAULT_INITIAL_DELAY = 1.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_DELAY = 32.0  # seconds
DEFAULT_JITTER = 0.1  # ±10%


class LedgerQueryError(Exception):
    """Exception raised when a contract query fails or returns unusable data."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


def validate_address(address: str) -> str:
    """
    Check that a string is a 0x-prefixed Ethereum contract address.

    Mixed-case addresses must carry a valid EIP-55 checksum.

    Args:
        address: Candidate address

    Returns:
        The address, unchanged

    Raises:
        ValueError: If the address is not a valid 0x-prefixed address
    """
    if not (isinstance(address, str) and address.startswith("0x") and is_address(address)):
        raise ValueError(f"Invalid contract address: {address!r}")
    return address


def encode_uint256(value: int) -> str:
    """Encode a non-negative integer as a single ABI word (hex, no prefix)."""
    try:
        return abi_encode(["uint256"], [value]).hex()
    except EncodingError as e:
        raise ValueError(f"Value out of uint256 range: {value}") from e


def _result_bytes(hex_data: str) -> bytes:
    try:
        data = decode_hex(hex_data)
    except ValueError as e:
        raise LedgerQueryError(f"Malformed hex result: {e}") from e
    if not data:
        # Calls to non-contracts and some reverts come back as bare "0x"
        raise LedgerQueryError("Empty result from contract call")
    return data


def decode_uint256(hex_data: str) -> int:
    """Decode an ABI-encoded uint256 return value."""
    try:
        (value,) = abi_decode(["uint256"], _result_bytes(hex_data))
    except DecodingError as e:
        raise LedgerQueryError(f"Malformed uint256 result: {e}") from e
    return value


def decode_abi_string(hex_data: str) -> str:
    """Decode an ABI-encoded dynamic string return value."""
    try:
        (value,) = abi_decode(["string"], _result_bytes(hex_data))
    except (DecodingError, UnicodeDecodeError) as e:
        raise LedgerQueryError(f"Malformed string result: {e}") from e
    return value


class LedgerClient:
    """
    JSON-RPC client for read-only contract calls.

    Retries on HTTP 429, 5xx and transport errors are available but
    disabled by default.
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
        max_delay: float = DEFAULT_MAX_DELAY,
        jitter: float = DEFAULT_JITTER,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the ledger client.

        Args:
            rpc_url: Ethereum JSON-RPC endpoint
            timeout: Per-request timeout in seconds
            max_retries: Maximum number of retry attempts (0 disables retries)
            initial_delay: Initial delay in seconds for retry backoff
            backoff_multiplier: Multiplier for exponential backoff
            max_delay: Maximum delay cap in seconds
            jitter: Jitter factor (±percentage) to randomize delays
            session: Optional requests session to reuse
        """
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.backoff_multiplier = backoff_multiplier
        self.max_delay = max_delay
        self.jitter = jitter
        self.session = session or requests.Session()
        self._request_id = 0

    def _apply_jitter(self, delay: float) -> float:
        """Apply random jitter to a delay value."""
        jitter_range = delay * self.jitter
        return delay + random.uniform(-jitter_range, jitter_range)

    def _backoff(self, delay: float) -> float:
        time.sleep(self._apply_jitter(min(delay, self.max_delay)))
        return delay * self.backoff_multiplier

    def _execute_with_retry(
        self,
        request_func: Callable[[], requests.Response],
    ) -> requests.Response:
        """
        Execute a request function, retrying rate limits and server errors.

        Args:
            request_func: A callable that returns a requests.Response

        Returns:
            The successful response

        Raises:
            LedgerQueryError: When the request fails and retries are exhausted
        """
        delay = self.initial_delay

        for attempt in range(self.max_retries + 1):
            try:
                response = request_func()
            except requests.RequestException as e:
                if attempt < self.max_retries:
                    delay = self._backoff(delay)
                    continue
                raise LedgerQueryError(f"Request failed: {e}") from e

            if response.status_code == 429 or response.status_code >= 500:
                if attempt < self.max_retries:
                    delay = self._backoff(delay)
                    continue
                raise LedgerQueryError(
                    f"RPC endpoint returned HTTP {response.status_code}",
                    code=response.status_code,
                )

            if not response.ok:
                raise LedgerQueryError(
                    f"RPC endpoint returned HTTP {response.status_code}",
                    code=response.status_code,
                )
            return response

        raise LedgerQueryError("Max retries exceeded")

    def _request(self, method: str, params: Any) -> Any:
        """
        Make a JSON-RPC request.

        Args:
            method: JSON-RPC method name
            params: Method parameters

        Returns:
            The 'result' field from the JSON-RPC response

        Raises:
            LedgerQueryError: For transport failures and JSON-RPC errors
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        response = self._execute_with_retry(
            lambda: self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
        )
        try:
            data = response.json()
        except ValueError as e:
            raise LedgerQueryError(f"Invalid JSON-RPC response: {e}") from e

        if not isinstance(data, dict):
            raise LedgerQueryError(f"Invalid JSON-RPC response: {data!r}")

        if "error" in data:
            error = data["error"]
            if isinstance(error, dict):
                raise LedgerQueryError(
                    f"RPC error: {error.get('message', str(error))}",
                    code=error.get("code"),
                )
            raise LedgerQueryError(f"RPC error: {error}")

        if "result" not in data:
            raise LedgerQueryError("JSON-RPC response has no result")
        return data["result"]

    def eth_call(self, contract: str, data: str) -> str:
        """
        Execute a read-only contract call against the latest block.

        Args:
            contract: Contract address
            data: Hex calldata including the 0x prefix

        Returns:
            Hex-encoded return data
        """
        result = self._request("eth_call", [{"to": contract, "data": data}, "latest"])
        if not isinstance(result, str):
            raise LedgerQueryError(f"Unexpected eth_call result: {result!r}")
        return result

    def total_supply(self, contract: str) -> int:
        """
        Get the number of tokens the contract reports as minted.

        Args:
            contract: ERC-721 contract address

        Returns:
            totalSupply() as an integer
        """
        result = self.eth_call(contract, "0x" + TOTAL_SUPPLY_SELECTOR)
        return decode_uint256(result)

    def token_uri(self, contract: str, token_id: int) -> str:
        """
        Get the metadata URI of a token.

        A revert here usually means the id was never minted or was burned.

        Args:
            contract: ERC-721 contract address
            token_id: Token id passed to tokenURI(uint256)

        Returns:
            The token URI string
        """
        calldata = "0x" + TOKEN_URI_SELECTOR + encode_uint256(token_id)
        result = self.eth_call(contract, calldata)
        return decode_abi_string(result)
