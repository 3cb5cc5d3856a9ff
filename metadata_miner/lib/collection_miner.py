"""
Token enumeration for a single NFT collection.

This module walks token ids of a contract, resolves and decodes each
token's metadata, and accumulates the results into a MiningResult. It
reports each processed token to an optional callback and never prints.
"""

from typing import Callable, Optional

from .ledger_client import LedgerClient, LedgerQueryError, validate_address
from .models import (
    HeaderSet,
    MetadataTable,
    MiningResult,
    SchemaError,
    TokenOutcome,
    decode_metadata,
)
from .uri_resolver import ResolverError, UriResolver


# Scan at most this many times totalSupply ids before giving up on an address
DEFAULT_SCAN_LIMIT_FACTOR = 2
# Minimum number of extra ids scanned past totalSupply, for small collections
MIN_SCAN_SLACK = 100

# Callback invoked after each recognized token: (outcome, processed, total)
TokenCallback = Callable[[TokenOutcome, int, int], None]


class ScanLimitExceeded(Exception):
    """Exception raised when enumeration scans too many ids without reaching the quota."""

    pass


def scan_limit(total_supply: int, factor: int = DEFAULT_SCAN_LIMIT_FACTOR) -> int:
    """
    Highest number of token ids to scan for a collection.

    Examples:
        scan_limit(10000, 2) -> 20000
        scan_limit(3, 2) -> 103
    """
    return max(total_supply * factor, total_supply + MIN_SCAN_SLACK)


class CollectionMiner:
    """
    Enumerates a collection's tokens and collects their metadata.

    Token ids are scanned sequentially from 0. Ids the ledger rejects are
    skipped without counting toward totalSupply; recognized ids count
    whether or not their metadata could be resolved.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        resolver: UriResolver,
        scan_limit_factor: int = DEFAULT_SCAN_LIMIT_FACTOR,
    ):
        """
        Initialize the miner.

        Args:
            ledger: Client used for totalSupply and tokenURI queries
            resolver: Resolver used to fetch metadata documents
            scan_limit_factor: Multiple of totalSupply to scan before aborting
        """
        self.ledger = ledger
        self.resolver = resolver
        self.scan_limit_factor = scan_limit_factor

    def resolve_token(self, token_id: int, uri: str) -> TokenOutcome:
        """
        Resolve and decode the metadata of one token.

        Args:
            token_id: Token id the URI belongs to
            uri: Token URI returned by the contract

        Returns:
            TokenOutcome with either metadata or an error message
        """
        try:
            metadata = decode_metadata(self.resolver.resolve(uri))
        except (ResolverError, SchemaError) as e:
            return TokenOutcome(token_id=token_id, error=f"{type(e).__name__}: {e}")
        return TokenOutcome(token_id=token_id, metadata=metadata)

    def mine(self, address: str, on_token: Optional[TokenCallback] = None) -> MiningResult:
        """
        Mine all token metadata of a contract.

        Args:
            address: Contract address
            on_token: Optional callback invoked after each recognized token

        Returns:
            MiningResult with the metadata table and frozen headers, or with
            error set if the address could not be mined
        """
        try:
            validate_address(address)
            total_supply = self.ledger.total_supply(address)
        except (ValueError, LedgerQueryError) as e:
            return MiningResult(address=address, error=f"Could not data-mine this address: {e}")

        table: MetadataTable = {}
        headers = HeaderSet()
        result = MiningResult(
            address=address,
            total_supply=total_supply,
            table=table,
            headers=headers,
        )

        limit = scan_limit(total_supply, self.scan_limit_factor)
        count = 0
        remaining = total_supply

        while remaining > 0:
            if count >= limit:
                error = ScanLimitExceeded(
                    f"Scanned {count} token ids but only {total_supply - remaining} "
                    f"of {total_supply} were recognized"
                )
                return MiningResult(
                    address=address,
                    total_supply=total_supply,
                    scanned_ids=count,
                    error=f"Could not data-mine this address: {error}",
                )

            try:
                uri = self.ledger.token_uri(address, count)
            except LedgerQueryError:
                # Unrecognized id (unminted or burned), does not use up the quota
                count += 1
                continue

            outcome = self.resolve_token(count, uri)
            if outcome.metadata is not None:
                table[count] = outcome.metadata
                headers.fold(outcome.metadata)
            else:
                result.failed_tokens.append(outcome)

            remaining -= 1
            count += 1
            if on_token is not None:
                on_token(outcome, total_supply - remaining, total_supply)

        headers.freeze()
        result.scanned_ids = count
        return result
