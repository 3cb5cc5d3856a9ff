#!/usr/bin/env python3
"""
Mine token metadata for a list of NFT collections.

This script reads contract addresses from a file, enumerates every token
of each contract, resolves the token metadata (base64 data URIs, IPFS or
plain web URLs) and writes a metadata.json and a metadata.csv file into a
directory named after each address.
"""

import argparse
import sys
from typing import List, Optional

from metadata_miner.lib.collection_miner import DEFAULT_SCAN_LIMIT_FACTOR, CollectionMiner
from metadata_miner.lib.formatters import ExportError, output_paths, write_csv, write_json
from metadata_miner.lib.ledger_client import DEFAULT_RPC_URL, DEFAULT_TIMEOUT, LedgerClient
from metadata_miner.lib.models import MiningResult, TokenOutcome
from metadata_miner.lib.uri_resolver import DEFAULT_IPFS_GATEWAY, UriResolver


DEFAULT_ADDRESSES_FILE = "in/addresses.txt"

# Print a progress line every N processed tokens (the last token always prints)
PROGRESS_INTERVAL = 100


def log(address: str, message: str) -> None:
    """Log a message with address prefix."""
    print(f"[{address}] {message}", file=sys.stderr)


def read_addresses(path: str) -> List[str]:
    """
    Read contract addresses, one per line.

    Surrounding whitespace is stripped; blank lines and lines starting
    with # are ignored.

    Args:
        path: Path of the address list file

    Returns:
        Addresses in file order
    """
    addresses = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            address = line.strip()
            if address and not address.startswith("#"):
                addresses.append(address)
    return addresses


def report_token(address: str, outcome: TokenOutcome, processed: int, total: int) -> None:
    """Log progress for one processed token, and its error if it failed."""
    if not outcome.ok:
        log(address, f"ERROR: tokenId {outcome.token_id}: {outcome.error}")
    if processed == total or processed % PROGRESS_INTERVAL == 0:
        log(address, f"Processed {processed}/{total} tokens")


def mine_address(miner: CollectionMiner, address: str) -> MiningResult:
    """
    Mine a single contract address, logging progress as tokens are processed.

    Args:
        miner: CollectionMiner instance
        address: Contract address

    Returns:
        MiningResult for the address
    """
    log(address, "Starting collection scan...")

    result = miner.mine(
        address,
        on_token=lambda outcome, processed, total: report_token(
            address, outcome, processed, total
        ),
    )

    if result.error:
        log(address, f"ERROR: {result.error}. Skipping address.")
        return result

    log(address, f"Supply: {result.total_supply}")
    log(
        address,
        f"Resolved {len(result.table)} tokens, {len(result.failed_tokens)} failed, "
        f"{result.scanned_ids} token ids scanned",
    )
    log(address, f"Columns: {', '.join(result.headers.columns)}")
    return result


def export_result(result: MiningResult, output_dir: str) -> None:
    """
    Write the JSON and CSV files for a mined address.

    A failure writing one format is logged and does not prevent the other.
    """
    address = result.address
    json_path, csv_path = output_paths(output_dir, address)

    try:
        write_json(result.table, json_path)
        log(address, f"JSON file written to: {json_path}")
    except ExportError as e:
        log(address, f"ERROR: Could not make JSON file: {e}")

    try:
        write_csv(result.table, result.headers, csv_path)
        log(address, f"CSV file written to: {csv_path}")
    except ExportError as e:
        log(address, f"ERROR: Could not make CSV file: {e}")


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, 1 if the address file cannot be read)
    """
    parser = argparse.ArgumentParser(
        description=(
            "Mine token metadata of NFT collections " "and export it as JSON and CSV."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mine every address listed in in/addresses.txt into the current directory
  %(prog)s

  # Use another RPC endpoint and IPFS gateway, write under ./out
  %(prog)s --addresses collections.txt --rpc-url https://eth.llamarpc.com \\
    --ipfs-gateway https://ipfs.io --output-dir out
        """,
    )

    parser.add_argument(
        "--addresses",
        default=DEFAULT_ADDRESSES_FILE,
        help=f"File with one contract address per line (default: {DEFAULT_ADDRESSES_FILE})",
    )
    parser.add_argument(
        "--rpc-url",
        default=DEFAULT_RPC_URL,
        help=f"Ethereum JSON-RPC endpoint (default: {DEFAULT_RPC_URL})",
    )
    parser.add_argument(
        "--output-dir",
        default=".",
        help="Directory under which a folder per address is created (default: .)",
    )
    parser.add_argument(
        "--ipfs-gateway",
        default=DEFAULT_IPFS_GATEWAY,
        help=f"IPFS HTTP gateway used for ipfs:// URIs (default: {DEFAULT_IPFS_GATEWAY})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Per-request timeout in seconds (default: {DEFAULT_TIMEOUT:g})",
    )
    parser.add_argument(
        "--rpc-retries",
        type=int,
        default=0,
        help="Retries for rate-limited or failed RPC requests (default: 0)",
    )
    parser.add_argument(
        "--scan-limit-factor",
        type=int,
        default=DEFAULT_SCAN_LIMIT_FACTOR,
        help=(
            "Abort an address after scanning this many times its totalSupply "
            f"token ids (default: {DEFAULT_SCAN_LIMIT_FACTOR})"
        ),
    )

    parsed_args = parser.parse_args(args)

    if parsed_args.timeout <= 0:
        print("Error: --timeout must be greater than 0", file=sys.stderr)
        return 1

    if parsed_args.rpc_retries < 0 or parsed_args.scan_limit_factor < 1:
        print("Error: --rpc-retries must be >= 0 and --scan-limit-factor >= 1", file=sys.stderr)
        return 1

    try:
        addresses = read_addresses(parsed_args.addresses)
    except OSError as e:
        print(f"Error: could not read address file: {e}", file=sys.stderr)
        return 1

    ledger = LedgerClient(
        parsed_args.rpc_url,
        timeout=parsed_args.timeout,
        max_retries=parsed_args.rpc_retries,
    )
    resolver = UriResolver(gateway=parsed_args.ipfs_gateway, timeout=parsed_args.timeout)
    miner = CollectionMiner(ledger, resolver, scan_limit_factor=parsed_args.scan_limit_factor)

    # Addresses are processed strictly one after another
    for address in addresses:
        result = mine_address(miner, address)
        if result.error is None:
            export_result(result, parsed_args.output_dir)

    print(f"\nProcessed {len(addresses)} address(es).", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
