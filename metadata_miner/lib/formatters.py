"""
Output formatters for mined collection metadata.

This module handles the per-address JSON document and the CSV table with
dynamically discovered attribute columns. Files are written atomically so
a failed export never leaves a truncated file behind.
"""

import csv
import io
import json
import os
from pathlib import Path
from typing import Any, Dict, List, TextIO, Tuple, Union

from .models import HeaderSet, MetadataTable


JSON_FILENAME = "metadata.json"
CSV_FILENAME = "metadata.csv"

PathLike = Union[str, Path]


class ExportError(Exception):
    """Exception raised when an export file cannot be written."""

    pass


def output_paths(base_dir: PathLike, address: str) -> Tuple[Path, Path]:
    """
    Get the JSON and CSV output paths for a contract address.

    Examples:
        output_paths("out", "0xabc...")
        -> (Path("out/0xabc.../metadata.json"), Path("out/0xabc.../metadata.csv"))
    """
    out_dir = Path(base_dir) / address
    return out_dir / JSON_FILENAME, out_dir / CSV_FILENAME


def atomic_write_text(path: PathLike, content: str) -> None:
    """
    Write text to a file atomically using a temporary file and rename.

    Args:
        path: Destination path; parent directories are created
        content: Text content to write

    Raises:
        ExportError: If the file could not be written
    """
    path = Path(path)
    tmp = path.with_suffix(path.suffix + f".tmp.{os.getpid()}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "w", newline="", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
    except (OSError, UnicodeEncodeError) as e:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass
        raise ExportError(f"Could not write {path}: {e}") from e


def metadata_to_document(table: MetadataTable) -> Dict[str, Dict[str, Any]]:
    """
    Convert a metadata table to the JSON export structure.

    Keys are token ids as strings, in ascending numeric order.
    """
    return {str(token_id): table[token_id].to_dict() for token_id in sorted(table)}


def write_json(table: MetadataTable, path: PathLike) -> None:
    """
    Write the metadata table as a pretty-printed JSON document.

    Args:
        table: Token id -> Metadata
        path: Destination file path
    """
    document = json.dumps(metadata_to_document(table), indent=2, ensure_ascii=False)
    atomic_write_text(path, document + "\n")


def build_rows(table: MetadataTable, headers: HeaderSet) -> List[List[str]]:
    """
    Build CSV rows for a metadata table.

    Each row has exactly one cell per header column. tokenId and name come
    from the Metadata itself; attribute columns a token does not have are
    left empty.

    Args:
        table: Token id -> Metadata
        headers: Column names, beginning with tokenId and name

    Returns:
        One row per token, ordered by token id
    """
    columns = headers.columns
    rows: List[List[str]] = []

    for token_id in sorted(table):
        metadata = table[token_id]
        cells = metadata.attribute_values()
        cells["tokenId"] = str(token_id)
        cells["name"] = metadata.name
        rows.append([cells.get(column, "") for column in columns])

    return rows


def write_csv_to_stream(table: MetadataTable, headers: HeaderSet, stream: TextIO) -> None:
    """
    Write the metadata table as CSV to a stream.

    Args:
        table: Token id -> Metadata
        headers: Column names
        stream: File-like object to write to
    """
    writer = csv.writer(stream)
    writer.writerow(headers)

    for row in build_rows(table, headers):
        writer.writerow(row)


def write_csv(table: MetadataTable, headers: HeaderSet, path: PathLike) -> None:
    """
    Write the metadata table as a CSV file.

    The table is rendered in memory first so that nothing is written to
    the destination unless the whole table is ready.

    Args:
        table: Token id -> Metadata
        headers: Column names
        path: Destination file path
    """
    buffer = io.StringIO()
    write_csv_to_stream(table, headers, buffer)
    atomic_write_text(path, buffer.getvalue())
