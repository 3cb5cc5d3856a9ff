"""
Data models for NFT collection metadata mining.

This module defines the Metadata and Attribute entities decoded from token
metadata documents, the ordered header set used for CSV output, and the
result structures produced while mining a single contract.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


# Fixed leading CSV columns, always populated from the Metadata entity itself
FIXED_COLUMNS = ["tokenId", "name"]


class SchemaError(Exception):
    """Exception raised when a metadata document does not match the expected shape."""

    pass


@dataclass(frozen=True)
class Attribute:
    """A single trait of a token. The value is always stored as a string."""

    trait_type: str
    value: str
    display_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "trait_type": self.trait_type,
            "value": self.value,
            "display_type": self.display_type,
        }


@dataclass(frozen=True)
class Metadata:
    """
    Decoded metadata document for one token.

    Only the name and the attribute list are kept; other fields of the
    source document (image, description, ...) are ignored.
    """

    name: str
    attributes: Tuple[Attribute, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the structure written to the JSON export."""
        return {
            "name": self.name,
            "attributes": [attr.to_dict() for attr in self.attributes],
        }

    def attribute_values(self) -> Dict[str, str]:
        """Map trait_type to value; later duplicates overwrite earlier ones."""
        values: Dict[str, str] = {}
        for attr in self.attributes:
            values[attr.trait_type] = attr.value
        return values


# Token id -> decoded metadata for one contract
MetadataTable = Dict[int, Metadata]


class HeaderSet:
    """
    Ordered set of CSV column names.

    Always starts with tokenId and name, followed by every distinct
    trait_type in first-seen order. Frozen before export.
    """

    def __init__(self) -> None:
        self._columns: List[str] = list(FIXED_COLUMNS)
        self._seen = set(FIXED_COLUMNS)
        self._frozen = False

    def add(self, column: str) -> bool:
        """Append a column if not already present. Returns True if it was added."""
        if self._frozen:
            raise RuntimeError("HeaderSet is frozen")
        if column in self._seen:
            return False
        self._seen.add(column)
        self._columns.append(column)
        return True

    def fold(self, metadata: Metadata) -> None:
        """Add every trait_type of a token's attributes."""
        for attr in metadata.attributes:
            self.add(attr.trait_type)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._columns))

    def __contains__(self, column: object) -> bool:
        return column in self._seen


@dataclass
class TokenOutcome:
    """Result of resolving a single recognized token id."""

    token_id: int
    metadata: Optional[Metadata] = None
    error: Optional[str] = None  # Error message if resolution failed

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class MiningResult:
    """
    Result of mining a single contract address.

    When error is set the address could not be mined at all and the
    table is empty.
    """

    address: str
    total_supply: int = 0
    table: MetadataTable = field(default_factory=dict)
    headers: HeaderSet = field(default_factory=HeaderSet)
    failed_tokens: List[TokenOutcome] = field(default_factory=list)
    scanned_ids: int = 0  # Token ids queried, including ones the ledger rejected
    error: Optional[str] = None  # Fatal address error message


def _normalize_value(value: Union[str, int, float]) -> str:
    """Normalize a string or numeric attribute value to its string form."""
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if value.is_integer():
        return str(int(value))
    # Positional notation, never exponent form (1e-07 -> "0.0000001")
    return format(Decimal(repr(value)), "f")


def _decode_attribute(raw: Any, index: int) -> Attribute:
    if not isinstance(raw, dict):
        raise SchemaError(f"attributes[{index}] is not an object")

    trait_type = raw.get("trait_type")
    if not isinstance(trait_type, str):
        raise SchemaError(f"attributes[{index}].trait_type missing or not a string")

    if "value" not in raw:
        raise SchemaError(f"attributes[{index}].value missing")
    value = raw["value"]
    # bool is an int subclass, but true/false is not a valid value here
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise SchemaError(f"attributes[{index}].value must be a string or number")

    display_type = raw.get("display_type")
    if display_type is not None and not isinstance(display_type, str):
        raise SchemaError(f"attributes[{index}].display_type must be a string")

    return Attribute(
        trait_type=trait_type,
        value=_normalize_value(value),
        display_type=display_type,
    )


def decode_metadata(payload: bytes) -> Metadata:
    """
    Parse a resolved metadata document.

    Attribute values encoded as numbers are normalized to strings here, so
    nothing downstream ever sees a non-string value.

    Args:
        payload: Raw bytes of a JSON metadata document

    Returns:
        Decoded Metadata

    Raises:
        SchemaError: If the payload is not JSON or lacks a required field
    """
    try:
        document = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise SchemaError(f"Invalid metadata document: {e}") from e

    if not isinstance(document, dict):
        raise SchemaError("Metadata document is not an object")

    name = document.get("name")
    if not isinstance(name, str):
        raise SchemaError("name missing or not a string")

    raw_attributes = document.get("attributes")
    if not isinstance(raw_attributes, list):
        raise SchemaError("attributes missing or not a list")

    attributes = tuple(_decode_attribute(raw, i) for i, raw in enumerate(raw_attributes))
    return Metadata(name=name, attributes=attributes)
