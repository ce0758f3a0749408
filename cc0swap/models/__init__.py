"""Shared value types and API models."""

from cc0swap.models.types import (
    Address,
    Bytes,
    Bytes32,
    Uint256,
    format_units,
    normalize_address,
    parse_units,
)

__all__ = [
    "Address",
    "Bytes",
    "Bytes32",
    "Uint256",
    "format_units",
    "normalize_address",
    "parse_units",
]
