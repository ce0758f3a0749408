"""Shared type definitions and value helpers.

These types are used by the API models and by the encoders.
"""

from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from eth_utils import to_checksum_address
from pydantic import BeforeValidator, Field

from cc0swap.constants import UINT256_MAX


def validate_uint256(value: Any) -> str:
    """Validate that a value is a valid uint256 decimal string.

    Args:
        value: Value to validate (string or int)

    Returns:
        Valid uint256 as decimal string

    Raises:
        ValueError: If value is not a valid non-negative integer within uint256 range
    """
    if isinstance(value, bool):
        raise ValueError("Uint256 cannot be a boolean")

    if isinstance(value, int):
        int_value = value
    elif isinstance(value, str):
        try:
            int_value = int(value)
        except ValueError as err:
            raise ValueError(f"Uint256 must be a decimal integer string: '{value}'") from err
    else:
        raise ValueError(f"Uint256 must be string or int, got {type(value).__name__}")

    if int_value < 0:
        raise ValueError(f"Uint256 cannot be negative: {value}")
    if int_value > UINT256_MAX:
        raise ValueError(f"Uint256 overflow: {value} > 2^256-1")

    return str(int_value)


# Ethereum address (40 hex chars after 0x prefix)
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]

# 256-bit unsigned integer as decimal string (validated)
Uint256 = Annotated[
    str,
    BeforeValidator(validate_uint256),
    Field(description="256-bit unsigned integer as decimal string"),
]

# 32-byte word as 0x-prefixed hex (pool ids, storage slots, tx hashes)
Bytes32 = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{64}$")]

# Arbitrary hex bytes
Bytes = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]*$")]


def normalize_address(address: str, *, validate: bool = False) -> str:
    """Normalize an Ethereum address to lowercase.

    Args:
        address: An Ethereum address (with or without 0x prefix)
        validate: If True, raises ValueError for invalid addresses.

    Returns:
        Lowercase address with 0x prefix

    Raises:
        ValueError: If validate=True and address is not a valid Ethereum address
    """
    addr = address.lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr

    if validate and not is_valid_address(addr):
        raise ValueError(f"Invalid address: {address}")

    return addr


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid Ethereum address (0x + 40 hex chars)."""
    if not isinstance(address, str):
        return False
    if not address.startswith("0x"):
        return False
    if len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def to_checksum(address: str) -> str:
    """Return the EIP-55 checksummed form of a valid address."""
    return to_checksum_address(normalize_address(address, validate=True))


def address_as_int(address: str) -> int:
    """Numeric value of an address, the total order used for currency sorting."""
    return int(normalize_address(address, validate=True), 16)


def hex_to_bytes32(value: str | bytes) -> bytes:
    """Parse a 32-byte word given as 0x-hex or raw bytes.

    Raises:
        ValueError: If the value is not exactly 32 bytes
    """
    if isinstance(value, str):
        raw = value[2:] if value.startswith("0x") else value
        try:
            data = bytes.fromhex(raw)
        except ValueError as err:
            raise ValueError(f"Invalid hex word: {value}") from err
    else:
        data = bytes(value)
    if len(data) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(data)}")
    return data


def parse_units(amount: str | Decimal | int, decimals: int = 18) -> int:
    """Convert a human-entered decimal amount to base units.

    Mirrors parseEther: "0.001" with 18 decimals -> 10**15. Digits beyond
    `decimals` are rejected rather than rounded.

    Raises:
        ValueError: If the amount is not a non-negative decimal or has too many decimals
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as err:
        raise ValueError(f"Invalid amount: {amount!r}") from err
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount!r}")

    _, digits, exponent = value.as_tuple()
    coefficient = int("".join(map(str, digits))) if digits else 0
    shift = exponent + decimals
    if shift >= 0:
        return coefficient * 10**shift

    whole, remainder = divmod(coefficient, 10**-shift)
    if remainder:
        raise ValueError(f"Amount {amount} has more than {decimals} decimals")
    return whole


def format_units(amount: int, decimals: int = 18) -> str:
    """Format base units as a plain decimal string (formatEther)."""
    if amount < 0:
        raise ValueError(f"Amount cannot be negative: {amount}")
    whole, fraction = divmod(amount, 10**decimals)
    if fraction == 0:
        return str(whole)
    return f"{whole}.{str(fraction).rjust(decimals, '0').rstrip('0')}"
