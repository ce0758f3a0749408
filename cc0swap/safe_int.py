"""Checked integer wrapper for token amounts and fixed-point prices.

Python integers never wrap, but the values built here end up in fixed-width
ABI fields (uint128, uint160, int24, ...). SafeInt keeps the arbitrary
precision intermediate (squaring a 160-bit sqrt price needs up to 320 bits)
and makes the dangerous cases loud:
- Division by zero raises DivisionByZero
- Subtraction underflow raises Underflow
- Narrowing to a fixed width raises FieldOverflow

Usage pattern:
    from cc0swap.safe_int import S

    def to_token1(amount: int, sqrt_price_x96: int) -> int:
        price_sq = S(sqrt_price_x96) * sqrt_price_x96
        return (S(amount) * price_sq // Q192).to_uint(256)
"""

from __future__ import annotations


class SafeIntError(ArithmeticError):
    """Base class for SafeInt arithmetic errors."""

    pass


class DivisionByZero(SafeIntError):
    """Division or modulo by zero."""

    pass


class Underflow(SafeIntError):
    """Subtraction would produce negative result."""

    pass


class FieldOverflow(SafeIntError):
    """Value does not fit the requested fixed-width integer type."""

    pass


class SafeInt:
    """Integer with checked arithmetic and width conversions.

    Attributes:
        value: The underlying integer value (read-only)
    """

    __slots__ = ("_value",)
    _value: int

    def __init__(self, value: int | SafeInt) -> None:
        if isinstance(value, SafeInt):
            self._value = value._value
        elif isinstance(value, int) and not isinstance(value, bool):
            self._value = value
        else:
            raise TypeError(f"SafeInt requires int, got {type(value).__name__}")

    @property
    def value(self) -> int:
        """The underlying integer value."""
        return self._value

    def __repr__(self) -> str:
        return f"SafeInt({self._value})"

    def __str__(self) -> str:
        return str(self._value)

    def __hash__(self) -> int:
        return hash(self._value)

    # --- Arithmetic operations ---

    def __add__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self._value + _extract_value(other))

    def __radd__(self, other: int) -> SafeInt:
        return SafeInt(other + self._value)

    def __sub__(self, other: SafeInt | int) -> SafeInt:
        """Subtract other from self.

        Raises:
            Underflow: If result would be negative
        """
        other_val = _extract_value(other)
        result = self._value - other_val
        if result < 0:
            raise Underflow(f"Underflow: {self._value} - {other_val} = {result}")
        return SafeInt(result)

    def __mul__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self._value * _extract_value(other))

    def __rmul__(self, other: int) -> SafeInt:
        return SafeInt(other * self._value)

    def __floordiv__(self, other: SafeInt | int) -> SafeInt:
        """Integer division (rounds toward negative infinity).

        Raises:
            DivisionByZero: If other is zero
        """
        other_val = _extract_value(other)
        if other_val == 0:
            raise DivisionByZero(f"Division by zero: {self._value} // 0")
        return SafeInt(self._value // other_val)

    def ceiling_div(self, other: SafeInt | int) -> SafeInt:
        """Ceiling division for non-negative operands.

        Raises:
            DivisionByZero: If other is zero
        """
        other_val = _extract_value(other)
        if other_val == 0:
            raise DivisionByZero(f"Ceiling division by zero: {self._value}")
        return SafeInt(-(-self._value // other_val))

    # --- Comparison operations ---

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SafeInt):
            return self._value == other._value
        if isinstance(other, int):
            return self._value == other
        return NotImplemented

    def __lt__(self, other: SafeInt | int) -> bool:
        return self._value < _extract_value(other)

    def __le__(self, other: SafeInt | int) -> bool:
        return self._value <= _extract_value(other)

    def __gt__(self, other: SafeInt | int) -> bool:
        return self._value > _extract_value(other)

    def __ge__(self, other: SafeInt | int) -> bool:
        return self._value >= _extract_value(other)

    # --- Conversion ---

    def __int__(self) -> int:
        return self._value

    def __bool__(self) -> bool:
        return self._value != 0

    def __index__(self) -> int:
        return self._value

    def to_uint(self, bits: int = 256) -> int:
        """Convert to int, validating it fits an unsigned `bits`-wide field.

        Raises:
            FieldOverflow: If value is negative or exceeds 2**bits - 1
        """
        if self._value < 0:
            raise FieldOverflow(f"Negative value cannot be uint{bits}: {self._value}")
        if self._value >= 1 << bits:
            raise FieldOverflow(f"Value exceeds uint{bits} max: {self._value}")
        return self._value

    def to_int(self, bits: int) -> int:
        """Convert to int, validating it fits a signed `bits`-wide field.

        Raises:
            FieldOverflow: If value is outside [-2**(bits-1), 2**(bits-1) - 1]
        """
        bound = 1 << (bits - 1)
        if not -bound <= self._value < bound:
            raise FieldOverflow(f"Value out of int{bits} range: {self._value}")
        return self._value

    def fits_uint(self, bits: int = 256) -> bool:
        """Check if value fits in an unsigned `bits`-wide field without raising."""
        return 0 <= self._value < 1 << bits


def _extract_value(x: SafeInt | int) -> int:
    """Extract integer value from SafeInt or int."""
    if isinstance(x, SafeInt):
        return x._value
    return x


# Convenience alias for concise code
S = SafeInt
