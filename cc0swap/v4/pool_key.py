"""PoolKey and pool identifier derivation for singleton pool manager pools."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from eth_abi import encode
from eth_utils import keccak

from cc0swap.constants import (
    DYNAMIC_FEE_FLAG,
    MAX_LP_FEE,
    MAX_TICK_SPACING,
    MIN_TICK_SPACING,
)
from cc0swap.errors import EncodingError
from cc0swap.models.types import address_as_int, normalize_address

if TYPE_CHECKING:
    from cc0swap.config import ChainDeployment

# abi.encode(PoolKey) field order
POOL_KEY_ABI = "(address,address,uint24,int24,address)"


def validate_fee(fee: int) -> int:
    """Check an LP fee in pips, allowing the dynamic fee sentinel.

    Raises:
        EncodingError: If the fee is neither a valid static fee nor the sentinel
    """
    if fee == DYNAMIC_FEE_FLAG:
        return fee
    if not 0 <= fee <= MAX_LP_FEE:
        raise EncodingError(f"Fee {fee} outside [0, {MAX_LP_FEE}] and not DYNAMIC_FEE_FLAG")
    return fee


def validate_tick_spacing(tick_spacing: int) -> int:
    """Check a tick spacing against the pool manager's bounds.

    Raises:
        EncodingError: If the spacing is out of range
    """
    if not MIN_TICK_SPACING <= tick_spacing <= MAX_TICK_SPACING:
        raise EncodingError(
            f"Tick spacing {tick_spacing} outside [{MIN_TICK_SPACING}, {MAX_TICK_SPACING}]"
        )
    return tick_spacing


@dataclass(frozen=True)
class PoolKey:
    """Identifies a pool inside the pool manager.

    Addresses are stored lowercase. `currency0` must sort strictly below
    `currency1` numerically; use `from_tokens` to build a key from an
    unordered pair.

    Attributes:
        currency0: Lower-sorted currency address
        currency1: Higher-sorted currency address
        fee: LP fee in pips, or DYNAMIC_FEE_FLAG
        tick_spacing: Price granularity step
        hooks: Hook contract invoked on pool events
    """

    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str

    def __post_init__(self) -> None:
        try:
            c0 = normalize_address(self.currency0, validate=True)
            c1 = normalize_address(self.currency1, validate=True)
            hooks = normalize_address(self.hooks, validate=True)
        except ValueError as err:
            raise EncodingError(str(err)) from err

        if int(c0, 16) >= int(c1, 16):
            raise EncodingError(f"currency0 {c0} must sort below currency1 {c1}")
        validate_fee(self.fee)
        validate_tick_spacing(self.tick_spacing)

        object.__setattr__(self, "currency0", c0)
        object.__setattr__(self, "currency1", c1)
        object.__setattr__(self, "hooks", hooks)

    @classmethod
    def from_tokens(
        cls, token_a: str, token_b: str, fee: int, tick_spacing: int, hooks: str
    ) -> PoolKey:
        """Build a key from two currencies in any order."""
        if address_as_int(token_a) <= address_as_int(token_b):
            return cls(token_a, token_b, fee, tick_spacing, hooks)
        return cls(token_b, token_a, fee, tick_spacing, hooks)

    @classmethod
    def for_launch_token(cls, token: str, deployment: ChainDeployment) -> PoolKey:
        """Standard key of a launched token: token/WETH with the shared hook."""
        return cls.from_tokens(
            token,
            deployment.weth,
            deployment.pool_fee,
            deployment.tick_spacing,
            deployment.hook,
        )

    def as_abi_tuple(self) -> tuple[str, str, int, int, str]:
        """Values in ABI field order: (currency0, currency1, fee, tickSpacing, hooks)."""
        return (self.currency0, self.currency1, self.fee, self.tick_spacing, self.hooks)

    def pool_id(self) -> bytes:
        """keccak256(abi.encode(key)), the pool manager's lookup key."""
        return keccak(encode([POOL_KEY_ABI], [self.as_abi_tuple()]))

    def pool_id_hex(self) -> str:
        return "0x" + self.pool_id().hex()

    def has_currency(self, currency: str) -> bool:
        addr = normalize_address(currency)
        return addr in (self.currency0, self.currency1)

    def zero_for_one(self, currency_in: str) -> bool:
        """Swap direction flag for an input currency.

        True when paying currency0 to receive currency1.

        Raises:
            ValueError: If the currency is not in the pool
        """
        addr = normalize_address(currency_in)
        if addr == self.currency0:
            return True
        if addr == self.currency1:
            return False
        raise ValueError(f"Currency {currency_in} not in pool")

    def other_currency(self, currency: str) -> str:
        """The counterpart of `currency` in this pool."""
        return self.currency1 if self.zero_for_one(currency) else self.currency0


__all__ = ["POOL_KEY_ABI", "PoolKey", "validate_fee", "validate_tick_spacing"]
