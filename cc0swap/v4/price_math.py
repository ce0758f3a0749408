"""Spot-price quote math on Q64.96 square-root prices.

These functions estimate output at the current pool price without
integrating across ticks (no price impact). The estimate is for display and
for deriving a minimum-output bound; the chain enforces the real curve.

price (currency1 per currency0) = (sqrtPriceX96 / 2**96) ** 2
"""

from decimal import Decimal, localcontext

from cc0swap.constants import BPS_DENOMINATOR, MAX_LP_FEE, Q192, UINT160_MAX
from cc0swap.errors import PoolStateError
from cc0swap.safe_int import S


def check_sqrt_price(sqrt_price_x96: int) -> int:
    """Validate a sqrt price before any arithmetic.

    Raises:
        PoolStateError: If the price is zero (uninitialized pool) or wider than 160 bits
    """
    if sqrt_price_x96 == 0:
        raise PoolStateError("Pool not initialized: sqrtPriceX96 is zero", uninitialized=True)
    if not 0 < sqrt_price_x96 <= UINT160_MAX:
        raise PoolStateError(f"sqrtPriceX96 out of range: {sqrt_price_x96}")
    return sqrt_price_x96


def quote_zero_for_one(sqrt_price_x96: int, amount_in: int) -> int:
    """Estimate currency1 received for `amount_in` of currency0.

    amount_out = amount_in * sqrtP**2 / 2**192 (floored)
    """
    check_sqrt_price(sqrt_price_x96)
    price_sq = S(sqrt_price_x96) * sqrt_price_x96
    return (S(amount_in) * price_sq // Q192).to_uint(256)


def quote_one_for_zero(sqrt_price_x96: int, amount_in: int) -> int:
    """Estimate currency0 received for `amount_in` of currency1.

    amount_out = amount_in * 2**192 / sqrtP**2 (floored)
    """
    check_sqrt_price(sqrt_price_x96)
    price_sq = S(sqrt_price_x96) * sqrt_price_x96
    return (S(amount_in) * Q192 // price_sq).to_uint(256)


def quote_amount_out(sqrt_price_x96: int, amount_in: int, zero_for_one: bool) -> int:
    """Dispatch on swap direction.

    Args:
        sqrt_price_x96: Current pool sqrt price (Q64.96)
        amount_in: Input amount in the input currency's base units
        zero_for_one: True if the input is currency0

    Raises:
        PoolStateError: If the sqrt price is zero or out of range
        ValueError: If amount_in is negative
    """
    if amount_in < 0:
        raise ValueError(f"amount_in cannot be negative: {amount_in}")
    if zero_for_one:
        return quote_zero_for_one(sqrt_price_x96, amount_in)
    return quote_one_for_zero(sqrt_price_x96, amount_in)


def apply_bps_discount(amount: int, bps: int) -> int:
    """Remove `bps` basis points from an amount, rounding down."""
    if not 0 <= bps <= BPS_DENOMINATOR:
        raise ValueError(f"bps out of range: {bps}")
    return (S(amount) * (BPS_DENOMINATOR - bps) // BPS_DENOMINATOR).value


def apply_pip_fee(amount: int, fee_pips: int) -> int:
    """Remove an LP fee expressed in pips (1_000_000 = 100%)."""
    if not 0 <= fee_pips <= MAX_LP_FEE:
        raise ValueError(f"fee_pips out of range: {fee_pips}")
    return (S(amount) * (MAX_LP_FEE - fee_pips) // MAX_LP_FEE).value


def price_from_sqrt(sqrt_price_x96: int, decimals0: int = 18, decimals1: int = 18) -> Decimal:
    """Human price of currency0 in currency1 units, adjusted for decimals."""
    check_sqrt_price(sqrt_price_x96)
    with localcontext() as ctx:
        ctx.prec = 60
        raw = Decimal(sqrt_price_x96 * sqrt_price_x96) / Decimal(Q192)
        return raw.scaleb(decimals0 - decimals1)


__all__ = [
    "apply_bps_discount",
    "apply_pip_fee",
    "check_sqrt_price",
    "price_from_sqrt",
    "quote_amount_out",
    "quote_one_for_zero",
    "quote_zero_for_one",
]
