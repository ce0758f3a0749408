"""Uniswap v4 pool math, storage layout, quoting and router encoding.

Usage:
    from cc0swap.v4 import PoolKey, QuoteEngine

    key = PoolKey.for_launch_token(token, deployment)
    result = await QuoteEngine(client, deployment).quote(key, amount_in, zero_for_one)

    if result.is_valid:
        display = result.amount_out
    else:
        handle_error(result.error)
"""

from cc0swap.v4.encoding import Action, Command, RouterPlan, V4Plan
from cc0swap.v4.pool_key import PoolKey
from cc0swap.v4.price_math import quote_amount_out, quote_one_for_zero, quote_zero_for_one
from cc0swap.v4.quoter import DebouncedQuoter, QuoteEngine, QuoteError, QuoteResult
from cc0swap.v4.state import Slot0, pool_liquidity_slot, pool_state_slot
from cc0swap.v4.swap import (
    SwapDirection,
    SwapIntent,
    SwapTransaction,
    build_swap_intent,
    build_swap_transaction,
)

__all__ = [
    # Pools
    "PoolKey",
    "Slot0",
    "pool_state_slot",
    "pool_liquidity_slot",
    # Math
    "quote_amount_out",
    "quote_zero_for_one",
    "quote_one_for_zero",
    # Quoting
    "QuoteEngine",
    "QuoteResult",
    "QuoteError",
    "DebouncedQuoter",
    # Encoding
    "Command",
    "Action",
    "RouterPlan",
    "V4Plan",
    # Swaps
    "SwapDirection",
    "SwapIntent",
    "SwapTransaction",
    "build_swap_intent",
    "build_swap_transaction",
]
