"""Swap intents and the router transactions that execute them.

Launched tokens trade against WETH. A BUY pays native ETH: the router wraps
it, swaps WETH for the token and pays the token to the caller. A SELL pays
the token through Permit2, takes WETH into the router and unwraps it to
native ETH for the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from cc0swap.config import ChainDeployment, SwapPolicy
from cc0swap.constants import ADDRESS_THIS, MSG_SENDER, OPEN_DELTA, UINT128_MAX
from cc0swap.errors import EncodingError
from cc0swap.models.types import normalize_address

from .encoding import (
    ExactInputSingle,
    RouterPlan,
    SettleAll,
    Take,
    TakeAll,
    UnwrapWeth,
    V4Plan,
    WrapEth,
    check_uint,
)
from .pool_key import PoolKey
from .price_math import apply_bps_discount

logger = structlog.get_logger()


class SwapDirection(str, Enum):
    """Which side the caller pays."""

    BUY = "buy"  # native in, token out
    SELL = "sell"  # token in, native out


@dataclass(frozen=True)
class SwapIntent:
    """A single swap attempt. Built per attempt and never persisted.

    Attributes:
        pool_key: Pool to trade against (must contain the deployment's WETH)
        direction: BUY or SELL
        amount_in: Exact input in base units
        min_amount_out: Reverts on-chain below this output
        token: The launched token side of the pool
    """

    pool_key: PoolKey
    direction: SwapDirection
    amount_in: int
    min_amount_out: int
    token: str

    @property
    def is_native_in(self) -> bool:
        return self.direction is SwapDirection.BUY


@dataclass(frozen=True)
class SwapTransaction:
    """Unsigned router call ready for a wallet."""

    to: str
    data: bytes
    value: int

    def as_dict(self) -> dict[str, object]:
        return {"to": self.to, "data": "0x" + self.data.hex(), "value": self.value}


def min_amount_out(quoted_out: int, slippage_bps: int) -> int:
    """Lowest acceptable output for a quoted amount and slippage tolerance."""
    return apply_bps_discount(quoted_out, slippage_bps)


def build_swap_intent(
    pool_key: PoolKey,
    deployment: ChainDeployment,
    direction: SwapDirection,
    amount_in: int,
    quoted_out: int,
    policy: SwapPolicy | None = None,
) -> SwapIntent:
    """Create an intent from a quote and the caller's slippage policy.

    Raises:
        EncodingError: If the pool is not a WETH pair or amounts are out of range
    """
    policy = policy or SwapPolicy()
    weth = normalize_address(deployment.weth)
    if not pool_key.has_currency(weth):
        raise EncodingError(f"Pool {pool_key.pool_id_hex()} is not paired with WETH {weth}")
    if amount_in <= 0:
        raise EncodingError(f"amount_in must be positive: {amount_in}")
    check_uint(amount_in, 128, "amount_in")

    return SwapIntent(
        pool_key=pool_key,
        direction=direction,
        amount_in=amount_in,
        min_amount_out=min_amount_out(quoted_out, policy.slippage_bps),
        token=pool_key.other_currency(weth),
    )


def build_swap_plan(intent: SwapIntent, deployment: ChainDeployment) -> RouterPlan:
    """Command sequence for an intent.

    BUY:  WRAP_ETH(router, amountIn)
          V4_SWAP[SWAP_EXACT_IN_SINGLE, SETTLE_ALL(WETH), TAKE_ALL(token)]
    SELL: V4_SWAP[SWAP_EXACT_IN_SINGLE, SETTLE_ALL(token), TAKE(WETH -> router)]
          UNWRAP_WETH(caller, minOut)
    """
    key = intent.pool_key
    weth = normalize_address(deployment.weth)
    currency_in = weth if intent.is_native_in else normalize_address(intent.token)
    currency_out = key.other_currency(currency_in)
    zero_for_one = key.zero_for_one(currency_in)

    swap = ExactInputSingle(
        pool_key=key,
        zero_for_one=zero_for_one,
        amount_in=intent.amount_in,
        amount_out_minimum=intent.min_amount_out,
    )

    plan = RouterPlan()
    if intent.is_native_in:
        plan.add(WrapEth(recipient=ADDRESS_THIS, amount_min=intent.amount_in))
        plan.add(
            V4Plan()
            .add(swap)
            .add(SettleAll(currency=currency_in, max_amount=UINT128_MAX))
            .add(TakeAll(currency=currency_out, min_amount=intent.min_amount_out))
        )
    else:
        plan.add(
            V4Plan()
            .add(swap)
            .add(SettleAll(currency=currency_in, max_amount=intent.amount_in))
            .add(Take(currency=currency_out, recipient=ADDRESS_THIS, amount=OPEN_DELTA))
        )
        plan.add(UnwrapWeth(recipient=MSG_SENDER, amount_min=intent.min_amount_out))
    return plan


def build_swap_transaction(
    intent: SwapIntent, deployment: ChainDeployment, deadline: int | None = None
) -> SwapTransaction:
    """Encode the router call for an intent.

    Args:
        intent: The swap to perform
        deployment: Chain addresses (router, WETH)
        deadline: Unix timestamp; None selects the deadline-free execute()

    Returns:
        SwapTransaction with native value attached for BUY
    """
    plan = build_swap_plan(intent, deployment)
    data = plan.encode_execute(deadline)
    value = intent.amount_in if intent.is_native_in else 0

    logger.debug(
        "swap_transaction_built",
        direction=intent.direction.value,
        pool_id=intent.pool_key.pool_id_hex(),
        commands=plan.command_bytes().hex(),
        amount_in=intent.amount_in,
        min_amount_out=intent.min_amount_out,
        value=value,
    )
    return SwapTransaction(to=deployment.universal_router, data=data, value=value)


__all__ = [
    "SwapDirection",
    "SwapIntent",
    "SwapTransaction",
    "build_swap_intent",
    "build_swap_plan",
    "build_swap_transaction",
    "min_amount_out",
]
