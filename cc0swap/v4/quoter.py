"""Spot-price quote engine over raw pool-manager storage.

One quote is one `extsload` read of the pool's slot0 word, decoded and run
through the price math, then discounted by the display buffer. Failures are
returned as `QuoteResult` errors; nothing raises into the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cc0swap.config import ChainDeployment, QuotePolicy, RetryPolicy
from cc0swap.constants import UINT128_MAX
from cc0swap.errors import PoolStateError, ReadFailure
from cc0swap.safe_int import SafeIntError

from .pool_key import PoolKey
from .price_math import apply_bps_discount, apply_pip_fee, quote_amount_out
from .state import Slot0, pool_state_slot

if TYPE_CHECKING:
    from cc0swap.chain.client import ChainClient

logger = structlog.get_logger()


class QuoteError(Enum):
    """Reasons a quote could not be produced."""

    POOL_UNINITIALIZED = "pool_uninitialized"
    INVALID_POOL_STATE = "invalid_pool_state"
    READ_FAILED = "read_failed"
    INVALID_AMOUNT = "invalid_amount"


@dataclass(frozen=True)
class QuoteResult:
    """Result of a quote.

    Attributes:
        amount_out: Display estimate after fee deduction and buffer, or None on error
        raw_amount_out: Spot-price estimate before any discount
        sqrt_price_x96: Pool price the estimate was computed from
        tick: Pool tick at read time
        lp_fee: Pool LP fee in pips at read time
        error: If the quote failed, why
        error_detail: Human-readable detail about the error
    """

    amount_out: int | None
    raw_amount_out: int | None = None
    sqrt_price_x96: int | None = None
    tick: int | None = None
    lp_fee: int | None = None
    error: QuoteError | None = None
    error_detail: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def with_error(cls, error: QuoteError, detail: str | None = None) -> QuoteResult:
        """Create an error result."""
        return cls(amount_out=None, error=error, error_detail=detail)


class QuoteEngine:
    """Quotes exact-input swaps against a pool's current spot price."""

    def __init__(
        self,
        client: ChainClient,
        deployment: ChainDeployment,
        policy: QuotePolicy | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.client = client
        self.deployment = deployment
        self.policy = policy or QuotePolicy()
        self.retry = retry or RetryPolicy()

    async def read_slot0(self, pool_id: bytes | str) -> Slot0:
        """Read and decode a pool's slot0, retrying transient read failures.

        Raises:
            ReadFailure: If every attempt failed
        """
        slot = pool_state_slot(pool_id, self.deployment.pools_slot)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry.attempts),
            wait=wait_exponential(
                multiplier=self.retry.backoff_seconds, max=self.retry.max_backoff_seconds
            ),
            retry=retry_if_exception_type(ReadFailure),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                word = await self.client.extsload(self.deployment.pool_manager, slot)
        return Slot0.unpack(word)

    async def quote(
        self, pool: PoolKey | bytes | str, amount_in: int, zero_for_one: bool
    ) -> QuoteResult:
        """Estimate the output of an exact-input swap.

        Args:
            pool: PoolKey or 32-byte pool id
            amount_in: Input amount in base units
            zero_for_one: True if the input is currency0

        Returns:
            QuoteResult with the display estimate, or an error
        """
        if isinstance(amount_in, bool) or not isinstance(amount_in, int) or amount_in < 0:
            return QuoteResult.with_error(QuoteError.INVALID_AMOUNT, f"amount_in={amount_in!r}")
        # The router takes amountIn as uint128
        if amount_in > UINT128_MAX:
            return QuoteResult.with_error(
                QuoteError.INVALID_AMOUNT, f"amount_in exceeds uint128: {amount_in}"
            )

        pool_id = pool.pool_id() if isinstance(pool, PoolKey) else pool
        log = logger.bind(
            pool_id=pool_id if isinstance(pool_id, str) else "0x" + pool_id.hex(),
            zero_for_one=zero_for_one,
        )

        try:
            state = (await self.read_slot0(pool_id)).validate()
        except ReadFailure as e:
            log.warning("quote_read_failed", error=str(e), attempts=self.retry.attempts)
            return QuoteResult.with_error(QuoteError.READ_FAILED, str(e))
        except PoolStateError as e:
            error = (
                QuoteError.POOL_UNINITIALIZED if e.uninitialized else QuoteError.INVALID_POOL_STATE
            )
            log.info("quote_pool_state_rejected", error=str(e))
            return QuoteResult.with_error(error, str(e))
        except ValueError as e:
            log.warning("quote_invalid_word", error=str(e))
            return QuoteResult.with_error(QuoteError.INVALID_POOL_STATE, str(e))

        try:
            raw_out = quote_amount_out(state.sqrt_price_x96, amount_in, zero_for_one)
        except PoolStateError as e:
            return QuoteResult.with_error(QuoteError.INVALID_POOL_STATE, str(e))
        except SafeIntError as e:
            log.info("quote_amount_overflow", amount_in=amount_in, error=str(e))
            return QuoteResult.with_error(QuoteError.INVALID_AMOUNT, str(e))

        amount_out = raw_out
        if self.policy.deduct_lp_fee:
            try:
                amount_out = apply_pip_fee(amount_out, state.lp_fee)
            except ValueError as e:
                return QuoteResult.with_error(QuoteError.INVALID_POOL_STATE, str(e))
        amount_out = apply_bps_discount(amount_out, self.policy.display_buffer_bps)

        log.debug(
            "quote_computed",
            amount_in=amount_in,
            raw_amount_out=raw_out,
            amount_out=amount_out,
            tick=state.tick,
        )
        return QuoteResult(
            amount_out=amount_out,
            raw_amount_out=raw_out,
            sqrt_price_x96=state.sqrt_price_x96,
            tick=state.tick,
            lp_fee=state.lp_fee,
        )


class DebouncedQuoter:
    """Last-write-wins wrapper for quotes driven by rapid input changes.

    Each request waits `delay` seconds before reading. A newer request
    cancels the pending one, and a result whose request has been superseded
    is dropped (returned as None).
    """

    def __init__(self, engine: QuoteEngine, delay: float = 0.5):
        self.engine = engine
        self.delay = delay
        self._generation = 0
        self._pending: asyncio.Task[QuoteResult] | None = None

    async def _delayed(
        self, pool: PoolKey | bytes | str, amount_in: int, zero_for_one: bool
    ) -> QuoteResult:
        await asyncio.sleep(self.delay)
        return await self.engine.quote(pool, amount_in, zero_for_one)

    async def request(
        self, pool: PoolKey | bytes | str, amount_in: int, zero_for_one: bool
    ) -> QuoteResult | None:
        """Quote after the debounce delay unless superseded.

        Returns:
            QuoteResult for the latest request, None for a superseded one
        """
        self._generation += 1
        generation = self._generation
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

        task = asyncio.ensure_future(self._delayed(pool, amount_in, zero_for_one))
        self._pending = task
        try:
            result = await task
        except asyncio.CancelledError:
            if task.cancelled() and generation != self._generation:
                return None
            raise
        if generation != self._generation:
            logger.debug("quote_superseded", generation=generation, latest=self._generation)
            return None
        return result


__all__ = ["DebouncedQuoter", "QuoteEngine", "QuoteError", "QuoteResult"]
