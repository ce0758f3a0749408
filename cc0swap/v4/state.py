"""Raw pool-manager storage layout: slot derivation and slot0 unpacking.

The pool manager stores `mapping(PoolId => Pool.State) pools` at a fixed
slot. Solidity places `pools[id]` at keccak256(id ++ uint256(slot)), and
Pool.State starts with the packed slot0 word:

    bits   0..159  sqrtPriceX96 (uint160)
    bits 160..183  tick (int24)
    bits 184..207  protocolFee (uint24)
    bits 208..231  lpFee (uint24)
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_utils import keccak

from cc0swap.constants import (
    LIQUIDITY_OFFSET,
    MAX_SQRT_PRICE,
    MAX_TICK,
    MIN_SQRT_PRICE,
    MIN_TICK,
    POOLS_SLOT,
    UINT160_MAX,
)
from cc0swap.errors import PoolStateError
from cc0swap.models.types import hex_to_bytes32

_TICK_SHIFT = 160
_PROTOCOL_FEE_SHIFT = 184
_LP_FEE_SHIFT = 208
_UINT24_MASK = (1 << 24) - 1


def pool_state_slot(pool_id: bytes | str, pools_slot: int = POOLS_SLOT) -> bytes:
    """Storage slot of `pools[pool_id]` (the slot0 word).

    Args:
        pool_id: 32-byte pool identifier (bytes or 0x-hex)
        pools_slot: Declared slot index of the `pools` mapping

    Returns:
        32-byte slot key for extsload / eth_getStorageAt
    """
    if pools_slot < 0:
        raise ValueError(f"pools_slot cannot be negative: {pools_slot}")
    return keccak(hex_to_bytes32(pool_id) + pools_slot.to_bytes(32, "big"))


def pool_liquidity_slot(pool_id: bytes | str, pools_slot: int = POOLS_SLOT) -> bytes:
    """Storage slot of `pools[pool_id].liquidity`."""
    base = int.from_bytes(pool_state_slot(pool_id, pools_slot), "big")
    return ((base + LIQUIDITY_OFFSET) % 2**256).to_bytes(32, "big")


def _signed24(raw: int) -> int:
    return raw - (1 << 24) if raw & (1 << 23) else raw


@dataclass(frozen=True)
class Slot0:
    """Decoded slot0 word of a pool.

    Attributes:
        sqrt_price_x96: Current sqrt price (Q64.96); zero means uninitialized
        tick: Current tick
        protocol_fee: Packed protocol fee (two 12-bit directional fees)
        lp_fee: Current LP fee in pips
    """

    sqrt_price_x96: int
    tick: int
    protocol_fee: int
    lp_fee: int

    @classmethod
    def unpack(cls, word: bytes | str | int) -> Slot0:
        """Decode a raw 256-bit storage word by masking each sub-field."""
        if isinstance(word, int):
            value = word
        else:
            value = int.from_bytes(hex_to_bytes32(word), "big")
        return cls(
            sqrt_price_x96=value & UINT160_MAX,
            tick=_signed24((value >> _TICK_SHIFT) & _UINT24_MASK),
            protocol_fee=(value >> _PROTOCOL_FEE_SHIFT) & _UINT24_MASK,
            lp_fee=(value >> _LP_FEE_SHIFT) & _UINT24_MASK,
        )

    @property
    def is_initialized(self) -> bool:
        return self.sqrt_price_x96 != 0

    def validate(self) -> Slot0:
        """Reject state that cannot belong to a tradable pool.

        Raises:
            PoolStateError: If uninitialized, or the price or tick is out of range
        """
        if not self.is_initialized:
            raise PoolStateError("Pool not initialized", uninitialized=True)
        # TickMath range: MIN_SQRT_PRICE inclusive, MAX_SQRT_PRICE exclusive
        if not MIN_SQRT_PRICE <= self.sqrt_price_x96 < MAX_SQRT_PRICE:
            raise PoolStateError(
                f"Invalid pool state: sqrtPriceX96 {self.sqrt_price_x96} out of range"
            )
        if not MIN_TICK <= self.tick <= MAX_TICK:
            raise PoolStateError(f"Invalid pool state: tick {self.tick} out of range")
        return self


__all__ = ["Slot0", "pool_liquidity_slot", "pool_state_slot"]
