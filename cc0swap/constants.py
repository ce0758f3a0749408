"""Protocol constants for the swap core.

Centralizes fixed-point scales, tick bounds and router sentinel addresses.
Anything that differs between deployments lives in cc0swap.config instead.
"""

# Fixed-point scale of sqrtPriceX96 (Q64.96)
Q96 = 2**96
Q192 = Q96 * Q96

# Integer widths used by the pool manager and router ABIs
UINT48_MAX = 2**48 - 1
UINT128_MAX = 2**128 - 1
UINT160_MAX = 2**160 - 1
UINT256_MAX = 2**256 - 1
INT24_MIN = -(2**23)
INT24_MAX = 2**23 - 1

# Tick bounds (TickMath.MIN_TICK / MAX_TICK)
MIN_TICK = -887272
MAX_TICK = 887272

# sqrt price bounds matching MIN_TICK / MAX_TICK
MIN_SQRT_PRICE = 4295128739
MAX_SQRT_PRICE = 1461446703485210103287273052203988822378723970342

# Tick spacing bounds enforced by the pool manager on initialize
MIN_TICK_SPACING = 1
MAX_TICK_SPACING = 32767

# LP fees are in pips (hundredths of a basis point): 1_000_000 = 100%
MAX_LP_FEE = 1_000_000

# Fee sentinel marking a pool whose hook sets the fee dynamically
DYNAMIC_FEE_FLAG = 0x800000

# Tick spacing of pools created by the launch factory
LAUNCH_TICK_SPACING = 200

# Storage slot of the `pools` mapping inside the pool manager
POOLS_SLOT = 6

# Offset of `liquidity` inside Pool.State (slot0, feeGrowth0, feeGrowth1, liquidity)
LIQUIDITY_OFFSET = 3

# Router recipient sentinels (ActionConstants)
MSG_SENDER = "0x0000000000000000000000000000000000000001"
ADDRESS_THIS = "0x0000000000000000000000000000000000000002"

# Amount sentinel meaning "the full open delta"
OPEN_DELTA = 0

# Native currency is represented by the zero address in a PoolKey
NATIVE_CURRENCY = "0x0000000000000000000000000000000000000000"

# Basis point denominator
BPS_DENOMINATOR = 10_000
