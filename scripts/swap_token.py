"""Quote, and optionally execute, a swap of a launched token against WETH.

Quoting needs only an RPC endpoint. Executing signs with the key in the
PRIVATE_KEY environment variable and runs any required approvals first.

Usage:
    RPC_URL=https://mainnet.base.org python -m scripts.swap_token 0xToken 0.001
    RPC_URL=... python -m scripts.swap_token 0xToken 5000 --sell --slippage-bps 500
    RPC_URL=... PRIVATE_KEY=0x... python -m scripts.swap_token 0xToken 0.001 --execute
"""

import argparse
import asyncio
import logging
import os
import sys

import structlog

from cc0swap.chain.client import Web3ChainClient
from cc0swap.config import SwapPolicy, get_deployment
from cc0swap.errors import Cc0SwapError
from cc0swap.models.types import format_units, parse_units
from cc0swap.orchestration import SwapExecutor
from cc0swap.v4.pool_key import PoolKey
from cc0swap.v4.quoter import QuoteEngine
from cc0swap.v4.swap import SwapDirection, build_swap_intent

logger = structlog.get_logger()


async def run_swap(
    rpc_url: str,
    chain_id: int,
    token: str,
    amount: str,
    direction: SwapDirection,
    slippage_bps: int,
    private_key: str | None,
) -> int:
    """Quote the swap and execute it when a signing key is given.

    Returns:
        Process exit code
    """
    deployment = get_deployment(chain_id)
    client = Web3ChainClient(rpc_url, private_key=private_key, chain_id=chain_id)
    engine = QuoteEngine(client, deployment)

    key = PoolKey.for_launch_token(token, deployment)
    currency_in = deployment.weth if direction is SwapDirection.BUY else token
    zero_for_one = key.zero_for_one(currency_in)
    amount_in = parse_units(amount)

    result = await engine.quote(key, amount_in, zero_for_one)
    if result.is_error or result.amount_out is None:
        print(f"Quote failed: {result.error.value if result.error else 'unknown'}")
        if result.error_detail:
            print(f"  {result.error_detail}")
        return 1

    unit_in, unit_out = ("ETH", "tokens") if direction is SwapDirection.BUY else ("tokens", "ETH")
    print(f"Pool:      {key.pool_id_hex()}")
    print(f"Pay:       {format_units(amount_in)} {unit_in}")
    print(f"Receive:   ~{format_units(result.amount_out)} {unit_out}")

    policy = SwapPolicy(slippage_bps=slippage_bps)
    intent = build_swap_intent(key, deployment, direction, amount_in, result.amount_out, policy)
    print(f"Minimum:   {format_units(intent.min_amount_out)} {unit_out}")

    if private_key is None:
        return 0

    outcome = await SwapExecutor(client, deployment, policy).execute(intent)
    for step, tx_hash in outcome.tx_hashes.items():
        print(f"{step.value:<16} {deployment.tx_url(tx_hash)}")
    if not outcome.succeeded:
        print(f"Swap failed at {outcome.failed_step.value if outcome.failed_step else '?'}")
        print(f"  {outcome.error}")
        return 1
    print("Swap confirmed")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.split("\n")[0])
    parser.add_argument("token", help="Launched token address")
    parser.add_argument("amount", help="Input amount in whole units (e.g. 0.001)")
    parser.add_argument(
        "--sell",
        action="store_true",
        help="Sell the token for ETH instead of buying it",
    )
    parser.add_argument(
        "--chain-id",
        type=int,
        default=int(os.environ.get("CC0_CHAIN_ID", "8453")),
        help="Chain id (default: Base)",
    )
    parser.add_argument(
        "--slippage-bps",
        type=int,
        default=1000,
        help="Tolerated shortfall vs. the quote in basis points (default: 1000)",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Sign and send with PRIVATE_KEY",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )

    rpc_url = os.environ.get("RPC_URL")
    if not rpc_url:
        print("Error: RPC_URL environment variable not set")
        return 1

    private_key = None
    if args.execute:
        private_key = os.environ.get("PRIVATE_KEY")
        if not private_key:
            print("Error: --execute requires the PRIVATE_KEY environment variable")
            return 1

    direction = SwapDirection.SELL if args.sell else SwapDirection.BUY
    try:
        return asyncio.run(
            run_swap(
                rpc_url=rpc_url,
                chain_id=args.chain_id,
                token=args.token,
                amount=args.amount,
                direction=direction,
                slippage_bps=args.slippage_bps,
                private_key=private_key,
            )
        )
    except (Cc0SwapError, ValueError) as e:
        logger.error("swap_script_failed", error=str(e))
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
