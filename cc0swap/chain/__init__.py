"""Chain access: the async client seam and the RPC response cache."""

from cc0swap.chain.cache import TtlCache, rpc_cache_key
from cc0swap.chain.client import (
    ChainClient,
    Permit2Allowance,
    TransactionReceipt,
    Web3ChainClient,
)

__all__ = [
    "ChainClient",
    "Permit2Allowance",
    "TransactionReceipt",
    "TtlCache",
    "Web3ChainClient",
    "rpc_cache_key",
]
