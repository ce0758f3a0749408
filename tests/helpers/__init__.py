"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Deployment addresses, the launch pool and golden values
- factories: Pool key, storage word and log factory functions
- fakes: In-memory ChainClient
"""

from tests.helpers.constants import (
    HOOK,
    MILLI_ETH,
    ONE_ETH,
    OWNER,
    POOL_ID,
    POOL_STATE_SLOT,
    SQRT_PRICE_2_86,
    TOKEN,
    WETH,
)
from tests.helpers.factories import (
    decode_args,
    make_pool_key,
    make_slot0_word,
    make_token_created_log,
)
from tests.helpers.fakes import FAST_RETRY, FailingLogsClient, FakeChainClient

__all__ = [
    # Constants
    "HOOK",
    "MILLI_ETH",
    "ONE_ETH",
    "OWNER",
    "POOL_ID",
    "POOL_STATE_SLOT",
    "SQRT_PRICE_2_86",
    "TOKEN",
    "WETH",
    # Factories
    "decode_args",
    "make_pool_key",
    "make_slot0_word",
    "make_token_created_log",
    # Fakes
    "FAST_RETRY",
    "FailingLogsClient",
    "FakeChainClient",
]
