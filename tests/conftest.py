"""Pytest configuration and fixtures."""

import pytest

from cc0swap.config import BASE, ChainDeployment, QuotePolicy
from cc0swap.v4.pool_key import PoolKey
from cc0swap.v4.quoter import QuoteEngine
from tests.helpers import (
    FAST_RETRY,
    POOL_STATE_SLOT,
    SQRT_PRICE_2_86,
    FakeChainClient,
    make_pool_key,
    make_slot0_word,
)


# =============================================================================
# Deployment and pool
# =============================================================================


@pytest.fixture
def deployment() -> ChainDeployment:
    """The Base deployment, validated."""
    return BASE.validate()


@pytest.fixture
def pool_key() -> PoolKey:
    """The TOKEN/WETH launch pool."""
    return make_pool_key()


# =============================================================================
# Fake chain
# =============================================================================


@pytest.fixture
def pool_storage() -> dict[bytes, bytes]:
    """Pool manager storage holding an initialized launch pool at sqrtP = 2**86."""
    return {bytes.fromhex(POOL_STATE_SLOT[2:]): make_slot0_word(SQRT_PRICE_2_86, tick=-138637)}


@pytest.fixture
def fake_client(pool_storage: dict[bytes, bytes]) -> FakeChainClient:
    """A fake chain client over the initialized launch pool."""
    return FakeChainClient(storage=pool_storage)


@pytest.fixture
def quote_engine(fake_client: FakeChainClient, deployment: ChainDeployment) -> QuoteEngine:
    """A quote engine with the default 2% display buffer and no retry delay."""
    return QuoteEngine(fake_client, deployment, QuotePolicy(), FAST_RETRY)
