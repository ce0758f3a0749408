"""Tests for chain deployments, policies and environment settings."""

import pytest

from cc0swap.config import (
    BASE,
    DEPLOYMENTS,
    ETHEREUM,
    ZERO_ADDRESS,
    ChainDeployment,
    QuotePolicy,
    RetryPolicy,
    Settings,
    SwapPolicy,
    get_deployment,
)
from cc0swap.errors import ConfigurationError


def make_deployment(**overrides) -> ChainDeployment:
    fields = {
        "chain_id": 31337,
        "name": "local",
        "pool_manager": BASE.pool_manager,
        "universal_router": BASE.universal_router,
        "permit2": BASE.permit2,
        "weth": BASE.weth,
        "factory": BASE.factory,
        "hook": BASE.hook,
    }
    fields.update(overrides)
    return ChainDeployment(**fields)


class TestDeployments:
    def test_known_chains(self):
        """Base and Ethereum are registered by chain id."""
        assert DEPLOYMENTS[8453] is BASE
        assert DEPLOYMENTS[1] is ETHEREUM
        assert get_deployment(8453) is BASE

    def test_unknown_chain_raises(self):
        """An unsupported chain id fails fast with ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Unsupported chain id 10"):
            get_deployment(10)

    def test_missing_address_raises(self):
        """A missing required address is a configuration error."""
        deployments = {31337: make_deployment(hook="")}
        with pytest.raises(ConfigurationError, match="hook"):
            get_deployment(31337, deployments)

    def test_zero_address_raises(self):
        """The zero address means the contract is not deployed."""
        with pytest.raises(ConfigurationError, match="not deployed"):
            make_deployment(universal_router=ZERO_ADDRESS).validate()

    def test_launch_pool_defaults(self):
        """Launch pools use the dynamic fee flag, tick spacing 200 and pools slot 6."""
        assert BASE.pool_fee == 0x800000
        assert BASE.tick_spacing == 200
        assert BASE.pools_slot == 6

    def test_explorer_links(self):
        assert BASE.tx_url("0xabc") == "https://basescan.org/tx/0xabc"
        assert ETHEREUM.token_url("0xdef") == "https://etherscan.io/token/0xdef"


class TestPolicies:
    def test_defaults(self):
        """Defaults: 2% display buffer, 10% slippage, 30 minute deadline."""
        assert QuotePolicy().display_buffer_bps == 200
        assert QuotePolicy().deduct_lp_fee is False
        assert SwapPolicy().slippage_bps == 1000
        assert SwapPolicy().deadline_seconds == 1800
        assert RetryPolicy().attempts == 3

    def test_out_of_range_rejected(self):
        with pytest.raises(ConfigurationError):
            QuotePolicy(display_buffer_bps=10_000)
        with pytest.raises(ConfigurationError):
            SwapPolicy(slippage_bps=-1)
        with pytest.raises(ConfigurationError):
            SwapPolicy(deadline_seconds=0)


class TestSettings:
    def test_defaults_from_empty_env(self):
        """Empty environment gives Base with no RPC configured."""
        settings = Settings.from_env({})
        assert settings.chain_id == 8453
        assert settings.rpc_url is None
        assert settings.rpc_cache_ttl == 5.0
        assert settings.port == 8000
        assert settings.debug is False
        assert settings.deployment is BASE

    def test_reads_environment(self):
        settings = Settings.from_env(
            {
                "CC0_CHAIN_ID": "1",
                "CC0_RPC_URL": "http://localhost:8545",
                "CC0_PORT": "9000",
                "CC0_DEBUG": "yes",
                "CC0_DISPLAY_BUFFER_BPS": "50",
                "CC0_SLIPPAGE_BPS": "300",
            }
        )
        assert settings.chain_id == 1
        assert settings.rpc_url == "http://localhost:8545"
        assert settings.port == 9000
        assert settings.debug is True
        assert settings.quote_policy.display_buffer_bps == 50
        assert settings.swap_policy.slippage_bps == 300
        assert settings.deployment is ETHEREUM

    def test_invalid_values_raise_configuration_error(self):
        with pytest.raises(ConfigurationError):
            Settings.from_env({"CC0_PORT": "not-a-port"})
        with pytest.raises(ConfigurationError):
            Settings.from_env({"CC0_SLIPPAGE_BPS": "20000"})

    def test_unsupported_chain_fails_on_deployment_access(self):
        settings = Settings.from_env({"CC0_CHAIN_ID": "137"})
        with pytest.raises(ConfigurationError):
            _ = settings.deployment
