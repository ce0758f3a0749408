"""Chain deployments and policy configuration.

Deployment addresses are configuration, not protocol: they are looked up by
chain id and never hardcoded into the math or encoding modules.
"""

import os
from dataclasses import dataclass, field

from cc0swap.constants import BPS_DENOMINATOR, DYNAMIC_FEE_FLAG, LAUNCH_TICK_SPACING, POOLS_SLOT
from cc0swap.errors import ConfigurationError
from cc0swap.models.types import is_valid_address, normalize_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class ChainDeployment:
    """Addresses and layout constants for one chain.

    Attributes:
        chain_id: EIP-155 chain id
        name: Short chain name ("base", "ethereum")
        pool_manager: Singleton pool manager (holds all pool state)
        universal_router: Router whose execute() runs command sequences
        permit2: Intermediary permission contract used by the router
        weth: Wrapped native token paired with every launched token
        factory: Token factory emitting TokenCreated
        hook: Pool hook shared by all launched pools
        fee_distributor: Contract accruing NFT holder rewards
        explorer_url: Block explorer base URL
        factory_start_block: First block to scan for factory events
        pools_slot: Storage slot of the pool manager's `pools` mapping.
            Must match the deployed contract layout.
        pool_fee: Fee field of launched pool keys (dynamic fee sentinel)
        tick_spacing: Tick spacing of launched pool keys
    """

    chain_id: int
    name: str
    pool_manager: str
    universal_router: str
    permit2: str
    weth: str
    factory: str
    hook: str
    fee_distributor: str = ZERO_ADDRESS
    explorer_url: str = ""
    factory_start_block: int = 0
    pools_slot: int = POOLS_SLOT
    pool_fee: int = DYNAMIC_FEE_FLAG
    tick_spacing: int = LAUNCH_TICK_SPACING

    def validate(self) -> "ChainDeployment":
        """Check that every required address is present and well formed.

        Raises:
            ConfigurationError: If a required address is missing or invalid
        """
        for name in ("pool_manager", "universal_router", "permit2", "weth", "factory", "hook"):
            value = getattr(self, name)
            if not value or not is_valid_address(value):
                raise ConfigurationError(
                    f"Missing or invalid {name} for chain {self.chain_id}: {value!r}"
                )
            if normalize_address(value) == ZERO_ADDRESS:
                raise ConfigurationError(f"{name} is not deployed on chain {self.chain_id}")
        if self.pools_slot < 0:
            raise ConfigurationError(f"Invalid pools_slot: {self.pools_slot}")
        return self

    def tx_url(self, tx_hash: str) -> str:
        """Explorer link for a transaction hash."""
        return f"{self.explorer_url}/tx/{tx_hash}"

    def token_url(self, address: str) -> str:
        """Explorer link for a token contract."""
        return f"{self.explorer_url}/token/{address}"


BASE = ChainDeployment(
    chain_id=8453,
    name="base",
    pool_manager="0x498581fF718922c3f8e6A244956aF099B2652b2b",
    universal_router="0x6fF5693b99212Da76ad316178A184AB56D299b43",
    permit2="0x000000000022D473030F116dDEE9F6B43aC78BA3",
    weth="0x4200000000000000000000000000000000000006",
    factory="0x70b17db500Ce1746BB34f908140d0279C183f3eb",
    hook="0x18aD8c9b72D33E69d8f02fDA61e3c7fAe4e728cc",
    fee_distributor="0x9Ce2AB2769CcB547aAcE963ea4493001275CD557",
    explorer_url="https://basescan.org",
    factory_start_block=28_700_000,
)

ETHEREUM = ChainDeployment(
    chain_id=1,
    name="ethereum",
    pool_manager="0x000000000004444c5dc75cB358380D2e3dE08A90",
    universal_router="0x66a9893cC07D91D95644AEDD05D03f95e1dba8Af",
    permit2="0x000000000022D473030F116dDEE9F6B43aC78BA3",
    weth="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    factory="0xBbeBcC4aa7DDb4BeA65C86A2eB4147A6f39F10d3",
    hook="0x9bEbE14d85375634c723EB5DC7B7E07C835dE8CC",
    fee_distributor="0xF8bFB6aED4A5Bd1c7E4ADa231c0EdDeB49618989",
    explorer_url="https://etherscan.io",
)

DEPLOYMENTS: dict[int, ChainDeployment] = {d.chain_id: d for d in (BASE, ETHEREUM)}


def get_deployment(
    chain_id: int, deployments: dict[int, ChainDeployment] | None = None
) -> ChainDeployment:
    """Look up and validate the deployment for a chain.

    Raises:
        ConfigurationError: If the chain is unknown or its config is incomplete
    """
    registry = DEPLOYMENTS if deployments is None else deployments
    deployment = registry.get(chain_id)
    if deployment is None:
        raise ConfigurationError(
            f"Unsupported chain id {chain_id} (supported: {sorted(registry)})"
        )
    return deployment.validate()


@dataclass(frozen=True)
class QuotePolicy:
    """Display policy applied to the raw spot-price estimate.

    The raw estimate ignores price impact, so the displayed number is
    discounted. The pool fee and the display buffer are separate knobs.

    Attributes:
        display_buffer_bps: Flat discount in basis points (200 = 2%)
        deduct_lp_fee: If True, also deduct the pool's current LP fee read
            from slot0 before applying the buffer.
    """

    display_buffer_bps: int = 200
    deduct_lp_fee: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.display_buffer_bps < BPS_DENOMINATOR:
            raise ConfigurationError(f"display_buffer_bps out of range: {self.display_buffer_bps}")


@dataclass(frozen=True)
class SwapPolicy:
    """Caller-supplied execution policy for a swap.

    Attributes:
        slippage_bps: Tolerated shortfall vs. the quote (1000 = 10%)
        deadline_seconds: Router deadline relative to submission time
        permit2_expiration_seconds: Lifetime of a Permit2 allowance
    """

    slippage_bps: int = 1000
    deadline_seconds: int = 1800
    permit2_expiration_seconds: int = 30 * 24 * 3600

    def __post_init__(self) -> None:
        if not 0 <= self.slippage_bps < BPS_DENOMINATOR:
            raise ConfigurationError(f"slippage_bps out of range: {self.slippage_bps}")
        if self.deadline_seconds <= 0:
            raise ConfigurationError(f"deadline_seconds must be positive: {self.deadline_seconds}")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry schedule for failed external reads.

    Attributes:
        attempts: Total attempts including the first
        backoff_seconds: Initial wait, doubled per attempt
        max_backoff_seconds: Cap on a single wait
    """

    attempts: int = 3
    backoff_seconds: float = 0.5
    max_backoff_seconds: float = 4.0


@dataclass(frozen=True)
class Settings:
    """Process settings read from the environment.

    Attributes:
        chain_id: Active chain (CC0_CHAIN_ID, default Base)
        rpc_url: JSON-RPC endpoint (CC0_RPC_URL)
        rpc_cache_ttl: Seconds an RPC proxy response stays fresh (CC0_RPC_CACHE_TTL)
        host: API bind host (CC0_HOST)
        port: API bind port (CC0_PORT)
        debug: Enable uvicorn reload (CC0_DEBUG)
    """

    chain_id: int = BASE.chain_id
    rpc_url: str | None = None
    rpc_cache_ttl: float = 5.0
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    quote_policy: QuotePolicy = field(default_factory=QuotePolicy)
    swap_policy: SwapPolicy = field(default_factory=SwapPolicy)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from environment variables with defaults."""
        env = os.environ if environ is None else environ
        try:
            return cls(
                chain_id=int(env.get("CC0_CHAIN_ID", str(BASE.chain_id))),
                rpc_url=env.get("CC0_RPC_URL") or None,
                rpc_cache_ttl=float(env.get("CC0_RPC_CACHE_TTL", "5")),
                host=env.get("CC0_HOST", "0.0.0.0"),
                port=int(env.get("CC0_PORT", "8000")),
                debug=env.get("CC0_DEBUG", "false").lower() in ("true", "1", "yes"),
                quote_policy=QuotePolicy(
                    display_buffer_bps=int(env.get("CC0_DISPLAY_BUFFER_BPS", "200")),
                ),
                swap_policy=SwapPolicy(
                    slippage_bps=int(env.get("CC0_SLIPPAGE_BPS", "1000")),
                ),
            )
        except ValueError as err:
            raise ConfigurationError(f"Invalid environment configuration: {err}") from err

    @property
    def deployment(self) -> ChainDeployment:
        """Validated deployment for the configured chain."""
        return get_deployment(self.chain_id)
