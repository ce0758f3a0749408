"""Pydantic request and response models for the HTTP API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cc0swap.models.types import Address, Bytes, Bytes32, Uint256
from cc0swap.v4.swap import SwapDirection


class RpcRequest(BaseModel):
    """JSON-RPC 2.0 request forwarded by the proxy."""

    jsonrpc: str = "2.0"
    method: str
    params: list[Any] = Field(default_factory=list)
    id: int | str | None = None


class QuoteRequest(BaseModel):
    """Quote an exact-input swap of a launched token against WETH."""

    model_config = ConfigDict(populate_by_name=True)

    token: Address
    amount_in: Uint256 = Field(alias="amountIn")
    direction: SwapDirection = SwapDirection.BUY


class QuoteResponse(BaseModel):
    """Quote result; `error` is set instead of the amounts when quoting failed."""

    model_config = ConfigDict(populate_by_name=True)

    pool_id: Bytes32 = Field(alias="poolId")
    zero_for_one: bool = Field(alias="zeroForOne")
    amount_out: Uint256 | None = Field(default=None, alias="amountOut")
    raw_amount_out: Uint256 | None = Field(default=None, alias="rawAmountOut")
    sqrt_price_x96: Uint256 | None = Field(default=None, alias="sqrtPriceX96")
    tick: int | None = None
    lp_fee: int | None = Field(default=None, alias="lpFee")
    error: str | None = None
    error_detail: str | None = Field(default=None, alias="errorDetail")


class SwapBuildRequest(BaseModel):
    """Build unsigned router calldata for a swap.

    Without `minAmountOut`, the server quotes the pool and applies
    `slippageBps` (or the configured default) to the display quote.
    """

    model_config = ConfigDict(populate_by_name=True)

    token: Address
    amount_in: Uint256 = Field(alias="amountIn")
    direction: SwapDirection = SwapDirection.BUY
    min_amount_out: Uint256 | None = Field(default=None, alias="minAmountOut")
    slippage_bps: int | None = Field(default=None, ge=0, lt=10_000, alias="slippageBps")
    deadline: int | None = Field(default=None, ge=0)


class SwapBuildResponse(BaseModel):
    """Unsigned transaction for a wallet to sign."""

    model_config = ConfigDict(populate_by_name=True)

    to: Address
    data: Bytes
    value: Uint256
    min_amount_out: Uint256 = Field(alias="minAmountOut")
    deadline: int
    pool_id: Bytes32 = Field(alias="poolId")


class TokenResponse(BaseModel):
    """A launched token and its pool."""

    model_config = ConfigDict(populate_by_name=True)

    address: Address
    name: str
    symbol: str
    image: str
    pool_id: Bytes32 = Field(alias="poolId")
    nft_collection: Address | None = Field(default=None, alias="nftCollection")
    block_number: int | None = Field(default=None, alias="blockNumber")
