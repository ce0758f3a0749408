"""API endpoints: JSON-RPC proxy, quotes, swap calldata and launched tokens."""

import time
from collections.abc import AsyncIterator
from functools import lru_cache

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from cc0swap.chain.cache import TtlCache, rpc_cache_key
from cc0swap.chain.client import ChainClient, Web3ChainClient
from cc0swap.config import ChainDeployment, Settings, SwapPolicy
from cc0swap.errors import ConfigurationError, EncodingError, ReadFailure
from cc0swap.models.api import (
    QuoteRequest,
    QuoteResponse,
    RpcRequest,
    SwapBuildRequest,
    SwapBuildResponse,
    TokenResponse,
)
from cc0swap.registry import TokenRegistry
from cc0swap.v4.pool_key import PoolKey
from cc0swap.v4.quoter import QuoteEngine, QuoteError
from cc0swap.v4.swap import SwapDirection, build_swap_intent, build_swap_transaction

logger = structlog.get_logger()

router = APIRouter()

# Read-only methods the proxy forwards
ALLOWED_RPC_METHODS = frozenset(
    {
        "eth_call",
        "eth_getBalance",
        "eth_getBlockByNumber",
        "eth_getTransactionReceipt",
        "eth_getTransactionByHash",
        "eth_blockNumber",
        "eth_chainId",
        "eth_getLogs",
        "eth_estimateGas",
        "eth_gasPrice",
        "eth_getCode",
        "eth_getStorageAt",
    }
)

METHOD_NOT_ALLOWED = -32601
SERVER_ERROR = -32000


def rpc_error(request_id: int | str | None, code: int, message: str, status: int) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}},
    )


@lru_cache
def get_settings() -> Settings:
    """Dependency provider for process settings.

    Override this in tests:
        app.dependency_overrides[get_settings] = lambda: Settings(...)
    """
    return Settings.from_env()


def get_deployment(settings: Settings = Depends(get_settings)) -> ChainDeployment:
    """Deployment of the configured chain, or 503 if it is not configured."""
    try:
        return settings.deployment
    except ConfigurationError as e:
        logger.error("deployment_not_configured", chain_id=settings.chain_id, error=str(e))
        raise HTTPException(status_code=503, detail=str(e)) from e


def get_rpc_cache(request: Request, settings: Settings = Depends(get_settings)) -> TtlCache:
    """RPC response cache owned by the application instance."""
    cache = getattr(request.app.state, "rpc_cache", None)
    if cache is None:
        cache = TtlCache(ttl=settings.rpc_cache_ttl)
        request.app.state.rpc_cache = cache
    return cache


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client for forwarding RPC calls upstream."""
    async with httpx.AsyncClient(timeout=10.0) as client:
        yield client


def get_chain_client(request: Request, settings: Settings = Depends(get_settings)) -> ChainClient:
    """Read-only chain client shared by the application instance."""
    client = getattr(request.app.state, "chain_client", None)
    if client is None:
        if not settings.rpc_url:
            raise HTTPException(status_code=503, detail="RPC not configured")
        client = Web3ChainClient(settings.rpc_url, chain_id=settings.chain_id)
        request.app.state.chain_client = client
    return client


def get_quote_engine(
    client: ChainClient = Depends(get_chain_client),
    deployment: ChainDeployment = Depends(get_deployment),
    settings: Settings = Depends(get_settings),
) -> QuoteEngine:
    """Dependency provider for the quote engine.

    Override this in tests to inject an engine over a fake chain client:
        app.dependency_overrides[get_quote_engine] = lambda: engine
    """
    return QuoteEngine(client, deployment, settings.quote_policy, settings.retry_policy)


def get_token_registry(
    request: Request,
    client: ChainClient = Depends(get_chain_client),
    deployment: ChainDeployment = Depends(get_deployment),
) -> TokenRegistry:
    """Token registry owned by the application instance."""
    registry = getattr(request.app.state, "token_registry", None)
    if registry is None:
        registry = TokenRegistry(client, deployment)
        request.app.state.token_registry = registry
    return registry


@router.post("/rpc")
async def rpc_proxy(
    body: RpcRequest,
    settings: Settings = Depends(get_settings),
    cache: TtlCache = Depends(get_rpc_cache),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Forward an allowlisted JSON-RPC read to the configured node.

    Successful results are cached for the configured TTL, keyed by method
    and params.

    Error Handling:
        - No upstream configured: 503
        - Method not in the allowlist: 400 with JSON-RPC code -32601
        - Upstream HTTP error: upstream status with code -32000
        - Proxy failure: 500 with code -32000
    """
    if not settings.rpc_url:
        return JSONResponse(status_code=503, content={"error": "RPC not configured"})

    if body.method not in ALLOWED_RPC_METHODS:
        logger.warning("rpc_method_rejected", method=body.method)
        return rpc_error(body.id, METHOD_NOT_ALLOWED, "Method not allowed", 400)

    key = rpc_cache_key(body.method, body.params)
    cached = cache.get(key)
    if cached is not None:
        result, age = cached
        logger.debug("rpc_cache_hit", method=body.method, age=round(age, 3))
        return JSONResponse(content={"jsonrpc": "2.0", "id": body.id, "result": result})

    payload = {
        "jsonrpc": body.jsonrpc or "2.0",
        "id": body.id if body.id is not None else 1,
        "method": body.method,
        "params": body.params,
    }
    try:
        response = await http.post(settings.rpc_url, json=payload)
    except httpx.HTTPError:
        logger.exception("rpc_proxy_error", method=body.method)
        return rpc_error(body.id, SERVER_ERROR, "Internal proxy error", 500)

    if response.status_code >= 400:
        logger.warning("rpc_upstream_error", method=body.method, status=response.status_code)
        return rpc_error(
            body.id, SERVER_ERROR, f"RPC error: {response.status_code}", response.status_code
        )

    try:
        data = response.json()
    except ValueError:
        logger.exception("rpc_proxy_error", method=body.method)
        return rpc_error(body.id, SERVER_ERROR, "Internal proxy error", 500)

    if isinstance(data, dict) and data.get("result") is not None:
        cache.put(key, data["result"])
    return JSONResponse(content=data)


def _launch_pool(token: str, deployment: ChainDeployment) -> PoolKey:
    try:
        return PoolKey.for_launch_token(token, deployment)
    except EncodingError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/quote", response_model_exclude_none=True)
async def quote(
    body: QuoteRequest,
    engine: QuoteEngine = Depends(get_quote_engine),
) -> QuoteResponse:
    """Quote buying (ETH in) or selling (token in) a launched token.

    Quote failures are returned in the `error` field, not as HTTP errors.
    """
    key = _launch_pool(body.token, engine.deployment)
    currency_in = engine.deployment.weth if body.direction is SwapDirection.BUY else body.token
    zero_for_one = key.zero_for_one(currency_in)

    result = await engine.quote(key, int(body.amount_in), zero_for_one)
    logger.info(
        "quote_served",
        token=body.token,
        direction=body.direction.value,
        amount_in=body.amount_in,
        amount_out=result.amount_out,
        error=result.error.value if result.error else None,
    )
    return QuoteResponse(
        pool_id=key.pool_id_hex(),
        zero_for_one=zero_for_one,
        amount_out=result.amount_out,
        raw_amount_out=result.raw_amount_out,
        sqrt_price_x96=result.sqrt_price_x96,
        tick=result.tick,
        lp_fee=result.lp_fee,
        error=result.error.value if result.error else None,
        error_detail=result.error_detail,
    )


@router.post("/swap/build")
async def build_swap(
    body: SwapBuildRequest,
    engine: QuoteEngine = Depends(get_quote_engine),
    settings: Settings = Depends(get_settings),
) -> SwapBuildResponse:
    """Build unsigned Universal Router calldata for a swap.

    Error Handling:
        - Quote failed: 502 with the quote error
        - Amount or address out of range: 400 (including an amount the quote rejects)
    """
    deployment = engine.deployment
    key = _launch_pool(body.token, deployment)
    amount_in = int(body.amount_in)

    if body.min_amount_out is not None:
        quoted_out = int(body.min_amount_out)
        policy = SwapPolicy(slippage_bps=0)
    else:
        currency_in = deployment.weth if body.direction is SwapDirection.BUY else body.token
        result = await engine.quote(key, amount_in, key.zero_for_one(currency_in))
        if result.is_error or result.amount_out is None:
            raise HTTPException(
                status_code=400 if result.error is QuoteError.INVALID_AMOUNT else 502,
                detail={
                    "error": result.error.value if result.error else "no_quote",
                    "detail": result.error_detail,
                },
            )
        quoted_out = result.amount_out
        slippage = (
            body.slippage_bps
            if body.slippage_bps is not None
            else settings.swap_policy.slippage_bps
        )
        policy = SwapPolicy(slippage_bps=slippage)

    deadline = (
        body.deadline
        if body.deadline is not None
        else int(time.time()) + settings.swap_policy.deadline_seconds
    )
    try:
        intent = build_swap_intent(key, deployment, body.direction, amount_in, quoted_out, policy)
        tx = build_swap_transaction(intent, deployment, deadline)
    except EncodingError as e:
        logger.warning("swap_build_rejected", token=body.token, error=str(e))
        raise HTTPException(status_code=400, detail=str(e)) from e

    return SwapBuildResponse(
        to=tx.to,
        data="0x" + tx.data.hex(),
        value=tx.value,
        min_amount_out=intent.min_amount_out,
        deadline=deadline,
        pool_id=key.pool_id_hex(),
    )


@router.get("/tokens", response_model_exclude_none=True)
async def list_tokens(registry: TokenRegistry = Depends(get_token_registry)) -> list[TokenResponse]:
    """Launched tokens, newest first (cached for the registry TTL)."""
    try:
        tokens = await registry.tokens()
    except ReadFailure as e:
        logger.warning("token_list_failed", error=str(e))
        raise HTTPException(status_code=502, detail="Failed to load tokens") from e
    return [
        TokenResponse(
            address=t.address,
            name=t.name,
            symbol=t.symbol,
            image=t.image,
            pool_id=t.pool_id_hex,
            nft_collection=t.nft_collection,
            block_number=t.block_number,
        )
        for t in tokens
    ]
