"""Registry of tokens launched through the factory.

Tokens are discovered from the factory's `TokenCreated` logs. Two layouts of
the event are decoded: the factory's own, where only tokenAddress and
tokenAdmin are indexed and poolId sits in the data, and an older layout with
poolId indexed and the tick spacing in the data.

NFT collection links come from the fee distributor's `TokenRegistered` logs,
falling back to `tokenToCollection(token)` for tokens without one. The list
is cached for `ttl` seconds.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

import structlog
from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from cc0swap.chain.client import ChainClient
from cc0swap.config import ZERO_ADDRESS, ChainDeployment
from cc0swap.constants import DYNAMIC_FEE_FLAG, LAUNCH_TICK_SPACING
from cc0swap.errors import EncodingError, ReadFailure
from cc0swap.models.types import normalize_address
from cc0swap.v4.pool_key import PoolKey

logger = structlog.get_logger()

TOKEN_CREATED_SIGNATURE = (
    "TokenCreated(address,address,address,string,string,string,string,string,"
    "int24,address,bytes32,address,address,address,uint256,address[])"
)
TOKEN_CREATED_TOPIC = keccak(text=TOKEN_CREATED_SIGNATURE)

# Non-indexed fields; tokenAddress and tokenAdmin are topics 1..2
TOKEN_CREATED_DATA_TYPES = [
    "address",  # msgSender
    "string",  # tokenImage
    "string",  # tokenName
    "string",  # tokenSymbol
    "string",  # tokenMetadata
    "string",  # tokenContext
    "int24",  # startingTick
    "address",  # poolHook
    "bytes32",  # poolId
    "address",  # pairedToken
    "address",  # locker
    "address",  # mevModule
    "uint256",  # extensionsSupply
    "address[]",  # extensions
]

INDEXED_POOL_TOKEN_CREATED_SIGNATURE = (
    "TokenCreated(address,address,address,string,string,string,string,string,"
    "int24,address,bytes32,address,int24,address)"
)
INDEXED_POOL_TOKEN_CREATED_TOPIC = keccak(text=INDEXED_POOL_TOKEN_CREATED_SIGNATURE)

# Non-indexed fields; tokenAddress, tokenAdmin and poolId are topics 1..3
INDEXED_POOL_TOKEN_CREATED_DATA_TYPES = [
    "address",  # msgSender
    "string",  # tokenImage
    "string",  # tokenName
    "string",  # tokenSymbol
    "string",  # tokenMetadata
    "string",  # tokenContext
    "int24",  # startingTick
    "address",  # poolHook
    "address",  # poolPairedToken
    "int24",  # poolTickSpacing
    "address",  # lockerAddress
]

TOKEN_REGISTERED_SIGNATURE = "TokenRegistered(address,address,address,uint256)"
TOKEN_REGISTERED_TOPIC = keccak(text=TOKEN_REGISTERED_SIGNATURE)


@dataclass(frozen=True)
class LaunchedToken:
    """A token deployed by the factory together with its pool."""

    address: str
    admin: str
    deployer: str
    name: str
    symbol: str
    image: str
    pool_id: bytes
    pool_key: PoolKey
    starting_tick: int
    locker: str
    block_number: int | None = None
    tx_hash: str | None = None
    nft_collection: str | None = None

    @property
    def pool_id_hex(self) -> str:
        return "0x" + self.pool_id.hex()


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    return bytes(value)


def _topic_address(topic: Any) -> str:
    return "0x" + _as_bytes(topic)[-20:].hex()


def _decode_data(types: list[str], log: dict[str, Any]) -> tuple:
    try:
        return decode(types, _as_bytes(log.get("data", b"")))
    except (DecodingError, ValueError) as e:
        raise ValueError(f"Malformed TokenCreated data: {e}") from e


def decode_token_created(
    log: dict[str, Any],
    pool_fee: int = DYNAMIC_FEE_FLAG,
    tick_spacing: int = LAUNCH_TICK_SPACING,
) -> LaunchedToken:
    """Decode a factory TokenCreated log in either layout.

    Args:
        log: Log as returned by eth_getLogs (hex strings or bytes)
        pool_fee: Fee field of launched pool keys
        tick_spacing: Pool tick spacing, used when the log does not carry it

    Raises:
        ValueError: If the log is not a well-formed TokenCreated log
    """
    topics = [_as_bytes(t) for t in log.get("topics", [])]
    if len(topics) == 3 and topics[0] == TOKEN_CREATED_TOPIC:
        (
            msg_sender,
            image,
            name,
            symbol,
            _metadata,
            _context,
            starting_tick,
            hook,
            pool_id,
            paired_token,
            locker,
            _mev_module,
            _extensions_supply,
            _extensions,
        ) = _decode_data(TOKEN_CREATED_DATA_TYPES, log)
        pool_id = bytes(pool_id)
    elif len(topics) == 4 and topics[0] == INDEXED_POOL_TOKEN_CREATED_TOPIC:
        (
            msg_sender,
            image,
            name,
            symbol,
            _metadata,
            _context,
            starting_tick,
            hook,
            paired_token,
            tick_spacing,
            locker,
        ) = _decode_data(INDEXED_POOL_TOKEN_CREATED_DATA_TYPES, log)
        pool_id = topics[3]
    else:
        raise ValueError("Not a TokenCreated log")

    token = _topic_address(topics[1])
    try:
        pool_key = PoolKey.from_tokens(token, paired_token, pool_fee, tick_spacing, hook)
    except EncodingError as e:
        raise ValueError(f"TokenCreated log has an invalid pool key: {e}") from e

    tx_hash = log.get("transactionHash")
    return LaunchedToken(
        address=token,
        admin=_topic_address(topics[2]),
        deployer=normalize_address(msg_sender),
        name=name,
        symbol=symbol,
        image=image,
        pool_id=pool_id,
        pool_key=pool_key,
        starting_tick=starting_tick,
        locker=normalize_address(locker),
        block_number=log.get("blockNumber"),
        tx_hash=None if tx_hash is None else "0x" + _as_bytes(tx_hash).hex(),
    )


def decode_token_registered(log: dict[str, Any]) -> tuple[str, str]:
    """(token, nft_collection) from a fee distributor TokenRegistered log."""
    topics = [_as_bytes(t) for t in log.get("topics", [])]
    if len(topics) != 4 or topics[0] != TOKEN_REGISTERED_TOPIC:
        raise ValueError("Not a TokenRegistered log")
    return _topic_address(topics[1]), _topic_address(topics[2])


class TokenRegistry:
    """Cached list of launched tokens, newest first."""

    def __init__(
        self,
        client: ChainClient,
        deployment: ChainDeployment,
        ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.deployment = deployment
        self.ttl = ttl
        self._clock = clock
        self._tokens: list[LaunchedToken] = []
        self._fetched_at: float | None = None

    @property
    def is_stale(self) -> bool:
        return self._fetched_at is None or self._clock() - self._fetched_at > self.ttl

    async def _collections(self) -> dict[str, str]:
        if normalize_address(self.deployment.fee_distributor) == ZERO_ADDRESS:
            return {}
        logs = await self.client.get_logs(
            self.deployment.fee_distributor,
            ["0x" + TOKEN_REGISTERED_TOPIC.hex()],
            self.deployment.factory_start_block,
            "latest",
        )
        collections = {}
        for log in logs:
            try:
                token, collection = decode_token_registered(log)
            except ValueError as e:
                logger.warning("token_registered_decode_failed", error=str(e))
                continue
            collections[token] = collection
        return collections

    async def _lookup_collection(self, token: str) -> str | None:
        """tokenToCollection fallback; None when unregistered or unreadable."""
        if normalize_address(self.deployment.fee_distributor) == ZERO_ADDRESS:
            return None
        try:
            collection = await self.client.token_collection(self.deployment.fee_distributor, token)
        except ReadFailure as e:
            logger.warning("token_collection_lookup_failed", token=token, error=str(e))
            return None
        collection = normalize_address(collection)
        return None if collection == ZERO_ADDRESS else collection

    async def refresh(self) -> list[LaunchedToken]:
        """Re-read factory logs and replace the cached list.

        Raises:
            ReadFailure: If the logs could not be fetched
        """
        logs = await self.client.get_logs(
            self.deployment.factory,
            [["0x" + TOKEN_CREATED_TOPIC.hex(), "0x" + INDEXED_POOL_TOKEN_CREATED_TOPIC.hex()]],
            self.deployment.factory_start_block,
            "latest",
        )
        collections = await self._collections()

        tokens = []
        for log in logs:
            try:
                token = decode_token_created(
                    log, self.deployment.pool_fee, self.deployment.tick_spacing
                )
            except ValueError as e:
                logger.warning("token_created_decode_failed", error=str(e))
                continue
            collection = collections.get(token.address)
            if collection is None:
                collection = await self._lookup_collection(token.address)
            if collection is not None:
                token = replace(token, nft_collection=collection)
            tokens.append(token)

        tokens.sort(key=lambda t: t.block_number or 0, reverse=True)
        self._tokens = tokens
        self._fetched_at = self._clock()
        logger.info("token_registry_refreshed", count=len(tokens))
        return list(tokens)

    async def tokens(self) -> list[LaunchedToken]:
        """Launched tokens, refreshing when the cache is stale.

        A failed refresh keeps serving the previous list if there is one.
        """
        if self.is_stale:
            try:
                await self.refresh()
            except ReadFailure as e:
                if self._fetched_at is None:
                    raise
                logger.warning("token_registry_refresh_failed", error=str(e))
        return list(self._tokens)

    async def get(self, address: str) -> LaunchedToken | None:
        """Look up a launched token by address."""
        wanted = normalize_address(address)
        for token in await self.tokens():
            if token.address == wanted:
                return token
        return None


__all__ = [
    "INDEXED_POOL_TOKEN_CREATED_TOPIC",
    "LaunchedToken",
    "TOKEN_CREATED_TOPIC",
    "TOKEN_REGISTERED_TOPIC",
    "TokenRegistry",
    "decode_token_created",
    "decode_token_registered",
]
