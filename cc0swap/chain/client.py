"""Chain access for the swap core.

`ChainClient` is the seam between the core and the chain/wallet layer:
the quote engine, the swap executor and the token registry only talk to
this protocol. `Web3ChainClient` implements it over AsyncWeb3 with a local
signing account; tests inject fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import structlog
from eth_abi import decode
from eth_abi.exceptions import DecodingError

from cc0swap.errors import ReadFailure, TransactionError
from cc0swap.models.types import hex_to_bytes32, normalize_address, to_checksum
from cc0swap.v4.encoding import (
    encode_erc20_allowance,
    encode_extsload,
    encode_permit2_allowance,
    encode_token_to_collection,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class Permit2Allowance:
    """Permit2 allowance(owner, token, spender) result."""

    amount: int  # uint160
    expiration: int  # uint48 unix timestamp
    nonce: int  # uint48

    def covers(self, amount: int, now: int) -> bool:
        """True if the allowance is large enough and not expired."""
        return self.amount >= amount and self.expiration > now


@dataclass(frozen=True)
class TransactionReceipt:
    """Outcome of a mined transaction."""

    tx_hash: str
    status: int  # 1 success, 0 reverted
    block_number: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class ChainClient(Protocol):
    """Async chain access used by the swap core."""

    @property
    def sender(self) -> str:
        """Address that signs and sends transactions."""
        ...

    async def extsload(self, pool_manager: str, slot: bytes) -> bytes:
        """Raw 32-byte storage word of the pool manager at `slot`.

        Raises:
            ReadFailure: If the call fails
        """
        ...

    async def erc20_allowance(self, token: str, owner: str, spender: str) -> int:
        """ERC-20 allowance(owner, spender)."""
        ...

    async def permit2_allowance(
        self, permit2: str, owner: str, token: str, spender: str
    ) -> Permit2Allowance:
        """Permit2 allowance(owner, token, spender)."""
        ...

    async def token_collection(self, fee_distributor: str, token: str) -> str:
        """Fee distributor tokenToCollection(token); zero address if unregistered."""
        ...

    async def send_transaction(self, to: str, data: bytes, value: int = 0) -> str:
        """Sign and broadcast a transaction, returning its hash.

        Raises:
            TransactionError: If the wallet or node rejects it
        """
        ...

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 120.0) -> TransactionReceipt:
        """Wait until `tx_hash` is mined."""
        ...

    async def get_logs(
        self, address: str, topics: list[Any], from_block: int | str, to_block: int | str
    ) -> list[dict[str, Any]]:
        """eth_getLogs filtered by address and topics."""
        ...

    async def block_timestamp(self) -> int:
        """Timestamp of the latest block."""
        ...


class Web3ChainClient:
    """ChainClient over AsyncWeb3 with a local signing account.

    Reads go through raw eth_call with calldata from cc0swap.v4.encoding, so
    the same encoders are exercised for reads and writes.
    """

    def __init__(self, rpc_url: str, private_key: str | None = None, chain_id: int | None = None):
        """Initialize the client.

        Args:
            rpc_url: HTTP JSON-RPC URL
            private_key: Signing key; read-only client if omitted
            chain_id: Expected chain id, used when signing
        """
        try:
            from eth_account import Account
            from web3 import AsyncWeb3
        except ImportError as e:
            raise ImportError(
                "web3 package required for Web3ChainClient. Install with: pip install web3"
            ) from e

        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.account = Account.from_key(private_key) if private_key else None
        self.chain_id = chain_id

    @property
    def sender(self) -> str:
        if self.account is None:
            raise TransactionError("No signing account configured")
        return self.account.address

    async def _call(self, to: str, data: bytes, what: str) -> bytes:
        try:
            result = await self.w3.eth.call({"to": to_checksum(to), "data": "0x" + data.hex()})
        except Exception as e:
            logger.warning("eth_call_failed", to=to, call=what, error=str(e))
            raise ReadFailure(f"{what} failed: {e}") from e
        return bytes(result)

    async def extsload(self, pool_manager: str, slot: bytes) -> bytes:
        raw = await self._call(pool_manager, encode_extsload(slot), "extsload")
        try:
            return hex_to_bytes32(raw[:32])
        except ValueError as e:
            raise ReadFailure(f"extsload returned {len(raw)} bytes") from e

    async def erc20_allowance(self, token: str, owner: str, spender: str) -> int:
        raw = await self._call(token, encode_erc20_allowance(owner, spender), "allowance")
        (amount,) = decode(["uint256"], raw)
        return int(amount)

    async def permit2_allowance(
        self, permit2: str, owner: str, token: str, spender: str
    ) -> Permit2Allowance:
        raw = await self._call(
            permit2, encode_permit2_allowance(owner, token, spender), "permit2.allowance"
        )
        amount, expiration, nonce = decode(["uint160", "uint48", "uint48"], raw)
        return Permit2Allowance(amount=amount, expiration=expiration, nonce=nonce)

    async def token_collection(self, fee_distributor: str, token: str) -> str:
        raw = await self._call(
            fee_distributor, encode_token_to_collection(token), "tokenToCollection"
        )
        try:
            (collection,) = decode(["address"], raw)
        except DecodingError as e:
            raise ReadFailure(f"tokenToCollection returned {len(raw)} bytes") from e
        return normalize_address(collection)

    async def send_transaction(self, to: str, data: bytes, value: int = 0) -> str:
        sender = self.sender
        try:
            tx: dict[str, Any] = {
                "from": sender,
                "to": to_checksum(to),
                "data": "0x" + data.hex(),
                "value": value,
                "nonce": await self.w3.eth.get_transaction_count(sender, "pending"),
                "chainId": self.chain_id or await self.w3.eth.chain_id,
            }
            tx["gas"] = await self.w3.eth.estimate_gas(tx)
            latest = await self.w3.eth.get_block("latest")
            priority_fee = await self.w3.eth.max_priority_fee
            tx["maxPriorityFeePerGas"] = priority_fee
            tx["maxFeePerGas"] = latest["baseFeePerGas"] * 2 + priority_fee

            signed = self.account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            logger.warning("send_transaction_failed", to=to, value=value, error=str(e))
            raise TransactionError(str(e)) from e
        return "0x" + bytes(tx_hash).hex()

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 120.0) -> TransactionReceipt:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except Exception as e:
            logger.warning("wait_for_receipt_failed", tx_hash=tx_hash, error=str(e))
            raise TransactionError(f"No receipt for {tx_hash}: {e}") from e
        return TransactionReceipt(
            tx_hash=tx_hash,
            status=int(receipt["status"]),
            block_number=receipt.get("blockNumber"),
        )

    async def get_logs(
        self, address: str, topics: list[Any], from_block: int | str, to_block: int | str
    ) -> list[dict[str, Any]]:
        try:
            logs = await self.w3.eth.get_logs(
                {
                    "address": to_checksum(address),
                    "topics": topics,
                    "fromBlock": from_block,
                    "toBlock": to_block,
                }
            )
        except Exception as e:
            logger.warning("get_logs_failed", address=address, error=str(e))
            raise ReadFailure(f"get_logs failed: {e}") from e
        return [dict(log) for log in logs]

    async def block_timestamp(self) -> int:
        try:
            block = await self.w3.eth.get_block("latest")
        except Exception as e:
            raise ReadFailure(f"get_block failed: {e}") from e
        return int(block["timestamp"])


__all__ = [
    "ChainClient",
    "Permit2Allowance",
    "TransactionReceipt",
    "Web3ChainClient",
]
