"""In-memory ChainClient for tests.

Usage:
    # Pool state keyed by storage slot
    client = FakeChainClient(storage={slot: make_slot0_word(2**86)})

    # First two extsload calls fail, the third succeeds
    client = FakeChainClient(storage=..., read_failures=2)

    # Second submitted transaction reverts
    client = FakeChainClient(revert_sends={1})
"""

from typing import Any

from cc0swap.chain.client import Permit2Allowance, TransactionReceipt
from cc0swap.config import ZERO_ADDRESS, RetryPolicy
from cc0swap.errors import ReadFailure, TransactionError
from cc0swap.models.types import normalize_address
from tests.helpers.constants import OWNER

# No waiting between retried reads
FAST_RETRY = RetryPolicy(attempts=3, backoff_seconds=0, max_backoff_seconds=0)


class FakeChainClient:
    """ChainClient double with scripted reads and recorded writes."""

    def __init__(
        self,
        storage: dict[bytes, bytes] | None = None,
        read_failures: int = 0,
        token_allowance: int = 0,
        permit2_allowance: Permit2Allowance | None = None,
        timestamp: int = 1_700_000_000,
        revert_sends: set[int] | None = None,
        reject_sends: set[int] | None = None,
        logs: list[dict[str, Any]] | None = None,
        collections: dict[str, str] | None = None,
        sender: str = OWNER,
    ) -> None:
        self.storage = storage or {}
        self.read_failures = read_failures
        self.token_allowance = token_allowance
        self.permit2 = permit2_allowance or Permit2Allowance(amount=0, expiration=0, nonce=0)
        self.timestamp = timestamp
        self.revert_sends = revert_sends or set()
        self.reject_sends = reject_sends or set()
        self.logs = logs or []
        self.collections = collections or {}
        self._sender = sender

        # Call tracking for assertions
        self.extsload_calls: list[tuple[str, bytes]] = []
        self.sent: list[tuple[str, bytes, int]] = []
        self.receipts_requested: list[str] = []
        self.events: list[str] = []
        self.collection_lookups: list[str] = []

    @property
    def sender(self) -> str:
        return self._sender

    async def extsload(self, pool_manager: str, slot: bytes) -> bytes:
        self.extsload_calls.append((pool_manager, slot))
        if self.read_failures > 0:
            self.read_failures -= 1
            raise ReadFailure("node unavailable")
        return self.storage.get(slot, bytes(32))

    async def erc20_allowance(self, token: str, owner: str, spender: str) -> int:
        self.events.append("read_token_allowance")
        return self.token_allowance

    async def permit2_allowance(
        self, permit2: str, owner: str, token: str, spender: str
    ) -> Permit2Allowance:
        self.events.append("read_permit2_allowance")
        return self.permit2

    async def token_collection(self, fee_distributor: str, token: str) -> str:
        self.collection_lookups.append(normalize_address(token))
        return self.collections.get(normalize_address(token), ZERO_ADDRESS)

    async def send_transaction(self, to: str, data: bytes, value: int = 0) -> str:
        index = len(self.sent)
        self.sent.append((normalize_address(to), data, value))
        self.events.append(f"send:{data[:4].hex()}")
        if index in self.reject_sends:
            raise TransactionError("user rejected the request")
        return "0x" + f"{index + 1:064x}"

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 120.0) -> TransactionReceipt:
        self.receipts_requested.append(tx_hash)
        self.events.append(f"confirm:{tx_hash}")
        index = int(tx_hash, 16) - 1
        status = 0 if index in self.revert_sends else 1
        return TransactionReceipt(tx_hash=tx_hash, status=status, block_number=1000 + index)

    async def get_logs(
        self, address: str, topics: list[Any], from_block: int | str, to_block: int | str
    ) -> list[dict[str, Any]]:
        wanted = normalize_address(address)
        # topic0 may be a single topic or a list of alternatives
        topic0 = topics[0] if topics else None
        if isinstance(topic0, str):
            topic0 = [topic0]
        allowed = None if topic0 is None else {t.lower() for t in topic0}
        return [
            log
            for log in self.logs
            if normalize_address(log["address"]) == wanted
            and (allowed is None or log["topics"][0].lower() in allowed)
        ]

    async def block_timestamp(self) -> int:
        return self.timestamp


class FailingLogsClient(FakeChainClient):
    """FakeChainClient whose log queries always fail."""

    async def get_logs(
        self, address: str, topics: list[Any], from_block: int | str, to_block: int | str
    ) -> list[dict[str, Any]]:
        raise ReadFailure("get_logs failed: 429 Too Many Requests")
