"""Tests for approval sequencing and swap execution."""

import pytest
from eth_abi import decode

from cc0swap.chain.client import Permit2Allowance
from cc0swap.config import BASE, SwapPolicy
from cc0swap.constants import UINT160_MAX, UINT256_MAX
from cc0swap.errors import ApprovalFailure, ReadFailure, SequenceError, SwapFailure
from cc0swap.models.types import normalize_address
from cc0swap.orchestration import (
    AllowancesChecked,
    Step,
    StepKind,
    SwapExecutor,
    SwapSequencer,
    SwapStage,
    TransactionConfirmed,
    TransactionFailed,
    TransactionSubmitted,
)
from cc0swap.v4.swap import SwapDirection, build_swap_intent
from tests.helpers import MILLI_ETH, TOKEN, FakeChainClient, decode_args, make_pool_key

SELL_AMOUNT = 5 * 10**20
NOW = 1_700_000_000

APPROVE = "095ea7b3"
PERMIT2_APPROVE = "87517c45"
EXECUTE = "3593564c"


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def sell_intent():
    return build_swap_intent(make_pool_key(), BASE, SwapDirection.SELL, SELL_AMOUNT, 10**15)


def buy_intent():
    return build_swap_intent(make_pool_key(), BASE, SwapDirection.BUY, MILLI_ETH, 10**21)


def approved_client(**kwargs) -> FakeChainClient:
    """Client whose sender already holds both allowances."""
    return FakeChainClient(
        token_allowance=UINT256_MAX,
        permit2_allowance=Permit2Allowance(amount=UINT160_MAX, expiration=NOW + 3600, nonce=0),
        timestamp=NOW,
        **kwargs,
    )


class TestSwapSequencer:
    def test_full_approval_path(self):
        """Token approval, then Permit2 approval, then the swap."""
        seq = SwapSequencer()
        assert seq.start().kind is StepKind.READ_ALLOWANCES

        step = seq.handle(AllowancesChecked(token_sufficient=False, permit2_sufficient=False))
        assert step.kind is StepKind.APPROVE_TOKEN

        step = seq.handle(TransactionSubmitted(StepKind.APPROVE_TOKEN, "0xa"))
        assert step.kind is StepKind.WAIT_CONFIRMATION
        assert step.tx_hash == "0xa"

        assert seq.handle(TransactionConfirmed("0xa")).kind is StepKind.APPROVE_PERMIT2
        seq.handle(TransactionSubmitted(StepKind.APPROVE_PERMIT2, "0xb"))
        assert seq.handle(TransactionConfirmed("0xb")).kind is StepKind.SUBMIT_SWAP
        seq.handle(TransactionSubmitted(StepKind.SUBMIT_SWAP, "0xc"))
        assert seq.handle(TransactionConfirmed("0xc")).is_terminal

        assert seq.history == [
            SwapStage.IDLE,
            SwapStage.NEEDS_TOKEN_APPROVAL,
            SwapStage.NEEDS_PERMIT2_APPROVAL,
            SwapStage.READY_TO_SWAP,
            SwapStage.SUBMITTED,
            SwapStage.CONFIRMED,
        ]

    def test_swap_cannot_be_submitted_while_approval_pending(self):
        """SUBMIT_SWAP is rejected until the outstanding approval confirms."""
        seq = SwapSequencer()
        seq.start()
        seq.handle(AllowancesChecked(token_sufficient=False, permit2_sufficient=True))
        seq.handle(TransactionSubmitted(StepKind.APPROVE_TOKEN, "0xa"))

        with pytest.raises(SequenceError, match="pending"):
            seq.handle(TransactionSubmitted(StepKind.SUBMIT_SWAP, "0xc"))

    def test_swap_cannot_skip_approval(self):
        seq = SwapSequencer()
        seq.start()
        seq.handle(AllowancesChecked(token_sufficient=False, permit2_sufficient=False))
        with pytest.raises(SequenceError):
            seq.handle(TransactionSubmitted(StepKind.SUBMIT_SWAP, "0xc"))

    def test_token_approval_only(self):
        """With Permit2 already approved, the token approval leads to the swap."""
        seq = SwapSequencer()
        seq.start()
        seq.handle(AllowancesChecked(token_sufficient=False, permit2_sufficient=True))
        seq.handle(TransactionSubmitted(StepKind.APPROVE_TOKEN, "0xa"))
        assert seq.handle(TransactionConfirmed("0xa")).kind is StepKind.SUBMIT_SWAP

    def test_sufficient_allowances_go_straight_to_swap(self):
        seq = SwapSequencer()
        seq.start()
        step = seq.handle(AllowancesChecked(token_sufficient=True, permit2_sufficient=True))
        assert step.kind is StepKind.SUBMIT_SWAP
        assert seq.stage is SwapStage.READY_TO_SWAP

    def test_native_input_needs_no_approvals(self):
        seq = SwapSequencer(requires_approvals=False)
        assert seq.start().kind is StepKind.SUBMIT_SWAP

    def test_unknown_confirmation_rejected(self):
        seq = SwapSequencer()
        seq.start()
        seq.handle(AllowancesChecked(token_sufficient=False, permit2_sufficient=False))
        seq.handle(TransactionSubmitted(StepKind.APPROVE_TOKEN, "0xa"))
        with pytest.raises(SequenceError):
            seq.handle(TransactionConfirmed("0xdead"))

    def test_failure_is_terminal(self):
        """After a failure no further events are accepted."""
        seq = SwapSequencer()
        seq.start()
        seq.handle(AllowancesChecked(token_sufficient=False, permit2_sufficient=False))
        seq.handle(TransactionSubmitted(StepKind.APPROVE_TOKEN, "0xa"))
        step = seq.handle(TransactionFailed(StepKind.APPROVE_TOKEN, "reverted", "0xa"))

        assert step.is_terminal
        assert seq.stage is SwapStage.FAILED
        assert seq.failed_step is StepKind.APPROVE_TOKEN
        with pytest.raises(SequenceError):
            seq.handle(TransactionConfirmed("0xa"))

    def test_start_twice_rejected(self):
        seq = SwapSequencer()
        seq.start()
        seq.handle(AllowancesChecked(token_sufficient=True, permit2_sufficient=True))
        with pytest.raises(SequenceError):
            seq.start()


class TestSwapExecutorOrdering:
    @pytest.mark.asyncio
    async def test_approvals_strictly_precede_swap(self):
        """Token approval, its confirmation, Permit2 approval, its confirmation, then the swap."""
        client = FakeChainClient(timestamp=NOW)
        outcome = await SwapExecutor(client, BASE).execute(sell_intent())

        assert outcome.succeeded
        assert client.events == [
            "read_token_allowance",
            "read_permit2_allowance",
            f"send:{APPROVE}",
            f"confirm:{tx_hash(1)}",
            f"send:{PERMIT2_APPROVE}",
            f"confirm:{tx_hash(2)}",
            f"send:{EXECUTE}",
            f"confirm:{tx_hash(3)}",
        ]
        assert outcome.tx_hashes == {
            StepKind.APPROVE_TOKEN: tx_hash(1),
            StepKind.APPROVE_PERMIT2: tx_hash(2),
            StepKind.SUBMIT_SWAP: tx_hash(3),
        }
        assert outcome.swap_tx_hash == tx_hash(3)

    @pytest.mark.asyncio
    async def test_approval_targets_and_amounts(self):
        """Token approves Permit2 for max; Permit2 approves the router until now + 30 days."""
        client = FakeChainClient(timestamp=NOW)
        await SwapExecutor(client, BASE).execute(sell_intent())

        (to0, data0, value0), (to1, data1, _), (to2, _, value2) = client.sent

        assert to0 == TOKEN
        assert value0 == 0
        assert decode_args(["address", "uint256"], data0[4:]) == (
            normalize_address(BASE.permit2),
            UINT256_MAX,
        )

        assert to1 == normalize_address(BASE.permit2)
        assert decode_args(["address", "address", "uint160", "uint48"], data1[4:]) == (
            TOKEN,
            normalize_address(BASE.universal_router),
            UINT160_MAX,
            NOW + 30 * 24 * 3600,
        )

        assert to2 == normalize_address(BASE.universal_router)
        assert value2 == 0

    @pytest.mark.asyncio
    async def test_swap_deadline_from_block_time(self):
        client = approved_client()
        await SwapExecutor(client, BASE, SwapPolicy(deadline_seconds=600)).execute(sell_intent())

        [(_, data, _)] = client.sent
        _, _, deadline = decode(["bytes", "bytes[]", "uint256"], data[4:])
        assert deadline == NOW + 600

    @pytest.mark.asyncio
    async def test_sufficient_allowances_skip_approvals(self):
        client = approved_client()
        outcome = await SwapExecutor(client, BASE).execute(sell_intent())

        assert outcome.succeeded
        assert [e for e in client.events if e.startswith("send:")] == [f"send:{EXECUTE}"]
        assert SwapStage.NEEDS_TOKEN_APPROVAL not in outcome.history

    @pytest.mark.asyncio
    async def test_expired_permit2_allowance_is_renewed(self):
        """An expired Permit2 allowance needs a new Permit2 approval only."""
        client = FakeChainClient(
            token_allowance=UINT256_MAX,
            permit2_allowance=Permit2Allowance(amount=UINT160_MAX, expiration=NOW, nonce=1),
            timestamp=NOW,
        )
        outcome = await SwapExecutor(client, BASE).execute(sell_intent())

        assert outcome.succeeded
        assert [e for e in client.events if e.startswith("send:")] == [
            f"send:{PERMIT2_APPROVE}",
            f"send:{EXECUTE}",
        ]

    @pytest.mark.asyncio
    async def test_buy_needs_no_approvals(self):
        """Native input skips the allowance reads and attaches value."""
        client = FakeChainClient(timestamp=NOW)
        outcome = await SwapExecutor(client, BASE).execute(buy_intent())

        assert outcome.succeeded
        assert "read_token_allowance" not in client.events
        [(to, data, value)] = client.sent
        assert to == normalize_address(BASE.universal_router)
        assert data[:4].hex() == EXECUTE
        assert value == MILLI_ETH


class TestSwapExecutorFailures:
    @pytest.mark.asyncio
    async def test_token_approval_revert_stops_before_swap(self):
        client = FakeChainClient(timestamp=NOW, revert_sends={0})
        outcome = await SwapExecutor(client, BASE).execute(sell_intent())

        assert not outcome.succeeded
        assert outcome.stage is SwapStage.FAILED
        assert isinstance(outcome.error, ApprovalFailure)
        assert outcome.error.step == "approve_token"
        assert outcome.failed_step is StepKind.APPROVE_TOKEN
        assert len(client.sent) == 1
        assert f"send:{EXECUTE}" not in client.events

    @pytest.mark.asyncio
    async def test_permit2_approval_revert(self):
        client = FakeChainClient(timestamp=NOW, revert_sends={1})
        outcome = await SwapExecutor(client, BASE).execute(sell_intent())

        assert isinstance(outcome.error, ApprovalFailure)
        assert outcome.error.step == "approve_permit2"
        assert len(client.sent) == 2

    @pytest.mark.asyncio
    async def test_rejected_approval(self):
        """A wallet rejection fails the attempt without waiting for a receipt."""
        client = FakeChainClient(timestamp=NOW, reject_sends={0})
        outcome = await SwapExecutor(client, BASE).execute(sell_intent())

        assert isinstance(outcome.error, ApprovalFailure)
        assert "rejected" in str(outcome.error)
        assert client.receipts_requested == []

    @pytest.mark.asyncio
    async def test_swap_revert(self):
        client = approved_client(revert_sends={0})
        outcome = await SwapExecutor(client, BASE).execute(sell_intent())

        assert isinstance(outcome.error, SwapFailure)
        assert outcome.error.tx_hash == tx_hash(1)
        assert outcome.stage is SwapStage.FAILED
        assert outcome.history[-2:] == [SwapStage.SUBMITTED, SwapStage.FAILED]

    @pytest.mark.asyncio
    async def test_allowance_read_failure(self):
        class BrokenAllowanceClient(FakeChainClient):
            async def erc20_allowance(self, token, owner, spender):
                raise ReadFailure("eth_call failed")

        client = BrokenAllowanceClient(timestamp=NOW)
        outcome = await SwapExecutor(client, BASE).execute(sell_intent())

        assert isinstance(outcome.error, ReadFailure)
        assert client.sent == []

    @pytest.mark.asyncio
    async def test_confirmation_without_submitted_transaction(self):
        """Waiting for a receipt with nothing submitted is a sequencing error."""
        client = approved_client()
        executor = SwapExecutor(client, BASE)

        with pytest.raises(SequenceError, match="no submitted transaction"):
            await executor._step(Step(StepKind.WAIT_CONFIRMATION), None, sell_intent())
        with pytest.raises(SequenceError):
            await executor._step(
                Step(StepKind.WAIT_CONFIRMATION, tx_hash=tx_hash(1)), None, sell_intent()
            )
        assert client.receipts_requested == []
