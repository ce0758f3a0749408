"""Approval sequencing and swap execution.

Selling a token through the Universal Router needs two allowances: the
token must let Permit2 pull it, and Permit2 must let the router spend it.
`SwapSequencer` is a pure state machine over those checks and the
confirmations of the transactions it asks for; `SwapExecutor` drives it
against a `ChainClient`.

    IDLE -> [NEEDS_TOKEN_APPROVAL] -> [NEEDS_PERMIT2_APPROVAL]
         -> READY_TO_SWAP -> SUBMITTED -> CONFIRMED | FAILED

Each transaction is confirmed before the next one is submitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import structlog

from cc0swap.chain.client import ChainClient
from cc0swap.config import ChainDeployment, SwapPolicy
from cc0swap.constants import UINT160_MAX, UINT256_MAX
from cc0swap.errors import (
    ApprovalFailure,
    Cc0SwapError,
    EncodingError,
    ReadFailure,
    SequenceError,
    SwapFailure,
    TransactionError,
)
from cc0swap.v4.encoding import encode_erc20_approve, encode_permit2_approve
from cc0swap.v4.swap import SwapIntent, build_swap_transaction

logger = structlog.get_logger()


class SwapStage(Enum):
    """Where a swap attempt stands."""

    IDLE = "idle"
    NEEDS_TOKEN_APPROVAL = "needs_token_approval"
    NEEDS_PERMIT2_APPROVAL = "needs_permit2_approval"
    READY_TO_SWAP = "ready_to_swap"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class StepKind(Enum):
    """Work the sequencer asks its driver to do next."""

    READ_ALLOWANCES = "read_allowances"
    APPROVE_TOKEN = "approve_token"
    APPROVE_PERMIT2 = "approve_permit2"
    SUBMIT_SWAP = "submit_swap"
    WAIT_CONFIRMATION = "wait_confirmation"
    DONE = "done"


@dataclass(frozen=True)
class Step:
    kind: StepKind
    tx_hash: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is StepKind.DONE


# Events


@dataclass(frozen=True)
class AllowancesChecked:
    """Result of both allowance reads."""

    token_sufficient: bool
    permit2_sufficient: bool


@dataclass(frozen=True)
class TransactionSubmitted:
    step: StepKind
    tx_hash: str


@dataclass(frozen=True)
class TransactionConfirmed:
    tx_hash: str


@dataclass(frozen=True)
class TransactionFailed:
    step: StepKind
    reason: str
    tx_hash: str | None = None


Event = AllowancesChecked | TransactionSubmitted | TransactionConfirmed | TransactionFailed

_SUBMITTABLE = {
    SwapStage.NEEDS_TOKEN_APPROVAL: StepKind.APPROVE_TOKEN,
    SwapStage.NEEDS_PERMIT2_APPROVAL: StepKind.APPROVE_PERMIT2,
    SwapStage.READY_TO_SWAP: StepKind.SUBMIT_SWAP,
}


class SwapSequencer:
    """Pure state machine for one swap attempt.

    Feed it events with `handle`; it answers with the next `Step`. It never
    returns SUBMIT_SWAP while an approval is outstanding, and any failure is
    terminal.
    """

    def __init__(self, requires_approvals: bool = True):
        self.requires_approvals = requires_approvals
        self.stage = SwapStage.IDLE
        self.history: list[SwapStage] = [SwapStage.IDLE]
        self.pending: StepKind | None = None
        self.pending_tx: str | None = None
        self.failed_step: StepKind | None = None
        self.failure_reason: str | None = None
        self._permit2_sufficient = False

    def _enter(self, stage: SwapStage) -> None:
        if stage is not self.stage:
            self.stage = stage
            self.history.append(stage)

    def _after_token_approval(self) -> Step:
        if self._permit2_sufficient:
            self._enter(SwapStage.READY_TO_SWAP)
            return Step(StepKind.SUBMIT_SWAP)
        self._enter(SwapStage.NEEDS_PERMIT2_APPROVAL)
        return Step(StepKind.APPROVE_PERMIT2)

    def start(self) -> Step:
        """First step of the attempt."""
        if self.stage is not SwapStage.IDLE:
            raise SequenceError(f"Cannot start from {self.stage.value}")
        if not self.requires_approvals:
            self._enter(SwapStage.READY_TO_SWAP)
            return Step(StepKind.SUBMIT_SWAP)
        return Step(StepKind.READ_ALLOWANCES)

    def handle(self, event: Event) -> Step:
        """Apply an event and return the next step.

        Raises:
            SequenceError: If the event is not valid in the current stage
        """
        if self.stage in (SwapStage.CONFIRMED, SwapStage.FAILED):
            raise SequenceError(f"Attempt already finished ({self.stage.value})")

        if isinstance(event, TransactionFailed):
            self.failed_step = event.step
            self.failure_reason = event.reason
            self.pending = None
            self._enter(SwapStage.FAILED)
            return Step(StepKind.DONE)

        if isinstance(event, AllowancesChecked):
            if self.stage is not SwapStage.IDLE:
                raise SequenceError(f"Unexpected allowance result in {self.stage.value}")
            self._permit2_sufficient = event.permit2_sufficient
            if not event.token_sufficient:
                self._enter(SwapStage.NEEDS_TOKEN_APPROVAL)
                return Step(StepKind.APPROVE_TOKEN)
            return self._after_token_approval()

        if isinstance(event, TransactionSubmitted):
            expected = _SUBMITTABLE.get(self.stage)
            if self.pending is not None or event.step is not expected:
                raise SequenceError(
                    f"Cannot submit {event.step.value} in {self.stage.value}"
                    + (f" while {self.pending.value} is pending" if self.pending else "")
                )
            self.pending = event.step
            self.pending_tx = event.tx_hash
            if event.step is StepKind.SUBMIT_SWAP:
                self._enter(SwapStage.SUBMITTED)
            return Step(StepKind.WAIT_CONFIRMATION, tx_hash=event.tx_hash)

        if isinstance(event, TransactionConfirmed):
            if self.pending is None or event.tx_hash != self.pending_tx:
                raise SequenceError(f"Confirmation for unknown transaction {event.tx_hash}")
            confirmed, self.pending, self.pending_tx = self.pending, None, None
            if confirmed is StepKind.APPROVE_TOKEN:
                return self._after_token_approval()
            if confirmed is StepKind.APPROVE_PERMIT2:
                self._permit2_sufficient = True
                self._enter(SwapStage.READY_TO_SWAP)
                return Step(StepKind.SUBMIT_SWAP)
            self._enter(SwapStage.CONFIRMED)
            return Step(StepKind.DONE)

        raise SequenceError(f"Unknown event {event!r}")


@dataclass
class SwapOutcome:
    """What happened during one swap attempt.

    Attributes:
        stage: Final stage (CONFIRMED or FAILED)
        history: Every stage entered, in order
        tx_hashes: Submitted transaction hash per step
        error: ApprovalFailure, SwapFailure or ReadFailure when the attempt failed
        failed_step: Step that failed, if any
    """

    stage: SwapStage
    history: list[SwapStage] = field(default_factory=list)
    tx_hashes: dict[StepKind, str] = field(default_factory=dict)
    error: Cc0SwapError | None = None
    failed_step: StepKind | None = None

    @property
    def succeeded(self) -> bool:
        return self.stage is SwapStage.CONFIRMED

    @property
    def swap_tx_hash(self) -> str | None:
        return self.tx_hashes.get(StepKind.SUBMIT_SWAP)


class SwapExecutor:
    """Drives a SwapSequencer against the chain for one intent at a time."""

    def __init__(
        self,
        client: ChainClient,
        deployment: ChainDeployment,
        policy: SwapPolicy | None = None,
        receipt_timeout: float = 120.0,
    ):
        self.client = client
        self.deployment = deployment
        self.policy = policy or SwapPolicy()
        self.receipt_timeout = receipt_timeout

    async def check_allowances(self, intent: SwapIntent) -> AllowancesChecked:
        """Read token -> Permit2 and Permit2 -> router allowances for the sender."""
        owner = self.client.sender
        token_allowance = await self.client.erc20_allowance(
            intent.token, owner, self.deployment.permit2
        )
        permit2 = await self.client.permit2_allowance(
            self.deployment.permit2, owner, intent.token, self.deployment.universal_router
        )
        now = await self.client.block_timestamp()
        return AllowancesChecked(
            token_sufficient=token_allowance >= intent.amount_in,
            permit2_sufficient=permit2.covers(intent.amount_in, now),
        )

    async def _submit(self, kind: StepKind, intent: SwapIntent) -> str:
        if kind is StepKind.APPROVE_TOKEN:
            data = encode_erc20_approve(self.deployment.permit2, UINT256_MAX)
            return await self.client.send_transaction(intent.token, data)

        now = await self.client.block_timestamp()
        if kind is StepKind.APPROVE_PERMIT2:
            data = encode_permit2_approve(
                intent.token,
                self.deployment.universal_router,
                UINT160_MAX,
                now + self.policy.permit2_expiration_seconds,
            )
            return await self.client.send_transaction(self.deployment.permit2, data)

        tx = build_swap_transaction(intent, self.deployment, now + self.policy.deadline_seconds)
        return await self.client.send_transaction(tx.to, tx.data, tx.value)

    async def _step(self, step: Step, last_kind: StepKind | None, intent: SwapIntent) -> Event:
        kind = step.kind
        if kind is StepKind.READ_ALLOWANCES:
            try:
                return await self.check_allowances(intent)
            except ReadFailure as e:
                return TransactionFailed(step=kind, reason=str(e))

        if kind is StepKind.WAIT_CONFIRMATION:
            if step.tx_hash is None or last_kind is None:
                raise SequenceError("Confirmation requested with no submitted transaction")
            try:
                receipt = await self.client.wait_for_receipt(step.tx_hash, self.receipt_timeout)
            except TransactionError as e:
                return TransactionFailed(step=last_kind, reason=str(e), tx_hash=step.tx_hash)
            if not receipt.succeeded:
                return TransactionFailed(
                    step=last_kind, reason="transaction reverted", tx_hash=step.tx_hash
                )
            return TransactionConfirmed(tx_hash=step.tx_hash)

        try:
            tx_hash = await self._submit(kind, intent)
        except (TransactionError, ReadFailure, EncodingError) as e:
            return TransactionFailed(step=kind, reason=str(e))
        return TransactionSubmitted(step=kind, tx_hash=tx_hash)

    async def execute(self, intent: SwapIntent) -> SwapOutcome:
        """Run approvals (for token input) and the swap, in order.

        Never raises for chain or wallet failures; they are reported on the
        returned outcome.
        """
        sequencer = SwapSequencer(requires_approvals=not intent.is_native_in)
        log = logger.bind(direction=intent.direction.value, token=intent.token)
        tx_hashes: dict[StepKind, str] = {}
        step = sequencer.start()
        last_kind: StepKind | None = None

        while not step.is_terminal:
            event = await self._step(step, last_kind, intent)
            if isinstance(event, TransactionSubmitted):
                tx_hashes[event.step] = event.tx_hash
                last_kind = event.step
                log.info("swap_step_submitted", step=event.step.value, tx_hash=event.tx_hash)
            elif isinstance(event, TransactionFailed):
                log.warning(
                    "swap_step_failed",
                    step=event.step.value,
                    reason=event.reason,
                    tx_hash=event.tx_hash,
                )
            step = sequencer.handle(event)

        outcome = SwapOutcome(
            stage=sequencer.stage,
            history=list(sequencer.history),
            tx_hashes=tx_hashes,
            failed_step=sequencer.failed_step,
        )
        if sequencer.stage is SwapStage.FAILED:
            outcome.error = self._failure(sequencer, tx_hashes)
        else:
            log.info("swap_confirmed", tx_hash=outcome.swap_tx_hash)
        return outcome

    @staticmethod
    def _failure(sequencer: SwapSequencer, tx_hashes: dict[StepKind, str]) -> Cc0SwapError:
        step = sequencer.failed_step
        reason = sequencer.failure_reason or "unknown failure"
        if step in (StepKind.APPROVE_TOKEN, StepKind.APPROVE_PERMIT2):
            return ApprovalFailure(reason, step=step.value)
        if step is StepKind.SUBMIT_SWAP:
            return SwapFailure(reason, tx_hash=tx_hashes.get(StepKind.SUBMIT_SWAP))
        return ReadFailure(reason)


__all__ = [
    "AllowancesChecked",
    "Event",
    "Step",
    "StepKind",
    "SwapExecutor",
    "SwapOutcome",
    "SwapSequencer",
    "SwapStage",
    "TransactionConfirmed",
    "TransactionFailed",
    "TransactionSubmitted",
]
