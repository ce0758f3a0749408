"""Universal Router command and v4 action encoding.

A router transaction is `execute(commands, inputs[, deadline])` where
`commands` holds one opcode byte per step and `inputs[i]` is the ABI-encoded
parameter blob of command i. The V4_SWAP command's input is itself
`abi.encode(bytes actions, bytes[] params)`, one action opcode per byte with
a parallel list of action parameter blobs.

Each parameter dataclass below documents its ABI field order. Integer fields
are range-checked before encoding; nothing is truncated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol

from eth_abi import encode

from cc0swap.errors import EncodingError
from cc0swap.models.types import hex_to_bytes32, normalize_address
from cc0swap.safe_int import S, SafeIntError

from .pool_key import POOL_KEY_ABI, PoolKey

# execute(bytes,bytes[],uint256)
EXECUTE_WITH_DEADLINE_SELECTOR = bytes.fromhex("3593564c")
# execute(bytes,bytes[])
EXECUTE_SELECTOR = bytes.fromhex("24856bc3")
# approve(address,uint256)
ERC20_APPROVE_SELECTOR = bytes.fromhex("095ea7b3")
# allowance(address,address)
ERC20_ALLOWANCE_SELECTOR = bytes.fromhex("dd62ed3e")
# approve(address,address,uint160,uint48)
PERMIT2_APPROVE_SELECTOR = bytes.fromhex("87517c45")
# allowance(address,address,address)
PERMIT2_ALLOWANCE_SELECTOR = bytes.fromhex("927da105")
# extsload(bytes32)
EXTSLOAD_SELECTOR = bytes.fromhex("1e2eaeaf")
# tokenToCollection(address)
TOKEN_TO_COLLECTION_SELECTOR = bytes.fromhex("d6d53ba2")


class Command(IntEnum):
    """Universal Router command opcodes."""

    SWEEP = 0x04
    WRAP_ETH = 0x0B
    UNWRAP_WETH = 0x0C
    V4_SWAP = 0x10
    PERMIT2_PERMIT = 0x0A


class Action(IntEnum):
    """v4 router action opcodes (inside a V4_SWAP command)."""

    SWAP_EXACT_IN_SINGLE = 0x06
    SETTLE = 0x0B
    SETTLE_ALL = 0x0C
    SETTLE_PAIR = 0x0D
    TAKE = 0x0E
    TAKE_ALL = 0x0F
    TAKE_PAIR = 0x11


def check_uint(value: int, bits: int, name: str) -> int:
    """Range-check an unsigned field.

    Raises:
        EncodingError: If value is negative or wider than `bits`
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{name} must be an int, got {type(value).__name__}")
    try:
        return S(value).to_uint(bits)
    except SafeIntError as err:
        raise EncodingError(f"{name}: {err}") from err


def check_int(value: int, bits: int, name: str) -> int:
    """Range-check a signed field.

    Raises:
        EncodingError: If value does not fit a signed `bits`-wide integer
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{name} must be an int, got {type(value).__name__}")
    try:
        return S(value).to_int(bits)
    except SafeIntError as err:
        raise EncodingError(f"{name}: {err}") from err


def check_address(value: str, name: str) -> str:
    """Validate and lowercase an address field.

    Raises:
        EncodingError: If the address is malformed
    """
    try:
        return normalize_address(value, validate=True)
    except (AttributeError, ValueError) as err:
        raise EncodingError(f"Invalid {name} address: {value!r}") from err


class CommandInput(Protocol):
    """A router command with its encodable parameters."""

    @property
    def command(self) -> Command: ...

    def encode(self) -> bytes: ...


class ActionInput(Protocol):
    """A v4 action with its encodable parameters."""

    @property
    def action(self) -> Action: ...

    def encode(self) -> bytes: ...


# -----------------------------------------------------------------------------
# Router commands
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class WrapEth:
    """WRAP_ETH: (address recipient, uint256 amountMin)."""

    recipient: str
    amount_min: int

    @property
    def command(self) -> Command:
        return Command.WRAP_ETH

    def encode(self) -> bytes:
        return encode(
            ["address", "uint256"],
            [
                check_address(self.recipient, "recipient"),
                check_uint(self.amount_min, 256, "amount_min"),
            ],
        )


@dataclass(frozen=True)
class UnwrapWeth:
    """UNWRAP_WETH: (address recipient, uint256 amountMin)."""

    recipient: str
    amount_min: int

    @property
    def command(self) -> Command:
        return Command.UNWRAP_WETH

    def encode(self) -> bytes:
        return encode(
            ["address", "uint256"],
            [
                check_address(self.recipient, "recipient"),
                check_uint(self.amount_min, 256, "amount_min"),
            ],
        )


@dataclass(frozen=True)
class Sweep:
    """SWEEP: (address token, address recipient, uint256 amountMin)."""

    token: str
    recipient: str
    amount_min: int

    @property
    def command(self) -> Command:
        return Command.SWEEP

    def encode(self) -> bytes:
        return encode(
            ["address", "address", "uint256"],
            [
                check_address(self.token, "token"),
                check_address(self.recipient, "recipient"),
                check_uint(self.amount_min, 256, "amount_min"),
            ],
        )


# -----------------------------------------------------------------------------
# v4 actions
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ExactInputSingle:
    """SWAP_EXACT_IN_SINGLE: abi.encode(ExactInputSingleParams).

    Struct field order:
        (PoolKey poolKey, bool zeroForOne, uint128 amountIn,
         uint128 amountOutMinimum, bytes hookData)
    """

    pool_key: PoolKey
    zero_for_one: bool
    amount_in: int
    amount_out_minimum: int
    hook_data: bytes = b""

    @property
    def action(self) -> Action:
        return Action.SWAP_EXACT_IN_SINGLE

    def encode(self) -> bytes:
        key = self.pool_key
        return encode(
            [f"({POOL_KEY_ABI},bool,uint128,uint128,bytes)"],
            [
                (
                    (
                        key.currency0,
                        key.currency1,
                        check_uint(key.fee, 24, "fee"),
                        check_int(key.tick_spacing, 24, "tick_spacing"),
                        key.hooks,
                    ),
                    bool(self.zero_for_one),
                    check_uint(self.amount_in, 128, "amount_in"),
                    check_uint(self.amount_out_minimum, 128, "amount_out_minimum"),
                    bytes(self.hook_data),
                )
            ],
        )


@dataclass(frozen=True)
class Settle:
    """SETTLE: (address currency, uint256 amount, bool payerIsUser)."""

    currency: str
    amount: int
    payer_is_user: bool

    @property
    def action(self) -> Action:
        return Action.SETTLE

    def encode(self) -> bytes:
        return encode(
            ["address", "uint256", "bool"],
            [
                check_address(self.currency, "currency"),
                check_uint(self.amount, 256, "amount"),
                bool(self.payer_is_user),
            ],
        )


@dataclass(frozen=True)
class SettleAll:
    """SETTLE_ALL: (address currency, uint256 maxAmount)."""

    currency: str
    max_amount: int

    @property
    def action(self) -> Action:
        return Action.SETTLE_ALL

    def encode(self) -> bytes:
        return encode(
            ["address", "uint256"],
            [
                check_address(self.currency, "currency"),
                check_uint(self.max_amount, 256, "max_amount"),
            ],
        )


@dataclass(frozen=True)
class SettlePair:
    """SETTLE_PAIR: (address currency0, address currency1)."""

    currency0: str
    currency1: str

    @property
    def action(self) -> Action:
        return Action.SETTLE_PAIR

    def encode(self) -> bytes:
        return encode(
            ["address", "address"],
            [
                check_address(self.currency0, "currency0"),
                check_address(self.currency1, "currency1"),
            ],
        )


@dataclass(frozen=True)
class Take:
    """TAKE: (address currency, address recipient, uint256 amount).

    An amount of OPEN_DELTA (0) takes the full owed balance.
    """

    currency: str
    recipient: str
    amount: int

    @property
    def action(self) -> Action:
        return Action.TAKE

    def encode(self) -> bytes:
        return encode(
            ["address", "address", "uint256"],
            [
                check_address(self.currency, "currency"),
                check_address(self.recipient, "recipient"),
                check_uint(self.amount, 256, "amount"),
            ],
        )


@dataclass(frozen=True)
class TakeAll:
    """TAKE_ALL: (address currency, uint256 minAmount)."""

    currency: str
    min_amount: int

    @property
    def action(self) -> Action:
        return Action.TAKE_ALL

    def encode(self) -> bytes:
        return encode(
            ["address", "uint256"],
            [
                check_address(self.currency, "currency"),
                check_uint(self.min_amount, 256, "min_amount"),
            ],
        )


@dataclass(frozen=True)
class TakePair:
    """TAKE_PAIR: (address currency0, address currency1, address recipient)."""

    currency0: str
    currency1: str
    recipient: str

    @property
    def action(self) -> Action:
        return Action.TAKE_PAIR

    def encode(self) -> bytes:
        return encode(
            ["address", "address", "address"],
            [
                check_address(self.currency0, "currency0"),
                check_address(self.currency1, "currency1"),
                check_address(self.recipient, "recipient"),
            ],
        )


# -----------------------------------------------------------------------------
# Plans
# -----------------------------------------------------------------------------


@dataclass
class V4Plan:
    """Ordered v4 actions, encoded as the input of one V4_SWAP command."""

    actions: list[ActionInput] = field(default_factory=list)

    @property
    def command(self) -> Command:
        return Command.V4_SWAP

    def add(self, action: ActionInput) -> V4Plan:
        self.actions.append(action)
        return self

    def action_bytes(self) -> bytes:
        return bytes(int(a.action) for a in self.actions)

    def encode(self) -> bytes:
        """abi.encode(bytes actions, bytes[] params)."""
        if not self.actions:
            raise EncodingError("V4 plan has no actions")
        params = [a.encode() for a in self.actions]
        return encode(["bytes", "bytes[]"], [self.action_bytes(), params])


@dataclass
class RouterPlan:
    """Ordered router commands for one `execute` call."""

    commands: list[CommandInput] = field(default_factory=list)

    def add(self, command: CommandInput) -> RouterPlan:
        self.commands.append(command)
        return self

    def command_bytes(self) -> bytes:
        return bytes(int(c.command) for c in self.commands)

    def encode_inputs(self) -> tuple[bytes, list[bytes]]:
        """Return (commands, inputs) with one input blob per command."""
        if not self.commands:
            raise EncodingError("Router plan has no commands")
        return self.command_bytes(), [c.encode() for c in self.commands]

    def encode_execute(self, deadline: int | None = None) -> bytes:
        """Full calldata for execute(commands, inputs[, deadline])."""
        commands, inputs = self.encode_inputs()
        if deadline is None:
            return EXECUTE_SELECTOR + encode(["bytes", "bytes[]"], [commands, inputs])
        return EXECUTE_WITH_DEADLINE_SELECTOR + encode(
            ["bytes", "bytes[]", "uint256"],
            [commands, inputs, check_uint(deadline, 256, "deadline")],
        )


# -----------------------------------------------------------------------------
# Plain contract calls
# -----------------------------------------------------------------------------


def encode_erc20_approve(spender: str, amount: int) -> bytes:
    """ERC-20 approve(spender, amount) calldata."""
    return ERC20_APPROVE_SELECTOR + encode(
        ["address", "uint256"],
        [check_address(spender, "spender"), check_uint(amount, 256, "amount")],
    )


def encode_erc20_allowance(owner: str, spender: str) -> bytes:
    """ERC-20 allowance(owner, spender) calldata."""
    return ERC20_ALLOWANCE_SELECTOR + encode(
        ["address", "address"],
        [check_address(owner, "owner"), check_address(spender, "spender")],
    )


def encode_permit2_approve(token: str, spender: str, amount: int, expiration: int) -> bytes:
    """Permit2 approve(token, spender, uint160 amount, uint48 expiration) calldata."""
    return PERMIT2_APPROVE_SELECTOR + encode(
        ["address", "address", "uint160", "uint48"],
        [
            check_address(token, "token"),
            check_address(spender, "spender"),
            check_uint(amount, 160, "amount"),
            check_uint(expiration, 48, "expiration"),
        ],
    )


def encode_permit2_allowance(owner: str, token: str, spender: str) -> bytes:
    """Permit2 allowance(owner, token, spender) calldata."""
    return PERMIT2_ALLOWANCE_SELECTOR + encode(
        ["address", "address", "address"],
        [
            check_address(owner, "owner"),
            check_address(token, "token"),
            check_address(spender, "spender"),
        ],
    )


def encode_extsload(slot: bytes | str) -> bytes:
    """Pool manager extsload(bytes32 slot) calldata."""
    return EXTSLOAD_SELECTOR + encode(["bytes32"], [hex_to_bytes32(slot)])


def encode_token_to_collection(token: str) -> bytes:
    """Fee distributor tokenToCollection(token) calldata."""
    return TOKEN_TO_COLLECTION_SELECTOR + encode(["address"], [check_address(token, "token")])


__all__ = [
    "Action",
    "ActionInput",
    "Command",
    "CommandInput",
    "ERC20_ALLOWANCE_SELECTOR",
    "ERC20_APPROVE_SELECTOR",
    "EXECUTE_SELECTOR",
    "EXECUTE_WITH_DEADLINE_SELECTOR",
    "EXTSLOAD_SELECTOR",
    "ExactInputSingle",
    "PERMIT2_ALLOWANCE_SELECTOR",
    "PERMIT2_APPROVE_SELECTOR",
    "RouterPlan",
    "TOKEN_TO_COLLECTION_SELECTOR",
    "Settle",
    "SettleAll",
    "SettlePair",
    "Sweep",
    "Take",
    "TakeAll",
    "TakePair",
    "UnwrapWeth",
    "V4Plan",
    "WrapEth",
    "check_address",
    "check_int",
    "check_uint",
    "encode_erc20_allowance",
    "encode_erc20_approve",
    "encode_extsload",
    "encode_permit2_allowance",
    "encode_permit2_approve",
    "encode_token_to_collection",
]
