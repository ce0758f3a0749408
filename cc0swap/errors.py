"""Error classes for the swap core.

Encoders and validators raise these; the quote engine, the swap executor and
the HTTP layer turn them into explicit result values for their callers.
"""


class Cc0SwapError(Exception):
    """Base error for swap core operations."""

    pass


class ConfigurationError(Cc0SwapError):
    """A chain-specific address or constant is missing for the active chain."""

    pass


class PoolStateError(Cc0SwapError):
    """Raw pool state decoded to an uninitialized or invalid pool."""

    def __init__(self, message: str, *, uninitialized: bool = False) -> None:
        super().__init__(message)
        self.uninitialized = uninitialized


class ReadFailure(Cc0SwapError):
    """An external read (RPC call) failed. Eligible for retry."""

    pass


class EncodingError(Cc0SwapError, ValueError):
    """A value does not fit the ABI field it was about to be encoded into."""

    pass


class TransactionError(Cc0SwapError):
    """A transaction could not be submitted or its receipt could not be read."""

    pass


class ApprovalFailure(Cc0SwapError):
    """An approval transaction reverted or was rejected."""

    def __init__(self, message: str, *, step: str) -> None:
        super().__init__(message)
        self.step = step


class SwapFailure(Cc0SwapError):
    """The swap transaction reverted or could not be submitted."""

    def __init__(self, message: str, *, tx_hash: str | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class SequenceError(Cc0SwapError):
    """An event arrived that the swap state machine cannot accept in its stage."""

    pass
