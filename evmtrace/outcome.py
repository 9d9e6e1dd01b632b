import enum
from typing import (
    FrozenSet,
    Tuple,
)

from evmtrace.exceptions import (
    UnrecognisedErrorText,
)


class Outcome(enum.Enum):
    """
    How a transaction, or a single call frame within it, terminated.  Either
    the code ran to a ``RETURN``/``REVERT`` (or an implicit return such as
    ``STOP``), execution halted abnormally, or the transaction was rejected
    before execution began.
    """

    RETURN = "RETURN"
    REVERT = "REVERT"
    UNKNOWN = "UNKNOWN"
    # Not enough gas to pay the intrinsic cost of the transaction.
    INTRINSIC_GAS = "INTRINSIC_GAS"
    OUT_OF_GAS = "OUT_OF_GAS"
    # Not enough gas left to store the code returned by initcode.
    CREATION_OUT_OF_GAS = "CREATION_OUT_OF_GAS"
    TYPE_NOT_SUPPORTED = "TYPE_NOT_SUPPORTED"
    NONCE_MAX_VALUE = "NONCE_MAX_VALUE"
    SENDER_NOT_EOA = "SENDER_NOT_EOA"
    # Max fee per gas is below the block base fee.
    FEECAP_LESS_BLOCKS = "FEECAP_LESS_BLOCKS"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    CODESIZE_EXCEEDED = "CODESIZE_EXCEEDED"
    INVALID_OPCODE = "INVALID_OPCODE"
    # Created code starts with the reserved 0xEF byte.
    INVALID_EOF = "INVALID_EOF"
    STACK_UNDERFLOW = "STACK_UNDERFLOW"
    STACK_OVERFLOW = "STACK_OVERFLOW"
    MEMORY_OVERFLOW = "MEMORY_OVERFLOW"
    RETURNDATA_OVERFLOW = "RETURNDATA_OVERFLOW"
    INVALID_JUMPDEST = "INVALID_JUMPDEST"
    CALLDEPTH_EXCEEDED = "CALLDEPTH_EXCEEDED"
    ACCOUNT_COLLISION = "ACCOUNT_COLLISION"
    # State modification attempted inside a STATICCALL.
    WRITE_PROTECTION = "WRITE_PROTECTION"
    GAS_LIMIT_REACHED = "GAS_LIMIT_REACHED"

    @property
    def is_post_error(self) -> bool:
        """
        Whether the instruction which raised this error is still recorded as a
        step of the trace.
        """
        return self in POST_ERROR_OUTCOMES

    @property
    def has_data(self) -> bool:
        return self in (Outcome.RETURN, Outcome.REVERT)

    def __str__(self) -> str:
        return self.value


POST_ERROR_OUTCOMES: FrozenSet[Outcome] = frozenset({
    Outcome.INVALID_JUMPDEST,
    Outcome.RETURNDATA_OVERFLOW,
    Outcome.WRITE_PROTECTION,
    Outcome.INVALID_OPCODE,
})


#
# Error texts reported by the external tool while executing code
#
EXECUTION_ERRORS: Tuple[Tuple[str, Outcome], ...] = (
    ("execution reverted", Outcome.REVERT),
    ("gas uint64 overflow", Outcome.OUT_OF_GAS),
    ("out of gas", Outcome.OUT_OF_GAS),
    ("invalid jump destination", Outcome.INVALID_JUMPDEST),
    ("return data out of bounds", Outcome.RETURNDATA_OVERFLOW),
    ("returndata overflow", Outcome.RETURNDATA_OVERFLOW),
    ("call depth exceeded", Outcome.CALLDEPTH_EXCEEDED),
    ("write protection", Outcome.WRITE_PROTECTION),
    ("max code size exceeded", Outcome.CODESIZE_EXCEEDED),
    ("contract creation code storage out of gas", Outcome.CREATION_OUT_OF_GAS),
    ("invalid code: must not begin with 0xef", Outcome.INVALID_EOF),
    ("must not begin with 0xef", Outcome.INVALID_EOF),
    ("contract address collision", Outcome.ACCOUNT_COLLISION),
    ("nonce uint64 overflow", Outcome.NONCE_MAX_VALUE),
)

# e.g. "stack underflow (0 <=> 2)", "invalid opcode: opcode 0xef not defined"
EXECUTION_ERROR_PREFIXES: Tuple[Tuple[str, Outcome], ...] = (
    ("stack underflow", Outcome.STACK_UNDERFLOW),
    ("stack limit reached", Outcome.STACK_OVERFLOW),
    ("invalid opcode", Outcome.INVALID_OPCODE),
)


#
# Error texts reported for transactions rejected before execution
#
REJECTION_ERRORS: Tuple[Tuple[str, Outcome], ...] = (
    ("intrinsic gas too low", Outcome.INTRINSIC_GAS),
    ("insufficient funds", Outcome.INSUFFICIENT_FUNDS),
    ("nonce has max value", Outcome.NONCE_MAX_VALUE),
    ("transaction type not supported", Outcome.TYPE_NOT_SUPPORTED),
    ("sender not an eoa", Outcome.SENDER_NOT_EOA),
    ("max fee per gas less than block base fee", Outcome.FEECAP_LESS_BLOCKS),
    ("gas limit reached", Outcome.GAS_LIMIT_REACHED),
)


def classify_execution_error(text: str) -> Outcome:
    """
    Map an error string from an execution trace onto an :class:`Outcome`.
    Unknown strings raise :class:`UnrecognisedErrorText` rather than being
    guessed at.
    """
    for error_text, outcome in EXECUTION_ERRORS:
        if text == error_text:
            return outcome

    for prefix, outcome in EXECUTION_ERROR_PREFIXES:
        if text.startswith(prefix):
            return outcome

    raise UnrecognisedErrorText(text)


def classify_rejection(text: str) -> Outcome:
    """
    Map the reason the tool gave for rejecting a transaction onto an
    :class:`Outcome`.  Geth wraps these with context (addresses, amounts), so
    they are matched as substrings.
    """
    lowered = text.lower()
    for error_text, outcome in REJECTION_ERRORS:
        if error_text in lowered:
            return outcome

    raise UnrecognisedErrorText(text)
