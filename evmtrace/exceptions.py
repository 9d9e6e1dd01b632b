class EVMTraceError(Exception):
    """
    Base class for all evmtrace errors.
    """


#
# Malformed input
#
class MalformedHex(EVMTraceError, ValueError):
    """
    Raised when a string is not valid (optionally ``0x`` prefixed) hex with an
    even number of digits.
    """


class ValueTooLarge(EVMTraceError, ValueError):
    """
    Raised when an integer does not fit in the requested number of bytes.
    """


class MalformedFixture(EVMTraceError):
    """
    Raised when a fixture document is missing a required field or has a field of
    the wrong shape.
    """


class UnsupportedTransactionType(MalformedFixture):
    """
    Raised when a transaction carries neither a ``gasPrice`` nor both of the
    EIP-1559 fee fields.
    """


#
# External process
#
class ProcessError(EVMTraceError):
    """
    Base class for failures running an external process.
    """


class ProcessTimeout(ProcessError):
    """
    Raised when an external process did not finish within its time budget.  The
    process has been killed by the time this is raised.
    """

    @property
    def timeout(self) -> float:
        return self.args[0]


class ProcessNonZeroExit(ProcessError):
    """
    Raised when an external process exits with a non-zero status.
    """

    def __init__(self, returncode: int, stderr: str) -> None:
        super().__init__(returncode, stderr)
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        return f"process exited with status {self.returncode}: {self.stderr.strip()}"


class ProcessLaunchFailure(ProcessError):
    """
    Raised when an external process could not be started at all (e.g. the
    binary is missing or not executable).
    """


class ExternalToolFailure(EVMTraceError):
    """
    Raised when the external EVM tool failed to run a transaction.  The
    underlying :class:`ProcessError` is chained as ``__cause__``.
    """


#
# Classification
#
class UnrecognisedErrorText(EVMTraceError):
    """
    Raised when the external tool reports an error string which has no entry
    in the classification tables.  This is never mapped to ``UNKNOWN``.
    """

    @property
    def text(self) -> str:
        return self.args[0]


#
# Trace structure
#
class MalformedTrace(EVMTraceError):
    """
    Base class for trace output which does not have the shape the
    reconstruction engine expects.
    """


class EmptyTraceOutput(MalformedTrace):
    """
    Raised when the external tool produced no trace file, or an empty one.
    """


class MultipleTraceFilesDetected(MalformedTrace):
    """
    Raised when the external tool produced more than one trace file for a
    single transaction.
    """


class UnexpectedEndOfTrace(MalformedTrace):
    """
    Raised when a call frame ends on an instruction from which no return
    outcome can be inferred.
    """

    @property
    def opcode(self) -> int:
        return self.args[0]
