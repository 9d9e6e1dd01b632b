"""
Rebuild nested call traces from the flat, line oriented trace Geth writes.

Geth reports one JSON object per executed instruction, tagged with the call
depth, followed by a single summary record carrying the transaction output:

    {"pc":0,"op":96,"gas":"0x5c878","gasCost":"0x3","memSize":0,"stack":[],"depth":1,...}
    ...
    {"output":"","gasUsed":"0x1e1b3"}

Calls made by the code appear inline, one depth deeper.  Return data of inner
calls is never reported and is recovered from the instruction which ended the
call.
"""
import json
from typing import (
    Any,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Tuple,
    Union,
)

from eth_utils import (
    get_extended_debug_logger,
    to_tuple,
)

from evmtrace._utils.hexadecimal import (
    parse_big_int,
    parse_hex,
)
from evmtrace._utils.numeric import (
    read_padded,
    to_bounded_int,
    trim_front,
)
from evmtrace.constants import (
    DEFAULT_STACK_SIZE,
)
from evmtrace.core.trace import (
    Element,
    Step,
    SubTrace,
    Trace,
    parse_storage,
)
from evmtrace.exceptions import (
    EmptyTraceOutput,
    MalformedTrace,
    UnexpectedEndOfTrace,
)
from evmtrace.outcome import (
    Outcome,
    classify_execution_error,
)
from evmtrace.typing import (
    JSONObject,
)
from evmtrace.vm import (
    opcode_values,
)

# Emitted at step level by some Geth versions in addition to the REVERT step
# itself, and not at all by others.
SYNTHETIC_REVERT_ERROR = "execution reverted"

IMPLICIT_RETURN_OPCODES = frozenset({opcode_values.STOP, opcode_values.SELFDESTRUCT})


class TraceResult(NamedTuple):
    outcome: Outcome
    data: bytes
    trace: Trace


def is_step_record(record: JSONObject) -> bool:
    return "pc" in record


def is_final_record(record: JSONObject) -> bool:
    return "output" in record and "pc" not in record


def _is_synthetic_revert(record: JSONObject) -> bool:
    return is_step_record(record) and record.get("error") == SYNTHETIC_REVERT_ERROR


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


STEP_FIELD_CHECKS = (
    ("pc", _is_int),
    ("op", _is_int),
    ("depth", _is_int),
    ("gas", lambda value: isinstance(value, str) or _is_int(value)),
)


def _check_step_record(record: JSONObject, line_number: int) -> None:
    for field, is_valid in STEP_FIELD_CHECKS:
        if field not in record:
            raise MalformedTrace(f"Step on line {line_number} of trace has no {field!r}: {record}")
        elif not is_valid(record[field]):
            raise MalformedTrace(
                f"Step on line {line_number} of trace has a bad {field!r}: {record[field]!r}"
            )
    if record["depth"] < 1:
        raise MalformedTrace(f"Step on line {line_number} of trace has depth {record['depth']}")
    if not isinstance(record.get("stack") or [], list):
        raise MalformedTrace(f"Step on line {line_number} of trace has a bad stack: {record}")


@to_tuple
def parse_records(lines: Iterable[Union[str, bytes, JSONObject]]) -> Iterable[JSONObject]:
    for line_number, line in enumerate(lines, start=1):
        if isinstance(line, dict):
            record = line
        elif not line.strip():
            continue
        else:
            try:
                record = json.loads(line)
            except ValueError as err:
                raise MalformedTrace(f"Line {line_number} of trace is not JSON: {err}") from err

        if not isinstance(record, dict):
            raise MalformedTrace(f"Line {line_number} of trace is not an object: {record!r}")
        elif not is_step_record(record) and not is_final_record(record):
            raise MalformedTrace(f"Line {line_number} of trace is not a recognised record: {record}")
        elif is_step_record(record):
            _check_step_record(record, line_number)
        yield record


class RecordCursor:
    """
    Read position over the records of a single trace, with one record of
    lookahead.  Synthetic revert markers are dropped when the cursor is built.
    """

    def __init__(self, records: Iterable[JSONObject]) -> None:
        self._records: Tuple[JSONObject, ...] = tuple(
            record for record in records if not _is_synthetic_revert(record)
        )
        self._position = 0

    def __len__(self) -> int:
        return len(self._records)

    @property
    def at_end(self) -> bool:
        return self._position >= len(self._records)

    @property
    def remaining(self) -> int:
        return len(self._records) - self._position

    def peek(self) -> Optional[JSONObject]:
        if self.at_end:
            return None
        return self._records[self._position]

    def advance(self) -> JSONObject:
        if self.at_end:
            raise MalformedTrace("Attempted to read past the end of the trace")
        record = self._records[self._position]
        self._position += 1
        return record

    def backtrack(self) -> None:
        if self._position == 0:
            raise MalformedTrace("Attempted to backtrack past the start of the trace")
        self._position -= 1


class TraceReconstructor:
    """
    Builds a :class:`Trace` from trace records by recursive descent on the
    call depth, starting at depth 1.
    """

    logger = get_extended_debug_logger("evmtrace.tools.reconstruction.TraceReconstructor")

    def __init__(self, stack_size: int = DEFAULT_STACK_SIZE) -> None:
        self.stack_size = stack_size

    def reconstruct(self, lines: Iterable[Union[str, bytes, JSONObject]]) -> TraceResult:
        cursor = RecordCursor(parse_records(lines))
        if cursor.at_end:
            raise EmptyTraceOutput("Trace contains no records")

        trace = self._reconstruct_frame(cursor, 1)
        if not cursor.at_end:
            raise MalformedTrace(
                f"{cursor.remaining} records left over after the outermost call "
                f"completed, next is {cursor.peek()}"
            )
        return TraceResult(trace.outcome, trace.data, trace)

    def _reconstruct_frame(self, cursor: RecordCursor, depth: int) -> Trace:
        elements: List[Element] = []
        last_step_record: Optional[JSONObject] = None

        while True:
            record = cursor.peek()

            if record is None:
                # end of stream without a summary record
                outcome, data = self._infer_return(last_step_record)
                return Trace(tuple(elements), outcome, data)

            elif is_final_record(record):
                if depth > 1:
                    # summary belongs to the outermost call
                    outcome, data = self._infer_return(last_step_record)
                    return Trace(tuple(elements), outcome, data)
                cursor.advance()
                outcome, data = self._classify_final(record)
                return Trace(tuple(elements), outcome, data)

            record_depth = int(record["depth"])

            if record_depth > depth:
                self.logger.debug2("Entering call at depth %d (pc=%s)", depth + 1, record["pc"])
                elements.append(SubTrace(self._reconstruct_frame(cursor, depth + 1)))

            elif record_depth < depth:
                # back in the caller, which consumes this record
                outcome, data = self._infer_return(last_step_record)
                return Trace(tuple(elements), outcome, data)

            elif record.get("error"):
                outcome = classify_execution_error(record["error"])
                if outcome.is_post_error:
                    elements.append(self._to_step(record))
                cursor.advance()
                data = parse_hex(record["output"]) if record.get("output") else b""
                if depth == 1:
                    data = self._consume_summary(cursor, outcome, data)
                self.logger.debug2("Call at depth %d halted with %s", depth, outcome)
                return Trace(tuple(elements), outcome, data)

            else:
                elements.append(self._to_step(record))
                last_step_record = record
                cursor.advance()

    def _to_step(self, record: JSONObject) -> Step:
        try:
            stack = tuple(parse_big_int(item) for item in record.get("stack") or ())
            return Step(
                pc=int(record["pc"]),
                op=int(record["op"]),
                depth=int(record["depth"]),
                gas=parse_big_int(record["gas"]),
                stack_size=len(stack),
                stack=trim_front(stack, self.stack_size),
                memory=parse_hex(record.get("memory") or "0x"),
                storage=parse_storage(record.get("storage") or {}),
            )
        except KeyError as err:
            raise MalformedTrace(f"Trace step is missing {err}: {record}") from err

    def _classify_final(self, record: JSONObject) -> Tuple[Outcome, bytes]:
        output = parse_hex(record.get("output") or "0x")
        if record.get("error"):
            outcome = classify_execution_error(record["error"])
            return outcome, output if outcome.has_data else b""
        else:
            return Outcome.RETURN, output

    def _consume_summary(self, cursor: RecordCursor, outcome: Outcome, data: bytes) -> bytes:
        """
        After the outermost call halts on an error, the summary record which
        follows carries nothing new except, for a revert, the output.
        """
        record = cursor.peek()
        if record is not None and is_final_record(record):
            cursor.advance()
            if outcome is Outcome.REVERT:
                return parse_hex(record.get("output") or "0x")
        return data

    def _infer_return(self, record: Optional[JSONObject]) -> Tuple[Outcome, bytes]:
        """
        Work out how a call ended, and what it returned, from the last
        instruction it executed.
        """
        if record is None:
            raise UnexpectedEndOfTrace(None)

        opcode = int(record["op"])
        if opcode in IMPLICIT_RETURN_OPCODES:
            return Outcome.RETURN, b""
        elif opcode == opcode_values.RETURN:
            return Outcome.RETURN, self._read_return_data(record)
        elif opcode == opcode_values.REVERT:
            return Outcome.REVERT, self._read_return_data(record)
        else:
            raise UnexpectedEndOfTrace(opcode)

    def _read_return_data(self, record: JSONObject) -> bytes:
        stack: List[Any] = record.get("stack") or []
        if len(stack) < 2:
            self.logger.debug(
                "%s at pc=%s has %d stack operands, expected 2",
                record.get("opName", record["op"]),
                record["pc"],
                len(stack),
            )
            raise UnexpectedEndOfTrace(int(record["op"]))

        offset = to_bounded_int(parse_big_int(stack[-1]))
        length = to_bounded_int(parse_big_int(stack[-2]))
        if offset is None or length is None:
            # such a read could never have been paid for, so nothing was returned
            return b""

        memory = parse_hex(record.get("memory") or "0x")
        return read_padded(memory, offset, length)


def reconstruct_trace(
    lines: Iterable[Union[str, bytes, JSONObject]],
    stack_size: int = DEFAULT_STACK_SIZE,
) -> TraceResult:
    return TraceReconstructor(stack_size).reconstruct(lines)
