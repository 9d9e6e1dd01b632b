from typing import (
    Any,
    Dict,
    Iterable,
    Mapping,
    NamedTuple,
    Tuple,
    Union,
)

from eth_utils import (
    to_tuple,
)

from evmtrace._utils.hexadecimal import (
    decode_abbreviated,
    encode_abbreviated,
    encode_big_int,
    encode_bytes,
    parse_big_int,
)
from evmtrace.constants import (
    EMPTY_MAPPING,
)
from evmtrace.exceptions import (
    MalformedTrace,
)
from evmtrace.outcome import (
    Outcome,
)
from evmtrace.typing import (
    JSONObject,
    StepJSON,
    TraceJSON,
)
from evmtrace.vm.mnemonics import (
    mnemonic_for,
)

MAX_INDENT = 10


def indent(depth: int) -> str:
    prefix = ". " * min(MAX_INDENT, depth)
    if depth >= MAX_INDENT:
        prefix += f"({depth:#04x}) "
    return prefix


def _stack_to_string(stack_size: int, stack: Tuple[int, ...]) -> str:
    items = ", ".join(encode_big_int(item) for item in stack)
    if len(stack) >= stack_size:
        return f"[{items}]"
    else:
        return f"[ ({stack_size - len(stack)} items) ... {items}]"


class Step(NamedTuple):
    """
    A single (non-terminating) execution step.  ``stack`` holds only the top of
    the stack (bottom to top), ``stack_size`` the true number of items.
    """

    pc: int
    op: int
    depth: int
    gas: int
    stack_size: int
    stack: Tuple[int, ...]
    memory: bytes = b""
    storage: Mapping[int, int] = EMPTY_MAPPING

    def __hash__(self) -> int:
        return hash((self.pc, self.op, self.depth, self.gas, self.stack_size, self.stack, self.memory))

    @property
    def mnemonic(self) -> str:
        return mnemonic_for(self.op)

    def render(self, depth: int = 0) -> str:
        line = "{}{}:{}, gas={}, stack={}".format(
            indent(depth),
            self.pc,
            self.mnemonic,
            encode_big_int(self.gas),
            _stack_to_string(self.stack_size, self.stack),
        )
        if self.memory:
            line += f", memory={encode_abbreviated(self.memory)}"
        if self.storage:
            line += f", storage={dict(sorted(self.storage.items()))}"
        return line

    def to_json(self, abbreviate: bool = True) -> StepJSON:
        step: StepJSON = {
            "pc": self.pc,
            "op": self.op,
            "depth": self.depth,
            "gas": self.gas,
            "stackSize": self.stack_size,
            "stack": [encode_big_int(item) for item in self.stack],
        }
        if self.memory:
            step["memory"] = encode_bytes(self.memory, abbreviate)
        if self.storage:
            step["storage"] = {
                encode_big_int(key): encode_big_int(value)
                for key, value in sorted(self.storage.items())
            }
        return step

    @classmethod
    def from_json(cls, step: JSONObject) -> "Step":
        try:
            return cls(
                pc=int(step["pc"]),
                op=int(step["op"]),
                depth=int(step["depth"]),
                gas=parse_big_int(step["gas"]),
                stack_size=int(step["stackSize"]),
                stack=tuple(parse_big_int(item) for item in step["stack"]),
                # memory is not reported until something has been written to it
                memory=decode_abbreviated(step.get("memory", "0x")),
                storage=parse_storage(step.get("storage") or {}),
            )
        except KeyError as err:
            raise MalformedTrace(f"Trace step is missing {err}: {step}") from err


def parse_storage(storage: Mapping[str, str]) -> Dict[int, int]:
    return {parse_big_int(key): parse_big_int(value) for key, value in storage.items()}


class SubTrace(NamedTuple):
    """
    The trace of a nested call, one level deeper than the enclosing trace.
    """

    trace: "Trace"

    def render(self, depth: int = 0) -> str:
        return self.trace.render(depth + 1)

    def to_json(self, abbreviate: bool = True) -> TraceJSON:
        return self.trace.to_json(abbreviate)


Element = Union[Step, SubTrace]


def element_from_json(element: JSONObject) -> Element:
    if "pc" in element:
        return Step.from_json(element)
    elif "steps" in element:
        return SubTrace(Trace.from_json(element))
    else:
        raise MalformedTrace(f"Unknown trace element: {element}")


class Trace(NamedTuple):
    """
    The execution trace of one call frame: its steps, interleaved with the
    traces of any calls it made, and how it terminated.  ``data`` is the return
    (or revert) payload and is empty for every other outcome.
    """

    elements: Tuple[Element, ...]
    outcome: Outcome
    data: bytes = b""

    @property
    def steps(self) -> Tuple[Step, ...]:
        return tuple(element for element in self.elements if isinstance(element, Step))

    @property
    def subtraces(self) -> Tuple["Trace", ...]:
        return tuple(
            element.trace for element in self.elements if isinstance(element, SubTrace)
        )

    def render(self, depth: int = 0) -> str:
        lines = [element.render(depth) for element in self.elements]
        terminal = f"{indent(depth)}{self.outcome}"
        if self.data:
            terminal += f"({encode_abbreviated(self.data)})"
        lines.append(terminal)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()

    def to_json(self, abbreviate: bool = True) -> TraceJSON:
        return {
            "steps": [element.to_json(abbreviate) for element in self.elements],
            "outcome": self.outcome.value,
            "data": encode_abbreviated(self.data),
        }

    @classmethod
    def from_json(cls, trace: JSONObject) -> "Trace":
        try:
            return cls(
                elements=_elements_from_json(trace["steps"]),
                outcome=Outcome[trace["outcome"]],
                data=decode_abbreviated(trace.get("data", "0x")),
            )
        except KeyError as err:
            raise MalformedTrace(f"Trace is missing {err} or has an unknown outcome") from err


@to_tuple
def _elements_from_json(elements: Iterable[Any]) -> Iterable[Element]:
    for element in elements:
        yield element_from_json(element)
