from evmtrace.core.trace import (
    Step,
    SubTrace,
    Trace,
    indent,
)
from evmtrace.outcome import (
    Outcome,
)
from evmtrace.vm.mnemonics import (
    mnemonic_for,
)


def test_render_nested_trace():
    inner = Trace(
        (Step(pc=0, op=0x00, depth=2, gas=0x10, stack_size=0, stack=()),),
        Outcome.RETURN,
    )
    trace = Trace(
        (
            Step(pc=0, op=0xF1, depth=1, gas=0x100, stack_size=7, stack=(1, 2)),
            SubTrace(inner),
        ),
        Outcome.REVERT,
        b"\x01\x02",
    )

    assert str(trace).splitlines() == [
        "0:CALL, gas=0x0100, stack=[ (5 items) ... 0x01, 0x02]",
        ". 0:STOP, gas=0x10, stack=[]",
        ". RETURN",
        "REVERT(0x0102)",
    ]


def test_indent_is_capped():
    assert indent(0) == ""
    assert indent(2) == ". . "
    assert indent(12) == ". " * 10 + "(0x0c) "


def test_mnemonics():
    assert mnemonic_for(0x00) == "STOP"
    assert mnemonic_for(0x5F) == "PUSH0"
    assert mnemonic_for(0x7F) == "PUSH32"
    assert mnemonic_for(0xFD) == "REVERT"
    assert mnemonic_for(0x0C) == "UNKNOWN_0x0c"
