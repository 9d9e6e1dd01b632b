import pytest

from evmtrace.exceptions import (
    UnrecognisedErrorText,
)
from evmtrace.outcome import (
    EXECUTION_ERRORS,
    POST_ERROR_OUTCOMES,
    Outcome,
    classify_execution_error,
    classify_rejection,
)


@pytest.mark.parametrize(
    "text,expected",
    (
        ("execution reverted", Outcome.REVERT),
        ("out of gas", Outcome.OUT_OF_GAS),
        ("gas uint64 overflow", Outcome.OUT_OF_GAS),
        ("invalid jump destination", Outcome.INVALID_JUMPDEST),
        ("return data out of bounds", Outcome.RETURNDATA_OVERFLOW),
        ("returndata overflow", Outcome.RETURNDATA_OVERFLOW),
        ("call depth exceeded", Outcome.CALLDEPTH_EXCEEDED),
        ("write protection", Outcome.WRITE_PROTECTION),
        ("max code size exceeded", Outcome.CODESIZE_EXCEEDED),
        ("contract creation code storage out of gas", Outcome.CREATION_OUT_OF_GAS),
        ("invalid code: must not begin with 0xef", Outcome.INVALID_EOF),
        ("stack underflow (0 <=> 2)", Outcome.STACK_UNDERFLOW),
        ("stack limit reached 1024 (1023)", Outcome.STACK_OVERFLOW),
        ("invalid opcode: INVALID", Outcome.INVALID_OPCODE),
        ("invalid opcode: opcode 0xef not defined", Outcome.INVALID_OPCODE),
    ),
)
def test_classify_execution_error(text, expected):
    assert classify_execution_error(text) is expected


@pytest.mark.parametrize("text,expected", EXECUTION_ERRORS)
def test_every_exact_error_text_is_classified(text, expected):
    assert classify_execution_error(text) is expected


@pytest.mark.parametrize(
    "text",
    (
        "",
        "something new went wrong",
        # matching is exact, not by substring
        "out of gas!",
        "OUT OF GAS",
    ),
)
def test_unrecognised_error_text_is_never_unknown(text):
    with pytest.raises(UnrecognisedErrorText) as excinfo:
        classify_execution_error(text)
    assert excinfo.value.text == text


@pytest.mark.parametrize(
    "text,expected",
    (
        ("intrinsic gas too low: have 21000, want 53000", Outcome.INTRINSIC_GAS),
        (
            "insufficient funds for gas * price + value: address 0xa94f have 0 want 1",
            Outcome.INSUFFICIENT_FUNDS,
        ),
        ("nonce has max value: address 0xa94f, nonce: 18446744073709551615", Outcome.NONCE_MAX_VALUE),
        ("transaction type not supported", Outcome.TYPE_NOT_SUPPORTED),
        ("sender not an eoa: address 0xa94f, codehash: 0x1234", Outcome.SENDER_NOT_EOA),
        (
            "max fee per gas less than block base fee: address 0xa94f, maxFeePerGas: 1, baseFee: 10",
            Outcome.FEECAP_LESS_BLOCKS,
        ),
        ("gas limit reached", Outcome.GAS_LIMIT_REACHED),
    ),
)
def test_classify_rejection(text, expected):
    assert classify_rejection(text) is expected


def test_unrecognised_rejection():
    with pytest.raises(UnrecognisedErrorText):
        classify_rejection("the moon is in the wrong phase")


@pytest.mark.parametrize("outcome", tuple(Outcome))
def test_post_error_outcomes(outcome):
    expected = outcome in {
        Outcome.INVALID_JUMPDEST,
        Outcome.RETURNDATA_OVERFLOW,
        Outcome.WRITE_PROTECTION,
        Outcome.INVALID_OPCODE,
    }
    assert outcome.is_post_error is expected
    assert (outcome in POST_ERROR_OUTCOMES) is expected


@pytest.mark.parametrize("outcome", tuple(Outcome))
def test_only_returns_and_reverts_carry_data(outcome):
    assert outcome.has_data is (outcome in {Outcome.RETURN, Outcome.REVERT})


def test_outcome_names_are_their_values():
    for outcome in Outcome:
        assert outcome.value == outcome.name
        assert str(outcome) == outcome.name
        assert Outcome[outcome.value] is outcome
