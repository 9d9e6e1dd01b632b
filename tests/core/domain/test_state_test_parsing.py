import pytest

from evmtrace.core.account import (
    Account,
    WorldState,
)
from evmtrace.core.environment import (
    Environment,
)
from evmtrace.core.state_test import (
    StateTest,
    state_tests_from_json,
)
from evmtrace.exceptions import (
    MalformedFixture,
)

CONTRACT = 0x095E7BAEA6A6C7C4C2DFEB977EFAC326AF552D87


def test_state_test_from_json(state_test_fixture):
    state_test = StateTest.from_json("add11", state_test_fixture)

    assert state_test.name == "add11"
    assert state_test.forks == ("Berlin", "London")
    assert len(state_test.pre) == 2
    assert state_test.pre[CONTRACT].code == bytes.fromhex("600160010160005500")
    assert state_test.env.current_number == 1
    assert state_test.env.current_base_fee == 10

    ids = [instance.id for instance in state_test.select_instances()]
    assert ids == ["Berlin_0_0_0", "Berlin_0_1_0", "London_0_0_0"]
    assert state_test.instance_name(state_test.instances["Berlin"][1]) == "add11_Berlin_0_1_0"


def test_instantiate_instance(state_test_fixture):
    state_test = StateTest.from_json("add11", state_test_fixture)
    tx = state_test.instantiate(state_test.instances["Berlin"][1])
    assert tx.data == b"\x01"
    assert tx.gas_limit == 0x04C4B400


def test_select_instances_with_predicate(state_test_fixture):
    state_test = StateTest.from_json("add11", state_test_fixture)
    selected = state_test.select_instances(lambda fork, instance: fork == "London")
    assert [instance.fork for instance in selected] == ["London"]


def test_state_tests_from_json(state_test_fixture):
    state_tests = state_tests_from_json({"a": state_test_fixture, "b": state_test_fixture})
    assert [state_test.name for state_test in state_tests] == ["a", "b"]


@pytest.mark.parametrize("missing", ("pre", "env", "transaction", "post"))
def test_missing_section(state_test_fixture, missing):
    del state_test_fixture[missing]
    with pytest.raises(MalformedFixture):
        StateTest.from_json("add11", state_test_fixture)


def test_missing_indexes(state_test_fixture):
    del state_test_fixture["post"]["London"][0]["indexes"]["value"]
    with pytest.raises(MalformedFixture):
        StateTest.from_json("add11", state_test_fixture)


def test_world_state_json_round_trip(state_test_fixture):
    state_test_fixture["pre"]["0x095e7baea6a6c7c4c2dfeb977efac326af552d87"]["storage"] = {
        "0x01": "0x02",
    }
    world_state = WorldState.from_json(state_test_fixture["pre"])
    world_state_json = world_state.to_json()

    assert world_state[CONTRACT].storage == {1: 2}
    assert world_state_json["0x095e7baea6a6c7c4c2dfeb977efac326af552d87"]["storage"] == {
        "0x" + "00" * 31 + "01": "0x" + "00" * 31 + "02",
    }
    assert WorldState.from_json(world_state_json) == world_state


def test_account_missing_field():
    with pytest.raises(MalformedFixture):
        Account.from_json({"balance": "0x00", "nonce": "0x00"})


def test_environment_json_round_trip(state_test_fixture):
    env_json = dict(state_test_fixture["env"], currentExcessBlobGas="0x00")
    env = Environment.from_json(env_json)

    assert env.extra == {"currentExcessBlobGas": "0x00"}
    assert Environment.from_json(env.to_json()) == env


def test_environment_for_t8n(state_test_fixture):
    env = Environment.from_json(state_test_fixture["env"])
    t8n_env = env.to_t8n_json()
    assert t8n_env["blockHashes"] == {"0": state_test_fixture["env"]["previousHash"]}


def test_environment_missing_required_field(state_test_fixture):
    del state_test_fixture["env"]["currentCoinbase"]
    with pytest.raises(MalformedFixture):
        Environment.from_json(state_test_fixture["env"])


def test_environment_default_mappings_are_read_only():
    env = Environment(current_coinbase=1, current_gas_limit=2, current_number=3, current_timestamp=4)

    with pytest.raises(TypeError):
        env.extra["withdrawals"] = []
    with pytest.raises(TypeError):
        env.block_hashes[2] = 0xAA
    assert env.to_json() == {
        "currentCoinbase": "0x" + "00" * 19 + "01",
        "currentGasLimit": "0x02",
        "currentNumber": "0x03",
        "currentTimestamp": "0x04",
    }
