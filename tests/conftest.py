import json
import os
from pathlib import (
    Path,
)
import stat
import sys

from eth_utils import (
    setup_DEBUG2_logging,
)
import pytest

#
#  Setup DEBUG2 level logging.
#
setup_DEBUG2_logging()


SENDER = "0xa94f5374fce5edbc8e2a8697c15331677e6ebf0b"
SECRET_KEY = "0x45a915e4d060149eb4365960e6a7a45f334393093061116b197e3240065ff2d8"
CONTRACT = "0x095e7baea6a6c7c4c2dfeb977efac326af552d87"
COINBASE = "0x2adc25665018aa1fe0e6bc666dac8fc2697ff9ba"


def make_state_test_fixture():
    return {
        "env": {
            "currentCoinbase": COINBASE,
            "currentDifficulty": "0x020000",
            "currentGasLimit": "0xff112233445566",
            "currentNumber": "0x01",
            "currentTimestamp": "0x03e8",
            "currentBaseFee": "0x0a",
            "previousHash": "0x5e20a0453cecd065ea59c37ac63e079ee08998b6045136a8ce6635c7912ec0b6",
        },
        "pre": {
            CONTRACT: {
                "balance": "0x0de0b6b3a7640000",
                # PUSH1 1 PUSH1 1 ADD PUSH1 0 SSTORE STOP
                "code": "0x600160010160005500",
                "nonce": "0x00",
                "storage": {},
            },
            SENDER: {
                "balance": "0x0de0b6b3a7640000",
                "code": "0x",
                "nonce": "0x00",
                "storage": {},
            },
        },
        "transaction": {
            "data": ["0x", "0x01"],
            "gasLimit": ["0x04c4b400"],
            "gasPrice": "0x0a",
            "nonce": "0x00",
            "secretKey": SECRET_KEY,
            "sender": SENDER,
            "to": CONTRACT,
            "value": ["0x01"],
        },
        "post": {
            "Berlin": [
                {"indexes": {"data": 0, "gas": 0, "value": 0}, "hash": "0x00", "logs": "0x00"},
                {"indexes": {"data": 1, "gas": 0, "value": 0}, "hash": "0x00", "logs": "0x00"},
            ],
            "London": [
                {"indexes": {"data": 0, "gas": 0, "value": 0}, "hash": "0x00", "logs": "0x00"},
            ],
        },
    }


@pytest.fixture
def state_test_fixture():
    return make_state_test_fixture()


# PUSH1 0x01, STOP, then the summary record
SIMPLE_TRACE_LINES = (
    '{"pc":0,"op":96,"gas":"0x4c4a3b8","gasCost":"0x3","memSize":0,"stack":[],"depth":1,"refund":0,"opName":"PUSH1"}',  # noqa: E501
    '{"pc":2,"op":0,"gas":"0x4c4a3b5","gasCost":"0x0","memSize":0,"stack":["0x1"],"depth":1,"refund":0,"opName":"STOP"}',  # noqa: E501
    '{"output":"","gasUsed":"0x3"}',
)


FAKE_EVM_TEMPLATE = """\
#!{python}
import json
import os
import sys
import time

with open({behaviour_path!r}) as behaviour_file:
    behaviour = json.load(behaviour_file)

args = sys.argv[1:]
if args == ["--version"]:
    print(behaviour["version"])
    sys.exit(0)

basedir = args[args.index("--output.basedir") + 1]
with open({invocations_path!r}, "a") as invocations:
    txs_path = args[args.index("--input.txs") + 1]
    with open(txs_path) as txs_file:
        txs = json.load(txs_file)
    invocations.write(json.dumps({{"args": args, "txs": txs}}) + "\\n")

time.sleep(behaviour["sleep"])

for name, lines in behaviour["trace_files"].items():
    with open(os.path.join(basedir, name), "w") as trace_file:
        trace_file.write("".join(line + "\\n" for line in lines))

result = {{"stateRoot": "0x00", "receipts": []}}
if behaviour["rejected"] is not None:
    result["rejected"] = [{{"index": 0, "error": behaviour["rejected"]}}]
with open(os.path.join(basedir, "result.json"), "w") as result_file:
    json.dump(result, result_file)

sys.stderr.write(behaviour["stderr"])
sys.exit(behaviour["returncode"])
"""


class FakeEVM:
    """
    Writes an executable standing in for Geth's ``evm`` which records each
    invocation and produces the trace files it is told to.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.path = str(directory / "evm")
        self.behaviour_path = str(directory / "behaviour.json")
        self.invocations_path = str(directory / "invocations.jsonl")
        self.configure()

        with open(self.path, "w") as script:
            script.write(FAKE_EVM_TEMPLATE.format(
                python=sys.executable,
                behaviour_path=self.behaviour_path,
                invocations_path=self.invocations_path,
            ))
        os.chmod(self.path, os.stat(self.path).st_mode | stat.S_IXUSR)

    def configure(
        self,
        trace_lines=SIMPLE_TRACE_LINES,
        trace_files=None,
        rejected=None,
        returncode=0,
        stderr="",
        sleep=0,
        version="evm version 1.14.0-stable",
    ):
        if trace_files is None:
            trace_files = {"trace-0-0x00.jsonl": list(trace_lines)}
        with open(self.behaviour_path, "w") as behaviour_file:
            json.dump({
                "trace_files": trace_files,
                "rejected": rejected,
                "returncode": returncode,
                "stderr": stderr,
                "sleep": sleep,
                "version": version,
            }, behaviour_file)

    @property
    def invocations(self):
        if not os.path.exists(self.invocations_path):
            return []
        with open(self.invocations_path) as invocations:
            return [json.loads(line) for line in invocations]


@pytest.fixture
def fake_evm(tmp_path):
    directory = tmp_path / "fake-evm"
    directory.mkdir()
    return FakeEVM(directory)


@pytest.fixture(autouse=True)
def _clean_evmtrace_environment(monkeypatch):
    for name in list(os.environ):
        if name.startswith("EVMTRACE_"):
            monkeypatch.delenv(name)
