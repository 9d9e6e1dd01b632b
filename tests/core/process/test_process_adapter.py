import os
import time

import pytest

from evmtrace.exceptions import (
    ProcessLaunchFailure,
    ProcessNonZeroExit,
    ProcessTimeout,
)
from evmtrace.tools.process import (
    execute,
    run_process,
    run_process_async,
    temporary_workdir,
)


@pytest.mark.asyncio
async def test_captures_both_streams():
    result = await run_process_async(["sh", "-c", "echo out; echo err >&2; exit 4"], 5)
    assert result.returncode == 4
    assert result.stdout == "out\n"
    assert result.stderr == "err\n"


@pytest.mark.asyncio
async def test_large_output_does_not_block():
    # far more than a pipe buffer on both streams
    command = [
        "sh",
        "-c",
        "head -c 1000000 /dev/zero | tr '\\0' a; head -c 1000000 /dev/zero | tr '\\0' b >&2",
    ]
    result = await run_process_async(command, 20)
    assert result.returncode == 0
    assert len(result.stdout) == 1000000
    assert len(result.stderr) == 1000000


@pytest.mark.asyncio
async def test_timeout_kills_the_process():
    started_at = time.monotonic()
    with pytest.raises(ProcessTimeout) as excinfo:
        await run_process_async(["sleep", "30"], 0.5)
    assert excinfo.value.timeout == 0.5
    assert time.monotonic() - started_at < 10


def _is_running(pid):
    try:
        with open(f"/proc/{pid}/stat") as stat_file:
            # state follows the parenthesised command name
            state = stat_file.read().rsplit(")", 1)[1].split()[0]
    except FileNotFoundError:
        return False
    return state != "Z"


@pytest.mark.skipif(not os.path.isdir("/proc"), reason="needs /proc")
@pytest.mark.asyncio
async def test_timeout_kills_processes_left_behind_by_the_child(tmp_path):
    pid_file = tmp_path / "pid"
    # the shell exits at once but the sleep keeps its stdout open
    command = ["sh", "-c", f"sleep 30 & echo $! > {pid_file}"]
    with pytest.raises(ProcessTimeout):
        await run_process_async(command, 0.5)

    pid = int(pid_file.read_text())
    deadline = time.monotonic() + 5
    while _is_running(pid) and time.monotonic() < deadline:
        time.sleep(0.05)
    assert not _is_running(pid)


def test_execute_returns_stdout():
    assert execute(["echo", "hello"], 5) == "hello\n"


def test_execute_non_zero_exit():
    with pytest.raises(ProcessNonZeroExit) as excinfo:
        execute(["sh", "-c", "echo oops >&2; exit 3"], 5)
    assert excinfo.value.returncode == 3
    assert excinfo.value.stderr == "oops\n"
    assert "oops" in str(excinfo.value)


def test_run_process_does_not_raise_on_non_zero_exit():
    assert run_process(["sh", "-c", "exit 2"], 5).returncode == 2


def test_launch_failure(tmp_path):
    with pytest.raises(ProcessLaunchFailure):
        execute([str(tmp_path / "no-such-binary")], 5)


def test_temporary_workdir_is_removed():
    with temporary_workdir() as workdir:
        with open(os.path.join(workdir, "file.json"), "w") as f:
            f.write("{}")
    assert not os.path.exists(workdir)


def test_temporary_workdir_is_removed_on_error():
    with pytest.raises(RuntimeError):
        with temporary_workdir() as workdir:
            raise RuntimeError("boom")
    assert not os.path.exists(workdir)


def test_temporary_workdir_can_be_kept():
    with temporary_workdir(keep=True) as workdir:
        pass
    try:
        assert os.path.isdir(workdir)
    finally:
        os.rmdir(workdir)
