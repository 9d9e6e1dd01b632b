import asyncio
import contextlib
import logging
import os
import shutil
import signal
import tempfile
from typing import (
    Iterator,
    NamedTuple,
    Sequence,
)

from async_timeout import (
    timeout as async_timeout,
)

from evmtrace.constants import (
    WORKDIR_PREFIX,
)
from evmtrace.exceptions import (
    ProcessLaunchFailure,
    ProcessNonZeroExit,
    ProcessTimeout,
)

logger = logging.getLogger("evmtrace.tools.process")

READ_CHUNK_SIZE = 64 * 1024


class ProcessResult(NamedTuple):
    returncode: int
    stdout: str
    stderr: str


async def _drain(stream: asyncio.StreamReader) -> bytes:
    chunks = []
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def _kill(proc: asyncio.subprocess.Process, sig: int = signal.SIGKILL) -> None:
    # The child leads its own session, so its pid names the process group even
    # after the child itself has exited.
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        logger.debug("Process group %s has already disappeared", proc.pid)


async def run_process_async(command: Sequence[str], timeout: float) -> ProcessResult:
    """
    Run ``command`` to completion, capturing both output streams.

    stdout and stderr are drained by two concurrent readers while a third task
    waits for the exit status; with large traces the child would otherwise block
    on a full pipe and never exit.  On timeout the child's whole process group
    is killed, including anything it left running, and :class:`ProcessTimeout`
    raised.  A non-zero exit status is *not* an error
    here; see :func:`execute_async`.
    """
    logger.debug("Running %s (timeout=%ss)", " ".join(command), timeout)
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as err:
        raise ProcessLaunchFailure(f"Could not launch {command[0]!r}: {err}") from err

    try:
        async with async_timeout(timeout):
            stdout, stderr, returncode = await asyncio.gather(
                _drain(proc.stdout),
                _drain(proc.stderr),
                proc.wait(),
            )
    except asyncio.TimeoutError:
        # anything the child left behind may be holding the pipes open
        _kill(proc)
        raise ProcessTimeout(timeout) from None
    finally:
        if proc.returncode is None:
            _kill(proc)
            await proc.wait()

    result = ProcessResult(
        returncode=returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    if result.stderr:
        logger.debug("stderr from %s: %s", command[0], result.stderr.rstrip())
    return result


async def execute_async(command: Sequence[str], timeout: float) -> str:
    result = await run_process_async(command, timeout)
    if result.returncode != 0:
        raise ProcessNonZeroExit(result.returncode, result.stderr)
    return result.stdout


def execute(command: Sequence[str], timeout: float) -> str:
    """
    Run ``command`` and return its stdout, raising :class:`ProcessTimeout`,
    :class:`ProcessNonZeroExit` or :class:`ProcessLaunchFailure` on failure.
    """
    return asyncio.run(execute_async(command, timeout))


def run_process(command: Sequence[str], timeout: float) -> ProcessResult:
    return asyncio.run(run_process_async(command, timeout))


@contextlib.contextmanager
def temporary_workdir(keep: bool = False) -> Iterator[str]:
    """
    A fresh temporary directory, removed on exit however the block exits,
    unless ``keep`` is set.
    """
    workdir = tempfile.mkdtemp(prefix=WORKDIR_PREFIX)
    try:
        yield workdir
    finally:
        if keep:
            logger.info("Keeping working directory %s", workdir)
        else:
            shutil.rmtree(workdir, ignore_errors=True)
