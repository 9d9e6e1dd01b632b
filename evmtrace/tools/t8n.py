import json
import logging
import os
from pathlib import (
    Path,
)
from typing import (
    Any,
    List,
    Optional,
    Type,
    TypeVar,
)

from evmtrace._utils.env import (
    env_bool,
    env_float,
    env_int,
    env_string,
)
from evmtrace.constants import (
    ALLOC_FILENAME,
    ALLOC_OUTPUT_FILENAME,
    DEFAULT_GETH_BINARY,
    DEFAULT_STACK_SIZE,
    DEFAULT_TIMEOUT,
    ENV_FILENAME,
    RESULT_OUTPUT_FILENAME,
    TRACE_FILE_SUFFIX,
    TXS_FILENAME,
)
from evmtrace.core.account import (
    WorldState,
)
from evmtrace.core.environment import (
    Environment,
)
from evmtrace.core.trace import (
    Trace,
)
from evmtrace.core.transactions import (
    Transaction,
)
from evmtrace.exceptions import (
    EmptyTraceOutput,
    ExternalToolFailure,
    MultipleTraceFilesDetected,
    ProcessError,
    ProcessLaunchFailure,
)
from evmtrace.outcome import (
    classify_rejection,
)
from evmtrace.tools.process import (
    execute,
    temporary_workdir,
)
from evmtrace.tools.reconstruction import (
    TraceReconstructor,
    TraceResult,
)

TGethT8n = TypeVar("TGethT8n", bound="GethT8n")

VERSION_TIMEOUT = 5


def _resolve(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    raise ValueError("No candidate value was provided")


def _write_json(path: Path, document: Any) -> None:
    with open(path, "w") as json_file:
        json.dump(document, json_file)


class GethT8n:
    """
    Runs single transactions through Geth's ``evm t8n`` subcommand and turns
    the trace it writes into a :class:`TraceResult`.

    Settings come from, in order: constructor arguments, attributes set with
    :meth:`configure`, ``EVMTRACE_*`` environment variables and the defaults in
    :mod:`evmtrace.constants`.
    """

    logger = logging.getLogger("evmtrace.tools.t8n.GethT8n")

    binary: str = None
    timeout: float = None
    stack_size: int = None
    keep_workdir: bool = None

    def __init__(
        self,
        binary: str = None,
        timeout: float = None,
        stack_size: int = None,
        keep_workdir: bool = None,
    ) -> None:
        self.binary = _resolve(
            binary, self.binary, env_string("GETH_BINARY", DEFAULT_GETH_BINARY)
        )
        self.timeout = _resolve(timeout, self.timeout, env_float("TIMEOUT", DEFAULT_TIMEOUT))
        self.stack_size = _resolve(
            stack_size, self.stack_size, env_int("STACK_SIZE", DEFAULT_STACK_SIZE)
        )
        self.keep_workdir = _resolve(
            keep_workdir, self.keep_workdir, env_bool("KEEP_WORKDIR", False)
        )
        if self.timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {self.timeout}")
        if self.stack_size < 0:
            raise ValueError(f"Stack size must be non-negative, got {self.stack_size}")

    @classmethod
    def configure(cls: Type[TGethT8n], __name__: str = None, **overrides: Any) -> Type[TGethT8n]:
        if __name__ is None:
            __name__ = cls.__name__

        for key in overrides:
            if not hasattr(cls, key):
                raise TypeError(
                    f"The {cls.__name__}.configure cannot set attributes that are not "
                    f"already present on the base class. The attribute `{key}` was "
                    f"not found on the base class `{cls}`"
                )
        return type(__name__, (cls,), overrides)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(binary={self.binary!r}, timeout={self.timeout}, "
            f"stack_size={self.stack_size})"
        )

    def build_command(self, fork: str, workdir: str) -> List[str]:
        return [
            self.binary,
            "t8n",
            "--state.fork", fork,
            "--trace",
            "--trace.memory",
            "--input.env", os.path.join(workdir, ENV_FILENAME),
            "--input.alloc", os.path.join(workdir, ALLOC_FILENAME),
            "--input.txs", os.path.join(workdir, TXS_FILENAME),
            "--output.basedir", workdir,
            "--output.alloc", ALLOC_OUTPUT_FILENAME,
            "--output.result", RESULT_OUTPUT_FILENAME,
        ]

    def write_inputs(
        self,
        workdir: str,
        env: Environment,
        pre: WorldState,
        tx: Transaction,
    ) -> None:
        _write_json(Path(workdir) / ENV_FILENAME, env.to_t8n_json())
        _write_json(Path(workdir) / ALLOC_FILENAME, pre.to_json())

        # Geth signs with ``secretKey`` when the signature fields are blank
        transaction = dict(tx.to_json(), v="", r="", s="")
        _write_json(Path(workdir) / TXS_FILENAME, [transaction])

    def run_transaction(
        self,
        fork: str,
        env: Environment,
        pre: WorldState,
        tx: Transaction,
    ) -> TraceResult:
        """
        Execute ``tx`` on ``pre`` under ``fork`` and reconstruct its trace.

        Failures of the tool itself are raised as :class:`ExternalToolFailure`;
        output the tool did produce but which cannot be understood raises a
        :class:`~evmtrace.exceptions.MalformedTrace`.
        """
        with temporary_workdir(keep=self.keep_workdir) as workdir:
            self.write_inputs(workdir, env, pre, tx)
            command = self.build_command(fork, workdir)
            self.logger.debug("Executing transaction in %s", workdir)

            try:
                execute(command, self.timeout)
            except ProcessError as err:
                raise ExternalToolFailure(f"{self.binary} t8n failed for {fork}: {err}") from err

            rejection = self._find_rejection(Path(workdir))
            if rejection is not None:
                self.logger.debug("Transaction was rejected: %s", rejection)
                outcome = classify_rejection(rejection)
                return TraceResult(outcome, b"", Trace((), outcome))

            trace_file = self._find_trace_file(Path(workdir))
            with open(trace_file) as lines:
                return TraceReconstructor(self.stack_size).reconstruct(lines)

    def _find_rejection(self, workdir: Path) -> Optional[str]:
        result_path = workdir / RESULT_OUTPUT_FILENAME
        if not result_path.exists():
            return None

        with open(result_path) as result_file:
            result = json.load(result_file)
        for rejected in result.get("rejected") or ():
            return rejected.get("error", "")
        return None

    def _find_trace_file(self, workdir: Path) -> Path:
        trace_files = sorted(workdir.rglob("*" + TRACE_FILE_SUFFIX))
        if not trace_files:
            raise EmptyTraceOutput(f"No trace file was written to {workdir}")
        elif len(trace_files) > 1:
            raise MultipleTraceFilesDetected(
                f"Expected one trace file, found {', '.join(path.name for path in trace_files)}"
            )

        trace_file, = trace_files
        if trace_file.stat().st_size == 0:
            raise EmptyTraceOutput(f"Trace file {trace_file.name} is empty")
        return trace_file

    def version(self) -> Optional[str]:
        """
        The version string reported by the tool, or ``None`` if it cannot be
        launched at all.
        """
        try:
            return execute([self.binary, "--version"], VERSION_TIMEOUT).strip()
        except ProcessLaunchFailure as err:
            self.logger.debug("Could not query version: %s", err)
            return None

