from concurrent.futures import (
    ThreadPoolExecutor,
)
import logging
from typing import (
    Any,
    Dict,
    List,
    NamedTuple,
    Tuple,
    Union,
)

from eth_utils import (
    ValidationError,
)

from evmtrace.core.state_test import (
    InstanceFilter,
    StateTest,
    StateTestInstance,
    state_tests_from_json,
)
from evmtrace.core.trace_test import (
    TraceTest,
    TraceTestInstance,
    TraceTx,
)
from evmtrace.exceptions import (
    EVMTraceError,
)
from evmtrace.tools.t8n import (
    GethT8n,
)
from evmtrace.typing import (
    JSONObject,
)


class InstanceFailure(NamedTuple):
    test: str
    fork: str
    instance_id: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.test}_{self.instance_id}: {type(self.error).__name__}: {self.error}"


class TraceGenerationReport(NamedTuple):
    trace_test: TraceTest
    failures: Tuple[InstanceFailure, ...]

    @property
    def is_complete(self) -> bool:
        return not self.failures


def fork_filter(fork: str) -> InstanceFilter:
    def _matches_fork(instance_fork: str, instance: StateTestInstance) -> bool:
        return instance_fork == fork
    return _matches_fork


InstanceResult = Union[TraceTestInstance, InstanceFailure]


class TraceGenerator:
    """
    Turns state tests into trace tests by running every selected instance
    through an external EVM.

    An instance which fails (bad template indexes, tool failure, a trace that
    cannot be understood) is logged and reported but does not stop the
    remaining instances.  The outcome expected by the state test is ignored;
    the trace records whatever actually happened.
    """

    logger = logging.getLogger("evmtrace.tools.driver.TraceGenerator")

    def __init__(
        self,
        evm: GethT8n,
        instance_filter: InstanceFilter = None,
        abbreviate: bool = True,
        workers: int = 1,
    ) -> None:
        if workers < 1:
            raise ValueError(f"Need at least one worker, got {workers}")
        self.evm = evm
        self.instance_filter = instance_filter
        self.abbreviate = abbreviate
        self.workers = workers

    def run_instance(self, state_test: StateTest, instance: StateTestInstance) -> InstanceResult:
        try:
            transaction = state_test.instantiate(instance)
            result = self.evm.run_transaction(
                instance.fork,
                state_test.env,
                state_test.pre,
                transaction,
            )
        except (EVMTraceError, ValidationError) as err:
            self.logger.warning(
                "Failed to trace %s: %s",
                state_test.instance_name(instance),
                err,
            )
            return InstanceFailure(state_test.name, instance.fork, instance.id, err)

        self.logger.debug(
            "Traced %s: %s", state_test.instance_name(instance), result.outcome
        )
        tx = TraceTx(transaction, result.outcome, result.data, result.trace)
        return TraceTestInstance(instance.id, tx)

    def _run_all(
        self, state_test: StateTest, instances: Tuple[StateTestInstance, ...]
    ) -> List[InstanceResult]:
        if self.workers == 1 or len(instances) <= 1:
            return [self.run_instance(state_test, instance) for instance in instances]

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            # map() yields in submission order
            return list(executor.map(
                lambda instance: self.run_instance(state_test, instance),
                instances,
            ))

    def convert(self, state_test: StateTest) -> TraceGenerationReport:
        instances = state_test.select_instances(self.instance_filter)
        results = self._run_all(state_test, instances)

        traced: Dict[str, List[TraceTestInstance]] = {}
        failures = []
        for instance, result in zip(instances, results):
            if isinstance(result, InstanceFailure):
                failures.append(result)
            else:
                traced.setdefault(instance.fork, []).append(result)

        trace_test = TraceTest(state_test.name, state_test.pre, state_test.env, traced)
        return TraceGenerationReport(trace_test, tuple(failures))

    def convert_fixture(
        self, fixture: JSONObject
    ) -> Tuple[Dict[str, Any], Tuple[InstanceFailure, ...]]:
        """
        Convert every state test in a fixture document, returning the trace test
        document (keyed by test name) and every instance failure.
        """
        document = {}
        failures: List[InstanceFailure] = []
        for state_test in state_tests_from_json(fixture):
            report = self.convert(state_test)
            document[state_test.name] = report.trace_test.to_json(self.abbreviate)
            failures.extend(report.failures)
        return document, tuple(failures)
