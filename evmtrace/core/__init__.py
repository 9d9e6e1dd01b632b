from .account import (  # noqa: F401
    Account,
    WorldState,
)
from .environment import (  # noqa: F401
    Environment,
)
from .state_test import (  # noqa: F401
    StateTest,
    StateTestInstance,
    state_tests_from_json,
)
from .trace import (  # noqa: F401
    Element,
    Step,
    SubTrace,
    Trace,
)
from .trace_test import (  # noqa: F401
    TraceTest,
    TraceTestInstance,
    TraceTx,
)
from .transactions import (  # noqa: F401
    Access,
    DynamicFeeTransaction,
    LegacyTransaction,
    Transaction,
    TransactionTemplate,
)
