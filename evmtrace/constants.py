from types import (
    MappingProxyType,
)
from typing import (
    Any,
    Mapping,
)

# Read-only default for mapping fields of immutable records.
EMPTY_MAPPING: Mapping[Any, Any] = MappingProxyType({})


#
# Hex abbreviation
#
# Runs of a repeated byte at least this long are collapsed in memory dumps.
DEFAULT_ABBREVIATION_THRESHOLD = 16
ABBREVIATION_MARKER = "~"


#
# Trace capture
#
# Number of stack items (from the top) retained on each step.
DEFAULT_STACK_SIZE = 10

# Memory reads larger than a machine word are treated as empty payloads.
MAX_MEMORY_OFFSET = 2**64 - 1


#
# External tool
#
DEFAULT_GETH_BINARY = "evm"
# seconds
DEFAULT_TIMEOUT = 10

ENV_FILENAME = "env.json"
ALLOC_FILENAME = "alloc.json"
TXS_FILENAME = "txs.json"
ALLOC_OUTPUT_FILENAME = "alloc-out.json"
RESULT_OUTPUT_FILENAME = "result.json"
TRACE_FILE_SUFFIX = ".jsonl"

WORKDIR_PREFIX = "evmtrace-"


#
# Fixtures
#
DEFAULT_CHAIN_ID = 1
INSTANCE_INDEX_KEYS = ("data", "gas", "value")

ADDRESS_BYTE_WIDTH = 20
WORD_BYTE_WIDTH = 32


#
# Output
#
ONE_MB = 1024 * 1024
