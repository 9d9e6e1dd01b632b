import sys

from importlib.metadata import (
    version as __version,
)

#
#  Ensure we can reach 1024 frames of nested calls when rebuilding traces
#
CALL_DEPTH_RECURSION_LIMIT = 1024 * 12
sys.setrecursionlimit(max(CALL_DEPTH_RECURSION_LIMIT, sys.getrecursionlimit()))


__version__ = __version("evmtrace")
