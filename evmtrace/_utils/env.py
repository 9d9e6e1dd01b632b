"""
Helpers for reading evmtrace settings from the environment.  Every setting has a
built-in default in :mod:`evmtrace.constants`; an ``EVMTRACE_*`` variable
overrides it.
"""

import os
from typing import (
    Any,
    Union,
)

ENV_PREFIX = "EVMTRACE_"

TRUE_VALUES = {
    "1",
    "True",
    "true",
    "yes",
}


class empty:
    """
    Sentinel for "no default", since ``None`` is a plausible default.
    """


def get_env_value(name: str, default: Any = empty) -> Any:
    value = os.environ.get(ENV_PREFIX + name, default)
    if value is empty:
        raise KeyError(f"Must set environment variable {ENV_PREFIX}{name}")
    return value


def env_int(name: str, default: Union[type, int] = empty) -> int:
    """
    Read ``EVMTRACE_<name>`` as an integer.  A ``ValueError`` is raised if the
    value is present but not an integer.
    """
    value = get_env_value(name, default=default)
    try:
        return int(value)
    except ValueError:
        raise ValueError(
            f"Environment variable {ENV_PREFIX}{name} must be an integer, got {value!r}"
        )


def env_float(name: str, default: Union[type, float] = empty) -> float:
    value = get_env_value(name, default=default)
    try:
        return float(value)
    except ValueError:
        raise ValueError(
            f"Environment variable {ENV_PREFIX}{name} must be a number, got {value!r}"
        )


def env_bool(name: str, default: Union[type, bool] = empty) -> bool:
    value = get_env_value(name, default=default)
    if isinstance(value, bool):
        return value
    return value in TRUE_VALUES


def env_string(name: str, default: Union[type, str] = empty) -> str:
    return str(get_env_value(name, default=default))
