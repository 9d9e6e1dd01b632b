from typing import (
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from evmtrace.constants import (
    MAX_MEMORY_OFFSET,
)

TItem = TypeVar("TItem")


def trim_front(items: Sequence[TItem], size: int) -> Tuple[TItem, ...]:
    """
    Keep the last ``size`` items, dropping from the front.  Stacks are ordered
    bottom to top, so this keeps the top of the stack.
    """
    if size < 0:
        raise ValueError(f"Size must be non-negative, got {size}")
    elif len(items) <= size:
        return tuple(items)
    elif size == 0:
        return ()
    else:
        return tuple(items[-size:])


def to_bounded_int(value: int, maximum: int = MAX_MEMORY_OFFSET) -> Optional[int]:
    """
    Return ``value`` if it lies in ``[0, maximum]``, otherwise ``None``.
    """
    if 0 <= value <= maximum:
        return value
    else:
        return None


def read_padded(memory: bytes, offset: int, length: int) -> bytes:
    """
    Read ``length`` bytes at ``offset``, zero padding anything beyond the end of
    ``memory``.
    """
    chunk = memory[offset:offset + length]
    return chunk + b"\x00" * (length - len(chunk))
