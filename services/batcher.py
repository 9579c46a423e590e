"""
Batch partitioning.
"""

from itertools import islice
from typing import Iterable, Iterator, TypeVar

from exceptions import ConfigurationError

T = TypeVar("T")


def partition(items: Iterable[T], batch_size: int) -> Iterator[list[T]]:
    """
    Split items into contiguous batches of batch_size, in source order.

    Lazy, so a large source is never held in memory. The last batch may be
    shorter; an empty input yields no batches.

    Raises:
        ConfigurationError: If batch_size < 1 (raised on call, not on iteration)
    """
    if batch_size < 1:
        raise ConfigurationError(
            "Batch size must be at least 1",
            details={"batch_size": batch_size}
        )
    return _batches(iter(items), batch_size)


def _batches(iterator: Iterator[T], batch_size: int) -> Iterator[list[T]]:
    while True:
        batch = list(islice(iterator, batch_size))
        if not batch:
            return
        yield batch
