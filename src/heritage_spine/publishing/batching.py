"""Bounded batches for concurrent resource work.

WHY
───
Resolving or extracting tens of thousands of resources at once would hold
every pending lookup (and every partially built tree) in memory and flood the
graph client's cache.  Work is split into fixed-size batches: members of one
batch run concurrently with ``asyncio.gather`` (fail-fast), batches run one
after another with a scheduler yield in between.

ARCHITECTURE
────────────
::

    items ─▶ iter_batches(items, n) ─▶ [b0] [b1] [b2] ...
                                        │
                                        ├── gather(worker(x) for x in b)
                                        └── await asyncio.sleep(0)

Example::

    async for index, results in gather_batches(ids, 50, model.find):
        progress.progress("resolve", "Resolving", (index + 1) * 50, len(ids))
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


def batch_count(total: int, size: int) -> int:
    return math.ceil(total / size) if total else 0


def iter_batches(items: Sequence[T], size: int) -> list[Sequence[T]]:
    """Consecutive slices of at most *size* items."""
    if size < 1:
        raise ValueError(f"batch size must be positive, got {size}")
    return [items[start : start + size] for start in range(0, len(items), size)]


async def gather_batches(
    items: Sequence[T],
    size: int,
    worker: Callable[[T], Awaitable[R]],
) -> AsyncIterator[tuple[int, list[R]]]:
    """Run *worker* over *items* batch by batch, yielding each batch's results.

    The first failure inside a batch propagates and no later batch starts.
    """
    for index, batch in enumerate(iter_batches(items, size)):
        results = await asyncio.gather(*(worker(item) for item in batch))
        yield index, list(results)
        await asyncio.sleep(0)


__all__ = ["batch_count", "iter_batches", "gather_batches"]
