"""Order-preserving parallel map over a bounded thread pool.

Used to score batches of bank transactions concurrently: each unit of work is
one transaction against the whole expense snapshot, so tasks stay coarse.
``concurrency`` caps the number of mapper calls in flight. The first failure
cancels work that has not started and is re-raised.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
) -> list[OutT]:
    """Return ``[mapper(x) for x in iterable]`` computed on up to ``concurrency`` threads."""

    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    items = list(iterable)
    if concurrency == 1 or len(items) <= 1:
        return [mapper(it) for it in items]

    workers = min(concurrency, len(items))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rc-pmap") as pool:
        futures: list[Future[OutT]] = [pool.submit(mapper, it) for it in items]
        done, _pending = wait(futures, return_when=FIRST_EXCEPTION)
        for fut in futures:
            if fut in done and fut.exception() is not None:
                for other in futures:
                    other.cancel()
                raise fut.exception()  # type: ignore[misc]
        return [f.result() for f in futures]


__all__ = ["p_map"]
