"""
Bounded worker-pool execution of async tasks.
"""

import asyncio
import logging
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import List
from typing import Optional
from typing import Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def default_error_result(item: Any, exc: BaseException) -> dict:
    return {"error": str(exc) or type(exc).__name__}


async def run_with_concurrency(
    inputs: Sequence[T],
    limit: int,
    task: Callable[[T], Awaitable[R]],
    on_error: Optional[Callable[[T, BaseException], Any]] = None,
) -> List[Any]:
    """
    Run ``task`` over ``inputs`` with at most ``limit`` in flight.

    ``min(limit, len(inputs))`` workers each claim the next unprocessed
    index until none remain. Results keep the input order whatever the
    completion order. An exception from one task is turned into
    ``on_error(item, exc)`` at that position and does not affect the others.
    """
    if not inputs:
        return []

    on_error = on_error or default_error_result
    results: List[Any] = [None] * len(inputs)
    # Claiming is a plain next() with no await in between, so it can't interleave
    indices = iter(range(len(inputs)))

    async def worker(worker_id: int) -> None:
        for i in indices:
            item = inputs[i]
            try:
                results[i] = await task(item)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"[POOL] worker={worker_id} item={i} failed: {e}")
                results[i] = on_error(item, e)

    workers = min(max(limit, 1), len(inputs))
    logger.debug(f"[POOL] starting {workers} workers for {len(inputs)} items")
    await asyncio.gather(*(worker(n) for n in range(workers)))
    return results
