import asyncio
import time

import pytest

from list_release.concurrency import run_with_concurrency

pytestmark = pytest.mark.asyncio


async def test_preserves_input_order_regardless_of_completion():
    inputs = [5, 1, 4, 2, 3]

    async def task(n):
        await asyncio.sleep(n * 0.01)
        return n * 10

    assert await run_with_concurrency(inputs, 3, task) == [50, 10, 40, 20, 30]


async def test_bounded_concurrency_timing():
    """Test that at most limit tasks are in flight at once."""
    delay = 0.05
    in_flight = 0
    peak = 0

    async def task(n):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(delay)
        in_flight -= 1
        return n

    started = time.perf_counter()
    results = await run_with_concurrency(list(range(10)), 2, task)
    elapsed = time.perf_counter() - started

    assert results == list(range(10))
    assert peak == 2
    # ceil(10 / 2) rounds of `delay`
    assert 5 * delay * 0.9 <= elapsed < 5 * delay * 2


async def test_failures_are_isolated():
    async def task(n):
        if n == 2:
            raise ValueError("boom")
        return n

    results = await run_with_concurrency([0, 1, 2, 3], 2, task)
    assert results == [0, 1, {"error": "boom"}, 3]


async def test_custom_error_result():
    async def task(n):
        raise RuntimeError(f"bad {n}")

    results = await run_with_concurrency(["a", "b"], 4, task, on_error=lambda item, exc: (item, str(exc)))
    assert results == [("a", "bad a"), ("b", "bad b")]


async def test_empty_inputs_and_degenerate_limits():
    async def task(n):
        return n

    assert await run_with_concurrency([], 3, task) == []
    assert await run_with_concurrency([1, 2, 3], 0, task) == [1, 2, 3]
    assert await run_with_concurrency([1, 2], 50, task) == [1, 2]


async def test_limit_one_runs_sequentially():
    order = []

    async def task(n):
        order.append(("start", n))
        await asyncio.sleep(0)
        order.append(("end", n))
        return n

    await run_with_concurrency([1, 2], 1, task)
    assert order == [("start", 1), ("end", 1), ("start", 2), ("end", 2)]
