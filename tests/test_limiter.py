# tests/test_limiter.py
"""ConcurrencyLimiter: bound, FIFO start order and failure isolation."""
from __future__ import annotations

import asyncio

import pytest

from agenda_images.limiter import ConcurrencyLimiter


def test_rejects_non_positive_bound():
    with pytest.raises(ValueError):
        ConcurrencyLimiter(0)


def test_bound_respected_and_every_unit_runs_once():
    runs = []

    async def go():
        limiter = ConcurrencyLimiter(2)
        in_flight = 0
        peak = 0

        async def unit(i):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            runs.append(i)
            in_flight -= 1
            return i * 10

        results = await asyncio.gather(*(limiter.submit(unit, i) for i in range(5)))
        return limiter, peak, results

    limiter, peak, results = asyncio.run(go())

    assert sorted(runs) == [0, 1, 2, 3, 4]
    assert results == [0, 10, 20, 30, 40]
    assert peak <= 2
    assert limiter.peak == 2
    assert limiter.active == 0
    assert limiter.pending == 0


def test_units_start_in_submission_order():
    started = []

    async def go():
        limiter = ConcurrencyLimiter(1)

        async def unit(name):
            started.append(name)
            await asyncio.sleep(0)

        await asyncio.gather(*(limiter.submit(unit, n) for n in "abcd"))

    asyncio.run(go())
    assert started == ["a", "b", "c", "d"]


def test_queued_units_wait_for_a_free_slot():
    async def go():
        limiter = ConcurrencyLimiter(1)
        gate = asyncio.Event()

        async def blocker():
            await gate.wait()

        async def quick():
            return "done"

        first = limiter.submit(blocker)
        second = limiter.submit(quick)
        await asyncio.sleep(0)
        waiting = (limiter.active, limiter.pending, second.done())
        gate.set()
        await first
        return waiting, await second

    waiting, result = asyncio.run(go())
    assert waiting == (1, 1, False)
    assert result == "done"


def test_failure_does_not_block_the_queue():
    async def go():
        limiter = ConcurrencyLimiter(1)

        async def boom():
            raise RuntimeError("boom")

        async def ok(i):
            return i

        futs = [limiter.submit(ok, 1), limiter.submit(boom), limiter.submit(ok, 2)]
        return await asyncio.gather(*futs, return_exceptions=True)

    results = asyncio.run(go())
    assert results[0] == 1
    assert isinstance(results[1], RuntimeError)
    assert results[2] == 2


def test_synchronous_raise_is_delivered_through_future():
    async def go():
        limiter = ConcurrencyLimiter(1)

        def not_a_coroutine():
            raise TypeError("bad call")

        async def ok():
            return "after"

        futs = [limiter.submit(not_a_coroutine), limiter.submit(ok)]
        return await asyncio.gather(*futs, return_exceptions=True)

    bad, after = asyncio.run(go())
    assert isinstance(bad, TypeError)
    assert after == "after"
