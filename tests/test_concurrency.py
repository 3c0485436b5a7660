import asyncio

import pytest

from concurrency import gather_limited


async def test_results_keep_input_order():
    async def double(value):
        await asyncio.sleep(0.01 * (5 - value))
        return value * 2

    assert await gather_limited(double, [1, 2, 3, 4]) == [2, 4, 6, 8]


async def test_max_in_flight_one_is_sequential():
    in_flight = 0
    peak = 0

    async def work(value):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return value

    await gather_limited(work, range(5), max_in_flight=1)
    assert peak == 1


async def test_max_in_flight_bounds_concurrency():
    in_flight = 0
    peak = 0

    async def work(value):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return value

    await gather_limited(work, range(10), max_in_flight=3)
    assert peak == 3


async def test_failure_cancels_pending_work():
    finished = []

    async def work(value):
        if value == 0:
            raise RuntimeError("boom")
        await asyncio.sleep(0.05)
        finished.append(value)

    with pytest.raises(RuntimeError):
        await gather_limited(work, [0, 1, 2])
    await asyncio.sleep(0.1)
    assert finished == []


async def test_sequential_failure_stops_early():
    seen = []

    async def work(value):
        seen.append(value)
        if value == 1:
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await gather_limited(work, [0, 1, 2], max_in_flight=1)
    assert seen == [0, 1]


async def test_rejects_zero_limit():
    async def work(value):
        return value

    with pytest.raises(ValueError):
        await gather_limited(work, [1], max_in_flight=0)
