"""
tests/test_singleflight.py
SingleFlight: one shared load, memoized result, retry after failure,
restart when the owning event loop is gone.
"""

import asyncio

import pytest

from mission.singleflight import SingleFlight


class CountingLoad:
    def __init__(self, delay: float = 0.0, failures: int = 0):
        self.delay    = delay
        self.failures = failures
        self.calls    = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls <= self.failures:
            raise ConnectionError("source down")
        return self.calls


class TestSingleFlight:
    def test_concurrent_callers_share_one_load(self):
        load = CountingLoad(delay=0.01)
        flight = SingleFlight(load)

        async def scenario():
            return await asyncio.gather(*(flight() for _ in range(8)))

        assert asyncio.run(scenario()) == [1] * 8
        assert load.calls == 1
        assert flight.done is True

    def test_result_memoized_across_loops(self):
        load = CountingLoad()
        flight = SingleFlight(load)
        asyncio.run(flight())
        assert asyncio.run(flight()) == 1
        assert load.calls == 1

    def test_failure_not_memoized(self):
        load = CountingLoad(failures=1)
        flight = SingleFlight(load)
        with pytest.raises(ConnectionError):
            asyncio.run(flight())
        assert flight.done is False
        assert asyncio.run(flight()) == 2

    def test_trigger_without_loop(self):
        load = CountingLoad()
        flight = SingleFlight(load)
        assert flight.trigger() is False
        assert load.calls == 0

    def test_trigger_then_await_shares_load(self):
        load = CountingLoad(delay=0.01)
        flight = SingleFlight(load)

        async def scenario():
            assert flight.trigger() is True
            assert flight.trigger() is False
            assert flight.in_flight is True
            return await flight()

        assert asyncio.run(scenario()) == 1
        assert load.calls == 1

    def test_restarts_when_owning_loop_closed(self):
        load = CountingLoad(delay=0.05)
        flight = SingleFlight(load)

        async def start_and_leave():
            flight.trigger()
            await asyncio.sleep(0)

        asyncio.run(start_and_leave())
        assert flight.done is False

        assert asyncio.run(flight()) == 2
        assert flight.done is True
