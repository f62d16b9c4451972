"""
Unit tests for the keyed concurrent fan-out helper.
"""
import asyncio

import pytest

from app.utils.concurrency import gather_by_key


class TestGatherByKey:
    """Tests for gather_by_key."""

    @pytest.mark.asyncio
    async def test_results_keyed_in_input_order(self):
        async def fetch(key):
            # Later keys finish first
            await asyncio.sleep(0.01 / (len(key) + 1))
            return key.upper()

        results = await gather_by_key(["a", "bb", "ccc"], fetch)

        assert list(results) == ["a", "bb", "ccc"]
        assert results == {"a": "A", "bb": "BB", "ccc": "CCC"}

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self):
        async def fetch(key):
            if key == "bad":
                raise RuntimeError("boom")
            return key

        results = await gather_by_key(["good", "bad", "fine"], fetch)

        assert results["good"] == "good"
        assert results["fine"] == "fine"
        assert isinstance(results["bad"], RuntimeError)

    @pytest.mark.asyncio
    async def test_duplicate_keys_fetched_once(self):
        calls = []

        async def fetch(key):
            calls.append(key)
            return key

        await gather_by_key(["x", "y", "x"], fetch)

        assert sorted(calls) == ["x", "y"]

    @pytest.mark.asyncio
    async def test_concurrency_bound(self):
        in_flight = 0
        peak = 0

        async def fetch(key):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return key

        results = await gather_by_key(range(10), fetch, max_concurrency=3)

        assert len(results) == 10
        assert peak == 3

    @pytest.mark.asyncio
    async def test_empty(self):
        async def fetch(key):
            raise AssertionError("not called")

        assert await gather_by_key([], fetch) == {}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
