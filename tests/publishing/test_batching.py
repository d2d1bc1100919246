"""Tests for bounded batches."""

import asyncio

import pytest

from heritage_spine.publishing.batching import batch_count, gather_batches, iter_batches


class TestIterBatches:
    def test_sizes(self):
        assert [list(b) for b in iter_batches(list(range(7)), 3)] == [[0, 1, 2], [3, 4, 5], [6]]

    def test_empty(self):
        assert iter_batches([], 10) == []
        assert batch_count(0, 10) == 0

    def test_count(self):
        assert batch_count(101, 50) == 3

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            iter_batches([1], 0)


class TestGatherBatches:
    @pytest.mark.asyncio
    async def test_batches_run_in_order(self):
        active = 0
        peak = 0

        async def work(x):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0)
            active -= 1
            return x * 10

        seen = [(i, r) async for i, r in gather_batches([1, 2, 3, 4, 5], 2, work)]
        assert seen == [(0, [10, 20]), (1, [30, 40]), (2, [50])]
        assert peak == 2

    @pytest.mark.asyncio
    async def test_failure_stops_later_batches(self):
        started = []

        async def work(x):
            started.append(x)
            if x == 2:
                raise RuntimeError("lookup failed")
            return x

        with pytest.raises(RuntimeError):
            async for _ in gather_batches([1, 2, 3, 4], 2, work):
                pass
        assert 3 not in started and 4 not in started
