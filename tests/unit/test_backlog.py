"""
Tests for the pending-path backlog and its adaptive scheduler.
"""

import asyncio

import pytest

from vaultstats.services.backlog import (
    BUSY_INTERVAL_MS,
    DEFAULT_INTERVAL_MS,
    IDLE_INTERVAL_MS,
    Backlog,
    BacklogScheduler,
    compute_interval_ms,
)


class TestComputeInterval:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (0, IDLE_INTERVAL_MS),
            (5, IDLE_INTERVAL_MS),
            (9, IDLE_INTERVAL_MS),
            (10, DEFAULT_INTERVAL_MS),
            (50, DEFAULT_INTERVAL_MS),
            (100, DEFAULT_INTERVAL_MS),
            (101, BUSY_INTERVAL_MS),
            (150, BUSY_INTERVAL_MS),
        ],
    )
    def test_thresholds(self, size, expected):
        assert compute_interval_ms(size) == expected

    def test_values(self):
        assert (BUSY_INTERVAL_MS, DEFAULT_INTERVAL_MS, IDLE_INTERVAL_MS) == (500, 2000, 5000)


class TestBacklog:
    def test_deduplicates_and_keeps_insertion_order(self):
        backlog = Backlog()
        assert backlog.add("a.md")
        assert backlog.add("b.md")
        assert not backlog.add("a.md")

        assert len(backlog) == 2
        assert list(backlog) == ["a.md", "b.md"]

    def test_peek_is_bounded_and_does_not_remove(self):
        backlog = Backlog()
        for i in range(5):
            backlog.add(f"{i}.md")

        batch = backlog.peek(3)

        assert [path for path, _ in batch] == ["0.md", "1.md", "2.md"]
        assert len(backlog) == 5

    def test_complete_removes_processed_path(self):
        backlog = Backlog()
        backlog.add("a.md")
        [(path, stamp)] = backlog.peek(1)

        assert backlog.complete(path, stamp)
        assert "a.md" not in backlog

    def test_re_add_during_processing_keeps_path_pending(self):
        backlog = Backlog()
        backlog.add("a.md")
        [(path, stamp)] = backlog.peek(1)

        backlog.add("a.md")

        assert not backlog.complete(path, stamp)
        assert "a.md" in backlog

    def test_discard_and_clear(self):
        backlog = Backlog()
        backlog.add("a.md")
        backlog.add("b.md")
        backlog.discard("a.md")
        assert list(backlog) == ["b.md"]
        backlog.clear()
        assert len(backlog) == 0


class TestBacklogScheduler:
    def test_reschedule_resets_only_when_interval_changes(self):
        backlog = Backlog()

        async def tick():
            pass

        scheduler = BacklogScheduler(backlog, tick)
        assert scheduler.interval_ms == IDLE_INTERVAL_MS

        backlog.add("a.md")
        assert scheduler.reschedule() == IDLE_INTERVAL_MS
        assert scheduler.timer_resets == 0

        for i in range(150):
            backlog.add(f"{i}.md")
        assert scheduler.reschedule() == BUSY_INTERVAL_MS
        assert scheduler.timer_resets == 1

        assert scheduler.reschedule() == BUSY_INTERVAL_MS
        assert scheduler.timer_resets == 1

    @pytest.mark.asyncio
    async def test_ticks_at_interval(self):
        ticked = asyncio.Event()
        ticks = []

        async def tick():
            ticks.append(1)
            ticked.set()

        scheduler = BacklogScheduler(Backlog(), tick, interval_fn=lambda size: 10)
        scheduler.start()
        try:
            await asyncio.wait_for(ticked.wait(), timeout=2)
        finally:
            await scheduler.stop()

        assert ticks
        assert not scheduler.is_running()

    @pytest.mark.asyncio
    async def test_failing_tick_does_not_stop_scheduler(self):
        second_tick = asyncio.Event()
        calls = []

        async def tick():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            second_tick.set()

        scheduler = BacklogScheduler(Backlog(), tick, interval_fn=lambda size: 10)
        scheduler.start()
        try:
            await asyncio.wait_for(second_tick.wait(), timeout=2)
        finally:
            await scheduler.stop()

        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_tick(self):
        started = asyncio.Event()
        finished = []

        async def tick():
            started.set()
            await asyncio.sleep(0.05)
            finished.append(1)

        scheduler = BacklogScheduler(Backlog(), tick, interval_fn=lambda size: 10)
        scheduler.start()
        await asyncio.wait_for(started.wait(), timeout=2)
        await scheduler.stop()

        assert finished == [1]

    @pytest.mark.asyncio
    async def test_start_twice_raises(self):
        async def tick():
            pass

        scheduler = BacklogScheduler(Backlog(), tick)
        scheduler.start()
        try:
            with pytest.raises(RuntimeError):
                scheduler.start()
        finally:
            await scheduler.stop()
