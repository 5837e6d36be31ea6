"""Unit tests for Scheduler."""

import asyncio

import pytest

from feeder.src.Asset import Asset
from feeder.src.Scheduler import Scheduler


class RecordingQueue:
    """Queue stand-in that runs nothing and records every task."""

    def __init__(self) -> None:
        self.tasks = []

    def enqueue(self, task) -> None:
        self.tasks.append(task)


ETH = Asset("ETH")
STETH = Asset("STETH")
BTC = Asset("BTC")


def run_for(scheduler: Scheduler, seconds: float) -> None:
    async def scenario() -> None:
        try:
            await asyncio.wait_for(scheduler.run(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    asyncio.run(scenario())


class TestScheduler:
    """Test timer loops."""

    def test_invalid_frequency(self) -> None:
        """Frequency must be positive."""
        with pytest.raises(ValueError, match="frequency must be positive"):
            Scheduler(RecordingQueue(), None, [ETH], 0)

    def test_enqueue_cycle(self) -> None:
        """Regular and mandatory cycles pick their asset sets."""
        calls = []

        async def cycle(assets, mandatory):
            calls.append(([a.symbol for a in assets], mandatory))

        queue = RecordingQueue()
        scheduler = Scheduler(
            queue, cycle, [ETH, STETH, BTC], 60, mandatory_assets=[BTC], mandatory_frequency=600
        )
        scheduler.enqueue_cycle()
        scheduler.enqueue_cycle(mandatory=True)

        async def drain() -> None:
            for task in queue.tasks:
                await task()

        asyncio.run(drain())
        assert calls == [(["ETH", "STETH", "BTC"], False), (["BTC"], True)]

    def test_first_tick_after_period(self) -> None:
        """Nothing is enqueued before the first period elapses."""
        queue = RecordingQueue()
        scheduler = Scheduler(queue, None, [ETH], 1.0)

        run_for(scheduler, 0.05)

        assert queue.tasks == []

    def test_regular_ticks(self) -> None:
        """The regular timer keeps enqueuing cycles."""
        queue = RecordingQueue()
        scheduler = Scheduler(queue, None, [ETH], 0.01)

        run_for(scheduler, 0.1)

        assert len(queue.tasks) >= 3

    def test_keep_alive_ticks(self) -> None:
        """Keep-alive runs through the queue on its own interval."""

        async def keep_alive() -> None:
            pass

        queue = RecordingQueue()
        scheduler = Scheduler(
            queue, None, [ETH], 10.0, keep_alive=keep_alive, keep_alive_interval=0.01
        )

        run_for(scheduler, 0.1)

        assert len(queue.tasks) >= 3
        assert all(task is keep_alive for task in queue.tasks)

    def test_mandatory_disabled_without_assets(self) -> None:
        """The mandatory timer does not run with an empty subset."""
        queue = RecordingQueue()
        scheduler = Scheduler(
            queue, None, [ETH, STETH], 10.0, mandatory_assets=[], mandatory_frequency=0.01
        )

        run_for(scheduler, 0.05)

        assert queue.tasks == []
