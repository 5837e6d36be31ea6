"""Scheduler: Timer loops feeding work into the MutationQueue.

Three independent loops share one event loop:
    - regular: every ``frequency`` seconds, a cycle over all assets
    - mandatory: every ``mandatory_frequency`` seconds (when > 0), a cycle
      over assets outside any conditional pair, against an empty baseline
    - keep-alive: every ``keep_alive_interval`` seconds (when set), the
      destination's lease extension

Every loop only enqueues; the queue worker runs the actual task. Each timer
fires its first tick after one full period.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .Asset import Asset
    from .MutationQueue import MutationQueue

logger = logging.getLogger(__name__)

CycleFn = Callable[[list["Asset"], bool], Awaitable[None]]


class Scheduler:
    """Drives the regular, mandatory and keep-alive timers.

    :ivar queue: Queue receiving every scheduled task.
    :ivar cycle: Coroutine function ``(assets, mandatory)`` running one cycle.
    :ivar assets: Full asset set for regular ticks.
    :ivar mandatory_assets: Asset subset for mandatory ticks.
    :ivar frequency: Regular period in seconds.
    :ivar mandatory_frequency: Mandatory period in seconds, 0 disables.
    :ivar keep_alive: Keep-alive coroutine function, None disables.
    :ivar keep_alive_interval: Keep-alive period in seconds.
    """

    def __init__(
        self,
        queue: MutationQueue,
        cycle: CycleFn,
        assets: list[Asset],
        frequency: float,
        mandatory_assets: list[Asset] | None = None,
        mandatory_frequency: float = 0.0,
        keep_alive: Callable[[], Awaitable[None]] | None = None,
        keep_alive_interval: float | None = None,
    ) -> None:
        if frequency <= 0:
            raise ValueError("frequency must be positive")

        self.queue = queue
        self.cycle = cycle
        self.assets = assets
        self.frequency = frequency
        self.mandatory_assets = mandatory_assets or []
        self.mandatory_frequency = mandatory_frequency
        self.keep_alive = keep_alive
        self.keep_alive_interval = keep_alive_interval

    def enqueue_cycle(self, mandatory: bool = False) -> None:
        """Enqueue one update cycle.

        :param mandatory: Run over the mandatory subset with an empty baseline.
        """
        assets = self.mandatory_assets if mandatory else self.assets
        self.queue.enqueue(lambda: self.cycle(assets, mandatory))

    async def _regular_loop(self) -> None:
        while True:
            await asyncio.sleep(self.frequency)
            self.enqueue_cycle()

    async def _mandatory_loop(self) -> None:
        while True:
            await asyncio.sleep(self.mandatory_frequency)
            self.enqueue_cycle(mandatory=True)

    async def _keep_alive_loop(self) -> None:
        assert self.keep_alive is not None and self.keep_alive_interval
        while True:
            await asyncio.sleep(self.keep_alive_interval)
            self.queue.enqueue(self.keep_alive)

    def _loops(self) -> list[Awaitable[None]]:
        loops = [self._regular_loop()]

        if self.mandatory_frequency > 0:
            if self.mandatory_assets:
                loops.append(self._mandatory_loop())
            else:
                logger.warning(
                    "Mandatory frequency set but every asset is part of a "
                    "conditional pair, mandatory timer disabled"
                )

        if self.keep_alive is not None and self.keep_alive_interval:
            loops.append(self._keep_alive_loop())

        return loops

    async def run(self) -> None:
        """Run all configured timers until cancelled."""
        loops = self._loops()
        logger.info(
            f"Scheduler started: frequency={self.frequency}s, "
            f"mandatory_frequency={self.mandatory_frequency or 'disabled'}, "
            f"keep_alive_interval={self.keep_alive_interval or 'disabled'}"
        )
        await asyncio.gather(*loops)
