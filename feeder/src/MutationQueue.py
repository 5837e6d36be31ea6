"""MutationQueue: Serializes every state-mutating task of the feeder.

Tasks are coroutine factories fed through an ``asyncio.Queue`` to a single
worker. The worker awaits one task at a time, so regular update cycles and
keep-alive runs never overlap. A task that raises is handed to the error
handler and the worker moves on to the next one.

.. code-block:: python

    queue = MutationQueue(on_error=lambda e: logger.error(e))
    queue.start()
    queue.enqueue(lambda: feeder.run_cycle(assets))
    await queue.join()
    await queue.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[None]]


def _log_error(err: BaseException) -> None:
    logger.error(f"Error in mutation queue: {err}", exc_info=err)


class MutationQueue:
    """FIFO queue running at most one task at a time.

    :ivar on_error: Callback receiving exceptions raised by tasks.
    """

    def __init__(self, on_error: Callable[[BaseException], None] | None = None) -> None:
        """Initialize the queue.

        :param on_error: Error callback (default: log with traceback).
        """
        self.on_error = on_error or _log_error
        self._queue: asyncio.Queue[Task] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """True while a task body is executing."""
        return self._running

    @property
    def pending(self) -> int:
        """Number of tasks waiting to run."""
        return self._queue.qsize()

    def start(self) -> None:
        """Start the worker on the running event loop."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="mutation-queue")

    def enqueue(self, task: Task) -> None:
        """Append a task. It runs once every earlier task has finished.

        :param task: Zero-argument callable returning an awaitable.
        """
        self._queue.put_nowait(task)

    async def join(self) -> None:
        """Wait until every enqueued task has finished."""
        await self._queue.join()

    async def close(self) -> None:
        """Stop the worker. Pending tasks are discarded."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def _run(self) -> None:
        while True:
            task = await self._queue.get()
            self._running = True
            try:
                await task()
            except Exception as e:
                try:
                    self.on_error(e)
                except Exception:
                    logger.exception("Mutation queue error handler failed")
            finally:
                self._running = False
                self._queue.task_done()
