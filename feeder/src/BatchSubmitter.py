"""BatchSubmitter: Chunked, retried ledger writes with backup failover.

An update batch is split into consecutive chunks of at most
``max_batch_size`` items. Chunks are submitted strictly one after another
because destination ledgers sequence transactions per sender account.

Each chunk is retried immediately up to ``max_retry_attempts`` times. After
the first failed attempt, every later attempt in the same submission uses the
destination's backup endpoint when one is configured. Exhausting the
attempts for any chunk aborts the remaining chunks and raises
BatchSubmitError.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from .destinations import Destination, PriceUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")


def split_into_batches(items: Sequence[T], batch_size: int) -> list[list[T]]:
    """Split items into consecutive chunks preserving order.

    :param items: Items to split.
    :param batch_size: Max chunk size, must be positive.
    :returns: Chunks; the last one may be smaller.
    :raises ValueError: If batch_size is below 1.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


class BatchSubmitError(Exception):
    """Fatal cycle error: a chunk could not be written.

    :ivar destination: Name of the destination.
    :ivar chunk_index: Zero-based index of the failed chunk.
    :ivar attempts: Number of attempts made for that chunk.
    """

    def __init__(self, destination: str, chunk_index: int, attempts: int) -> None:
        self.destination = destination
        self.chunk_index = chunk_index
        self.attempts = attempts
        super().__init__(
            f"[{destination}] Batch {chunk_index + 1} failed after {attempts} attempts"
        )


class BatchSubmitter:
    """Submits update batches to a destination."""

    async def submit(self, batch: list[PriceUpdate], destination: Destination) -> None:
        """Write a full update batch.

        :param batch: Updates in submission order.
        :param destination: Target ledger.
        :raises BatchSubmitError: If any chunk exhausts its attempts.
        """
        chunks = split_into_batches(batch, destination.max_batch_size)
        max_retries = destination.max_retry_attempts
        use_backup = False

        for index, chunk in enumerate(chunks):
            attempt = 0
            while True:
                try:
                    await destination.submit_batch(chunk, use_backup=use_backup)
                    logger.info(
                        f"[{destination.name}] Batch {index + 1}/{len(chunks)} "
                        f"submitted ({len(chunk)} prices)"
                    )
                    break
                except Exception as e:
                    attempt += 1
                    logger.warning(
                        f"[{destination.name}] Transaction failed. Attempt {attempt} "
                        f"of {max_retries} for batch {index + 1}: {e}"
                    )

                    if attempt >= max_retries:
                        logger.error(
                            f"[{destination.name}] Max retry attempts reached. "
                            "Transaction failed."
                        )
                        raise BatchSubmitError(destination.name, index, attempt) from e

                    if not use_backup and destination.has_backup:
                        logger.warning(f"[{destination.name}] Switching to backup node.")
                        use_backup = True
