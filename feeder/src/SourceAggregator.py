"""SourceAggregator: Concurrent price fetching across all tracked assets.

Architecture:
    - One fetch per asset, all issued concurrently
    - Each fetch is bounded by fetch_timeout
    - A failing fetch is logged and its symbol is left out of the result
    - No retries: a missing price simply waits for the next tick
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .Asset import Asset
    from .fetchers import BaseFetcher

logger = logging.getLogger(__name__)


class SourceAggregator:
    """Fetches a price snapshot for a set of assets.

    Absence of a symbol in the returned snapshot means "no update candidate
    this cycle", never a zero price.

    :ivar fetcher: Upstream fetcher selected at startup.
    :ivar fetch_timeout: Timeout for a single fetch in seconds.
    """

    def __init__(self, fetcher: BaseFetcher, fetch_timeout: float = 10.0) -> None:
        """Initialize the aggregator.

        :param fetcher: Fetcher used for every asset.
        :param fetch_timeout: Timeout for each fetch (default: 10.0).
        """
        self.fetcher = fetcher
        self.fetch_timeout = fetch_timeout

    async def fetch(self, assets: list[Asset]) -> dict[str, float]:
        """Fetch prices for all assets concurrently.

        :param assets: Assets to fetch.
        :returns: Dict mapping symbol to price, in asset order, containing
            only the fetches that succeeded.
        """
        if not assets:
            return {}

        results = await asyncio.gather(
            *(self._fetch_single(asset) for asset in assets)
        )

        return {
            asset.symbol: price
            for asset, price in zip(assets, results, strict=True)
            if price is not None
        }

    async def _fetch_single(self, asset: Asset) -> float | None:
        """Fetch a single asset with timeout.

        :param asset: Asset to fetch.
        :returns: Price or None on failure.
        """
        try:
            return await asyncio.wait_for(
                self.fetcher.fetch(asset),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{self.fetcher.name}] Timeout fetching {asset.symbol}")
            return None
        except Exception as e:
            logger.warning(
                f"[{self.fetcher.name}] Failed to retrieve quotation for "
                f"{asset.symbol}: {e}"
            )
            return None
