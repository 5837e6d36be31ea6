"""DIA GraphQL windowed feed fetcher.

Endpoint: https://api.diadata.org/graphql/query (GraphQL)
Rate Limit: High (no key required)

The ``GetFeed`` query aggregates trades into windows of ``window_size``
seconds using the configured methodology (e.g., "vwap"). Two windows are
requested and the most recent one is used.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from .base import BaseFetcher, FetcherError, register_fetcher

if TYPE_CHECKING:
    from ..Asset import Asset
    from ..Config import FeederConfig

logger = logging.getLogger(__name__)


@register_fetcher
class DiaGraphqlFetcher(BaseFetcher):
    """Fetcher for DIA's GraphQL ``GetFeed`` endpoint."""

    name = "gql"

    FEED_QUERY = """
    query ($startTime: Time!, $endTime: Time!, $feedSelection: [FeedSelection!]!) {
        GetFeed(
            Filter: "%(methodology)s",
            BlockSizeSeconds: %(window)d,
            BlockShiftSeconds: %(window)d,
            StartTime: $startTime,
            EndTime: $endTime,
            FeedSelection: $feedSelection
        ) {
            Value
        }
    }
    """

    def __init__(
        self,
        url: str,
        window_size: int = 120,
        methodology: str = "vwap",
        timeout: float | None = None,
    ):
        """Initialize the fetcher.

        :param url: GraphQL endpoint URL.
        :param window_size: Window length in seconds.
        :param methodology: Aggregation filter (e.g., "vwap", "median").
        :param timeout: Request timeout in seconds.
        """
        super().__init__(timeout=timeout)
        self.url = url
        self.window_size = window_size
        self.methodology = methodology
        self.query = self.FEED_QUERY % {"methodology": methodology, "window": window_size}

    @classmethod
    def from_config(cls, config: FeederConfig) -> DiaGraphqlFetcher:
        return cls(
            config.gql.url,
            window_size=config.gql.window_size,
            methodology=config.gql.methodology,
            timeout=config.fetch_timeout,
        )

    @staticmethod
    def build_feed_selection(asset: Asset) -> list[dict]:
        """Build the ``FeedSelection`` variable for an asset.

        Every configured selection inherits the asset's address and
        blockchain. The liquidity threshold is rounded to two decimals and
        only sent when positive; exchange pairs only when present.

        :param asset: Asset to query.
        :returns: List of selection dicts.
        """
        base = {"Address": asset.address, "Blockchain": asset.network}
        selections = asset.gql_params.feed_selection
        if not selections:
            return [base]

        feed_selection = []
        for feed in selections:
            item = dict(base)
            if feed.liquidity_threshold > 0:
                item["LiquidityThreshold"] = round(feed.liquidity_threshold, 2)
            if feed.exchange_pairs:
                item["Exchangepairs"] = [
                    {"Exchange": ep.exchange, "Pairs": list(ep.pairs)}
                    for ep in feed.exchange_pairs
                ]
            feed_selection.append(item)
        return feed_selection

    async def fetch(self, asset: Asset) -> float:
        """Fetch the latest windowed value of an asset.

        :param asset: Asset with network, address and GQL params set.
        :returns: Value of the most recent window.
        :raises FetcherError: On HTTP failure, GraphQL errors or empty result.
        """
        now = int(time.time())
        variables = {
            "startTime": now - self.window_size * 2,
            "endTime": now,
            "feedSelection": self.build_feed_selection(asset),
        }

        response = await self._post(
            self.url,
            json={"query": self.query, "variables": variables},
        )

        try:
            data = response.json()
            if data.get("errors"):
                raise FetcherError(f"GraphQL errors for {asset.symbol}: {data['errors']}")
            feed = data["data"]["GetFeed"]
            if not feed:
                raise FetcherError(f"No results for {asset.symbol}")
            return float(feed[-1]["Value"])
        except (AttributeError, KeyError, ValueError, TypeError) as e:
            raise FetcherError(
                f"Failed to parse GetFeed response for {asset.symbol}: {e}"
            ) from e
