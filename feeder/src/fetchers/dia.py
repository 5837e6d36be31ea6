"""DIA asset quotation fetcher.

Endpoint: https://api.diadata.org/v1/assetQuotation/{network}/{address}
Rate Limit: High (no key required)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .base import BaseFetcher, FetcherError, register_fetcher

if TYPE_CHECKING:
    from ..Asset import Asset
    from ..Config import FeederConfig

logger = logging.getLogger(__name__)


@register_fetcher
class DiaRestFetcher(BaseFetcher):
    """Fetcher for the DIA REST quotation endpoint.

    Assets are located by blockchain name and token address.
    """

    name = "rest"

    def __init__(self, base_url: str, timeout: float | None = None):
        """Initialize the fetcher.

        :param base_url: Quotation endpoint without trailing slash.
        :param timeout: Request timeout in seconds.
        """
        super().__init__(timeout=timeout)
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_config(cls, config: FeederConfig) -> DiaRestFetcher:
        return cls(config.rest_url, timeout=config.fetch_timeout)

    async def fetch(self, asset: Asset) -> float:
        """Fetch the latest quotation of an asset.

        :param asset: Asset with network and address set.
        :returns: Quoted price in USD.
        :raises FetcherError: On HTTP failure or malformed response.
        """
        url = f"{self.base_url}/{asset.network}/{asset.address}"
        response = await self._get(url)

        try:
            data = response.json()
            return float(data["Price"])
        except (KeyError, ValueError, TypeError) as e:
            raise FetcherError(
                f"Failed to parse quotation for {asset.symbol}: {e}"
            ) from e
