"""CoinMarketCap guardian reference.

Endpoint: {url}/v2/cryptocurrency/quotes/latest?id={id}
Rate Limit: 333 calls/day (free tier)
API Key: Required
"""

from __future__ import annotations

import logging

from .base import BaseReference, FetcherConfigError, FetcherError

logger = logging.getLogger(__name__)


class CoinMarketCapReference(BaseReference):
    """Reference provider backed by the CoinMarketCap quotes API.

    Asset names are numeric CoinMarketCap ids (e.g., "1027" for ETH).
    API key is REQUIRED.
    """

    name = "coinmarketcap"

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize the reference provider.

        :param url: API root, e.g. "https://pro-api.coinmarketcap.com".
        :param api_key: CoinMarketCap API key.
        :param timeout: Request timeout in seconds.
        """
        super().__init__(timeout=timeout)
        self.url = url.rstrip("/")
        self.api_key = api_key

    async def fetch_reference_price(self, name: str) -> float:
        """Fetch the USD quote of a CoinMarketCap asset id.

        :param name: CoinMarketCap asset id.
        :returns: USD price.
        :raises FetcherConfigError: If no API key is configured.
        :raises FetcherError: On HTTP failure or a missing quote.
        """
        if not self.api_key:
            raise FetcherConfigError("[coinmarketcap] API key required but not provided")

        response = await self._get(
            f"{self.url}/v2/cryptocurrency/quotes/latest",
            params={"id": name},
            headers={"X-CMC_PRO_API_KEY": self.api_key},
        )

        try:
            data = response.json()
            return float(data["data"][name]["quote"]["USD"]["price"])
        except (KeyError, ValueError, TypeError) as e:
            raise FetcherError(f"[coinmarketcap] No USD quote for {name}: {e}") from e
