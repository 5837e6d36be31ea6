"""CoinGecko guardian reference.

Endpoint: {url}/api/v3/simple/price?ids={id}&vs_currencies=usd
Rate Limit: 30 calls/min (free), higher with API key

API tiers:
    - Demo: api.coingecko.com + x-cg-demo-api-key header
    - Pro: pro-api.coingecko.com + x-cg-pro-api-key header
"""

from __future__ import annotations

import logging

from .base import BaseReference, FetcherError

logger = logging.getLogger(__name__)


class CoinGeckoReference(BaseReference):
    """Reference provider backed by the CoinGecko simple price API.

    Asset names are CoinGecko coin ids (e.g., "ethereum").
    """

    name = "coingecko"

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize the reference provider.

        :param url: API root, e.g. "https://pro-api.coingecko.com".
        :param api_key: Optional demo or pro API key.
        :param timeout: Request timeout in seconds.
        """
        super().__init__(timeout=timeout)
        self.url = url.rstrip("/")
        self.api_key = api_key

    @property
    def api_header(self) -> tuple[str, str] | None:
        """Return the header name and value carrying the API key.

        Pro endpoints expect ``x-cg-pro-api-key``, everything else the demo header.
        """
        if not self.api_key:
            return None
        header_name = "x-cg-pro-api-key" if "pro" in self.url else "x-cg-demo-api-key"
        return (header_name, self.api_key)

    async def fetch_reference_price(self, name: str) -> float:
        """Fetch the USD price of a CoinGecko coin.

        :param name: CoinGecko coin id.
        :returns: USD price.
        :raises FetcherError: On HTTP failure or a missing entry.
        """
        headers = dict([self.api_header]) if self.api_header else None
        response = await self._get(
            f"{self.url}/api/v3/simple/price",
            params={"ids": name, "vs_currencies": "usd"},
            headers=headers,
        )

        try:
            data = response.json()
            return float(data[name]["usd"])
        except (KeyError, ValueError, TypeError) as e:
            raise FetcherError(f"[coingecko] No USD price for {name}: {e}") from e
