"""GuardianValidator: Corroborates candidate updates with reference prices.

For every candidate whose asset has reference names configured, each
reference provider is queried independently. The candidate is accepted when
at least one retrieved reference price ``r`` satisfies
``|r - price| / r <= allowed_deviation``; otherwise it is dropped and the
reason logged. Candidates without references pass through untouched and
without any network call.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .Asset import Asset
    from .fetchers import BaseReference

logger = logging.getLogger(__name__)


class GuardianValidator:
    """Validates candidate prices against independent reference sources.

    :ivar coingecko: Provider queried with ``Asset.coingecko_name``.
    :ivar cmc: Provider queried with ``Asset.cmc_name``.
    """

    def __init__(
        self,
        coingecko: BaseReference | None = None,
        cmc: BaseReference | None = None,
    ) -> None:
        """Initialize the validator.

        :param coingecko: Reference provider for CoinGecko names.
        :param cmc: Reference provider for CoinMarketCap ids.
        """
        self.coingecko = coingecko
        self.cmc = cmc

    def _references(self, asset: Asset) -> list[tuple[BaseReference | None, str]]:
        refs: list[tuple[BaseReference | None, str]] = []
        if asset.coingecko_name:
            refs.append((self.coingecko, asset.coingecko_name))
        if asset.cmc_name:
            refs.append((self.cmc, asset.cmc_name))
        return refs

    async def _fetch_reference(
        self, provider: BaseReference | None, name: str, symbol: str
    ) -> float | None:
        """Query one reference, converting any failure to None."""
        if provider is None:
            logger.warning(f"[{symbol}] No reference provider configured for '{name}'")
            return None
        try:
            price = await provider.fetch_reference_price(name)
        except Exception as e:
            logger.warning(
                f"[{symbol}] Failed to retrieve {provider.name} reference price "
                f"for '{name}': {e}"
            )
            return None
        if price <= 0:
            logger.warning(
                f"[{symbol}] Ignoring non-positive {provider.name} reference price {price}"
            )
            return None
        return price

    async def is_corroborated(self, asset: Asset, price: float) -> bool:
        """Check a single candidate price against the asset's references.

        :param asset: Asset the candidate belongs to.
        :param price: Candidate price.
        :returns: True if no reference is configured or one agrees.
        """
        if not asset.has_references:
            return True

        refs = self._references(asset)
        reference_prices = await asyncio.gather(
            *(self._fetch_reference(provider, name, asset.symbol) for provider, name in refs)
        )
        retrieved = [r for r in reference_prices if r is not None]

        if not retrieved:
            logger.warning(
                f"[{asset.symbol}] Rejected {price}: no reference price could be retrieved"
            )
            return False

        for reference in retrieved:
            if abs(reference - price) / reference <= asset.allowed_deviation:
                return True

        logger.warning(
            f"[{asset.symbol}] Rejected {price}: references {retrieved} deviate more "
            f"than {asset.allowed_deviation:.2%}"
        )
        return False

    async def validate(
        self,
        candidates: list[tuple[str, float]],
        assets: list[Asset],
    ) -> list[tuple[str, float]]:
        """Drop candidates that no reference corroborates.

        :param candidates: (symbol, price) tuples from the deviation filter.
        :param assets: Assets the candidates were fetched for.
        :returns: Accepted candidates in their original order.
        """
        by_symbol = {asset.symbol: asset for asset in assets}

        async def check(symbol: str, price: float) -> bool:
            asset = by_symbol.get(symbol)
            if asset is None:
                return True
            return await self.is_corroborated(asset, price)

        verdicts = await asyncio.gather(*(check(s, p) for s, p in candidates))
        return [
            candidate
            for candidate, accepted in zip(candidates, verdicts, strict=True)
            if accepted
        ]
