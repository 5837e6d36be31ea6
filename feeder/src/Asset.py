"""Asset: Tracked instrument and conditional pair definitions.

Assets are parsed once at startup from the ``ASSETS``, ``GQL_ASSETS`` or
``LUMINA_ASSETS`` environment strings and never mutated afterwards.

Asset strings are ``;``-separated, fields inside an asset use ``§``:

    - REST / GQL: ``network§address§symbol[§coingecko§cmc§deviation[§gqlJson]]``
    - Lumina:     ``luminaKey§symbol[§coingecko§cmc§deviation]``

.. code-block:: python

    >>> assets = parse_assets(AssetSource.REST, "Ethereum§0x0000§ETH§ethereum§1027§0.05")
    >>> assets[0].symbol
    'ETH'
    >>> assets[0].allowed_deviation
    0.05
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum

logger = logging.getLogger(__name__)

SEPARATOR = "§"


class AssetSource(str, Enum):
    """Upstream a feeder instance pulls its prices from."""

    REST = "rest"
    GQL = "gql"
    LUMINA = "lumina"


@dataclass(frozen=True)
class ExchangePairs:
    """Exchange restriction inside a GraphQL feed selection.

    :ivar exchange: Exchange name (e.g., "Binance").
    :ivar pairs: Pair identifiers on that exchange.
    """

    exchange: str
    pairs: tuple[str, ...] = ()


@dataclass(frozen=True)
class FeedSelection:
    """One entry of the ``FeedSelection`` GraphQL argument.

    :ivar address: Asset address on its blockchain.
    :ivar blockchain: Blockchain name.
    :ivar liquidity_threshold: Minimum pool liquidity, 0 disables the filter.
    :ivar exchange_pairs: Optional exchange restrictions.
    """

    address: str
    blockchain: str
    liquidity_threshold: float = 0.0
    exchange_pairs: tuple[ExchangePairs, ...] = ()


@dataclass(frozen=True)
class GqlParams:
    """Per-asset parameters for the windowed GraphQL source."""

    feed_selection: tuple[FeedSelection, ...] = ()

    @classmethod
    def from_json(cls, raw: str) -> GqlParams:
        """Parse the JSON object embedded in a GQL asset string.

        :param raw: JSON text like ``{"FeedSelection": [...]}``.
        :returns: Parsed parameters.
        :raises ValueError: If the JSON or its structure is invalid.
        """
        try:
            data = json.loads(raw)
            selections = []
            for item in data["FeedSelection"]:
                exchange_pairs = tuple(
                    ExchangePairs(
                        exchange=str(ep["Exchange"]),
                        pairs=tuple(str(p) for p in ep["Pairs"]),
                    )
                    for ep in item.get("Exchangepairs") or []
                )
                selections.append(
                    FeedSelection(
                        address=str(item["Address"]),
                        blockchain=str(item["Blockchain"]),
                        liquidity_threshold=float(item.get("LiquidityThreshold") or 0),
                        exchange_pairs=exchange_pairs,
                    )
                )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid GQL parameters '{raw}': {e}") from e
        return cls(feed_selection=tuple(selections))


@dataclass(frozen=True)
class Asset:
    """A tracked instrument.

    :ivar symbol: Unique key used for publication (e.g., "ETH").
    :ivar network: Blockchain name for DIA REST/GQL lookups.
    :ivar address: Asset address for DIA REST/GQL lookups.
    :ivar lumina_key: Key of the asset in the Lumina oracle contract.
    :ivar coingecko_name: CoinGecko coin id used by the guardian.
    :ivar cmc_name: CoinMarketCap id used by the guardian.
    :ivar allowed_deviation: Max relative distance from a reference price.
    :ivar gql_params: Feed selection for the windowed GraphQL source.
    """

    symbol: str
    network: str = ""
    address: str = ""
    lumina_key: str = ""
    coingecko_name: str | None = None
    cmc_name: str | None = None
    allowed_deviation: float = 0.0
    gql_params: GqlParams = field(default_factory=GqlParams)

    @property
    def has_references(self) -> bool:
        """Check if any guardian reference is configured for this asset."""
        return bool(self.coingecko_name or self.cmc_name)

    def __str__(self) -> str:
        """Return the publication symbol."""
        return self.symbol


@dataclass(frozen=True)
class ConditionalPair:
    """Driver/dependent relationship between two configured assets.

    When the driver deviates enough to be updated, the dependent is forced
    into the same batch.

    :ivar driver: Index of the driver asset.
    :ivar dependent: Index of the dependent asset.
    """

    driver: int
    dependent: int

    def involves(self, index: int) -> bool:
        """Check whether the asset at ``index`` is part of this pair."""
        return index in (self.driver, self.dependent)

    def resolve(self, assets: list[Asset]) -> tuple[str, str]:
        """Map the pair indices to asset symbols.

        :param assets: Configured asset list the indices refer to.
        :returns: Tuple of (driver symbol, dependent symbol).
        :raises ValueError: If an index is out of range.
        """
        for index in (self.driver, self.dependent):
            if not 0 <= index < len(assets):
                raise ValueError(
                    f"Conditional pair {self.driver}-{self.dependent} references "
                    f"unknown asset index {index} ({len(assets)} assets configured)"
                )
        return assets[self.driver].symbol, assets[self.dependent].symbol


def _split_fields(item: str) -> list[str]:
    return [part.strip() for part in item.split(SEPARATOR)]


def _apply_extra_fields(
    source: AssetSource, asset: Asset, extra: list[str]
) -> Asset:
    """Attach guardian and GQL settings carried after the mandatory fields."""
    changes: dict = {}

    if len(extra) > 1:
        coingecko_name = extra[0] or None
        cmc_name = extra[1] or None
        changes["coingecko_name"] = coingecko_name
        changes["cmc_name"] = cmc_name

        if (coingecko_name or cmc_name) and len(extra) > 2:
            try:
                allowed_deviation = float(extra[2])
                if not math.isfinite(allowed_deviation):
                    raise ValueError(extra[2])
                changes["allowed_deviation"] = allowed_deviation
            except ValueError:
                logger.warning(
                    f"[{asset.symbol}] Invalid allowed deviation '{extra[2]}', "
                    "using 0.0"
                )

    if source is AssetSource.GQL and len(extra) > 3 and extra[3]:
        try:
            changes["gql_params"] = GqlParams.from_json(extra[3])
        except ValueError as e:
            logger.error(f"Error while parsing GQL asset string: {e}")

    if not changes:
        return asset
    return replace(asset, **changes)


def parse_asset(source: AssetSource, item: str) -> Asset:
    """Parse a single asset string.

    :param source: Configured asset source (selects the field layout).
    :param item: One ``§``-separated asset definition.
    :returns: Parsed asset.
    :raises ValueError: If mandatory fields are missing.
    """
    if source is AssetSource.LUMINA:
        parts = _split_fields(item)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ValueError(
                f"Invalid Lumina asset '{item}'. Expected 'key{SEPARATOR}symbol'"
            )
        asset = Asset(symbol=parts[1], lumina_key=parts[0])
        return _apply_extra_fields(source, asset, parts[2:])

    parts = _split_fields(item)
    if len(parts) < 3 or not all(parts[:3]):
        raise ValueError(
            f"Invalid asset '{item}'. "
            f"Expected 'network{SEPARATOR}address{SEPARATOR}symbol'"
        )
    network, address, symbol = parts[:3]
    asset = Asset(
        symbol=symbol,
        network=network,
        address=address,
    )
    return _apply_extra_fields(source, asset, parts[3:])


def parse_assets(source: AssetSource, cfg: str) -> list[Asset]:
    """Parse a ``;``-separated list of asset definitions.

    :param source: Configured asset source.
    :param cfg: Raw environment string.
    :returns: Assets in configuration order.
    :raises ValueError: If any entry is malformed or a symbol repeats.
    """
    assets = [parse_asset(source, item) for item in cfg.split(";") if item.strip()]

    seen: set[str] = set()
    for asset in assets:
        if asset.symbol in seen:
            raise ValueError(f"Duplicate asset symbol '{asset.symbol}'")
        seen.add(asset.symbol)

    return assets


def parse_conditional_pairs(cfg: str | None) -> list[ConditionalPair]:
    """Parse ``driver-dependent;driver-dependent`` index tuples.

    :param cfg: Raw ``CONDITIONAL_ASSETS`` value, may be empty.
    :returns: Parsed pairs.
    :raises ValueError: If an entry is not two integers.
    """
    if not cfg:
        return []

    pairs = []
    for item in cfg.split(";"):
        item = item.strip()
        if not item:
            continue
        parts = item.split("-")
        if len(parts) != 2:
            raise ValueError(
                f"Invalid conditional pair '{item}'. Expected 'driver-dependent'"
            )
        try:
            pairs.append(ConditionalPair(int(parts[0]), int(parts[1])))
        except ValueError as e:
            raise ValueError(f"Invalid conditional pair '{item}': {e}") from e
    return pairs
