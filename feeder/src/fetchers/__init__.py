"""
Price fetchers and guardian reference providers.

This module provides a unified interface for pulling asset prices from the
DIA upstreams (REST quotation, windowed GraphQL feed, Lumina on-chain reads)
and independent reference prices from CoinGecko and CoinMarketCap.

Usage:
    from feeder.src.fetchers import get_fetcher, get_available_fetchers

    # Get list of available fetchers
    available = get_available_fetchers()
    # ['gql', 'lumina', 'rest']

    # Create a fetcher instance
    fetcher = get_fetcher("rest", config)
    price = await fetcher.fetch(asset)
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    BaseReference,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    HttpSource,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .coingecko import CoinGeckoReference
from .coinmarketcap import CoinMarketCapReference
from .dia import DiaRestFetcher
from .dia_graphql import DiaGraphqlFetcher
from .lumina import LuminaFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "BaseReference",
    "HttpSource",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    # Implementations
    "CoinGeckoReference",
    "CoinMarketCapReference",
    "DiaGraphqlFetcher",
    "DiaRestFetcher",
    "LuminaFetcher",
]
