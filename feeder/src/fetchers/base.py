"""Base fetcher interfaces and shared HTTP client management.

Price fetchers inherit from BaseFetcher and implement ``fetch()``. Guardian
reference providers inherit from BaseReference and implement
``fetch_reference_price()``. A shared httpx.AsyncClient is used by both to
avoid connection overhead.

Unlike the Source Aggregator, fetchers do not swallow errors: any failure is
raised as a FetcherError and turned into a missing price one level up.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"

        @classmethod
        def from_config(cls, config: FeederConfig) -> "MyFetcher":
            return cls(timeout=config.fetch_timeout)

        async def fetch(self, asset: Asset) -> float:
            response = await self._get(f"https://api.example.com/{asset.symbol}")
            return float(response.json()["price"])
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

import httpx

if TYPE_CHECKING:
    from ..Asset import Asset
    from ..Config import FeederConfig

logger = logging.getLogger(__name__)


class FetcherError(Exception):
    """Base exception for fetcher errors."""

    pass


class FetcherConfigError(FetcherError):
    """Raised when fetcher configuration is invalid (e.g., missing API key)."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class HttpSource:
    """Shared HTTP plumbing for price fetchers and reference providers.

    :cvar name: Unique identifier for this source.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, timeout: float | None = None):
        """Initialize the source.

        :param timeout: Request timeout in seconds (default: 10).
        """
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is stored on HttpSource itself so fetchers and reference
        providers reuse the same connection pool.

        :returns: Shared httpx.AsyncClient instance.
        """
        if HttpSource._shared_client is None or HttpSource._shared_client.is_closed:
            HttpSource._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return HttpSource._shared_client

    @classmethod
    def set_shared_client(cls, client: httpx.AsyncClient | None) -> None:
        """Replace the shared HTTP client (used to inject mock transports).

        :param client: Client to share, or None to recreate lazily.
        """
        HttpSource._shared_client = client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = HttpSource._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        HttpSource._shared_client = None

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise FetcherHTTPError(response.status_code, response.text[:200])
        return response

    async def _post(
        self,
        url: str,
        *,
        json: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP POST request using the shared client.

        :param url: Request URL.
        :param json: Optional JSON body.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.post(
                url,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "HTTP POST %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise FetcherHTTPError(response.status_code, response.text[:200])
        return response


class BaseFetcher(HttpSource, ABC):
    """Abstract base class for upstream price fetchers.

    Subclasses must implement:
        - name: Class variable matching an AssetSource value
        - from_config(): Build the fetcher from the feeder configuration
        - fetch(): Async method returning the asset's current price
    """

    @classmethod
    @abstractmethod
    def from_config(cls, config: FeederConfig) -> BaseFetcher:
        """Create the fetcher from the feeder configuration.

        :param config: Feeder configuration.
        :returns: Configured fetcher.
        """
        pass

    @abstractmethod
    async def fetch(self, asset: Asset) -> float:
        """Fetch the current price of an asset.

        :param asset: Asset to fetch.
        :returns: Current price in USD.
        :raises FetcherError: If the price cannot be retrieved.
        """
        pass


class BaseReference(HttpSource, ABC):
    """Abstract base class for guardian reference price providers."""

    @abstractmethod
    async def fetch_reference_price(self, name: str) -> float:
        """Fetch an independent USD price for the named asset.

        :param name: Provider-specific asset identifier.
        :returns: Reference price.
        :raises FetcherError: If the price cannot be retrieved.
        """
        pass


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(name: str, config: FeederConfig) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (an AssetSource value, e.g., "rest").
    :param config: Feeder configuration.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name].from_config(config)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
