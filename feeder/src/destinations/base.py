"""Base destination interface for ledger writes.

Each supported chain implements Destination once; the instance is created at
startup from the chain name and held for the lifetime of the process.

.. code-block:: python

    @register_destination
    class MyChain(Destination):
        name = "mychain"

        @classmethod
        def from_config(cls, config: FeederConfig) -> "MyChain":
            return cls(...)

        async def submit_batch(self, updates, use_backup=False) -> None:
            ...
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from ..Config import FeederConfig

# Number of decimals of values written on-chain.
PRICE_DECIMALS = 8


def scale_price(price: float) -> int:
    """Convert a price to its on-chain integer representation (floor)."""
    return math.floor(price * 10**PRICE_DECIMALS)


@dataclass(frozen=True)
class PriceUpdate:
    """One entry of an update batch.

    :ivar key: On-chain key (e.g., "ETH/USD").
    :ivar price: Price in USD.
    :ivar timestamp: Unix timestamp (seconds) of the cycle.
    """

    key: str
    price: float
    timestamp: int

    @property
    def scaled_price(self) -> int:
        return scale_price(self.price)


class DestinationError(Exception):
    """Raised when a ledger write fails."""

    pass


class Destination(ABC):
    """Abstract destination ledger.

    :cvar name: Chain name used for selection.
    :ivar max_batch_size: Max number of updates per transaction.
    :ivar max_retry_attempts: Attempts per chunk before the cycle fails.
    """

    name: ClassVar[str] = ""

    def __init__(self, max_batch_size: int, max_retry_attempts: int = 3) -> None:
        """Initialize the destination limits.

        :param max_batch_size: Max number of updates per transaction.
        :param max_retry_attempts: Attempts per chunk (default: 3).
        :raises ValueError: If a limit is below 1.
        """
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        if max_retry_attempts < 1:
            raise ValueError("max_retry_attempts must be at least 1")
        self.max_batch_size = max_batch_size
        self.max_retry_attempts = max_retry_attempts

    @classmethod
    @abstractmethod
    def from_config(cls, config: FeederConfig) -> Destination:
        """Create the destination from the feeder configuration."""
        pass

    @property
    def has_backup(self) -> bool:
        """Check if a backup endpoint is configured."""
        return False

    @property
    def keep_alive_interval(self) -> float | None:
        """Seconds between keep-alive runs, or None if not required."""
        return None

    async def prepare(self) -> None:
        """Bring the destination into a writable state at startup."""
        return None

    async def keep_alive(self) -> None:
        """Extend ledger state leases. No-op unless the ledger needs it."""
        return None

    @abstractmethod
    async def submit_batch(
        self, updates: list[PriceUpdate], use_backup: bool = False
    ) -> None:
        """Write one chunk of updates in a single transaction.

        :param updates: At most ``max_batch_size`` updates.
        :param use_backup: Route the write through the backup endpoint.
        :raises DestinationError: If the write is not confirmed.
        """
        pass


# Registry of available destinations (populated by subclass imports)
DESTINATION_REGISTRY: dict[str, type[Destination]] = {}


def register_destination(cls: type[Destination]) -> type[Destination]:
    """Decorator to register a destination class in the global registry.

    :param cls: Destination class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If the destination has no name defined.
    """
    if not cls.name:
        raise ValueError(
            f"Destination {cls.__name__} must define a 'name' class variable"
        )
    DESTINATION_REGISTRY[cls.name] = cls
    return cls


def create_destination(config: FeederConfig) -> Destination:
    """Create the destination selected by ``config.chain_name``.

    :param config: Feeder configuration.
    :returns: Destination instance.
    :raises ValueError: If the chain name is unknown.
    """
    name = config.chain_name
    if name not in DESTINATION_REGISTRY:
        available = ", ".join(sorted(DESTINATION_REGISTRY.keys()))
        raise ValueError(f"Unknown chain '{name}'. Available: {available}")
    return DESTINATION_REGISTRY[name].from_config(config)


def get_available_destinations() -> list[str]:
    """Get list of available destination names."""
    return sorted(DESTINATION_REGISTRY.keys())
