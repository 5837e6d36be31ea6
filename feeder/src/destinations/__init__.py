"""
Destination ledgers receiving price updates.

Usage:
    from feeder.src.destinations import create_destination

    destination = create_destination(config)   # selected by config.chain_name
    await destination.submit_batch(updates)
"""

from .base import (
    DESTINATION_REGISTRY,
    PRICE_DECIMALS,
    Destination,
    DestinationError,
    PriceUpdate,
    create_destination,
    get_available_destinations,
    register_destination,
    scale_price,
)

# Import all destination implementations to trigger registration
from .sapphire import SapphireDestination
from .soroban import SorobanDestination

__all__ = [
    "DESTINATION_REGISTRY",
    "PRICE_DECIMALS",
    "Destination",
    "DestinationError",
    "PriceUpdate",
    "SapphireDestination",
    "SorobanDestination",
    "create_destination",
    "get_available_destinations",
    "register_destination",
    "scale_price",
]
