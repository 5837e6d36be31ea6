"""
DIA Price Feeder - Price Update Decision Engine

This module turns fetched asset prices into deviation-gated, guardian-validated
on-chain updates:
- Asset: Tracked instruments and conditional driver/dependent pairs
- Config: Startup configuration read from the environment
- SourceAggregator: Concurrent price fetching with per-fetch timeouts
- DeviationFilter: Permille deviation gate honoring conditional pairs
- GuardianValidator: Corroboration against reference prices
- BatchSubmitter: Chunked, retried writes with backup failover
- MutationQueue: Serialized execution of state-mutating tasks
- Scheduler: Regular, mandatory and keep-alive timers
- PriceFeeder: Main orchestrator
- fetchers: Upstream price fetchers and reference providers
- destinations: Destination ledger adapters
"""

from .Asset import Asset, AssetSource, ConditionalPair
from .BatchSubmitter import BatchSubmitError, BatchSubmitter
from .Config import ConfigError, FeederConfig
from .DeviationFilter import DeviationFilter, check_deviation
from .GuardianValidator import GuardianValidator
from .MutationQueue import MutationQueue
from .PriceFeeder import PriceFeeder
from .Scheduler import Scheduler
from .SourceAggregator import SourceAggregator

__all__ = [
    "Asset",
    "AssetSource",
    "BatchSubmitError",
    "BatchSubmitter",
    "ConditionalPair",
    "ConfigError",
    "DeviationFilter",
    "FeederConfig",
    "GuardianValidator",
    "MutationQueue",
    "PriceFeeder",
    "Scheduler",
    "SourceAggregator",
    "check_deviation",
]
