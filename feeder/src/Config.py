"""Config: Startup configuration for the price feeder.

The environment is read exactly once, in :meth:`FeederConfig.from_env`, and the
resulting object is handed to every component constructor.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .Asset import Asset, AssetSource, ConditionalPair, parse_assets, parse_conditional_pairs

DIA_REST_URL = "https://api.diadata.org/v1/assetQuotation"
DIA_GQL_URL = "https://api.diadata.org/graphql/query"
LUMINA_RPC_URL = "https://rpc.diadata.org"
LUMINA_ORACLE_V2_ADDRESS = "0x0000000000000000000000000000000000000000"
COINGECKO_URL = "https://api.coingecko.com"
CMC_URL = "https://pro-api.coinmarketcap.com"

SOROBAN_RPC_URL = "https://soroban-testnet.stellar.org:443"
SOROBAN_TESTNET_PASSPHRASE = "Test SDF Network ; September 2015"
SAPPHIRE_RPC_URL = "https://testnet.sapphire.oasis.io"


class ConfigError(ValueError):
    """Raised when the startup configuration is invalid."""

    pass


@dataclass
class IntervalConfig:
    """Scheduler cadence in seconds.

    :ivar frequency: Regular cycle period.
    :ivar mandatory_frequency: Forced refresh period, 0 disables it.
    """

    frequency: float = 120.0
    mandatory_frequency: float = 0.0


@dataclass
class GqlConfig:
    """DIA GraphQL windowed feed settings."""

    url: str = DIA_GQL_URL
    window_size: int = 120
    methodology: str = "vwap"


@dataclass
class LuminaConfig:
    """DIA Lasernet (Lumina) on-chain source settings.

    :ivar data_age_timeout: Max age of an on-chain value in seconds, 0 disables.
    """

    rpc_url: str = LUMINA_RPC_URL
    backup_rpc_url: str | None = None
    oracle_address: str = LUMINA_ORACLE_V2_ADDRESS
    data_age_timeout: int = 0


@dataclass
class GuardianConfig:
    """Reference price providers used to corroborate updates."""

    coingecko_url: str = COINGECKO_URL
    coingecko_api_key: str | None = None
    cmc_url: str = CMC_URL
    cmc_api_key: str | None = None


@dataclass
class SapphireConfig:
    """Oasis Sapphire (EVM) destination settings.

    :ivar secret_key: Hex private key for local signing. When empty,
        transactions are signed and submitted by the ROFL appd.
    :ivar appd_url: ROFL appd URL or socket path, empty for the default socket.
    """

    rpc_url: str = SAPPHIRE_RPC_URL
    backup_rpc_url: str | None = None
    contract: str = ""
    secret_key: str | None = None
    appd_url: str = ""
    max_batch_size: int = 10
    max_retry_attempts: int = 3


@dataclass
class SorobanConfig:
    """Stellar Soroban destination settings.

    :ivar lifetime_interval: Seconds between instance TTL extensions.
    """

    rpc_url: str = SOROBAN_RPC_URL
    backup_rpc_url: str | None = None
    secret_key: str = ""
    contract_id: str = ""
    network_passphrase: str = SOROBAN_TESTNET_PASSPHRASE
    max_batch_size: int = 50
    max_retry_attempts: int = 3
    lifetime_interval: float = 30 * 60.0


@dataclass
class FeederConfig:
    """Complete feeder configuration.

    :ivar assets: Tracked assets in configuration order.
    :ivar asset_source: Upstream the prices are fetched from.
    :ivar conditional_pairs: Driver/dependent index tuples.
    :ivar deviation_permille: Update threshold in parts per thousand.
    :ivar chain_name: Destination ledger name.
    :ivar fetch_timeout: Timeout for a single price fetch in seconds.
    """

    assets: list[Asset]
    asset_source: AssetSource = AssetSource.REST
    conditional_pairs: list[ConditionalPair] = field(default_factory=list)
    deviation_permille: int = 10
    chain_name: str = "soroban"
    fetch_timeout: float = 10.0
    rest_url: str = DIA_REST_URL
    intervals: IntervalConfig = field(default_factory=IntervalConfig)
    gql: GqlConfig = field(default_factory=GqlConfig)
    lumina: LuminaConfig = field(default_factory=LuminaConfig)
    guardian: GuardianConfig = field(default_factory=GuardianConfig)
    sapphire: SapphireConfig = field(default_factory=SapphireConfig)
    soroban: SorobanConfig = field(default_factory=SorobanConfig)

    def __post_init__(self) -> None:
        """Validate cross-field constraints.

        :raises ConfigError: If the configuration is inconsistent.
        """
        if not self.assets:
            raise ConfigError("At least one asset must be configured")
        if self.deviation_permille < 0:
            raise ConfigError("deviation_permille must not be negative")
        if self.intervals.frequency <= 0:
            raise ConfigError("frequency must be positive")
        if self.intervals.mandatory_frequency < 0:
            raise ConfigError("mandatory_frequency must not be negative")
        for pair in self.conditional_pairs:
            try:
                pair.resolve(self.assets)
            except ValueError as e:
                raise ConfigError(str(e)) from e

    @property
    def mandatory_assets(self) -> list[Asset]:
        """Assets that are not part of any conditional pair."""
        return [
            asset
            for index, asset in enumerate(self.assets)
            if not any(pair.involves(index) for pair in self.conditional_pairs)
        ]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FeederConfig:
        """Build the configuration from environment variables.

        :param environ: Variables to read (defaults to ``os.environ``).
        :returns: Validated configuration.
        :raises ConfigError: If a variable is missing or malformed.
        """
        env = os.environ if environ is None else environ

        sources = {
            AssetSource.REST: env.get("ASSETS"),
            AssetSource.GQL: env.get("GQL_ASSETS"),
            AssetSource.LUMINA: env.get("LUMINA_ASSETS"),
        }
        configured = [(s, raw) for s, raw in sources.items() if raw]
        if len(configured) != 1:
            raise ConfigError("Use exactly one of ASSETS, GQL_ASSETS or LUMINA_ASSETS")
        asset_source, raw_assets = configured[0]

        try:
            assets = parse_assets(asset_source, raw_assets)
            conditional_pairs = parse_conditional_pairs(env.get("CONDITIONAL_ASSETS"))
        except ValueError as e:
            raise ConfigError(str(e)) from e

        return cls(
            assets=assets,
            asset_source=asset_source,
            conditional_pairs=conditional_pairs,
            deviation_permille=_int(env, "DEVIATION_PERMILLE", 10),
            chain_name=(env.get("CHAIN_NAME") or "soroban").lower(),
            fetch_timeout=_float(env, "FETCH_TIMEOUT", 10.0),
            rest_url=env.get("DIA_REST_URL") or DIA_REST_URL,
            intervals=IntervalConfig(
                frequency=_float(env, "FREQUENCY_SECONDS", 120.0),
                mandatory_frequency=_float(env, "MANDATORY_FREQUENCY_SECONDS", 0.0),
            ),
            gql=GqlConfig(
                url=env.get("GQL_URL") or DIA_GQL_URL,
                window_size=_int(env, "GQL_WINDOW_SIZE", 120),
                methodology=env.get("GQL_METHODOLOGY") or "vwap",
            ),
            lumina=LuminaConfig(
                rpc_url=env.get("LUMINA_RPC_URL") or LUMINA_RPC_URL,
                backup_rpc_url=env.get("LUMINA_BACKUP_RPC_URL") or None,
                oracle_address=env.get("LUMINA_ORACLE_V2_ADDRESS") or LUMINA_ORACLE_V2_ADDRESS,
                data_age_timeout=_int(env, "LUMINA_DATA_AGE_TIMEOUT", 0),
            ),
            guardian=GuardianConfig(
                coingecko_url=env.get("COINGECKO_API_URL") or COINGECKO_URL,
                coingecko_api_key=env.get("COINGECKO_API_KEY") or None,
                cmc_url=env.get("CMC_API_URL") or CMC_URL,
                cmc_api_key=env.get("CMC_API_KEY") or None,
            ),
            sapphire=SapphireConfig(
                rpc_url=env.get("SAPPHIRE_RPC_URL") or SAPPHIRE_RPC_URL,
                backup_rpc_url=env.get("SAPPHIRE_BACKUP_RPC_URL") or None,
                contract=env.get("SAPPHIRE_CONTRACT") or "",
                secret_key=env.get("SAPPHIRE_PRIVATE_KEY") or None,
                appd_url=env.get("ROFL_APPD_URL") or "",
                max_batch_size=_int(env, "SAPPHIRE_MAX_BATCH_SIZE", 10),
                max_retry_attempts=_int(env, "SAPPHIRE_MAX_RETRY_ATTEMPTS", 3),
            ),
            soroban=SorobanConfig(
                rpc_url=env.get("SOROBAN_BLOCKCHAIN_NODE") or SOROBAN_RPC_URL,
                backup_rpc_url=env.get("SOROBAN_BACKUP_BLOCKCHAIN_NODE") or None,
                secret_key=env.get("SOROBAN_PRIVATE_KEY") or "",
                contract_id=env.get("SOROBAN_DEPLOYED_CONTRACT") or "",
                network_passphrase=(
                    env.get("SOROBAN_NETWORK_PASSPHRASE") or SOROBAN_TESTNET_PASSPHRASE
                ),
                max_batch_size=_int(env, "SOROBAN_MAX_BATCH_SIZE", 50),
                max_retry_attempts=_int(env, "SOROBAN_MAX_RETRY_ATTEMPTS", 3),
                lifetime_interval=_float(env, "SOROBAN_LIFETIME_INTERVAL_SECONDS", 1800.0),
            ),
        )


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from e


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got '{raw}'") from e
