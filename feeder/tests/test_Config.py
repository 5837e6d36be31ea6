"""Unit tests for FeederConfig."""

import pytest

from feeder.src.Asset import Asset, AssetSource, ConditionalPair
from feeder.src.Config import (
    DIA_REST_URL,
    SOROBAN_TESTNET_PASSPHRASE,
    ConfigError,
    FeederConfig,
    IntervalConfig,
)

ZERO = "0x0000000000000000000000000000000000000000"
ASSETS = f"Ethereum§{ZERO}§ETH;Ethereum§0x1§STETH;Bitcoin§{ZERO}§BTC"


class TestFromEnv:
    """Test environment parsing."""

    def test_defaults(self) -> None:
        """Only an asset list is required."""
        config = FeederConfig.from_env({"ASSETS": ASSETS})

        assert [a.symbol for a in config.assets] == ["ETH", "STETH", "BTC"]
        assert config.asset_source is AssetSource.REST
        assert config.deviation_permille == 10
        assert config.chain_name == "soroban"
        assert config.rest_url == DIA_REST_URL
        assert config.intervals.frequency == 120.0
        assert config.intervals.mandatory_frequency == 0.0
        assert config.soroban.network_passphrase == SOROBAN_TESTNET_PASSPHRASE
        assert config.soroban.max_batch_size == 50
        assert config.sapphire.max_batch_size == 10
        assert config.conditional_pairs == []

    def test_overrides(self) -> None:
        """Variables override defaults."""
        config = FeederConfig.from_env(
            {
                "ASSETS": ASSETS,
                "CONDITIONAL_ASSETS": "0-1",
                "DEVIATION_PERMILLE": "5",
                "CHAIN_NAME": "Sapphire",
                "FREQUENCY_SECONDS": "60",
                "MANDATORY_FREQUENCY_SECONDS": "3600",
                "SAPPHIRE_CONTRACT": ZERO,
                "SAPPHIRE_MAX_BATCH_SIZE": "20",
                "SOROBAN_BACKUP_BLOCKCHAIN_NODE": "https://backup.example",
                "CMC_API_KEY": "secret",
            }
        )

        assert config.conditional_pairs == [ConditionalPair(0, 1)]
        assert config.deviation_permille == 5
        assert config.chain_name == "sapphire"
        assert config.intervals == IntervalConfig(frequency=60.0, mandatory_frequency=3600.0)
        assert config.sapphire.contract == ZERO
        assert config.sapphire.max_batch_size == 20
        assert config.soroban.backup_rpc_url == "https://backup.example"
        assert config.guardian.cmc_api_key == "secret"
        assert config.guardian.coingecko_api_key is None

    def test_lumina_source(self) -> None:
        """LUMINA_ASSETS selects the Lumina source."""
        config = FeederConfig.from_env({"LUMINA_ASSETS": "BTC/USD§BTC"})

        assert config.asset_source is AssetSource.LUMINA
        assert config.assets[0].lumina_key == "BTC/USD"

    def test_requires_exactly_one_asset_list(self) -> None:
        """Zero or several asset lists are rejected."""
        with pytest.raises(ConfigError, match="exactly one"):
            FeederConfig.from_env({})

        with pytest.raises(ConfigError, match="exactly one"):
            FeederConfig.from_env({"ASSETS": ASSETS, "GQL_ASSETS": ASSETS})

    def test_malformed_number(self) -> None:
        """Non-numeric values are reported with the variable name."""
        with pytest.raises(ConfigError, match="DEVIATION_PERMILLE"):
            FeederConfig.from_env({"ASSETS": ASSETS, "DEVIATION_PERMILLE": "ten"})

        with pytest.raises(ConfigError, match="FREQUENCY_SECONDS"):
            FeederConfig.from_env({"ASSETS": ASSETS, "FREQUENCY_SECONDS": "soon"})

    def test_malformed_asset(self) -> None:
        """Asset errors surface as ConfigError."""
        with pytest.raises(ConfigError, match="Invalid asset"):
            FeederConfig.from_env({"ASSETS": "Ethereum§ETH"})

    def test_pair_out_of_range(self) -> None:
        """Conditional pairs must reference configured assets."""
        with pytest.raises(ConfigError, match="unknown asset index"):
            FeederConfig.from_env({"ASSETS": ASSETS, "CONDITIONAL_ASSETS": "0-7"})


class TestValidation:
    """Test cross-field validation."""

    def test_no_assets(self) -> None:
        """At least one asset is required."""
        with pytest.raises(ConfigError, match="At least one asset"):
            FeederConfig(assets=[])

    def test_negative_deviation(self) -> None:
        """Deviation threshold must not be negative."""
        with pytest.raises(ConfigError, match="deviation_permille"):
            FeederConfig(assets=[Asset("ETH")], deviation_permille=-1)

    def test_frequencies(self) -> None:
        """Regular frequency must be positive, mandatory non-negative."""
        with pytest.raises(ConfigError, match="frequency must be positive"):
            FeederConfig(assets=[Asset("ETH")], intervals=IntervalConfig(frequency=0))

        with pytest.raises(ConfigError, match="mandatory_frequency"):
            FeederConfig(
                assets=[Asset("ETH")],
                intervals=IntervalConfig(mandatory_frequency=-1),
            )

    def test_config_error_is_value_error(self) -> None:
        """ConfigError can be handled as ValueError."""
        assert issubclass(ConfigError, ValueError)


class TestMandatoryAssets:
    """Test the mandatory asset subset."""

    def test_excludes_conditional_assets(self) -> None:
        """Assets in any conditional pair are excluded."""
        config = FeederConfig(
            assets=[Asset("ETH"), Asset("STETH"), Asset("BTC")],
            conditional_pairs=[ConditionalPair(0, 1)],
        )
        assert [a.symbol for a in config.mandatory_assets] == ["BTC"]

    def test_all_assets_without_pairs(self) -> None:
        """Without pairs every asset is mandatory."""
        config = FeederConfig(assets=[Asset("ETH"), Asset("BTC")])
        assert [a.symbol for a in config.mandatory_assets] == ["ETH", "BTC"]
