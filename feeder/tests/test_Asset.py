"""Unit tests for Asset parsing."""

import pytest

from feeder.src.Asset import (
    Asset,
    AssetSource,
    ConditionalPair,
    GqlParams,
    parse_asset,
    parse_assets,
    parse_conditional_pairs,
)

ZERO = "0x0000000000000000000000000000000000000000"


class TestParseAsset:
    """Test single asset strings."""

    def test_rest_minimal(self) -> None:
        """Network, address and symbol are mandatory."""
        asset = parse_asset(AssetSource.REST, f"Ethereum§{ZERO}§ETH")

        assert asset.symbol == "ETH"
        assert asset.network == "Ethereum"
        assert asset.address == ZERO
        assert asset.coingecko_name is None
        assert asset.cmc_name is None
        assert asset.allowed_deviation == 0.0
        assert not asset.has_references

    def test_rest_with_references(self) -> None:
        """Guardian names and allowed deviation follow the mandatory fields."""
        asset = parse_asset(AssetSource.REST, f"Ethereum§{ZERO}§ETH§ethereum§1027§0.05")

        assert asset.coingecko_name == "ethereum"
        assert asset.cmc_name == "1027"
        assert asset.allowed_deviation == 0.05
        assert asset.has_references

    def test_empty_reference_names(self) -> None:
        """Empty reference fields mean no reference."""
        asset = parse_asset(AssetSource.REST, f"Ethereum§{ZERO}§ETH§§1027§0.1")

        assert asset.coingecko_name is None
        assert asset.cmc_name == "1027"

    def test_invalid_deviation_falls_back(self) -> None:
        """A malformed deviation keeps the default."""
        asset = parse_asset(AssetSource.REST, f"Ethereum§{ZERO}§ETH§ethereum§§abc")
        assert asset.allowed_deviation == 0.0

    @pytest.mark.parametrize("raw", ["nan", "NaN", "inf", "-inf"])
    def test_non_finite_deviation_falls_back(self, raw: str) -> None:
        """NaN and infinite deviations keep the default."""
        asset = parse_asset(AssetSource.REST, f"Ethereum§{ZERO}§ETH§ethereum§§{raw}")
        assert asset.allowed_deviation == 0.0

    def test_missing_fields(self) -> None:
        """Missing mandatory fields should raise."""
        with pytest.raises(ValueError, match="Invalid asset"):
            parse_asset(AssetSource.REST, "Ethereum§ETH")

        with pytest.raises(ValueError, match="Invalid asset"):
            parse_asset(AssetSource.REST, f"Ethereum§{ZERO}§")

    def test_lumina(self) -> None:
        """Lumina assets use key and symbol."""
        asset = parse_asset(AssetSource.LUMINA, "BTC/USD§BTC§bitcoin§1§0.02")

        assert asset.symbol == "BTC"
        assert asset.lumina_key == "BTC/USD"
        assert asset.coingecko_name == "bitcoin"
        assert asset.allowed_deviation == 0.02

    def test_lumina_missing_symbol(self) -> None:
        """Lumina assets need both fields."""
        with pytest.raises(ValueError, match="Invalid Lumina asset"):
            parse_asset(AssetSource.LUMINA, "BTC/USD")

    def test_gql_params(self) -> None:
        """GQL assets may carry a feed selection JSON."""
        gql = (
            '{"FeedSelection":[{"Address":"0xabc","Blockchain":"Ethereum",'
            '"LiquidityThreshold":1000,'
            '"Exchangepairs":[{"Exchange":"Uniswap","Pairs":["0x1"]}]}]}'
        )
        asset = parse_asset(AssetSource.GQL, f"Ethereum§0xabc§ABC§§§§{gql}")

        assert len(asset.gql_params.feed_selection) == 1
        selection = asset.gql_params.feed_selection[0]
        assert selection.address == "0xabc"
        assert selection.blockchain == "Ethereum"
        assert selection.liquidity_threshold == 1000.0
        assert selection.exchange_pairs[0].exchange == "Uniswap"
        assert selection.exchange_pairs[0].pairs == ("0x1",)

    def test_invalid_gql_params_ignored(self) -> None:
        """Malformed GQL JSON leaves the params empty."""
        asset = parse_asset(AssetSource.GQL, "Ethereum§0xabc§ABC§§§§{not json")
        assert asset.gql_params == GqlParams()

    def test_gql_json_ignored_for_rest(self) -> None:
        """Only the GQL source reads the JSON field."""
        asset = parse_asset(
            AssetSource.REST, 'Ethereum§0xabc§ABC§§§§{"FeedSelection":[]}'
        )
        assert asset.gql_params == GqlParams()


class TestParseAssets:
    """Test asset lists."""

    def test_order_preserved(self) -> None:
        """Assets keep configuration order and skip empty entries."""
        assets = parse_assets(
            AssetSource.REST,
            f"Ethereum§{ZERO}§ETH; Bitcoin§{ZERO}§BTC;",
        )
        assert [a.symbol for a in assets] == ["ETH", "BTC"]

    def test_duplicate_symbol(self) -> None:
        """Symbols must be unique."""
        with pytest.raises(ValueError, match="Duplicate asset symbol"):
            parse_assets(AssetSource.REST, f"Ethereum§{ZERO}§ETH;Polygon§{ZERO}§ETH")


class TestConditionalPairs:
    """Test conditional pair parsing and resolution."""

    def test_parse(self) -> None:
        """Pairs are driver-dependent index tuples."""
        assert parse_conditional_pairs("0-1; 2-3") == [
            ConditionalPair(0, 1),
            ConditionalPair(2, 3),
        ]

    def test_parse_empty(self) -> None:
        """Missing config means no pairs."""
        assert parse_conditional_pairs(None) == []
        assert parse_conditional_pairs("") == []

    def test_parse_invalid(self) -> None:
        """Malformed entries should raise."""
        with pytest.raises(ValueError, match="Invalid conditional pair"):
            parse_conditional_pairs("0-1-2")

        with pytest.raises(ValueError, match="Invalid conditional pair"):
            parse_conditional_pairs("a-b")

    def test_involves(self) -> None:
        """Both indices are part of the pair."""
        pair = ConditionalPair(0, 2)
        assert pair.involves(0)
        assert pair.involves(2)
        assert not pair.involves(1)

    def test_resolve(self) -> None:
        """Indices resolve to symbols."""
        assets = [Asset("ETH"), Asset("STETH")]
        assert ConditionalPair(0, 1).resolve(assets) == ("ETH", "STETH")

    def test_resolve_out_of_range(self) -> None:
        """Unknown indices should raise."""
        with pytest.raises(ValueError, match="unknown asset index 5"):
            ConditionalPair(0, 5).resolve([Asset("ETH"), Asset("BTC")])
