"""Unit tests for DeviationFilter."""

import pytest

from feeder.src.DeviationFilter import DeviationFilter, check_deviation


class TestCheckDeviation:
    """Test the deviation predicate."""

    @pytest.mark.parametrize("old", [0.0, 1e-9, 1.0, 1000.0])
    def test_tiny_prices_never_trigger(self, old: float) -> None:
        """Prices at or below 1e-8 never trigger, whatever the old price."""
        assert not check_deviation(old, 1e-8, 10)
        assert not check_deviation(old, 0.0, 10)
        assert not check_deviation(old, -5.0, 10)

    def test_cold_start(self) -> None:
        """Without a published price any real price triggers."""
        assert check_deviation(0.0, 2e-8, 10)
        assert check_deviation(0.0, 1000.0, 10)

    def test_band_boundaries(self) -> None:
        """Only prices strictly outside the band trigger."""
        assert not check_deviation(1000.0, 1000.0, 10)
        assert not check_deviation(1000.0, 1009.0, 10)
        assert not check_deviation(1000.0, 991.0, 10)
        assert check_deviation(1000.0, 1011.0, 10)
        assert check_deviation(1000.0, 989.0, 10)

    def test_zero_threshold(self) -> None:
        """With 0 permille any change triggers."""
        assert check_deviation(1000.0, 1000.01, 0)
        assert not check_deviation(1000.0, 1000.0, 0)


class TestDeviationFilter:
    """Test candidate selection."""

    def test_negative_threshold(self) -> None:
        """Negative thresholds are rejected."""
        with pytest.raises(ValueError, match="must not be negative"):
            DeviationFilter(deviation_permille=-1)

    def test_deviated(self) -> None:
        """A move above the threshold selects the symbol."""
        f = DeviationFilter(deviation_permille=10)
        assert f.select({"ETH": 1000.0}, {"ETH": 1100.0}) == [("ETH", 1100.0)]

    def test_not_deviated(self) -> None:
        """A move within the threshold selects nothing."""
        f = DeviationFilter(deviation_permille=10)
        assert f.select({"ETH": 1000.0}, {"ETH": 1005.0}) == []

    def test_order_follows_fetched(self) -> None:
        """Selection keeps the fetched order."""
        f = DeviationFilter(deviation_permille=10)
        selected = f.select({}, {"BTC": 60000.0, "ETH": 3000.0, "SOL": 150.0})
        assert [s for s, _ in selected] == ["BTC", "ETH", "SOL"]

    def test_conditional_dependent_follows_driver(self) -> None:
        """A dependent joins the batch when its driver deviates."""
        f = DeviationFilter(deviation_permille=10, pairs=[("ETH", "STETH")])
        published = {"ETH": 1000.0, "STETH": 1000.0}
        fetched = {"ETH": 1100.0, "STETH": 1001.0}

        assert f.select(published, fetched) == [("ETH", 1100.0), ("STETH", 1001.0)]

    def test_conditional_driver_not_deviated(self) -> None:
        """A quiet driver does not force its dependent."""
        f = DeviationFilter(deviation_permille=10, pairs=[("ETH", "STETH")])
        published = {"ETH": 1000.0, "STETH": 1000.0}
        fetched = {"ETH": 1001.0, "STETH": 1001.0}

        assert f.select(published, fetched) == []

    def test_conditional_driver_missing(self) -> None:
        """A driver without a fetched price never deviates."""
        f = DeviationFilter(deviation_permille=10, pairs=[("ETH", "STETH")])
        assert f.select({"ETH": 1000.0, "STETH": 1000.0}, {"STETH": 1001.0}) == []

    def test_pairs_are_directional(self) -> None:
        """A deviating dependent does not force its driver."""
        f = DeviationFilter(deviation_permille=10, pairs=[("ETH", "STETH")])
        published = {"ETH": 1000.0, "STETH": 1000.0}
        fetched = {"ETH": 1001.0, "STETH": 1200.0}

        assert f.select(published, fetched) == [("STETH", 1200.0)]
