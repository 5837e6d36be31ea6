"""DeviationFilter: Selects prices that moved enough to be published.

Algorithm:
    1. For each fetched symbol, compare against the last published price
       (0 when never published)
    2. Trigger when the new price is above 1e-8 and outside
       [old * (1 - d), old * (1 + d)] with d = permille / 1000
    3. Also select a symbol when it is the dependent of a conditional pair
       whose driver triggers with the driver's own prices

.. code-block:: python

    >>> f = DeviationFilter(deviation_permille=10)
    >>> f.select({"ETH": 1000.0}, {"ETH": 1100.0})
    [('ETH', 1100.0)]
    >>> f.select({"ETH": 1000.0}, {"ETH": 1005.0})
    []
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

# Quotes at or below this value are never treated as a legitimate move.
MIN_PRICE = 1e-8


def check_deviation(old_price: float, new_price: float, deviation_permille: int) -> bool:
    """Check whether ``new_price`` moved far enough from ``old_price``.

    :param old_price: Last published price, 0 if never published.
    :param new_price: Freshly fetched price.
    :param deviation_permille: Threshold in parts per thousand.
    :returns: True if an update is warranted.
    """
    deviation = deviation_permille / 1000
    return new_price > MIN_PRICE and (
        new_price > old_price * (1 + deviation) or new_price < old_price * (1 - deviation)
    )


class DeviationFilter:
    """Deviation gate honoring conditional driver/dependent pairs.

    :ivar deviation_permille: Threshold in parts per thousand.
    :ivar pairs: (driver symbol, dependent symbol) tuples.
    """

    def __init__(
        self,
        deviation_permille: int = 10,
        pairs: Iterable[tuple[str, str]] = (),
    ) -> None:
        """Initialize the filter.

        :param deviation_permille: Threshold in parts per thousand.
        :param pairs: Conditional pairs resolved to symbols.
        :raises ValueError: If the threshold is negative.
        """
        if deviation_permille < 0:
            raise ValueError("deviation_permille must not be negative")

        self.deviation_permille = deviation_permille
        self.pairs = list(pairs)
        self._drivers: dict[str, list[str]] = {}
        for driver, dependent in self.pairs:
            self._drivers.setdefault(dependent, []).append(driver)

    def is_deviated(
        self,
        symbol: str,
        published: Mapping[str, float],
        fetched: Mapping[str, float],
    ) -> bool:
        """Apply the deviation predicate to one symbol.

        A symbol missing from ``fetched`` never deviates.
        """
        return check_deviation(
            published.get(symbol) or 0.0,
            fetched.get(symbol) or 0.0,
            self.deviation_permille,
        )

    def select(
        self,
        published: Mapping[str, float],
        fetched: Mapping[str, float],
    ) -> list[tuple[str, float]]:
        """Select the symbols to publish this cycle.

        :param published: Last published prices by symbol.
        :param fetched: Fresh prices by symbol.
        :returns: (symbol, price) tuples in ``fetched`` insertion order.
        """
        selected = []
        for symbol, price in fetched.items():
            drivers = self._drivers.get(symbol, [])
            if self.is_deviated(symbol, published, fetched) or any(
                self.is_deviated(driver, published, fetched) for driver in drivers
            ):
                selected.append((symbol, price))
        return selected
