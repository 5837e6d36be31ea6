"""PriceFeeder: Main orchestrator of the price update pipeline.

Every update cycle runs as one task inside the MutationQueue:

    SourceAggregator (concurrent fetch)
        -> DeviationFilter (select candidates)
        -> GuardianValidator (corroborate)
        -> BatchSubmitter (chunked, retried write)
        -> replace the published price map

The published map is only replaced after the destination accepted every
chunk, so it always reflects prices that are actually on-chain.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from .BatchSubmitter import BatchSubmitter
from .destinations import PriceUpdate, create_destination
from .DeviationFilter import DeviationFilter
from .fetchers import CoinGeckoReference, CoinMarketCapReference, HttpSource, get_fetcher
from .GuardianValidator import GuardianValidator
from .MutationQueue import MutationQueue
from .Scheduler import Scheduler
from .SourceAggregator import SourceAggregator

if TYPE_CHECKING:
    from .Asset import Asset
    from .Config import FeederConfig
    from .destinations import Destination

logger = logging.getLogger(__name__)

QUOTE_SUFFIX = "/USD"


class PriceFeeder:
    """Wires the pipeline components and runs the scheduled cycles.

    :ivar config: Feeder configuration.
    :ivar destination: Ledger the updates are written to.
    :ivar published: Last prices confirmed on-chain, by symbol.
    """

    def __init__(
        self,
        config: FeederConfig,
        destination: Destination | None = None,
        aggregator: SourceAggregator | None = None,
        guardian: GuardianValidator | None = None,
        submitter: BatchSubmitter | None = None,
    ) -> None:
        """Initialize the feeder.

        Components not passed in are built from ``config``.

        :param config: Feeder configuration.
        :param destination: Destination override.
        :param aggregator: Source aggregator override.
        :param guardian: Guardian validator override.
        :param submitter: Batch submitter override.
        :raises ValueError: If the chain or asset source is unknown.
        """
        self.config = config
        self.destination = destination or create_destination(config)

        if aggregator is None:
            fetcher = get_fetcher(config.asset_source.value, config)
            aggregator = SourceAggregator(fetcher, fetch_timeout=config.fetch_timeout)
        self.aggregator = aggregator

        if guardian is None:
            guardian_cfg = config.guardian
            guardian = GuardianValidator(
                coingecko=CoinGeckoReference(
                    guardian_cfg.coingecko_url,
                    api_key=guardian_cfg.coingecko_api_key,
                    timeout=config.fetch_timeout,
                ),
                cmc=CoinMarketCapReference(
                    guardian_cfg.cmc_url,
                    api_key=guardian_cfg.cmc_api_key,
                    timeout=config.fetch_timeout,
                ),
            )
        self.guardian = guardian
        self.submitter = submitter or BatchSubmitter()

        self.deviation_filter = DeviationFilter(
            deviation_permille=config.deviation_permille,
            pairs=[pair.resolve(config.assets) for pair in config.conditional_pairs],
        )
        self.queue = MutationQueue()
        self.published: dict[str, float] = {}

        logger.info(
            f"PriceFeeder initialized: assets={[str(a) for a in config.assets]}, "
            f"source={config.asset_source.value}, destination={self.destination.name}, "
            f"deviation={config.deviation_permille}‰"
        )

    async def run_cycle(self, assets: list[Asset], mandatory: bool = False) -> None:
        """Run one fetch-filter-validate-submit cycle.

        A mandatory cycle compares against an empty baseline, so every fetched
        asset becomes a candidate. Entries written by it are merged into the
        published map; other entries keep their previous baseline.

        :param assets: Assets to process.
        :param mandatory: Ignore the published baseline for this cycle.
        :raises BatchSubmitError: If the destination write fails.
        """
        fetched = await self.aggregator.fetch(assets)
        if not fetched:
            logger.warning("No prices retrieved, skipping cycle")
            return

        baseline = {} if mandatory else self.published
        candidates = self.deviation_filter.select(baseline, fetched)
        if candidates:
            candidates = await self.guardian.validate(candidates, assets)

        if not candidates:
            logger.info("No update necessary")
            return

        timestamp = int(time.time())
        batch = [
            PriceUpdate(symbol + QUOTE_SUFFIX, price, timestamp) for symbol, price in candidates
        ]
        await self.submitter.submit(batch, self.destination)

        updated = dict(self.published)
        updated.update(candidates)
        self.published = updated
        logger.info(f"Published prices: {self.published}")

    async def run(self) -> None:
        """Run the feeder until cancelled.

        Prepares the destination, performs one keep-alive, then starts the
        mutation queue worker and the scheduler timers.
        """
        await self.destination.prepare()
        await self.destination.keep_alive()

        intervals = self.config.intervals
        scheduler = Scheduler(
            self.queue,
            self.run_cycle,
            self.config.assets,
            intervals.frequency,
            mandatory_assets=self.config.mandatory_assets,
            mandatory_frequency=intervals.mandatory_frequency,
            keep_alive=self.destination.keep_alive,
            keep_alive_interval=self.destination.keep_alive_interval,
        )

        self.queue.start()
        try:
            await scheduler.run()
        finally:
            await self.queue.close()
            # Clean up shared HTTP client
            await HttpSource.close_shared_client()
