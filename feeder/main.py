#!/usr/bin/env python3
"""DIA Price Feeder.

Fetches asset prices from a DIA upstream, filters them by permille deviation,
corroborates them against reference prices and writes the resulting updates
to a DIA oracle contract on the configured destination ledger.

Start via Docker Compose with env vars. See DESIGN.md for configuration.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.Config import ConfigError, FeederConfig
from .src.destinations import get_available_destinations
from .src.fetchers import get_available_fetchers
from .src.PriceFeeder import PriceFeeder

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Every option defaults to ``None`` so that only explicitly passed values
    override the environment.
    """
    available_chains = get_available_destinations()

    parser = argparse.ArgumentParser(
        description="DIA Price Feeder: Deviation-gated on-chain price updates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available asset sources:
  {', '.join(get_available_fetchers())}

Examples:
  # ETH and BTC from the DIA REST API to Soroban
  ASSETS="Ethereum§0x0000000000000000000000000000000000000000§ETH;Bitcoin§0x0000000000000000000000000000000000000000§BTC" \\
  SOROBAN_PRIVATE_KEY=S... SOROBAN_DEPLOYED_CONTRACT=C... \\
      python -m feeder.main --chain soroban

  # Force a refresh of unconditional assets every hour
  python -m feeder.main --frequency 120 --mandatory-frequency 3600

Environment variables (CLI args take precedence):
  ASSETS, GQL_ASSETS, LUMINA_ASSETS, CONDITIONAL_ASSETS, DEVIATION_PERMILLE,
  CHAIN_NAME, FREQUENCY_SECONDS, MANDATORY_FREQUENCY_SECONDS, FETCH_TIMEOUT,
  COINGECKO_API_KEY, CMC_API_KEY, SAPPHIRE_*, SOROBAN_*, etc.
""",
    )

    parser.add_argument(
        "--chain",
        type=str,
        choices=available_chains,
        help=f"Destination ledger. Available: {', '.join(available_chains)}",
    )

    parser.add_argument(
        "--frequency",
        type=float,
        help="Seconds between regular update cycles (default: 120)",
    )

    parser.add_argument(
        "--mandatory-frequency",
        dest="mandatory_frequency",
        type=float,
        help="Seconds between forced refreshes of unconditional assets (0 disables)",
    )

    parser.add_argument(
        "--deviation-permille",
        dest="deviation_permille",
        type=int,
        help="Minimum price change in parts per thousand (default: 10)",
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual fetch requests in seconds (default: 10.0)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def apply_overrides(args: argparse.Namespace, environ: dict[str, str]) -> dict[str, str]:
    """Fold CLI arguments into a copy of the environment.

    :param args: Parsed CLI arguments.
    :param environ: Environment variables.
    :returns: Environment with CLI values taking precedence.
    """
    env = dict(environ)
    overrides = {
        "CHAIN_NAME": args.chain,
        "FREQUENCY_SECONDS": args.frequency,
        "MANDATORY_FREQUENCY_SECONDS": args.mandatory_frequency,
        "DEVIATION_PERMILLE": args.deviation_permille,
        "FETCH_TIMEOUT": args.fetch_timeout,
    }
    for name, value in overrides.items():
        if value is not None:
            env[name] = str(value)
    return env


def main() -> None:
    """Main entry point for the DIA Price Feeder CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = FeederConfig.from_env(apply_overrides(args, dict(os.environ)))
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    mandatory = config.intervals.mandatory_frequency

    # Log configuration
    logger.info("=" * 60)
    logger.info("DIA Price Feeder")
    logger.info("=" * 60)
    logger.info(f"Chain:             {config.chain_name}")
    logger.info(f"Asset Source:      {config.asset_source.value}")
    logger.info(f"Assets:            {', '.join(str(a) for a in config.assets)}")
    if config.conditional_pairs:
        pairs = [f"{p.driver}-{p.dependent}" for p in config.conditional_pairs]
        logger.info(f"Conditional Pairs: {', '.join(pairs)}")
    logger.info(f"Deviation:         {config.deviation_permille}‰")
    logger.info(f"Frequency:         {config.intervals.frequency}s")
    logger.info(f"Mandatory:         {mandatory}s" if mandatory else "Mandatory:         disabled")
    logger.info(f"Fetch Timeout:     {config.fetch_timeout}s")
    logger.info("=" * 60)

    try:
        feeder = PriceFeeder(config)
        asyncio.run(feeder.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
