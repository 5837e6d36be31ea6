"""DIA Lasernet (Lumina) on-chain fetcher.

Reads ``getValue(string)`` from the DIAOracleV2 contract deployed on DIA
Lasernet. Values carry 8 decimals; the second return value is the unix
timestamp of the last update.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from web3 import Web3

from .base import BaseFetcher, FetcherError, register_fetcher

if TYPE_CHECKING:
    from web3.contract import Contract

    from ..Asset import Asset
    from ..Config import FeederConfig

logger = logging.getLogger(__name__)

# Number of decimals of values stored in DIAOracleV2.
LUMINA_DECIMALS = 8

DIA_ORACLE_V2_ABI = [
    {
        "inputs": [{"internalType": "string", "name": "key", "type": "string"}],
        "name": "getValue",
        "outputs": [
            {"internalType": "uint128", "name": "", "type": "uint128"},
            {"internalType": "uint128", "name": "", "type": "uint128"},
        ],
        "stateMutability": "view",
        "type": "function",
    }
]


@register_fetcher
class LuminaFetcher(BaseFetcher):
    """Fetcher reading prices from the Lumina oracle contract.

    :ivar data_age_timeout: Max accepted age of an on-chain value (0 disables).
    """

    name = "lumina"

    def __init__(
        self,
        contract: Contract,
        backup_contract: Contract | None = None,
        data_age_timeout: int = 0,
        timeout: float | None = None,
    ):
        """Initialize the fetcher.

        :param contract: Oracle contract bound to the primary RPC.
        :param backup_contract: Same contract bound to the backup RPC.
        :param data_age_timeout: Max accepted value age in seconds.
        :param timeout: Request timeout in seconds.
        """
        super().__init__(timeout=timeout)
        self.contract = contract
        self.backup_contract = backup_contract
        self.data_age_timeout = data_age_timeout

    @classmethod
    def from_config(cls, config: FeederConfig) -> LuminaFetcher:
        lumina = config.lumina
        timeout = config.fetch_timeout

        def bind(rpc_url: str) -> Contract:
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
            return w3.eth.contract(
                address=Web3.to_checksum_address(lumina.oracle_address),
                abi=DIA_ORACLE_V2_ABI,
            )

        backup = bind(lumina.backup_rpc_url) if lumina.backup_rpc_url else None
        return cls(
            bind(lumina.rpc_url),
            backup_contract=backup,
            data_age_timeout=lumina.data_age_timeout,
            timeout=timeout,
        )

    def _get_value(self, key: str) -> tuple[int, int]:
        """Read (value, timestamp) for a key, falling back to the backup RPC.

        :param key: Lumina oracle key (e.g., "BTC/USD").
        :returns: Raw value and timestamp.
        """
        try:
            value, timestamp = self.contract.functions.getValue(key).call()
        except Exception:
            if self.backup_contract is None:
                raise
            logger.info(f"Using backup DIA Lasernet RPC to retrieve price data for {key}")
            value, timestamp = self.backup_contract.functions.getValue(key).call()
        return value, timestamp

    async def fetch(self, asset: Asset) -> float:
        """Fetch the on-chain price of an asset.

        :param asset: Asset with lumina_key set.
        :returns: Price scaled down from 8 decimals.
        :raises FetcherError: If the read fails, the value is unset or stale.
        """
        key = asset.lumina_key
        try:
            value, timestamp = await asyncio.to_thread(self._get_value, key)
        except Exception as e:
            raise FetcherError(f"Failed to read {key} from DIA Lasernet: {e}") from e

        if not value or not timestamp:
            raise FetcherError(f"Value not found in DIAOracleMetaV2 storage: {key}")

        now = int(time.time())
        if self.data_age_timeout and now > timestamp + self.data_age_timeout:
            raise FetcherError(
                f"Value retrieved from DIA Lasernet for {key} is too old: {timestamp}"
            )

        return value / 10**LUMINA_DECIMALS
