"""Oasis Sapphire destination: DIA oracle contract on an EVM ledger.

Writes ``setMultipleValues(string[] keys, uint256[] compressedValues)`` where
each compressed value packs the price in the upper 128 bits and the unix
timestamp in the lower 128 bits.

Transactions are either signed locally (when a private key is configured) or
handed to the ROFL appd ``sign-submit`` endpoint, which signs them with the
app's own key inside the TEE.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import cbor2
import httpx
from eth_account import Account
from sapphirepy import sapphire
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder

from .base import Destination, DestinationError, PriceUpdate, register_destination

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount
    from web3.contract import Contract
    from web3.types import TxParams

    from ..Config import FeederConfig

logger = logging.getLogger(__name__)

DIA_ORACLE_ABI = [
    {
        "inputs": [
            {"internalType": "string[]", "name": "keys", "type": "string[]"},
            {"internalType": "uint256[]", "name": "compressedValues", "type": "uint256[]"},
        ],
        "name": "setMultipleValues",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    }
]


def compress_value(price: int, timestamp: int) -> int:
    """Pack a scaled price and timestamp into one uint256."""
    return (price << 128) | timestamp


class RoflAppdClient:
    """Minimal client for the ROFL appd transaction endpoint.

    Communicates with the appd via Unix domain socket or HTTP.

    :cvar ROFL_SOCKET_PATH: Default Unix socket path for appd.
    :ivar url: Optional HTTP URL or socket path override.
    """

    ROFL_SOCKET_PATH = "/run/rofl-appd.sock"

    def __init__(self, url: str = "", timeout: float = 60.0) -> None:
        """Initialize the appd client.

        :param url: Optional URL or socket path. Empty uses default socket.
        :param timeout: Request timeout in seconds.
        """
        self.url = url
        self.timeout = timeout

    def _build_transport(self) -> httpx.HTTPTransport | None:
        if self.url and not self.url.startswith("http"):
            return httpx.HTTPTransport(uds=self.url)
        if not self.url:
            return httpx.HTTPTransport(uds=self.ROFL_SOCKET_PATH)
        return None

    def _post(self, path: str, payload: Any) -> httpx.Response:
        """POST a JSON payload to the appd.

        :raises DestinationError: On transport errors or non-2xx responses.
        """
        base_url = self.url if self.url.startswith("http") else "http://localhost"
        logger.debug("POST %s payload=%s", path, json.dumps(payload))

        try:
            with httpx.Client(transport=self._build_transport()) as client:
                response = client.post(base_url + path, json=payload, timeout=self.timeout)
        except httpx.RequestError as e:
            raise DestinationError(f"appd POST {path} error: {e}") from e

        if not response.is_success:
            raise DestinationError(
                f"appd POST {path} failed: {response.status_code} {response.reason_phrase}"
            )
        return response

    def submit_tx(self, tx: TxParams) -> Any:
        """Sign and submit a transaction via the appd.

        :param tx: Transaction parameters including data, to, gas, value.
        :returns: Decoded call result.
        :raises DestinationError: If the appd rejects the transaction.
        """
        data_hex = str(tx["data"]).removeprefix("0x").lower()
        to_hex = str(tx.get("to") or "").removeprefix("0x").lower()

        payload = {
            "tx": {
                "kind": "eth",
                "data": {
                    "gas_limit": int(tx["gas"]),
                    "to": to_hex,
                    "value": str(tx.get("value", 0)),
                    "data": data_hex,
                },
            },
            "encrypted": False,
        }

        result = self._post("/rofl/v1/tx/sign-submit", payload).json()
        if not result.get("data"):
            raise DestinationError(f"appd returned no call result: {result}")

        decoded = cbor2.loads(bytes.fromhex(result["data"]))
        if isinstance(decoded, dict) and "fail" in decoded:
            raise DestinationError(f"Transaction reverted: {decoded['fail']}")
        return decoded


def connect(rpc_url: str, account: LocalAccount | None = None) -> Web3:
    """Create a Sapphire-wrapped Web3 instance.

    :param rpc_url: JSON-RPC endpoint.
    :param account: Optional local signer installed as default account.
    :returns: Configured Web3 instance.
    """
    w3 = Web3(Web3.HTTPProvider(rpc_url))
    if account is not None:
        w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
        w3.eth.default_account = account.address
    return sapphire.wrap(w3)


@register_destination
class SapphireDestination(Destination):
    """DIA oracle on Oasis Sapphire.

    :ivar contract: Oracle contract bound to the primary RPC.
    :ivar backup_contract: Oracle contract bound to the backup RPC.
    :ivar appd: ROFL appd client, None when signing locally.
    """

    name = "sapphire"

    def __init__(
        self,
        contract: Contract,
        backup_contract: Contract | None = None,
        appd: RoflAppdClient | None = None,
        max_batch_size: int = 10,
        max_retry_attempts: int = 3,
    ) -> None:
        super().__init__(max_batch_size, max_retry_attempts)
        self.contract = contract
        self.backup_contract = backup_contract
        self.appd = appd

    @classmethod
    def from_config(cls, config: FeederConfig) -> SapphireDestination:
        cfg = config.sapphire
        if not cfg.contract:
            raise ValueError("SAPPHIRE_CONTRACT must be set for the sapphire chain")

        account = Account.from_key(cfg.secret_key) if cfg.secret_key else None
        address = Web3.to_checksum_address(cfg.contract)

        def bind(rpc_url: str) -> Contract:
            return connect(rpc_url, account).eth.contract(address=address, abi=DIA_ORACLE_ABI)

        return cls(
            bind(cfg.rpc_url),
            backup_contract=bind(cfg.backup_rpc_url) if cfg.backup_rpc_url else None,
            appd=None if account is not None else RoflAppdClient(cfg.appd_url),
            max_batch_size=cfg.max_batch_size,
            max_retry_attempts=cfg.max_retry_attempts,
        )

    @property
    def has_backup(self) -> bool:
        return self.backup_contract is not None

    def _submit(self, updates: list[PriceUpdate], use_backup: bool) -> None:
        contract = self.backup_contract if use_backup and self.backup_contract else self.contract
        w3 = contract.w3

        keys = [u.key for u in updates]
        values = [compress_value(u.scaled_price, u.timestamp) for u in updates]
        call = contract.functions.setMultipleValues(keys, values)

        try:
            if self.appd is not None:
                tx_params = call.build_transaction({"gasPrice": w3.eth.gas_price})
                result = self.appd.submit_tx(tx_params)
                logger.info(f"[sapphire] Submitted {len(keys)} prices via appd. Result: {result}")
                return

            tx_hash = call.transact({"gasPrice": w3.eth.gas_price})
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash)
        except DestinationError:
            raise
        except Exception as e:
            raise DestinationError(f"setMultipleValues failed: {e}") from e

        if receipt["status"] != 1:
            raise DestinationError(f"Transaction {tx_hash.hex()} reverted")
        logger.info(f"[sapphire] Transaction {tx_hash.hex()} confirmed ({len(keys)} prices)")

    async def submit_batch(
        self, updates: list[PriceUpdate], use_backup: bool = False
    ) -> None:
        await asyncio.to_thread(self._submit, updates, use_backup)
