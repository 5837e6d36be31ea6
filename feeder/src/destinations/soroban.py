"""Stellar Soroban destination: DIA oracle contract.

Writes ``set_multiple_values(keys: Vec<String>, values: Vec<(u128, u128)>)``
where each value is a (timestamp, price) tuple.

Soroban contract instances expire unless their TTL is extended, so this
destination also restores an archived instance and its wasm code at startup
and periodically bumps both TTLs through :meth:`SorobanDestination.keep_alive`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from stellar_sdk import Address, Keypair, SorobanDataBuilder, SorobanServer, TransactionBuilder, scval
from stellar_sdk import xdr as stellar_xdr
from stellar_sdk.soroban_rpc import GetTransactionStatus, SendTransactionStatus

from .base import Destination, DestinationError, PriceUpdate, register_destination

if TYPE_CHECKING:
    from stellar_sdk import TransactionEnvelope

    from ..Config import FeederConfig

logger = logging.getLogger(__name__)

DAY_IN_LEDGERS = 17280
BASE_FEE = 100
TX_TIMEOUT = 30

# Extend the instance to 30 days once fewer than 29 days are left.
EXTEND_TO = DAY_IN_LEDGERS * 30
EXTEND_THRESHOLD = EXTEND_TO - DAY_IN_LEDGERS


@register_destination
class SorobanDestination(Destination):
    """DIA oracle on Stellar Soroban.

    :ivar server: RPC server for the primary node.
    :ivar backup_server: RPC server for the backup node.
    :ivar keypair: Signing keypair of the feeder account.
    :ivar contract_id: Oracle contract id (C...).
    """

    name = "soroban"

    def __init__(
        self,
        server: SorobanServer,
        keypair: Keypair,
        contract_id: str,
        network_passphrase: str,
        backup_server: SorobanServer | None = None,
        max_batch_size: int = 50,
        max_retry_attempts: int = 3,
        lifetime_interval: float = 1800.0,
        poll_interval: float = 1.0,
        max_polls: int = 60,
    ) -> None:
        super().__init__(max_batch_size, max_retry_attempts)
        self.server = server
        self.backup_server = backup_server
        self.keypair = keypair
        self.contract_id = contract_id
        self.network_passphrase = network_passphrase
        self.lifetime_interval = lifetime_interval
        self.poll_interval = poll_interval
        self.max_polls = max_polls

    @classmethod
    def from_config(cls, config: FeederConfig) -> SorobanDestination:
        cfg = config.soroban
        if not cfg.secret_key or not cfg.contract_id:
            raise ValueError(
                "SOROBAN_PRIVATE_KEY and SOROBAN_DEPLOYED_CONTRACT must be set "
                "for the soroban chain"
            )
        return cls(
            SorobanServer(cfg.rpc_url),
            Keypair.from_secret(cfg.secret_key),
            cfg.contract_id,
            cfg.network_passphrase,
            backup_server=SorobanServer(cfg.backup_rpc_url) if cfg.backup_rpc_url else None,
            max_batch_size=cfg.max_batch_size,
            max_retry_attempts=cfg.max_retry_attempts,
            lifetime_interval=cfg.lifetime_interval,
        )

    @property
    def has_backup(self) -> bool:
        return self.backup_server is not None

    @property
    def keep_alive_interval(self) -> float | None:
        return self.lifetime_interval

    def _instance_key(self) -> stellar_xdr.LedgerKey:
        """Ledger key of the contract instance entry."""
        return stellar_xdr.LedgerKey(
            type=stellar_xdr.LedgerEntryType.CONTRACT_DATA,
            contract_data=stellar_xdr.LedgerKeyContractData(
                contract=Address(self.contract_id).to_xdr_sc_address(),
                key=stellar_xdr.SCVal(stellar_xdr.SCValType.SCV_LEDGER_KEY_CONTRACT_INSTANCE),
                durability=stellar_xdr.ContractDataDurability.PERSISTENT,
            ),
        )

    def _instance_state(
        self, server: SorobanServer
    ) -> tuple[list[stellar_xdr.LedgerKey], int, int]:
        """Look up the contract instance entry.

        :returns: (footprint, live_until_ledger, latest_ledger). The footprint
            holds the instance key followed by the key of its wasm code entry.
        :raises DestinationError: If the instance entry does not exist.
        """
        instance_key = self._instance_key()
        response = server.get_ledger_entries([instance_key])
        if not response.entries:
            raise DestinationError(f"Instance ledger entry of {self.contract_id} is not found")

        entry = response.entries[0]
        if not entry.live_until_ledger:
            raise DestinationError(f"Instance ledger entry of {self.contract_id} has no TTL")

        data = stellar_xdr.LedgerEntryData.from_xdr(entry.xdr)
        wasm_hash = data.contract_data.val.instance.executable.wasm_hash
        if wasm_hash is None:
            raise DestinationError(f"Contract {self.contract_id} is not a wasm contract")
        code_key = stellar_xdr.LedgerKey(
            type=stellar_xdr.LedgerEntryType.CONTRACT_CODE,
            contract_code=stellar_xdr.LedgerKeyContractCode(hash=wasm_hash),
        )
        return [instance_key, code_key], entry.live_until_ledger, response.latest_ledger

    def _send(self, server: SorobanServer, tx: TransactionEnvelope) -> str:
        """Prepare, sign and submit a transaction, then wait for its result.

        :returns: Transaction hash.
        :raises DestinationError: If the transaction is rejected or fails.
        """
        tx = server.prepare_transaction(tx)
        tx.sign(self.keypair)

        send_response = server.send_transaction(tx)
        if send_response.status != SendTransactionStatus.PENDING:
            raise DestinationError(f"Transaction failed: {send_response.error_result_xdr}")

        for _ in range(self.max_polls):
            get_response = server.get_transaction(send_response.hash)
            if get_response.status == GetTransactionStatus.SUCCESS:
                return send_response.hash
            if get_response.status == GetTransactionStatus.FAILED:
                raise DestinationError(f"Transaction failed: {get_response.result_xdr}")
            time.sleep(self.poll_interval)

        raise DestinationError(f"Transaction {send_response.hash} not confirmed in time")

    def _builder(self, server: SorobanServer) -> TransactionBuilder:
        account = server.load_account(self.keypair.public_key)
        return TransactionBuilder(account, self.network_passphrase, base_fee=BASE_FEE)

    def _submit(self, updates: list[PriceUpdate], use_backup: bool) -> None:
        server = self.backup_server if use_backup and self.backup_server else self.server

        keys = scval.to_vec([scval.to_string(u.key) for u in updates])
        values = scval.to_vec(
            [
                scval.to_vec([scval.to_uint128(u.timestamp), scval.to_uint128(u.scaled_price)])
                for u in updates
            ]
        )

        try:
            tx = (
                self._builder(server)
                .append_invoke_contract_function_op(
                    contract_id=self.contract_id,
                    function_name="set_multiple_values",
                    parameters=[keys, values],
                )
                .set_timeout(TX_TIMEOUT)
                .build()
            )
            tx_hash = self._send(server, tx)
        except DestinationError:
            raise
        except Exception as e:
            raise DestinationError(f"set_multiple_values failed: {e}") from e

        logger.info(f"[soroban] Transaction {tx_hash} confirmed ({len(updates)} prices)")

    async def submit_batch(
        self, updates: list[PriceUpdate], use_backup: bool = False
    ) -> None:
        await asyncio.to_thread(self._submit, updates, use_backup)

    def _restore(self) -> None:
        footprint, live_until, latest = self._instance_state(self.server)
        if latest < live_until:
            return

        data = SorobanDataBuilder().set_read_write(footprint).build()
        tx = (
            self._builder(self.server)
            .set_soroban_data(data)
            .append_restore_footprint_op()
            .set_timeout(TX_TIMEOUT)
            .build()
        )
        self._send(self.server, tx)
        logger.info(f"Contract instance at {self.contract_id} has been restored")

    def _extend_ttl(self) -> None:
        footprint, live_until, latest = self._instance_state(self.server)
        ledgers_left = live_until - latest
        if ledgers_left <= 0:
            raise DestinationError(f"Contract instance at {self.contract_id} is archived")
        if ledgers_left >= EXTEND_THRESHOLD:
            logger.debug(f"[soroban] Instance TTL ok ({ledgers_left} ledgers left)")
            return

        data = SorobanDataBuilder().set_read_only(footprint).build()
        tx = (
            self._builder(self.server)
            .set_soroban_data(data)
            .append_extend_footprint_ttl_op(extend_to=EXTEND_TO)
            .set_timeout(TX_TIMEOUT)
            .build()
        )
        self._send(self.server, tx)
        logger.info(
            f"Instance at {self.contract_id} has been bumped by {EXTEND_TO} ledgers"
        )

    async def prepare(self) -> None:
        """Restore the contract instance and its wasm code if archived."""
        await asyncio.to_thread(self._restore)

    async def keep_alive(self) -> None:
        """Extend the instance and wasm code TTLs when they are about to expire."""
        await asyncio.to_thread(self._extend_ttl)
