"""Soroban RPC client for the lending contract."""

import logging
import time
from typing import Any, Optional

from stellar_sdk import Keypair, Network, SorobanServer, TransactionBuilder, xdr as stellar_xdr
from stellar_sdk.soroban_rpc import EventFilter, EventFilterType

logger = logging.getLogger(__name__)

# Testnet configuration
TESTNET_RPC_URL = "https://soroban-testnet.stellar.org"
TESTNET_PASSPHRASE = Network.TESTNET_NETWORK_PASSPHRASE


class SorobanClient:
    """
    Client for the lending contract on Soroban.

    Fetches contract events and submits admin-signed contract invocations.
    """

    def __init__(
        self,
        rpc_url: str = TESTNET_RPC_URL,
        network_passphrase: str = TESTNET_PASSPHRASE,
        contract_id: Optional[str] = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._network_passphrase = network_passphrase
        self._contract_id = contract_id
        self._server = SorobanServer(rpc_url)

    @property
    def contract_id(self) -> Optional[str]:
        return self._contract_id

    def get_latest_ledger(self) -> int:
        """Get the latest ledger sequence number."""
        response = self._server.get_latest_ledger()
        return response.sequence

    def get_events(
        self,
        start_ledger: int,
        contract_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """
        Fetch contract events starting at `start_ledger`.

        Returns:
            List of event dictionaries
        """
        cid = contract_id or self._contract_id
        if not cid:
            raise ValueError("Contract ID must be specified")

        filters = [
            EventFilter(
                event_type=EventFilterType.CONTRACT,
                contract_ids=[cid],
            )
        ]

        response = self._server.get_events(
            start_ledger=start_ledger,
            filters=filters,
            limit=limit,
        )

        return [
            {
                "id": event.id,
                "contract_id": event.contract_id,
                "ledger": event.ledger,
                "topic": event.topic,
                "value": event.value,
                "tx_hash": event.transaction_hash,
            }
            for event in response.events
        ]

    def invoke(
        self,
        signer: Keypair,
        function_name: str,
        parameters: list[stellar_xdr.SCVal],
        contract_id: Optional[str] = None,
        confirm_seconds: int = 60,
    ) -> str:
        """
        Invoke a contract function signed by `signer` and wait for confirmation.

        Returns:
            Transaction hash
        """
        cid = contract_id or self._contract_id
        if not cid:
            raise ValueError("Contract ID must be specified")

        source = self._server.load_account(signer.public_key)
        builder = TransactionBuilder(
            source_account=source,
            network_passphrase=self._network_passphrase,
            base_fee=100,
        )
        builder.append_invoke_contract_function_op(
            contract_id=cid,
            function_name=function_name,
            parameters=parameters,
        )
        builder.set_timeout(30)
        tx = builder.build()

        # Simulate to get resource estimates
        sim_response = self._server.simulate_transaction(tx)
        if sim_response.error:
            raise RuntimeError(f"Simulation failed: {sim_response.error}")
        tx = self._server.prepare_transaction(tx, sim_response)
        tx.sign(signer)

        response = self._server.send_transaction(tx)
        if response.status == "ERROR":
            raise RuntimeError(f"Transaction failed: {response.error_result_xdr}")

        tx_hash = response.hash
        for _ in range(confirm_seconds):
            result = self._server.get_transaction(tx_hash)
            if result.status == "SUCCESS":
                logger.info(f"{function_name} confirmed: {tx_hash}")
                return tx_hash
            elif result.status == "FAILED":
                raise RuntimeError(f"{function_name} failed: {result}")
            time.sleep(1)

        raise TimeoutError(f"{function_name} {tx_hash} did not confirm after {confirm_seconds}s")
