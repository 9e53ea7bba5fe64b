import asyncio
import logging
from typing import Optional, Protocol

from lendledger.ledger import LendingLedger
from lendledger.models.message import MessageStatus, OutgoingMessage, OutgoingType
from lendledger.queues.message_queue import OutgoingQueue

logger = logging.getLogger(__name__)


class TransferGateway(Protocol):
    """Protocol for the asset transfer gateway and the collateral registry."""

    async def request_transfer(self, account: str, asset: str, amount: int) -> str:
        """Send `amount` of `asset` to the account's wallet. Returns tx hash."""
        ...

    async def release_collateral(self, owner: str, collateral_id: str) -> str:
        """Return a collateral item to its owner. Returns tx hash."""
        ...


class OutgoingProcessor:
    """
    Dispatches committed notifications to the gateway.

    The ledger has already recorded the change when a notification gets
    here. If the gateway rejects it, the processor applies the compensating
    entry on the ledger: a failed transfer credits the debited amount back,
    a failed collateral release locks the item again.
    """

    def __init__(
        self,
        outgoing_queue: OutgoingQueue,
        gateway: TransferGateway,
        ledger: Optional[LendingLedger] = None,
    ) -> None:
        self._outgoing = outgoing_queue
        self._gateway = gateway
        self._ledger = ledger
        self._running = False

    async def start(self) -> None:
        """Start the processor loop."""
        self._running = True
        logger.info("OutgoingProcessor started")

        while self._running:
            try:
                message = await self._outgoing.get(timeout=1.0)
                if message is not None:
                    await self._process_message(message)
                    self._outgoing.task_done()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error processing outgoing message: {e}")

        logger.info("OutgoingProcessor stopped")

    async def stop(self) -> None:
        """Stop the processor loop."""
        self._running = False

    async def _process_message(self, message: OutgoingMessage) -> None:
        """Process a single outgoing message."""
        try:
            if message.type == OutgoingType.TRANSFER:
                tx_hash = await self._gateway.request_transfer(
                    account=message.payload["account"],
                    asset=message.payload["asset"],
                    amount=message.payload["amount"],
                )
            elif message.type == OutgoingType.COLLATERAL_RELEASE:
                tx_hash = await self._gateway.release_collateral(
                    owner=message.payload["owner"],
                    collateral_id=message.payload["collateral_id"],
                )
            else:
                logger.error(f"Unknown outgoing type: {message.type}")
                message.status = MessageStatus.REJECTED
                return

            message.status = MessageStatus.ACCEPTED
            message.tx_hash = tx_hash
            logger.info(f"Transaction submitted: {tx_hash}")

        except Exception as e:
            message.status = MessageStatus.REJECTED
            logger.error(f"Transaction failed: {e}")
            self._compensate(message)

    def _compensate(self, message: OutgoingMessage) -> None:
        """Undo the ledger change behind a notification the gateway rejected."""
        if self._ledger is None:
            logger.error(f"No ledger to compensate failed {message.type.value} {message.id}")
            return
        payload = message.payload
        try:
            if message.type == OutgoingType.TRANSFER:
                self._ledger.reverse_transfer(payload["account"], payload["asset"], payload["amount"])
            elif message.type == OutgoingType.COLLATERAL_RELEASE:
                self._ledger.relock_collateral(payload["collateral_id"], payload["owner"])
        except Exception as e:
            logger.exception(f"Compensation failed for {message.id}: {e}")


class MockTransferGateway:
    """
    Mock gateway for testing.

    Returns fake tx hashes without touching the blockchain. Set `fail` to
    make every request raise.
    """

    def __init__(self, fail: bool = False) -> None:
        self._tx_count = 0
        self.fail = fail
        self.transfers: list[tuple[str, str, int]] = []
        self.releases: list[tuple[str, str]] = []

    async def request_transfer(self, account: str, asset: str, amount: int) -> str:
        """Mock transfer submission."""
        if self.fail:
            raise RuntimeError("Mock transfer failure")
        self._tx_count += 1
        self.transfers.append((account, asset, amount))
        tx_hash = f"mock_transfer_tx_{self._tx_count}"
        logger.info(f"Mock transfer: {account} {amount} {asset} -> {tx_hash}")
        return tx_hash

    async def release_collateral(self, owner: str, collateral_id: str) -> str:
        """Mock collateral release."""
        if self.fail:
            raise RuntimeError("Mock release failure")
        self._tx_count += 1
        self.releases.append((owner, collateral_id))
        tx_hash = f"mock_release_tx_{self._tx_count}"
        logger.info(f"Mock release: {collateral_id} -> {owner} -> {tx_hash}")
        return tx_hash
