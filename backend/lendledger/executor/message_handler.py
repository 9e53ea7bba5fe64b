import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from lendledger.errors import LedgerError, Unauthorized
from lendledger.ledger import LendingLedger
from lendledger.models.message import (
    ADMIN_MESSAGE_TYPES,
    IncomingMessage,
    MessageStatus,
    MessageType,
)
from lendledger.queues.message_queue import IncomingQueue, OutgoingQueue
from lendledger.storage.message_store import MessageStore

logger = logging.getLogger(__name__)


def parse_int(payload: dict[str, Any], key: str) -> int:
    """Read a non-negative integer field from a message payload."""
    if key not in payload:
        raise ValueError(f"Missing {key}")
    value = payload[key]
    if isinstance(value, bool):
        raise ValueError(f"Invalid {key}: {value}")
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid {key}: {value}")
    if number < 0:
        raise ValueError(f"Invalid {key}: {value}")
    return number


class MessageHandler:
    """
    Main processing loop for incoming messages.

    Messages are processed strictly one at a time, which is what makes every
    ledger operation atomic with respect to every other. Notifications the
    ledger produces are moved to the outgoing queue only after the operation
    that produced them has been accepted.
    """

    def __init__(
        self,
        message_queue: IncomingQueue,
        outgoing_queue: OutgoingQueue,
        ledger: LendingLedger,
        message_store: MessageStore,
        admin_address: Optional[str] = None,
    ) -> None:
        self._incoming = message_queue
        self._outgoing = outgoing_queue
        self._ledger = ledger
        self._messages = message_store
        self._admin_address = admin_address
        self._running = False

        self._handlers: dict[MessageType, Callable[[IncomingMessage], Awaitable[Any]]] = {
            MessageType.OPEN_RESERVE: self._process_open_reserve,
            MessageType.CREDIT: self._process_credit,
            MessageType.UPDATE_VALUATION: self._process_update_valuation,
            MessageType.REFRESH_GROWTH: self._process_refresh_growth,
            MessageType.WITHDRAW: self._process_withdraw,
            MessageType.OPEN_DEPOSIT: self._process_open_deposit,
            MessageType.TAKE_GROWTH: self._process_take_growth,
            MessageType.CLOSE_DEPOSIT: self._process_close_deposit,
            MessageType.OPEN_BORROW: self._process_open_borrow,
            MessageType.REPAY_BORROW: self._process_repay_borrow,
            MessageType.LIQUIDATE: self._process_liquidate,
            MessageType.COLLATERAL_RECEIVED: self._process_collateral_received,
            MessageType.ASSET_RECEIVED: self._process_asset_received,
        }

    async def start(self) -> None:
        """Start the handler loop."""
        self._running = True
        logger.info("MessageHandler started")

        while self._running:
            try:
                message = await self._incoming.get(timeout=1.0)
                if message is not None:
                    await self._process_message(message)
                    self._incoming.task_done()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error processing message: {e}")

        logger.info("MessageHandler stopped")

    async def stop(self) -> None:
        """Stop the handler loop."""
        self._running = False

    def _check_admin(self, message: IncomingMessage) -> None:
        if self._admin_address is None or message.user_address != self._admin_address:
            raise Unauthorized(message.user_address, message.type.value)

    async def _process_message(self, message: IncomingMessage) -> None:
        """Process a single incoming message."""
        message.status = MessageStatus.PROCESSING
        self._messages.update(message)

        handler = self._handlers.get(message.type)
        try:
            if handler is None:
                message.reject(f"Unknown message type: {message.type}")
            else:
                if message.type in ADMIN_MESSAGE_TYPES:
                    self._check_admin(message)
                result = await handler(message)
                message.accept(result)
        except (LedgerError, ValueError) as e:
            message.reject(str(e))
            logger.warning(f"Message {message.id} ({message.type.value}) rejected: {e}")
        except Exception as e:
            logger.exception(f"Error processing message {message.id}: {e}")
            message.reject(str(e))

        # Rejected operations leave nothing behind; accepted ones may have notifications
        for outgoing in self._ledger.drain_outbox():
            await self._outgoing.put(outgoing)

        self._messages.update(message)

    async def _process_open_reserve(self, message: IncomingMessage) -> str:
        asset = message.payload["asset"]
        self._ledger.open_reserve(asset)
        return asset

    async def _process_credit(self, message: IncomingMessage) -> int:
        amount = parse_int(message.payload, "amount")
        self._ledger.credit_balance(message.payload["account"], message.payload["asset"], amount)
        return amount

    async def _process_update_valuation(self, message: IncomingMessage) -> Optional[str]:
        amount = parse_int(message.payload, "amount")
        health_factor = self._ledger.update_valuation(
            message.payload["collateral_id"], message.payload["asset"], amount
        )
        return None if health_factor is None else str(health_factor)

    async def _process_refresh_growth(self, message: IncomingMessage) -> int:
        return self._ledger.refresh_growth()

    async def _process_withdraw(self, message: IncomingMessage) -> int:
        amount = parse_int(message.payload, "amount")
        self._ledger.withdraw(message.user_address, message.payload["asset"], amount)
        return amount

    async def _process_open_deposit(self, message: IncomingMessage) -> int:
        amount = parse_int(message.payload, "amount")
        return self._ledger.open_deposit(message.user_address, message.payload["asset"], amount)

    async def _process_take_growth(self, message: IncomingMessage) -> int:
        deposit_id = parse_int(message.payload, "deposit_id")
        amount = parse_int(message.payload, "amount")
        return self._ledger.take_growth(message.user_address, deposit_id, amount)

    async def _process_close_deposit(self, message: IncomingMessage) -> int:
        deposit_id = parse_int(message.payload, "deposit_id")
        return self._ledger.close_deposit(message.user_address, deposit_id)

    async def _process_open_borrow(self, message: IncomingMessage) -> int:
        return self._ledger.open_borrow(message.user_address, message.payload["collateral_id"])

    async def _process_repay_borrow(self, message: IncomingMessage) -> int:
        borrow_id = parse_int(message.payload, "borrow_id")
        return self._ledger.repay_borrow(message.user_address, borrow_id)

    async def _process_liquidate(self, message: IncomingMessage) -> str:
        borrow_id = parse_int(message.payload, "borrow_id")
        amount_in = parse_int(message.payload, "amount_in")
        amount_out = parse_int(message.payload, "amount_out")
        result = self._ledger.liquidate(message.user_address, borrow_id, amount_in, amount_out)
        return str(result.health_factor)

    async def _process_collateral_received(self, message: IncomingMessage) -> bool:
        return self._ledger.on_collateral_received(
            message.payload["collateral_id"], message.user_address
        )

    async def _process_asset_received(self, message: IncomingMessage) -> int:
        amount = parse_int(message.payload, "amount")
        return self._ledger.on_asset_received(
            message.user_address, message.payload["asset"], amount
        )
