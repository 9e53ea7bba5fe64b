"""Registry event listener: collateral and asset arrivals on the lending contract."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from stellar_sdk import scval, xdr as stellar_xdr

from lendledger.blockchain.client import SorobanClient
from lendledger.models.message import IncomingMessage

logger = logging.getLogger(__name__)

# Event topics emitted by the lending contract
COLLATERAL_TOPIC = "collateral"  # ("collateral", owner) -> token_id
RECEIVE_TOPIC = "receive"  # ("receive", sender) -> (token, amount)


def _decode_topics(event: dict[str, Any]) -> Optional[tuple[str, str]]:
    """Return (topic symbol, address) or None if the event has another shape."""
    topics = event.get("topic", [])
    if len(topics) < 2:
        return None
    topic0 = stellar_xdr.SCVal.from_xdr(topics[0])
    if topic0.type != stellar_xdr.SCValType.SCV_SYMBOL:
        return None
    topic1 = stellar_xdr.SCVal.from_xdr(topics[1])
    if topic1.type != stellar_xdr.SCValType.SCV_ADDRESS:
        return None
    return scval.from_symbol(topic0), scval.from_address(topic1).address


def decode_registry_event(event: dict[str, Any]) -> Optional[IncomingMessage]:
    """
    Decode a raw Soroban event into an incoming message.

    Returns None for events that are neither a collateral arrival nor an
    asset arrival, or that cannot be decoded.
    """
    try:
        decoded = _decode_topics(event)
        if decoded is None:
            return None
        topic, address = decoded
        value = stellar_xdr.SCVal.from_xdr(event["value"])

        if topic == COLLATERAL_TOPIC:
            if value.type == stellar_xdr.SCValType.SCV_STRING:
                collateral_id = scval.from_string(value).decode()
            elif value.type == stellar_xdr.SCValType.SCV_SYMBOL:
                collateral_id = scval.from_symbol(value)
            else:
                return None
            return IncomingMessage.create_collateral_received(
                owner=address,
                collateral_id=collateral_id,
                ledger=event["ledger"],
                tx_hash=event["tx_hash"],
            )

        if topic == RECEIVE_TOPIC:
            if value.type != stellar_xdr.SCValType.SCV_VEC:
                return None
            items = scval.from_vec(value)
            if len(items) < 2:
                return None
            asset = scval.from_address(items[0]).address
            amount = scval.from_int128(items[1])
            return IncomingMessage.create_asset_received(
                sender=address,
                asset=asset,
                amount=str(amount),
                ledger=event["ledger"],
                tx_hash=event["tx_hash"],
            )

        return None

    except Exception as e:
        logger.warning(f"Failed to decode event: {e}", exc_info=True)
        return None


class RegistryEventListener:
    """
    Listens for collateral and asset arrivals on the lending contract.

    Polls the Soroban RPC for new events and hands IncomingMessage objects
    to a callback, which queues them for the MessageHandler.
    """

    def __init__(
        self,
        client: SorobanClient,
        on_message: Callable[[IncomingMessage], Awaitable[None]],
        poll_interval: float = 5.0,
        start_ledger: Optional[int] = None,
    ) -> None:
        self._client = client
        self._on_message = on_message
        self._poll_interval = poll_interval
        self._start_ledger = start_ledger
        self._running = False
        self._processed_events: set[str] = set()
        self._current_ledger: Optional[int] = None

    @property
    def current_ledger(self) -> Optional[int]:
        return self._current_ledger

    async def start(self) -> None:
        """Start the event listener loop."""
        self._running = True

        if self._start_ledger is not None:
            self._current_ledger = self._start_ledger
        else:
            self._current_ledger = self._client.get_latest_ledger()

        logger.info(f"RegistryEventListener started from ledger {self._current_ledger}")

        while self._running:
            try:
                await self._poll_events()
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error polling events: {e}")
                await asyncio.sleep(self._poll_interval)

        logger.info("RegistryEventListener stopped")

    async def stop(self) -> None:
        """Stop the event listener loop."""
        self._running = False

    async def _poll_events(self) -> None:
        """Poll for new registry events."""
        if self._current_ledger is None:
            return

        events = self._client.get_events(start_ledger=self._current_ledger, limit=100)

        for event in events:
            event_id = event["id"]
            if event_id in self._processed_events:
                continue

            message = decode_registry_event(event)
            if message is not None:
                logger.info(
                    f"Registry event: {message.type.value} {message.user_address} "
                    f"{message.payload}"
                )
                await self._on_message(message)

            self._processed_events.add(event_id)
            if event["ledger"] >= self._current_ledger:
                self._current_ledger = event["ledger"] + 1

        latest = self._client.get_latest_ledger()
        if latest > self._current_ledger:
            self._current_ledger = latest

        # Keep the dedup set bounded
        if len(self._processed_events) > 10000:
            self._processed_events = set(sorted(self._processed_events)[-5000:])
