from typing import Any

import pytest
from stellar_sdk import Keypair, scval

from lendledger.blockchain.event_listener import (
    COLLATERAL_TOPIC,
    RECEIVE_TOPIC,
    RegistryEventListener,
    decode_registry_event,
)
from lendledger.models.message import IncomingMessage, MessageType


def make_event(
    event_id: str,
    topic: str,
    address: str,
    value,
    ledger: int = 100,
) -> dict[str, Any]:
    return {
        "id": event_id,
        "contract_id": "CCONTRACT",
        "ledger": ledger,
        "topic": [scval.to_symbol(topic).to_xdr(), scval.to_address(address).to_xdr()],
        "value": value.to_xdr(),
        "tx_hash": f"tx-{event_id}",
    }


class FakeClient:
    def __init__(self, events: list[dict[str, Any]], latest_ledger: int) -> None:
        self.events = events
        self.latest_ledger = latest_ledger
        self.requested_from: list[int] = []

    def get_latest_ledger(self) -> int:
        return self.latest_ledger

    def get_events(self, start_ledger: int, contract_id=None, limit: int = 100):
        self.requested_from.append(start_ledger)
        return [e for e in self.events if e["ledger"] >= start_ledger]


@pytest.fixture
def owner() -> str:
    return Keypair.random().public_key


class TestDecode:
    """Tests for registry event decoding."""

    def test_collateral_event(self, owner: str) -> None:
        """Collateral events should become collateral messages."""
        event = make_event("1", COLLATERAL_TOPIC, owner, scval.to_string("nft-1"))

        message = decode_registry_event(event)

        assert message.type == MessageType.COLLATERAL_RECEIVED
        assert message.user_address == owner
        assert message.payload["collateral_id"] == "nft-1"
        assert message.payload["ledger"] == 100
        assert message.payload["tx_hash"] == "tx-1"

    def test_receive_event(self, owner: str) -> None:
        """Receive events should become asset messages."""
        token = Keypair.random().public_key
        value = scval.to_vec([scval.to_address(token), scval.to_int128(500)])
        event = make_event("2", RECEIVE_TOPIC, owner, value)

        message = decode_registry_event(event)

        assert message.type == MessageType.ASSET_RECEIVED
        assert message.user_address == owner
        assert message.payload["asset"] == token
        assert message.payload["amount"] == "500"

    def test_unknown_topic_ignored(self, owner: str) -> None:
        """Unknown topics should be ignored."""
        event = make_event("3", "withdraw", owner, scval.to_string("x"))
        assert decode_registry_event(event) is None

    def test_malformed_event_ignored(self) -> None:
        """Malformed events should be ignored."""
        assert decode_registry_event({"topic": ["not-xdr", "nope"], "value": ""}) is None


class TestListener:
    """Tests for the registry event listener loop."""

    @pytest.mark.asyncio
    async def test_poll_dispatches_each_event_once(self, owner: str) -> None:
        """Each event should be queued once across polls."""
        events = [
            make_event("1", COLLATERAL_TOPIC, owner, scval.to_string("nft-1"), ledger=100),
            make_event("2", "other", owner, scval.to_string("x"), ledger=101),
        ]
        client = FakeClient(events, latest_ledger=105)
        received: list[IncomingMessage] = []

        async def on_message(message: IncomingMessage) -> None:
            received.append(message)

        listener = RegistryEventListener(client=client, on_message=on_message, start_ledger=100)
        listener._current_ledger = 100

        await listener._poll_events()
        # Replaying the same events does not dispatch them again
        listener._current_ledger = 100
        await listener._poll_events()

        assert [m.payload["collateral_id"] for m in received] == ["nft-1"]
        assert listener.current_ledger == 105
