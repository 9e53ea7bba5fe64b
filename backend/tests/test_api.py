"""API integration tests."""

import json
import time
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from stellar_sdk import Keypair

from lendledger.api.app import create_app
from lendledger.api.auth import sign_request
from lendledger.config import LedgerConfig
from lendledger.ledger import LendingLedger
from lendledger.queues.message_queue import IncomingQueue
from lendledger.storage.message_store import MessageStore


def post_signed(
    client: TestClient,
    keypair: Keypair,
    path: str,
    payload: Optional[dict[str, Any]] = None,
    timestamp: Optional[int] = None,
):
    """POST a JSON body signed by `keypair`."""
    body = json.dumps(payload or {}).encode("utf-8")
    timestamp = timestamp or int(time.time())
    signature = sign_request(keypair, "POST", path, body, timestamp)
    return client.post(
        path,
        content=body,
        headers={
            "X-Account": keypair.public_key,
            "X-Signature": signature,
            "X-Timestamp": str(timestamp),
            "Content-Type": "application/json",
        },
    )


@pytest.fixture
def user_keypair() -> Keypair:
    return Keypair.random()


@pytest.fixture
def admin_keypair() -> Keypair:
    return Keypair.random()


@pytest.fixture
def ledger(admin_keypair: Keypair) -> LendingLedger:
    return LendingLedger(
        config=LedgerConfig(admin_address=admin_keypair.public_key),
        clock=lambda: 1_700_000_000,
    )


@pytest.fixture
def message_store() -> MessageStore:
    return MessageStore()


@pytest.fixture
def message_queue() -> IncomingQueue:
    return IncomingQueue()


@pytest.fixture
def app(ledger: LendingLedger, message_store: MessageStore, message_queue: IncomingQueue):
    """Create test app without running handlers."""
    return create_app(
        ledger=ledger,
        message_store=message_store,
        message_queue=message_queue,
        run_handlers=False,
    )


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app) as client:
        yield client


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Health check should return healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestAuthentication:
    """Tests for signed request authentication."""

    def test_missing_headers(self, client: TestClient) -> None:
        """Requests without auth headers should be rejected."""
        response = client.post("/deposits", json={"asset": "X", "amount": "100"})
        assert response.status_code == 422

    def test_invalid_signature(self, client: TestClient, user_keypair: Keypair) -> None:
        """A tampered signature should be rejected."""
        body = b'{"asset": "X", "amount": "100"}'
        timestamp = int(time.time())
        signature = sign_request(user_keypair, "POST", "/deposits", body, timestamp)

        response = client.post(
            "/deposits",
            content=body,
            headers={
                "X-Account": user_keypair.public_key,
                "X-Signature": "00" + signature[2:],
                "X-Timestamp": str(timestamp),
                "Content-Type": "application/json",
            },
        )

        assert response.status_code == 401

    def test_signature_from_other_account(self, client: TestClient, user_keypair: Keypair) -> None:
        """A signature from another key should be rejected."""
        body = b'{"asset": "X", "amount": "100"}'
        timestamp = int(time.time())
        signature = sign_request(Keypair.random(), "POST", "/deposits", body, timestamp)

        response = client.post(
            "/deposits",
            content=body,
            headers={
                "X-Account": user_keypair.public_key,
                "X-Signature": signature,
                "X-Timestamp": str(timestamp),
                "Content-Type": "application/json",
            },
        )

        assert response.status_code == 401

    def test_expired_timestamp(self, client: TestClient, user_keypair: Keypair) -> None:
        """An old timestamp should be rejected."""
        response = post_signed(
            client,
            user_keypair,
            "/deposits",
            {"asset": "X", "amount": "100"},
            timestamp=int(time.time()) - 3600,
        )
        assert response.status_code == 401


class TestDepositEndpoints:
    """Tests for deposit endpoints."""

    def test_open_deposit_queues_message(
        self,
        client: TestClient,
        user_keypair: Keypair,
        message_queue: IncomingQueue,
        message_store: MessageStore,
    ) -> None:
        """Opening a deposit should queue a message."""
        response = post_signed(client, user_keypair, "/deposits", {"asset": "X", "amount": "1000"})

        assert response.status_code == 200
        message_id = response.json()["message_id"]
        assert len(message_id) == 36  # UUID format

        message = message_store.get(message_id)
        assert message.user_address == user_keypair.public_key
        assert message.payload == {"asset": "X", "amount": "1000"}
        assert message_queue.qsize == 1

    def test_invalid_amount_rejected(self, client: TestClient, user_keypair: Keypair) -> None:
        """Negative amounts should fail validation."""
        response = post_signed(client, user_keypair, "/deposits", {"asset": "X", "amount": "-5"})
        assert response.status_code == 422

    def test_close_and_growth(
        self,
        client: TestClient,
        user_keypair: Keypair,
        message_store: MessageStore,
    ) -> None:
        """Close and growth requests should queue messages."""
        closed = post_signed(client, user_keypair, "/deposits/close", {"deposit_id": 3})
        growth = post_signed(
            client, user_keypair, "/deposits/growth", {"deposit_id": 3, "amount": "10"}
        )

        assert closed.status_code == 200
        assert growth.status_code == 200
        assert message_store.get(closed.json()["message_id"]).payload == {"deposit_id": "3"}
        assert message_store.get(growth.json()["message_id"]).payload == {
            "deposit_id": "3",
            "amount": "10",
        }

    def test_list_deposits(self, client: TestClient, ledger: LendingLedger) -> None:
        """Deposits should be listed per account."""
        ledger.open_reserve("X")
        ledger.credit_balance("alice", "X", 1000)
        ledger.open_deposit("alice", "X", 600)

        response = client.get("/deposits/alice")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["deposit_id"] == 0
        assert data[0]["principal"] == "600"
        assert data[0]["growth"] == "0"


class TestBorrowEndpoints:
    """Tests for borrow endpoints."""

    def test_open_borrow(
        self,
        client: TestClient,
        user_keypair: Keypair,
        message_store: MessageStore,
    ) -> None:
        """Opening a borrow should queue a message."""
        response = post_signed(client, user_keypair, "/borrows", {"collateral_id": "nft-1"})

        assert response.status_code == 200
        message = message_store.get(response.json()["message_id"])
        assert message.type.value == "open_borrow"
        assert message.payload == {"collateral_id": "nft-1"}

    def test_liquidate(
        self,
        client: TestClient,
        user_keypair: Keypair,
        message_store: MessageStore,
    ) -> None:
        """Liquidation requests should queue a message."""
        response = post_signed(
            client,
            user_keypair,
            "/borrows/liquidate",
            {"borrow_id": 0, "amount_in": "450", "amount_out": "500"},
        )

        assert response.status_code == 200
        message = message_store.get(response.json()["message_id"])
        assert message.payload == {"borrow_id": "0", "amount_in": "450", "amount_out": "500"}

    def test_get_borrow_and_liquidatable(self, client: TestClient, ledger: LendingLedger) -> None:
        """Borrow details and the liquidatable list should reflect valuations."""
        ledger.open_reserve("X")
        ledger.credit_balance("lender", "X", 5000)
        ledger.open_deposit("lender", "X", 5000)
        ledger.on_collateral_received("nft-1", "bob")
        ledger.update_valuation("nft-1", "X", 2500)
        borrow_id = ledger.open_borrow("bob", "nft-1")

        assert client.get("/borrows/liquidatable").json() == {"borrow_ids": []}

        ledger.update_valuation("nft-1", "X", 1200)

        data = client.get(f"/borrows/{borrow_id}").json()
        assert data["amount"] == "2000"
        assert data["collateral_amount"] == "1200"
        assert data["health_factor"] == "0.6"
        assert data["liquidatable"] is True
        assert client.get("/borrows/liquidatable").json() == {"borrow_ids": [borrow_id]}

    def test_get_borrow_not_found(self, client: TestClient) -> None:
        """Unknown borrows should return 404."""
        assert client.get("/borrows/42").status_code == 404

    def test_list_borrows_for_account(self, client: TestClient, ledger: LendingLedger) -> None:
        """Open borrows should be listed per account."""
        ledger.open_reserve("X")
        ledger.credit_balance("lender", "X", 5000)
        ledger.open_deposit("lender", "X", 5000)
        ledger.on_collateral_received("nft-1", "bob")
        ledger.update_valuation("nft-1", "X", 2500)
        borrow_id = ledger.open_borrow("bob", "nft-1")

        data = client.get("/borrows", params={"account": "bob"}).json()

        assert [b["borrow_id"] for b in data] == [borrow_id]
        assert data[0]["collateral_id"] == "nft-1"
        assert data[0]["amount"] == "2000"
        assert client.get("/borrows", params={"account": "carol"}).json() == []
        assert client.get("/borrows").status_code == 422


class TestWithdrawalEndpoints:
    """Tests for withdrawal endpoints."""

    def test_request_withdrawal(
        self,
        client: TestClient,
        user_keypair: Keypair,
        message_store: MessageStore,
    ) -> None:
        """Withdrawal requests should queue a message."""
        response = post_signed(client, user_keypair, "/withdrawals", {"asset": "X", "amount": "100"})

        assert response.status_code == 200
        message = message_store.get(response.json()["message_id"])
        assert message.type.value == "withdraw"

    def test_non_numeric_amount_rejected(self, client: TestClient, user_keypair: Keypair) -> None:
        """Non-integer amounts should fail validation."""
        response = post_signed(client, user_keypair, "/withdrawals", {"asset": "X", "amount": "1e3"})
        assert response.status_code == 422


class TestAdminEndpoints:
    """Tests for admin endpoints."""

    def test_admin_opens_reserve(
        self,
        client: TestClient,
        admin_keypair: Keypair,
        message_store: MessageStore,
    ) -> None:
        """Admin should be able to open a reserve."""
        response = post_signed(client, admin_keypair, "/admin/reserves", {"asset": "X"})

        assert response.status_code == 200
        message = message_store.get(response.json()["message_id"])
        assert message.type.value == "open_reserve"
        assert message.user_address == admin_keypair.public_key

    def test_non_admin_forbidden(
        self,
        client: TestClient,
        user_keypair: Keypair,
        message_queue: IncomingQueue,
    ) -> None:
        """Other accounts should be forbidden from admin endpoints."""
        for path, payload in [
            ("/admin/reserves", {"asset": "X"}),
            ("/admin/credits", {"account": "a", "asset": "X", "amount": "1"}),
            ("/admin/valuations", {"collateral_id": "nft-1", "asset": "X", "amount": "1"}),
            ("/admin/refresh-growth", None),
        ]:
            response = post_signed(client, user_keypair, path, payload)
            assert response.status_code == 403

        assert message_queue.empty

    def test_admin_valuation(
        self,
        client: TestClient,
        admin_keypair: Keypair,
        message_store: MessageStore,
    ) -> None:
        """Admin valuations should queue a message."""
        response = post_signed(
            client,
            admin_keypair,
            "/admin/valuations",
            {"collateral_id": "nft-1", "asset": "X", "amount": "2500"},
        )

        assert response.status_code == 200
        message = message_store.get(response.json()["message_id"])
        assert message.payload == {"collateral_id": "nft-1", "asset": "X", "amount": "2500"}


class TestStatusEndpoints:
    """Tests for status and query endpoints."""

    def test_get_message_status(self, client: TestClient, user_keypair: Keypair) -> None:
        """Message status should be retrievable after submission."""
        response = post_signed(client, user_keypair, "/deposits", {"asset": "X", "amount": "1"})
        message_id = response.json()["message_id"]

        status_response = client.get(f"/messages/{message_id}")

        assert status_response.status_code == 200
        data = status_response.json()
        assert data["message_id"] == message_id
        assert data["type"] == "open_deposit"
        assert data["status"] == "pending"
        assert data["result"] is None

    def test_get_message_status_not_found(self, client: TestClient) -> None:
        """Unknown messages should return 404."""
        assert client.get("/messages/nonexistent-id").status_code == 404

    def test_list_account_messages(
        self,
        client: TestClient,
        user_keypair: Keypair,
    ) -> None:
        """Messages should be listed per submitting account, oldest first."""
        first = post_signed(client, user_keypair, "/deposits", {"asset": "X", "amount": "1"})
        second = post_signed(client, user_keypair, "/withdrawals", {"asset": "X", "amount": "2"})

        data = client.get(f"/messages/account/{user_keypair.public_key}").json()

        assert [m["message_id"] for m in data] == [
            first.json()["message_id"],
            second.json()["message_id"],
        ]
        assert [m["type"] for m in data] == ["open_deposit", "withdraw"]
        assert client.get("/messages/account/nobody").json() == []

    def test_get_locked_collateral(self, client: TestClient, ledger: LendingLedger) -> None:
        """Collateral held for an account should be listed."""
        ledger.on_collateral_received("nft-1", "bob")

        assert client.get("/collateral/bob").json() == {
            "account": "bob",
            "collateral_ids": ["nft-1"],
        }
        assert client.get("/collateral/carol").json() == {"account": "carol", "collateral_ids": []}

    def test_get_balances(self, client: TestClient, ledger: LendingLedger) -> None:
        """Balances should be listed per asset."""
        ledger.credit_balance("alice", "X", 1000)
        ledger.credit_balance("alice", "Y", 5)

        data = client.get("/balances/alice").json()

        assert data == {"account": "alice", "balances": {"X": "1000", "Y": "5"}}

    def test_get_reserve(self, client: TestClient, ledger: LendingLedger) -> None:
        """Reserve totals should be returned."""
        ledger.open_reserve("X")
        ledger.credit_balance("alice", "X", 1000)
        ledger.open_deposit("alice", "X", 1000)

        data = client.get("/reserves/X").json()

        assert data == {"asset": "X", "deposited": "1000", "borrowed": "0", "available": "1000"}
        assert client.get("/reserves/Y").status_code == 404


class TestProcessing:
    """Requests flow through the running message handler."""

    def test_deposit_processed(self, ledger: LendingLedger, user_keypair: Keypair) -> None:
        """A deposit should be processed by the running handler."""
        ledger.open_reserve("X")
        ledger.credit_balance(user_keypair.public_key, "X", 1000)
        app = create_app(ledger=ledger, run_handlers=True)

        with TestClient(app) as client:
            response = post_signed(
                client, user_keypair, "/deposits", {"asset": "X", "amount": "400"}
            )
            message_id = response.json()["message_id"]

            data = {}
            for _ in range(50):
                data = client.get(f"/messages/{message_id}").json()
                if data["status"] in ("accepted", "rejected"):
                    break
                time.sleep(0.1)

        assert data["status"] == "accepted"
        assert data["result"] == "0"
        assert ledger.get_balance(user_keypair.public_key, "X") == 600
        assert ledger.get_reserve("X").deposited == 400
