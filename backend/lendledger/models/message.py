from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import uuid


class MessageType(Enum):
    """Types of incoming messages."""

    # Admin operations
    OPEN_RESERVE = "open_reserve"
    CREDIT = "credit"  # Credit an account's balance
    UPDATE_VALUATION = "update_valuation"  # Valuation feed update
    REFRESH_GROWTH = "refresh_growth"  # Batch growth accrual

    # Account operations
    WITHDRAW = "withdraw"
    OPEN_DEPOSIT = "open_deposit"
    TAKE_GROWTH = "take_growth"
    CLOSE_DEPOSIT = "close_deposit"
    OPEN_BORROW = "open_borrow"
    REPAY_BORROW = "repay_borrow"
    LIQUIDATE = "liquidate"

    # From the registry event listener
    COLLATERAL_RECEIVED = "collateral_received"
    ASSET_RECEIVED = "asset_received"


ADMIN_MESSAGE_TYPES = frozenset(
    {
        MessageType.OPEN_RESERVE,
        MessageType.CREDIT,
        MessageType.UPDATE_VALUATION,
        MessageType.REFRESH_GROWTH,
    }
)


class MessageStatus(Enum):
    """Processing status of a message."""

    PENDING = "pending"  # Waiting in queue
    PROCESSING = "processing"  # Currently being processed
    ACCEPTED = "accepted"  # Successfully processed
    REJECTED = "rejected"  # Failed validation/processing


@dataclass
class IncomingMessage:
    """
    Message in the incoming queue.

    Every request that mutates the ledger (account operations, admin
    operations and registry callbacks) is represented as an incoming
    message and processed one at a time.
    """

    id: str
    type: MessageType
    user_address: str
    payload: dict[str, Any]
    status: MessageStatus = MessageStatus.PENDING
    rejection_reason: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: Optional[datetime] = None

    # Set after processing: new deposit/borrow id, released amount, ...
    result: Optional[str] = None

    @staticmethod
    def create(
        type: MessageType,
        user_address: str,
        **payload: Any,
    ) -> "IncomingMessage":
        """Create a message of any type with a generated ID."""
        return IncomingMessage(
            id=str(uuid.uuid4()),
            type=type,
            user_address=user_address,
            payload=payload,
        )

    @staticmethod
    def create_open_deposit(user_address: str, asset: str, amount: str) -> "IncomingMessage":
        return IncomingMessage.create(
            MessageType.OPEN_DEPOSIT, user_address, asset=asset, amount=amount
        )

    @staticmethod
    def create_close_deposit(user_address: str, deposit_id: str) -> "IncomingMessage":
        return IncomingMessage.create(
            MessageType.CLOSE_DEPOSIT, user_address, deposit_id=deposit_id
        )

    @staticmethod
    def create_take_growth(
        user_address: str, deposit_id: str, amount: str
    ) -> "IncomingMessage":
        return IncomingMessage.create(
            MessageType.TAKE_GROWTH, user_address, deposit_id=deposit_id, amount=amount
        )

    @staticmethod
    def create_open_borrow(user_address: str, collateral_id: str) -> "IncomingMessage":
        return IncomingMessage.create(
            MessageType.OPEN_BORROW, user_address, collateral_id=collateral_id
        )

    @staticmethod
    def create_repay_borrow(user_address: str, borrow_id: str) -> "IncomingMessage":
        return IncomingMessage.create(
            MessageType.REPAY_BORROW, user_address, borrow_id=borrow_id
        )

    @staticmethod
    def create_liquidate(
        user_address: str,
        borrow_id: str,
        amount_in: str,
        amount_out: str,
    ) -> "IncomingMessage":
        return IncomingMessage.create(
            MessageType.LIQUIDATE,
            user_address,
            borrow_id=borrow_id,
            amount_in=amount_in,
            amount_out=amount_out,
        )

    @staticmethod
    def create_withdraw(user_address: str, asset: str, amount: str) -> "IncomingMessage":
        return IncomingMessage.create(
            MessageType.WITHDRAW, user_address, asset=asset, amount=amount
        )

    @staticmethod
    def create_collateral_received(
        owner: str,
        collateral_id: str,
        ledger: int,
        tx_hash: str,
    ) -> "IncomingMessage":
        """Create a collateral arrival message from a blockchain event."""
        return IncomingMessage.create(
            MessageType.COLLATERAL_RECEIVED,
            owner,
            collateral_id=collateral_id,
            ledger=ledger,
            tx_hash=tx_hash,
        )

    @staticmethod
    def create_asset_received(
        sender: str,
        asset: str,
        amount: str,
        ledger: int,
        tx_hash: str,
    ) -> "IncomingMessage":
        """Create an asset arrival message from a blockchain event."""
        return IncomingMessage.create(
            MessageType.ASSET_RECEIVED,
            sender,
            asset=asset,
            amount=amount,
            ledger=ledger,
            tx_hash=tx_hash,
        )

    def accept(self, result: Optional[Any] = None) -> None:
        """Mark message as accepted."""
        self.status = MessageStatus.ACCEPTED
        self.result = None if result is None else str(result)
        self.processed_at = datetime.now(timezone.utc)

    def reject(self, reason: str) -> None:
        """Mark message as rejected with a reason."""
        self.status = MessageStatus.REJECTED
        self.rejection_reason = reason
        self.processed_at = datetime.now(timezone.utc)


class OutgoingType(Enum):
    """Types of outgoing messages (to the gateway and registry)."""

    TRANSFER = "transfer"
    COLLATERAL_RELEASE = "collateral_release"


@dataclass
class OutgoingMessage:
    """
    Message in the outgoing queue.

    Represents a notification issued after the ledger committed a change:
    a token transfer to an external wallet or the return of a collateral
    item to its owner.
    """

    id: str
    type: OutgoingType
    payload: dict[str, Any]
    status: MessageStatus = MessageStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tx_hash: Optional[str] = None

    @staticmethod
    def create_transfer(account: str, asset: str, amount: int) -> "OutgoingMessage":
        """Create a transfer request for the asset gateway."""
        return OutgoingMessage(
            id=str(uuid.uuid4()),
            type=OutgoingType.TRANSFER,
            payload={
                "account": account,
                "asset": asset,
                "amount": amount,
            },
        )

    @staticmethod
    def create_collateral_release(owner: str, collateral_id: str) -> "OutgoingMessage":
        """Create a collateral release request for the registry."""
        return OutgoingMessage(
            id=str(uuid.uuid4()),
            type=OutgoingType.COLLATERAL_RELEASE,
            payload={
                "owner": owner,
                "collateral_id": collateral_id,
            },
        )
