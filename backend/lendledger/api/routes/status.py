"""Message status and ledger query routes."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from lendledger.api.dependencies import get_ledger, get_message_store
from lendledger.ledger import LendingLedger
from lendledger.models.message import IncomingMessage
from lendledger.storage.message_store import MessageStore

router = APIRouter(tags=["status"])


class MessageStatusResponse(BaseModel):
    """Response for message status query."""

    message_id: str = Field(..., description="Message ID")
    type: str = Field(..., description="Message type (open_deposit, repay_borrow, ...)")
    status: str = Field(..., description="Status (pending, processing, accepted, rejected)")
    rejection_reason: Optional[str] = Field(None, description="Reason if rejected")
    result: Optional[str] = Field(None, description="Operation result if accepted")
    created_at: datetime = Field(..., description="When message was created")
    processed_at: Optional[datetime] = Field(None, description="When message was processed")


class BalanceResponse(BaseModel):
    account: str = Field(..., description="Account address")
    balances: dict[str, str] = Field(..., description="Free balance per asset")


class ReserveResponse(BaseModel):
    asset: str
    deposited: str
    borrowed: str
    available: str


class CollateralResponse(BaseModel):
    account: str = Field(..., description="Account address")
    collateral_ids: list[str] = Field(..., description="Items the ledger holds for the account")


@router.get("/messages/account/{account}", response_model=list[MessageStatusResponse])
async def list_account_messages(
    account: str,
    message_store: MessageStore = Depends(get_message_store),
) -> list[MessageStatusResponse]:
    """Messages submitted by an account, oldest first."""
    return [_message_response(message) for message in message_store.for_account(account)]


@router.get("/messages/{message_id}", response_model=MessageStatusResponse)
async def get_message_status(
    message_id: str,
    message_store: MessageStore = Depends(get_message_store),
) -> MessageStatusResponse:
    """
    Get the status of a message.

    Use this endpoint to check whether a request has been processed, and
    whether it was accepted or rejected.
    """
    message = message_store.get(message_id)
    if message is None:
        raise HTTPException(
            status_code=404,
            detail=f"Message not found: {message_id}",
        )

    return _message_response(message)


def _message_response(message: IncomingMessage) -> MessageStatusResponse:
    return MessageStatusResponse(
        message_id=message.id,
        type=message.type.value,
        status=message.status.value,
        rejection_reason=message.rejection_reason,
        result=message.result,
        created_at=message.created_at,
        processed_at=message.processed_at,
    )


@router.get("/balances/{account}", response_model=BalanceResponse)
async def get_balances(
    account: str,
    ledger: LendingLedger = Depends(get_ledger),
) -> BalanceResponse:
    return BalanceResponse(
        account=account,
        balances={asset: str(amount) for asset, amount in ledger.get_balances(account).items()},
    )


@router.get("/collateral/{account}", response_model=CollateralResponse)
async def get_locked_collateral(
    account: str,
    ledger: LendingLedger = Depends(get_ledger),
) -> CollateralResponse:
    return CollateralResponse(account=account, collateral_ids=ledger.get_locked_collateral(account))


@router.get("/reserves/{asset}", response_model=ReserveResponse)
async def get_reserve(
    asset: str,
    ledger: LendingLedger = Depends(get_ledger),
) -> ReserveResponse:
    reserve = ledger.get_reserve(asset)
    if reserve is None:
        raise HTTPException(status_code=404, detail=f"Reserve not found: {asset}")

    return ReserveResponse(
        asset=reserve.asset,
        deposited=str(reserve.deposited),
        borrowed=str(reserve.borrowed),
        available=str(reserve.available),
    )
