"""Deposit API routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lendledger.api.auth import verify_request_signature
from lendledger.api.dependencies import (
    get_ledger,
    get_message_queue,
    get_message_store,
    submit_message,
)
from lendledger.ledger import LendingLedger
from lendledger.models.message import IncomingMessage
from lendledger.queues.message_queue import IncomingQueue
from lendledger.storage.message_store import MessageStore

router = APIRouter(prefix="/deposits", tags=["deposits"])


class OpenDepositRequest(BaseModel):
    asset: str = Field(..., min_length=1, description="Asset to deposit")
    amount: str = Field(..., pattern=r"^\d+$", description="Amount (integer string)")


class CloseDepositRequest(BaseModel):
    deposit_id: int = Field(..., ge=0, description="Deposit to close")


class TakeGrowthRequest(BaseModel):
    deposit_id: int = Field(..., ge=0, description="Deposit to claim growth from")
    amount: str = Field(..., pattern=r"^\d+$", description="Maximum growth to claim")


class MessageResponse(BaseModel):
    message_id: str = Field(..., description="Message ID to track the request status")


class DepositResponse(BaseModel):
    deposit_id: int
    owner: str
    asset: str
    principal: str
    growth: str
    rate_bps: int
    opened_at: int
    last_accrual_at: int


@router.post("", response_model=MessageResponse)
async def open_deposit(
    request: OpenDepositRequest,
    user_address: str = Depends(verify_request_signature),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    """
    Open a deposit from the caller's balance.

    Once accepted, the new deposit id is the message result.
    """
    message = IncomingMessage.create_open_deposit(user_address, request.asset, request.amount)
    return MessageResponse(message_id=await submit_message(message_store, message_queue, message))


@router.post("/close", response_model=MessageResponse)
async def close_deposit(
    request: CloseDepositRequest,
    user_address: str = Depends(verify_request_signature),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    """Close a deposit, returning principal and growth to the caller's balance."""
    message = IncomingMessage.create_close_deposit(user_address, str(request.deposit_id))
    return MessageResponse(message_id=await submit_message(message_store, message_queue, message))


@router.post("/growth", response_model=MessageResponse)
async def take_growth(
    request: TakeGrowthRequest,
    user_address: str = Depends(verify_request_signature),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    """Claim up to `amount` of a deposit's growth. The released amount is the message result."""
    message = IncomingMessage.create_take_growth(
        user_address, str(request.deposit_id), request.amount
    )
    return MessageResponse(message_id=await submit_message(message_store, message_queue, message))


@router.get("/{account}", response_model=list[DepositResponse])
async def list_deposits(
    account: str,
    ledger: LendingLedger = Depends(get_ledger),
) -> list[DepositResponse]:
    """Open deposits of an account. Growth is as of the last refresh."""
    return [
        DepositResponse(
            deposit_id=d.id,
            owner=d.owner,
            asset=d.asset,
            principal=str(d.principal),
            growth=str(d.growth),
            rate_bps=d.rate_bps,
            opened_at=d.opened_at,
            last_accrual_at=d.last_accrual_at,
        )
        for d in ledger.get_deposits(account)
    ]
