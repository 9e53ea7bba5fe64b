"""Borrow and liquidation API routes."""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from lendledger.api.auth import verify_request_signature
from lendledger.api.dependencies import (
    get_ledger,
    get_message_queue,
    get_message_store,
    submit_message,
)
from lendledger.api.routes.deposits import MessageResponse
from lendledger.ledger import LendingLedger
from lendledger.models.borrow import Borrow
from lendledger.models.message import IncomingMessage
from lendledger.queues.message_queue import IncomingQueue
from lendledger.storage.message_store import MessageStore

router = APIRouter(prefix="/borrows", tags=["borrows"])


class OpenBorrowRequest(BaseModel):
    collateral_id: str = Field(..., min_length=1, description="Locked collateral item to borrow against")


class RepayBorrowRequest(BaseModel):
    borrow_id: int = Field(..., ge=0, description="Borrow to repay")


class LiquidateRequest(BaseModel):
    borrow_id: int = Field(..., ge=0, description="Unsafe borrow to liquidate")
    amount_in: str = Field(..., pattern=r"^\d+$", description="Amount the liquidator pays")
    amount_out: str = Field(..., pattern=r"^\d+$", description="Collateral value to seize")


class BorrowResponse(BaseModel):
    borrow_id: int
    owner: str
    collateral_id: str
    asset: str
    amount: str
    collateral_amount: str
    fees: str
    rate_bps: int
    health_factor: str
    liquidatable: bool


class LiquidatableResponse(BaseModel):
    borrow_ids: list[int] = Field(..., description="Unsafe borrows, lowest health factor first")


@router.post("", response_model=MessageResponse)
async def open_borrow(
    request: OpenBorrowRequest,
    user_address: str = Depends(verify_request_signature),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    """
    Borrow against a collateral item the caller locked on the ledger.

    Once accepted, the new borrow id is the message result.
    """
    message = IncomingMessage.create_open_borrow(user_address, request.collateral_id)
    return MessageResponse(message_id=await submit_message(message_store, message_queue, message))


@router.post("/repay", response_model=MessageResponse)
async def repay_borrow(
    request: RepayBorrowRequest,
    user_address: str = Depends(verify_request_signature),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    """Repay a borrow and get its collateral back."""
    message = IncomingMessage.create_repay_borrow(user_address, str(request.borrow_id))
    return MessageResponse(message_id=await submit_message(message_store, message_queue, message))


@router.post("/liquidate", response_model=MessageResponse)
async def liquidate(
    request: LiquidateRequest,
    user_address: str = Depends(verify_request_signature),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    """Partially liquidate an unsafe borrow."""
    message = IncomingMessage.create_liquidate(
        user_address,
        str(request.borrow_id),
        request.amount_in,
        request.amount_out,
    )
    return MessageResponse(message_id=await submit_message(message_store, message_queue, message))


@router.get("/liquidatable", response_model=LiquidatableResponse)
async def list_liquidatable(
    ledger: LendingLedger = Depends(get_ledger),
) -> LiquidatableResponse:
    """Borrows whose health factor is below 1.0."""
    return LiquidatableResponse(borrow_ids=list(ledger.list_liquidatable()))


@router.get("", response_model=list[BorrowResponse])
async def list_borrows(
    account: str = Query(..., min_length=1, description="Borrower address"),
    ledger: LendingLedger = Depends(get_ledger),
) -> list[BorrowResponse]:
    """Open borrows of an account."""
    return [_borrow_response(borrow) for borrow in ledger.get_borrows(account)]


@router.get("/{borrow_id}", response_model=BorrowResponse)
async def get_borrow(
    borrow_id: int,
    ledger: LendingLedger = Depends(get_ledger),
) -> BorrowResponse:
    borrow = ledger.get_borrow(borrow_id)
    if borrow is None:
        raise HTTPException(status_code=404, detail=f"Borrow not found: {borrow_id}")

    return _borrow_response(borrow)


def _borrow_response(borrow: Borrow) -> BorrowResponse:
    return BorrowResponse(
        borrow_id=borrow.id,
        owner=borrow.owner,
        collateral_id=borrow.collateral_id,
        asset=borrow.asset,
        amount=str(borrow.amount),
        collateral_amount=str(borrow.collateral_amount),
        fees=str(borrow.fees),
        rate_bps=borrow.rate_bps,
        health_factor=str(borrow.health_factor),
        liquidatable=borrow.is_liquidatable,
    )
