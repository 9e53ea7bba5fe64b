"""Admin-only API routes: reserves, direct credits, valuations and growth refresh."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lendledger.api.auth import require_admin
from lendledger.api.dependencies import (
    get_message_queue,
    get_message_store,
    submit_message,
)
from lendledger.api.routes.deposits import MessageResponse
from lendledger.models.message import IncomingMessage, MessageType
from lendledger.queues.message_queue import IncomingQueue
from lendledger.storage.message_store import MessageStore

router = APIRouter(prefix="/admin", tags=["admin"])


class OpenReserveRequest(BaseModel):
    asset: str = Field(..., min_length=1, description="Asset to open a reserve for")


class CreditRequest(BaseModel):
    account: str = Field(..., min_length=1, description="Account to credit")
    asset: str = Field(..., min_length=1)
    amount: str = Field(..., pattern=r"^\d+$", description="Amount (integer string)")


class ValuationRequest(BaseModel):
    collateral_id: str = Field(..., min_length=1)
    asset: str = Field(..., min_length=1, description="Asset the collateral is denominated in")
    amount: str = Field(..., pattern=r"^\d+$", description="Collateral value (integer string)")


async def _submit(
    admin: str,
    message_type: MessageType,
    message_queue: IncomingQueue,
    message_store: MessageStore,
    **payload,
) -> MessageResponse:
    message = IncomingMessage.create(message_type, admin, **payload)
    return MessageResponse(message_id=await submit_message(message_store, message_queue, message))


@router.post("/reserves", response_model=MessageResponse)
async def open_reserve(
    request: OpenReserveRequest,
    admin: str = Depends(require_admin),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    return await _submit(
        admin, MessageType.OPEN_RESERVE, message_queue, message_store, asset=request.asset
    )


@router.post("/credits", response_model=MessageResponse)
async def credit_balance(
    request: CreditRequest,
    admin: str = Depends(require_admin),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    """Credit an account with funds the ledger received out of band."""
    return await _submit(
        admin,
        MessageType.CREDIT,
        message_queue,
        message_store,
        account=request.account,
        asset=request.asset,
        amount=request.amount,
    )


@router.post("/valuations", response_model=MessageResponse)
async def update_valuation(
    request: ValuationRequest,
    admin: str = Depends(require_admin),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    """
    Publish a collateral valuation.

    If the item backs a borrow, the borrow is revalued and its new health
    factor is the message result.
    """
    return await _submit(
        admin,
        MessageType.UPDATE_VALUATION,
        message_queue,
        message_store,
        collateral_id=request.collateral_id,
        asset=request.asset,
        amount=request.amount,
    )


@router.post("/refresh-growth", response_model=MessageResponse)
async def refresh_growth(
    admin: str = Depends(require_admin),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    return await _submit(admin, MessageType.REFRESH_GROWTH, message_queue, message_store)
