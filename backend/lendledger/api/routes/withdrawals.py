"""Withdrawal API routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lendledger.api.auth import verify_request_signature
from lendledger.api.dependencies import (
    get_message_queue,
    get_message_store,
    submit_message,
)
from lendledger.api.routes.deposits import MessageResponse
from lendledger.models.message import IncomingMessage
from lendledger.queues.message_queue import IncomingQueue
from lendledger.storage.message_store import MessageStore

router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])


class WithdrawalRequest(BaseModel):
    """Request body for a withdrawal."""

    asset: str = Field(..., min_length=1, description="Asset to withdraw")
    amount: str = Field(..., pattern=r"^\d+$", description="Amount to withdraw (integer string)")


@router.post("", response_model=MessageResponse)
async def request_withdrawal(
    withdrawal: WithdrawalRequest,
    user_address: str = Depends(verify_request_signature),
    message_queue: IncomingQueue = Depends(get_message_queue),
    message_store: MessageStore = Depends(get_message_store),
) -> MessageResponse:
    """
    Request a withdrawal.

    If accepted, the balance is debited immediately and the funds are
    transferred on-chain to the caller's wallet. A failed transfer is
    credited back.
    """
    message = IncomingMessage.create_withdraw(
        user_address=user_address,
        asset=withdrawal.asset,
        amount=withdrawal.amount,
    )
    return MessageResponse(message_id=await submit_message(message_store, message_queue, message))
