from lendledger.models.account import Account
from lendledger.models.reserve import Reserve
from lendledger.models.deposit import Deposit
from lendledger.models.borrow import Borrow, compute_health_factor
from lendledger.models.collateral import CollateralValuation
from lendledger.models.message import (
    IncomingMessage,
    OutgoingMessage,
    MessageType,
    MessageStatus,
    OutgoingType,
)

__all__ = [
    "Account",
    "Reserve",
    "Deposit",
    "Borrow",
    "compute_health_factor",
    "CollateralValuation",
    "IncomingMessage",
    "OutgoingMessage",
    "MessageType",
    "MessageStatus",
    "OutgoingType",
]
