from lendledger.executor.message_handler import MessageHandler
from lendledger.executor.outgoing_processor import (
    OutgoingProcessor,
    TransferGateway,
    MockTransferGateway,
)

__all__ = [
    "MessageHandler",
    "OutgoingProcessor",
    "TransferGateway",
    "MockTransferGateway",
]
