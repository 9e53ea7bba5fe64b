from lendledger.blockchain.client import SorobanClient
from lendledger.blockchain.event_listener import RegistryEventListener, decode_registry_event
from lendledger.blockchain.gateway import SorobanTransferGateway

__all__ = [
    "SorobanClient",
    "RegistryEventListener",
    "decode_registry_event",
    "SorobanTransferGateway",
]
