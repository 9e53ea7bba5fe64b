"""FastAPI dependencies for accessing shared state."""

from typing import Optional

from lendledger.ledger import LendingLedger
from lendledger.queues.message_queue import IncomingQueue
from lendledger.storage.message_store import MessageStore


class AppState:
    """
    Application state container.

    Holds references to all shared components accessed by API routes.
    """

    def __init__(self) -> None:
        self.ledger: Optional[LendingLedger] = None
        self.message_store: Optional[MessageStore] = None
        self.message_queue: Optional[IncomingQueue] = None
        self.admin_address: Optional[str] = None


# Global app state instance
_app_state = AppState()


def get_app_state() -> AppState:
    """Get the global application state."""
    return _app_state


def get_ledger() -> LendingLedger:
    """FastAPI dependency for the LendingLedger (read surface)."""
    if _app_state.ledger is None:
        raise RuntimeError("LendingLedger not initialized")
    return _app_state.ledger


def get_message_store() -> MessageStore:
    """FastAPI dependency for MessageStore."""
    if _app_state.message_store is None:
        raise RuntimeError("MessageStore not initialized")
    return _app_state.message_store


def get_message_queue() -> IncomingQueue:
    """FastAPI dependency for the incoming message queue."""
    if _app_state.message_queue is None:
        raise RuntimeError("IncomingQueue not initialized")
    return _app_state.message_queue


async def submit_message(
    message_store: MessageStore,
    message_queue: IncomingQueue,
    message,
) -> str:
    """Store a message for status tracking, queue it, and return its id."""
    message_store.add(message)
    await message_queue.put(message)
    return message.id
