from threading import RLock
from typing import Optional

from lendledger.models.message import IncomingMessage


class MessageStore:
    """
    Thread-safe storage for message status tracking.

    Lets API callers look up whether a request they submitted was accepted,
    and with which result, by message ID.
    """

    def __init__(self) -> None:
        self._messages: dict[str, IncomingMessage] = {}
        self._lock = RLock()

    def add(self, message: IncomingMessage) -> None:
        with self._lock:
            self._messages[message.id] = message

    def get(self, message_id: str) -> Optional[IncomingMessage]:
        with self._lock:
            return self._messages.get(message_id)

    def update(self, message: IncomingMessage) -> None:
        with self._lock:
            self._messages[message.id] = message

    def for_account(self, address: str) -> list[IncomingMessage]:
        """Messages submitted by (or on behalf of) an account, oldest first."""
        with self._lock:
            messages = [m for m in self._messages.values() if m.user_address == address]
        return sorted(messages, key=lambda m: m.created_at)

