import asyncio
from typing import Generic, Optional, TypeVar

from lendledger.models.message import IncomingMessage, OutgoingMessage

T = TypeVar("T")


class MessageQueue(Generic[T]):
    """
    Async FIFO queue of messages.

    Used twice by the service: ledger requests wait in an IncomingQueue for
    the MessageHandler, and committed notifications wait in an OutgoingQueue
    for the OutgoingProcessor.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[T] = asyncio.Queue()

    async def put(self, message: T) -> None:
        """Add a message to the queue."""
        await self._queue.put(message)

    async def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """
        Get a message from the queue.

        Args:
            timeout: Maximum time to wait in seconds. None for no timeout.

        Returns:
            The message, or None if timeout expired.
        """
        try:
            if timeout is None:
                return await self._queue.get()
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def task_done(self) -> None:
        """Mark the current task as done."""
        self._queue.task_done()

    @property
    def qsize(self) -> int:
        """Approximate queue size."""
        return self._queue.qsize()

    @property
    def empty(self) -> bool:
        """Whether the queue is empty."""
        return self._queue.empty()


class IncomingQueue(MessageQueue[IncomingMessage]):
    """Ledger requests from the API and the registry event listener."""


class OutgoingQueue(MessageQueue[OutgoingMessage]):
    """Transfer and collateral release notifications for the gateway."""
