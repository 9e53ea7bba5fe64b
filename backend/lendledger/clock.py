import time
from threading import RLock
from typing import Callable, Optional


def system_time() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


class LedgerClock:
    """
    Non-decreasing timestamp source.

    Wraps a time source supplied by the host. If the source ever steps
    backwards, the last observed timestamp is returned instead.
    """

    def __init__(self, source: Optional[Callable[[], int]] = None) -> None:
        self._source = source or system_time
        self._last = 0
        self._lock = RLock()

    def __call__(self) -> int:
        return self.now()

    def now(self) -> int:
        with self._lock:
            current = int(self._source())
            if current > self._last:
                self._last = current
            return self._last
