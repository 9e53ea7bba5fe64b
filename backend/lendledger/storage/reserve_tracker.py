import logging
from threading import RLock
from typing import Optional

from lendledger.errors import (
    InsufficientLiquidity,
    ReserveAlreadyExists,
    ReserveNotFound,
    ReserveUnderflow,
)
from lendledger.models.account import check_amount
from lendledger.models.reserve import Reserve

logger = logging.getLogger(__name__)


class ReserveTracker:
    """
    Thread-safe in-memory storage for per-asset reserves.

    Every change keeps 0 <= borrowed <= deposited. The check_* methods
    validate a change without applying it, so callers can check every
    precondition of an operation before mutating anything.
    """

    def __init__(self) -> None:
        self._reserves: dict[str, Reserve] = {}
        self._lock = RLock()

    def open(self, asset: str) -> Reserve:
        """Create a zeroed reserve. Raises ReserveAlreadyExists if present."""
        with self._lock:
            if asset in self._reserves:
                raise ReserveAlreadyExists(asset)
            reserve = Reserve(asset=asset)
            self._reserves[asset] = reserve
            logger.info(f"Reserve opened: {asset}")
            return reserve

    def get(self, asset: str) -> Optional[Reserve]:
        with self._lock:
            return self._reserves.get(asset)

    def require(self, asset: str) -> Reserve:
        """Get a reserve or raise ReserveNotFound."""
        with self._lock:
            reserve = self._reserves.get(asset)
            if reserve is None:
                raise ReserveNotFound(asset)
            return reserve

    def assets(self) -> list[str]:
        with self._lock:
            return list(self._reserves)

    def check_increase_deposited(self, asset: str, amount: int) -> Reserve:
        check_amount(amount)
        return self.require(asset)

    def check_decrease_deposited(self, asset: str, amount: int) -> Reserve:
        check_amount(amount)
        with self._lock:
            reserve = self.require(asset)
            if amount > reserve.deposited:
                raise ReserveUnderflow(asset, "deposited", amount, reserve.deposited)
            if amount > reserve.available:
                raise InsufficientLiquidity(asset, amount, reserve.available)
            return reserve

    def check_increase_borrowed(self, asset: str, amount: int) -> Reserve:
        check_amount(amount)
        with self._lock:
            reserve = self.require(asset)
            if amount > reserve.available:
                raise InsufficientLiquidity(asset, amount, reserve.available)
            return reserve

    def check_decrease_borrowed(self, asset: str, amount: int) -> Reserve:
        check_amount(amount)
        with self._lock:
            reserve = self.require(asset)
            if amount > reserve.borrowed:
                raise ReserveUnderflow(asset, "borrowed", amount, reserve.borrowed)
            return reserve

    def increase_deposited(self, asset: str, amount: int) -> None:
        with self._lock:
            self.check_increase_deposited(asset, amount).deposited += amount

    def decrease_deposited(self, asset: str, amount: int) -> None:
        with self._lock:
            self.check_decrease_deposited(asset, amount).deposited -= amount

    def increase_borrowed(self, asset: str, amount: int) -> None:
        with self._lock:
            self.check_increase_borrowed(asset, amount).borrowed += amount

    def decrease_borrowed(self, asset: str, amount: int) -> None:
        with self._lock:
            self.check_decrease_borrowed(asset, amount).borrowed -= amount
