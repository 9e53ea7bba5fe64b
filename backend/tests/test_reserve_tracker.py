import pytest

from lendledger.errors import (
    InsufficientLiquidity,
    InvalidAmount,
    ReserveAlreadyExists,
    ReserveNotFound,
    ReserveUnderflow,
)
from lendledger.storage.reserve_tracker import ReserveTracker


@pytest.fixture
def reserves() -> ReserveTracker:
    tracker = ReserveTracker()
    tracker.open("X")
    return tracker


def assert_solvent(reserves: ReserveTracker) -> None:
    for asset in reserves.assets():
        reserve = reserves.get(asset)
        assert reserve.deposited >= 0
        assert reserve.borrowed >= 0
        assert reserve.borrowed <= reserve.deposited


class TestOpen:
    """Tests for opening reserves."""

    def test_open_creates_zeroed_reserve(self, reserves: ReserveTracker) -> None:
        """A new reserve should start at zero."""
        reserve = reserves.get("X")
        assert reserve.deposited == 0
        assert reserve.borrowed == 0
        assert reserve.available == 0

    def test_open_twice_fails(self, reserves: ReserveTracker) -> None:
        """Opening a reserve twice should fail."""
        with pytest.raises(ReserveAlreadyExists):
            reserves.open("X")

    def test_unknown_asset(self, reserves: ReserveTracker) -> None:
        """Unknown assets should have no reserve."""
        assert reserves.get("Y") is None
        with pytest.raises(ReserveNotFound):
            reserves.increase_deposited("Y", 1)
        with pytest.raises(ReserveNotFound):
            reserves.decrease_borrowed("Y", 0)


class TestTotals:
    """Tests for reserve totals."""

    def test_deposit_and_borrow(self, reserves: ReserveTracker) -> None:
        """Totals should track deposits and borrows."""
        reserves.increase_deposited("X", 1000)
        reserves.increase_borrowed("X", 800)

        reserve = reserves.get("X")
        assert reserve.deposited == 1000
        assert reserve.borrowed == 800
        assert reserve.available == 200
        assert_solvent(reserves)

    def test_decrease_deposited_underflow(self, reserves: ReserveTracker) -> None:
        """Decreasing deposited below zero should fail."""
        reserves.increase_deposited("X", 100)
        with pytest.raises(ReserveUnderflow):
            reserves.decrease_deposited("X", 101)
        assert reserves.get("X").deposited == 100

    def test_decrease_borrowed_underflow(self, reserves: ReserveTracker) -> None:
        """Decreasing borrowed below zero should fail."""
        reserves.increase_deposited("X", 100)
        reserves.increase_borrowed("X", 50)
        with pytest.raises(ReserveUnderflow):
            reserves.decrease_borrowed("X", 51)
        assert reserves.get("X").borrowed == 50

    def test_borrow_beyond_deposits_rejected(self, reserves: ReserveTracker) -> None:
        """Borrowing more than is available should fail."""
        reserves.increase_deposited("X", 100)
        with pytest.raises(InsufficientLiquidity):
            reserves.increase_borrowed("X", 101)
        assert reserves.get("X").borrowed == 0

    def test_withdrawing_lent_funds_rejected(self, reserves: ReserveTracker) -> None:
        """Withdrawing funds that are lent out should fail."""
        reserves.increase_deposited("X", 100)
        reserves.increase_borrowed("X", 80)
        with pytest.raises(InsufficientLiquidity):
            reserves.decrease_deposited("X", 30)
        reserves.decrease_deposited("X", 20)
        assert reserves.get("X").deposited == 80
        assert_solvent(reserves)

    def test_negative_amounts_rejected(self, reserves: ReserveTracker) -> None:
        """Negative amounts should be rejected."""
        with pytest.raises(InvalidAmount):
            reserves.increase_deposited("X", -5)

    def test_check_does_not_mutate(self, reserves: ReserveTracker) -> None:
        """Checks should never change totals."""
        reserves.increase_deposited("X", 100)
        reserves.check_increase_borrowed("X", 100)
        reserves.check_decrease_deposited("X", 100)
        reserve = reserves.get("X")
        assert reserve.deposited == 100
        assert reserve.borrowed == 0
