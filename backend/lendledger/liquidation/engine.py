import logging
from decimal import Decimal
from threading import RLock
from typing import Iterator, NamedTuple

from lendledger.errors import (
    HealthFactorAboveThreshold,
    InsufficientBalance,
    InsufficientLiquidationPayment,
    LiquidationOvershoot,
)
from lendledger.models.account import check_amount
from lendledger.models.borrow import HEALTH_FACTOR_SAFE, compute_health_factor
from lendledger.storage.balance_ledger import BalanceLedger
from lendledger.storage.borrow_book import BorrowBook
from lendledger.storage.reserve_tracker import ReserveTracker

logger = logging.getLogger(__name__)


def liquidation_discount(health_factor: Decimal) -> Decimal:
    """
    Price concession on seized collateral: (1 - health_factor) / 2.

    The further a position has fallen below 1.0, the steeper the discount.
    """
    return (Decimal("1") - health_factor) / 2


class LiquidationResult(NamedTuple):
    """Result of one liquidation step."""

    borrow_id: int
    discount: Decimal
    amount_in: int  # Paid by the liquidator
    amount_out: int  # Collateral value seized by the liquidator
    health_factor: Decimal  # Position's health factor after the step


class LiquidatableBorrows:
    """
    Ids of borrows whose cached health factor is below 1.0.

    Iterating is lazy and read-only; every new iteration starts again from
    the current state of the book.
    """

    def __init__(self, book: BorrowBook) -> None:
        self._book = book

    def __iter__(self) -> Iterator[int]:
        return self._book.iter_below(HEALTH_FACTOR_SAFE)


class LiquidationEngine:
    """
    Partial liquidation of unsafe borrow positions.

    A liquidator repays part of a position's debt at a discount and takes the
    same amount of collateral value. The payment goes to the pool: the
    reserve's borrowed total drops by amount_out and its deposited total
    absorbs the difference, so balances + deposited - borrowed is unchanged.
    A single step narrows the position but must leave it below 1.0; it never
    closes it.
    """

    def __init__(
        self,
        borrow_book: BorrowBook,
        balances: BalanceLedger,
        reserves: ReserveTracker,
    ) -> None:
        self._book = borrow_book
        self._balances = balances
        self._reserves = reserves
        self._lock = RLock()

    def list_liquidatable(self) -> LiquidatableBorrows:
        """Lazy, restartable sequence of liquidatable borrow ids."""
        return LiquidatableBorrows(self._book)

    def liquidate(
        self,
        liquidator: str,
        borrow_id: int,
        amount_in: int,
        amount_out: int,
    ) -> LiquidationResult:
        """
        Liquidate `amount_out` of a position for a payment of `amount_in`.

        Raises BorrowNotFound, HealthFactorAboveThreshold if the position is
        safe, InsufficientLiquidationPayment if amount_in is below the
        discounted value of amount_out, and LiquidationOvershoot if the step
        would close the position or bring it back to 1.0 or above.
        """
        check_amount(amount_in)
        check_amount(amount_out)

        with self._lock:
            borrow = self._book.require(borrow_id)
            health_factor = self._book.refresh_health_factor(borrow)
            if health_factor >= HEALTH_FACTOR_SAFE:
                raise HealthFactorAboveThreshold(borrow_id, health_factor)

            discount = liquidation_discount(health_factor)
            required = Decimal(amount_out) * (Decimal("1") - discount)
            if required > amount_in:
                raise InsufficientLiquidationPayment(required, amount_in)

            if amount_out > borrow.amount or amount_out > borrow.collateral_amount:
                raise LiquidationOvershoot(
                    borrow_id,
                    f"amount_out {amount_out} exceeds position "
                    f"(amount {borrow.amount}, collateral {borrow.collateral_amount})",
                )
            projected = compute_health_factor(
                borrow.collateral_amount - amount_out,
                borrow.amount - amount_out,
                self._book.liquidation_threshold,
            )
            if projected >= HEALTH_FACTOR_SAFE:
                raise LiquidationOvershoot(
                    borrow_id, f"health factor would reach {projected}"
                )

            self._reserves.check_decrease_borrowed(borrow.asset, amount_out)
            if not self._balances.can_debit(liquidator, borrow.asset, amount_in):
                raise InsufficientBalance(
                    liquidator,
                    borrow.asset,
                    amount_in,
                    self._balances.get_balance(liquidator, borrow.asset),
                )

            # The payment repays the pool. The discount (amount_out - amount_in)
            # is a loss to depositors; an overpayment is a gain.
            self._balances.debit(liquidator, borrow.asset, amount_in)
            self._reserves.decrease_borrowed(borrow.asset, amount_out)
            if amount_out > amount_in:
                self._reserves.decrease_deposited(borrow.asset, amount_out - amount_in)
            elif amount_in > amount_out:
                self._reserves.increase_deposited(borrow.asset, amount_in - amount_out)
            new_health_factor = self._book.reduce(borrow, amount_out)

        logger.info(
            f"Borrow liquidated: #{borrow_id} by {liquidator} "
            f"paid {amount_in}, seized {amount_out} {borrow.asset} "
            f"(discount {discount}, health factor {health_factor} -> {new_health_factor})"
        )
        return LiquidationResult(
            borrow_id=borrow_id,
            discount=discount,
            amount_in=amount_in,
            amount_out=amount_out,
            health_factor=new_health_factor,
        )
