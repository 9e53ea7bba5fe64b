import logging
from decimal import Decimal, ROUND_HALF_UP
from threading import RLock
from typing import Callable, Iterator, NamedTuple, Optional

from sortedcontainers import SortedList

from lendledger.errors import (
    BorrowNotFound,
    CollateralInUse,
    CollateralNotValued,
    HealthFactorTooLow,
)
from lendledger.models.account import check_amount
from lendledger.models.borrow import HEALTH_FACTOR_SAFE, Borrow, compute_health_factor
from lendledger.models.message import OutgoingMessage
from lendledger.storage.balance_ledger import BalanceLedger
from lendledger.storage.collateral_registry import CollateralRegistry
from lendledger.storage.reserve_tracker import ReserveTracker
from lendledger.valuation import ValuationFeed

logger = logging.getLogger(__name__)


class Repayment(NamedTuple):
    """Result of repaying a borrow."""

    credited: int  # Amount credited to the borrower
    release: OutgoingMessage  # Collateral release request for the registry


class BorrowBook:
    """
    Collateral-backed borrow positions.

    Positions are indexed by cached health factor, lowest first, so the
    liquidation engine can walk unsafe positions without scanning the book.
    A position must be taken out of the index before its health factor
    changes and put back afterwards.
    """

    def __init__(
        self,
        balances: BalanceLedger,
        reserves: ReserveTracker,
        collateral: CollateralRegistry,
        valuations: ValuationFeed,
        clock: Callable[[], int],
        rate_bps: int,
        borrow_ratio: Decimal,
        liquidation_threshold: Decimal,
    ) -> None:
        self._balances = balances
        self._reserves = reserves
        self._collateral = collateral
        self._valuations = valuations
        self._clock = clock
        self._rate_bps = rate_bps
        self._borrow_ratio = borrow_ratio
        self._liquidation_threshold = liquidation_threshold

        self._lock = RLock()
        self._borrows: dict[int, Borrow] = {}  # borrow_id -> Borrow
        self._by_collateral: dict[str, int] = {}  # collateral_id -> borrow_id
        self._next_id = 0

        # Key: (health_factor, id) so equal factors keep opening order
        self._by_health: SortedList[Borrow] = SortedList(
            key=lambda b: (b.health_factor, b.id)
        )

    @property
    def liquidation_threshold(self) -> Decimal:
        return self._liquidation_threshold

    def get(self, borrow_id: int) -> Optional[Borrow]:
        with self._lock:
            return self._borrows.get(borrow_id)

    def require(self, borrow_id: int) -> Borrow:
        with self._lock:
            borrow = self._borrows.get(borrow_id)
            if borrow is None:
                raise BorrowNotFound(borrow_id)
            return borrow

    def get_by_collateral(self, collateral_id: str) -> Optional[Borrow]:
        with self._lock:
            borrow_id = self._by_collateral.get(collateral_id)
            return None if borrow_id is None else self._borrows[borrow_id]

    def borrows_for(self, owner: str) -> list[Borrow]:
        with self._lock:
            return [b for b in self._borrows.values() if b.owner == owner]

    def health_factor(self, borrow: Borrow) -> Decimal:
        """Health factor computed from the position's current state."""
        return compute_health_factor(
            borrow.collateral_amount, borrow.amount, self._liquidation_threshold
        )

    def amount_to_borrow(self, collateral_value: int) -> int:
        """collateral_value * borrow_ratio, rounded to the nearest unit."""
        amount = Decimal(collateral_value) * self._borrow_ratio
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def open_borrow(self, caller: str, collateral_id: str) -> int:
        """
        Borrow against a locked collateral item.

        The amount lent is the collateral's value times the borrow ratio, in
        the asset the collateral is valued in. Returns the new borrow id.
        """
        with self._lock:
            self._collateral.check_owner(collateral_id, caller)
            if collateral_id in self._by_collateral:
                raise CollateralInUse(collateral_id, self._by_collateral[collateral_id])

            valuation = self._valuations.get_valuation(collateral_id)
            if valuation is None:
                raise CollateralNotValued(collateral_id)

            amount = self.amount_to_borrow(valuation.amount)
            self._reserves.check_increase_borrowed(valuation.asset, amount)

            now = self._clock()
            borrow = Borrow(
                id=self._next_id,
                owner=caller,
                collateral_id=collateral_id,
                asset=valuation.asset,
                amount=amount,
                collateral_amount=valuation.amount,
                rate_bps=self._rate_bps,
                health_factor=compute_health_factor(
                    valuation.amount, amount, self._liquidation_threshold
                ),
                opened_at=now,
                last_accrual_at=now,
            )

            self._balances.credit(caller, borrow.asset, amount)
            self._reserves.increase_borrowed(borrow.asset, amount)
            self._borrows[borrow.id] = borrow
            self._by_collateral[collateral_id] = borrow.id
            self._by_health.add(borrow)
            self._next_id += 1

        logger.info(
            f"Borrow opened: #{borrow.id} {caller} {amount} {borrow.asset} "
            f"against {collateral_id} (health factor {borrow.health_factor})"
        )
        return borrow.id

    def repay_borrow(self, caller: str, borrow_id: int) -> Repayment:
        """
        Close a borrow and release its collateral.

        Only the owner of the linked collateral may repay, and only while the
        position is safe. The caller is credited the outstanding amount less
        accrued fees.
        """
        with self._lock:
            borrow = self.require(borrow_id)
            self._collateral.check_owner(borrow.collateral_id, caller)

            health_factor = self.refresh_health_factor(borrow)
            if health_factor < HEALTH_FACTOR_SAFE:
                raise HealthFactorTooLow(borrow_id, health_factor)
            self._reserves.check_decrease_borrowed(borrow.asset, borrow.amount)

            self.refresh_fees(borrow)
            credited = borrow.repayment_credit
            self._balances.credit(caller, borrow.asset, credited)
            self._reserves.decrease_borrowed(borrow.asset, borrow.amount)
            release = self._collateral.release(borrow.collateral_id)
            self._remove(borrow)

        logger.info(
            f"Borrow repaid: #{borrow_id} {caller} +{credited} {borrow.asset} "
            f"(fees {borrow.fees})"
        )
        return Repayment(credited=credited, release=release)

    def refresh_fees(self, borrow: Borrow, now: Optional[int] = None) -> int:
        """Accrue fees on a position up to `now`. Returns the fees added."""
        with self._lock:
            return borrow.accrue_fees(self._clock() if now is None else now)

    def refresh_health_factor(self, borrow: Borrow) -> Decimal:
        """Recompute the cached health factor and re-index the position."""
        with self._lock:
            self._reindex(borrow, lambda: None)
            return borrow.health_factor

    def revalue(self, borrow_id: int, collateral_amount: int) -> Decimal:
        """Record a new collateral value for a position. Returns the new health factor."""
        check_amount(collateral_amount)
        with self._lock:
            borrow = self.require(borrow_id)

            def update() -> None:
                borrow.collateral_amount = collateral_amount

            self._reindex(borrow, update)

        logger.info(
            f"Borrow revalued: #{borrow_id} collateral={collateral_amount} "
            f"health factor {borrow.health_factor}"
        )
        return borrow.health_factor

    def reduce(self, borrow: Borrow, amount: int) -> Decimal:
        """
        Reduce both the outstanding amount and the collateral by `amount`.

        Used by liquidation, which validates the reduction first. Returns
        the new health factor.
        """
        with self._lock:
            self.refresh_fees(borrow)

            def update() -> None:
                borrow.amount -= amount
                borrow.collateral_amount -= amount

            self._reindex(borrow, update)
            return borrow.health_factor

    def iter_below(self, threshold: Decimal = HEALTH_FACTOR_SAFE) -> Iterator[int]:
        """
        Iterate ids of positions whose cached health factor is below `threshold`,
        lowest health factor first.
        """
        with self._lock:
            ids = []
            for borrow in self._by_health:
                if borrow.health_factor < threshold:
                    ids.append(borrow.id)
                else:
                    break
        yield from ids

    def _reindex(self, borrow: Borrow, update: Callable[[], None]) -> None:
        self._by_health.discard(borrow)
        update()
        borrow.health_factor = self.health_factor(borrow)
        self._by_health.add(borrow)

    def _remove(self, borrow: Borrow) -> None:
        self._by_health.discard(borrow)
        del self._by_collateral[borrow.collateral_id]
        del self._borrows[borrow.id]

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._borrows)
