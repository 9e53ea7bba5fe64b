from dataclasses import dataclass
from decimal import Decimal

from lendledger.interest import simple_interest

HEALTH_FACTOR_SAFE = Decimal("1")


def compute_health_factor(
    collateral_amount: int,
    amount: int,
    liquidation_threshold: Decimal,
) -> Decimal:
    """
    collateral / (amount * liquidation_threshold).

    A position with nothing outstanding is infinitely healthy.
    """
    if amount <= 0:
        return Decimal("Infinity")
    return Decimal(collateral_amount) / (Decimal(amount) * liquidation_threshold)


@dataclass
class Borrow:
    """
    A borrow backed by one locked collateral item.

    The asset borrowed is the asset the collateral is valued in.
    `health_factor` is a cache of compute_health_factor() and must be
    refreshed whenever amount or collateral_amount changes.
    """

    id: int
    owner: str
    collateral_id: str
    asset: str
    amount: int  # Outstanding amount
    collateral_amount: int  # Collateral value in `asset`
    rate_bps: int  # Annual fee rate in basis points
    health_factor: Decimal
    opened_at: int
    last_accrual_at: int
    fees: int = 0  # Accrued fees

    @property
    def is_liquidatable(self) -> bool:
        return self.health_factor < HEALTH_FACTOR_SAFE

    def accrue_fees(self, now: int) -> int:
        """Accrue fees on the outstanding amount up to `now`. Returns the amount added."""
        if now <= self.last_accrual_at:
            return 0
        added = simple_interest(self.amount, self.rate_bps, now - self.last_accrual_at)
        self.fees += added
        self.last_accrual_at = now
        return added

    @property
    def repayment_credit(self) -> int:
        """What the owner is credited on repay: amount less accrued fees."""
        return max(self.amount - self.fees, 0)
