from dataclasses import dataclass

from lendledger.interest import accrued_between


@dataclass
class Deposit:
    """
    An interest-bearing deposit.

    Growth accrues as simple interest on the principal at a rate fixed when
    the deposit was opened. Accrued growth can be claimed while the deposit
    stays open; the principal is only returned on close.
    """

    id: int
    owner: str
    asset: str
    principal: int
    opened_at: int  # Unix seconds
    last_accrual_at: int  # Unix seconds
    rate_bps: int  # Annual rate in basis points
    growth: int = 0  # Accrued but unclaimed interest

    def accrue(self, now: int) -> int:
        """
        Accrue growth up to `now` and return the amount added.

        A refresh at (or before) the last accrual timestamp is a no-op.
        """
        if now <= self.last_accrual_at:
            return 0
        added = accrued_between(
            self.principal,
            self.rate_bps,
            start=self.opened_at,
            since=self.last_accrual_at,
            until=now,
        )
        self.growth += added
        self.last_accrual_at = now
        return added

    def release_growth(self, requested: int) -> int:
        """Release up to `requested` of the accrued growth. Returns the released amount."""
        released = min(max(requested, 0), self.growth)
        self.growth -= released
        return released

    @property
    def value(self) -> int:
        """Principal plus unclaimed growth."""
        return self.principal + self.growth
