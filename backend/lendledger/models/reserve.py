from dataclasses import dataclass


@dataclass
class Reserve:
    """
    Pooled totals for one asset.

    - deposited: sum of the principal of all open deposits, less liquidation
      discounts absorbed by the pool
    - borrowed: sum of the outstanding amount of all open borrows
    - borrowed <= deposited at all times
    """

    asset: str
    deposited: int = 0
    borrowed: int = 0

    @property
    def available(self) -> int:
        """Deposited funds not currently lent out."""
        return self.deposited - self.borrowed
