from dataclasses import dataclass


@dataclass(frozen=True)
class CollateralValuation:
    """Value of one collateral item, denominated in a single asset."""

    collateral_id: str
    asset: str
    amount: int
