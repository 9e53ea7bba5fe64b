"""Collateral valuation feed.

The ledger does not price collateral itself. It reads the value of a
locked item from a feed supplied by its host.
"""

import logging
from threading import RLock
from typing import Optional, Protocol

from lendledger.models.account import check_amount
from lendledger.models.collateral import CollateralValuation

logger = logging.getLogger(__name__)


class ValuationFeed(Protocol):
    """Protocol for looking up the value of a collateral item."""

    def get_valuation(self, collateral_id: str) -> Optional[CollateralValuation]:
        """Current valuation, or None if the item has never been priced."""
        ...


class StaticValuationFeed:
    """
    In-memory valuation feed.

    Values are pushed by an operator (or an oracle adapter) through
    set_valuation() and read back by the borrow book.
    """

    def __init__(self) -> None:
        self._valuations: dict[str, CollateralValuation] = {}
        self._lock = RLock()

    def set_valuation(self, collateral_id: str, asset: str, amount: int) -> CollateralValuation:
        check_amount(amount)
        valuation = CollateralValuation(collateral_id=collateral_id, asset=asset, amount=amount)
        with self._lock:
            self._valuations[collateral_id] = valuation
        logger.info(f"Valuation updated: {collateral_id} = {amount} {asset}")
        return valuation

    def get_valuation(self, collateral_id: str) -> Optional[CollateralValuation]:
        with self._lock:
            return self._valuations.get(collateral_id)
