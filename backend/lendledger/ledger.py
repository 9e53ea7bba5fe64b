"""The lending ledger: balances, reserves, deposits, borrows and liquidation."""

import logging
from decimal import Decimal
from threading import RLock
from typing import Callable, Optional

from lendledger.clock import LedgerClock
from lendledger.config import LedgerConfig
from lendledger.errors import ValuationAssetMismatch
from lendledger.liquidation.engine import (
    LiquidatableBorrows,
    LiquidationEngine,
    LiquidationResult,
)
from lendledger.models.account import check_amount
from lendledger.models.borrow import Borrow
from lendledger.models.deposit import Deposit
from lendledger.models.message import OutgoingMessage
from lendledger.models.reserve import Reserve
from lendledger.storage.balance_ledger import BalanceLedger
from lendledger.storage.borrow_book import BorrowBook
from lendledger.storage.collateral_registry import CollateralRegistry
from lendledger.storage.deposit_book import DepositBook
from lendledger.storage.reserve_tracker import ReserveTracker
from lendledger.valuation import StaticValuationFeed

logger = logging.getLogger(__name__)


class LendingLedger:
    """
    Entry point for every ledger operation.

    Each public method is one atomic unit of work: all preconditions are
    checked before any store is mutated, and a failure raises a LedgerError
    with no state change.

    Notifications for the asset gateway and the collateral registry are not
    sent from here. They are collected in the outbox and handed to the host
    with drain_outbox() once the operation has committed.

    Admin-only operations (open_reserve, credit_balance, update_valuation,
    refresh_growth) do not check the caller; the host verifies the admin
    capability before calling them.
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Callable[[], int]] = None,
        valuations: Optional[StaticValuationFeed] = None,
    ) -> None:
        self.config = config or LedgerConfig()
        self.clock = clock if isinstance(clock, LedgerClock) else LedgerClock(clock)
        self.valuations = valuations or StaticValuationFeed()

        self.balances = BalanceLedger()
        self.reserves = ReserveTracker()
        self.collateral = CollateralRegistry()
        self.deposits = DepositBook(
            balances=self.balances,
            reserves=self.reserves,
            clock=self.clock,
            rate_bps=self.config.deposit_apr_bps,
        )
        self.borrows = BorrowBook(
            balances=self.balances,
            reserves=self.reserves,
            collateral=self.collateral,
            valuations=self.valuations,
            clock=self.clock,
            rate_bps=self.config.borrow_apr_bps,
            borrow_ratio=self.config.borrow_ratio,
            liquidation_threshold=self.config.liquidation_threshold,
        )
        self.liquidation = LiquidationEngine(
            borrow_book=self.borrows,
            balances=self.balances,
            reserves=self.reserves,
        )

        self._outbox: list[OutgoingMessage] = []
        self._lock = RLock()

    # Admin operations

    def open_reserve(self, asset: str) -> Reserve:
        with self._lock:
            return self.reserves.open(asset)

    def credit_balance(self, account: str, asset: str, amount: int) -> None:
        """Credit an account directly (funds the ledger received out of band)."""
        with self._lock:
            self.balances.credit(account, asset, amount)
        logger.info(f"Balance credited: {account} +{amount} {asset}")

    def update_valuation(self, collateral_id: str, asset: str, amount: int) -> Optional[Decimal]:
        """
        Record a new collateral value and revalue the borrow it backs, if any.

        Returns the borrow's new health factor, or None if the item backs no
        borrow. Raises ValuationAssetMismatch if the item backs a borrow in
        another asset.
        """
        check_amount(amount)
        with self._lock:
            borrow = self.borrows.get_by_collateral(collateral_id)
            if borrow is not None and borrow.asset != asset:
                raise ValuationAssetMismatch(collateral_id, borrow.asset, asset)

            self.valuations.set_valuation(collateral_id, asset, amount)
            if borrow is None:
                return None
            return self.borrows.revalue(borrow.id, amount)

    def refresh_growth(self) -> int:
        """Batch growth refresh over every open deposit."""
        with self._lock:
            return self.deposits.refresh_all()

    # Account operations

    def withdraw(self, account: str, asset: str, amount: int) -> None:
        """Debit a balance and queue a transfer to the account's wallet."""
        with self._lock:
            self._outbox.append(self.balances.transfer_out(account, asset, amount))
        logger.info(f"Withdrawal committed: {account} -{amount} {asset}")

    def open_deposit(self, owner: str, asset: str, amount: int) -> int:
        with self._lock:
            return self.deposits.open_deposit(owner, asset, amount)

    def take_growth(self, caller: str, deposit_id: int, amount: int) -> int:
        with self._lock:
            return self.deposits.take_growth(deposit_id, amount, caller)

    def close_deposit(self, caller: str, deposit_id: int) -> int:
        with self._lock:
            return self.deposits.close_deposit(deposit_id, caller)

    def open_borrow(self, caller: str, collateral_id: str) -> int:
        with self._lock:
            return self.borrows.open_borrow(caller, collateral_id)

    def repay_borrow(self, caller: str, borrow_id: int) -> int:
        with self._lock:
            repayment = self.borrows.repay_borrow(caller, borrow_id)
            self._outbox.append(repayment.release)
            return repayment.credited

    def liquidate(
        self,
        liquidator: str,
        borrow_id: int,
        amount_in: int,
        amount_out: int,
    ) -> LiquidationResult:
        with self._lock:
            return self.liquidation.liquidate(liquidator, borrow_id, amount_in, amount_out)

    # Registry callbacks

    def on_collateral_received(self, collateral_id: str, owner: str) -> bool:
        """Record a collateral arrival. Returns False for a duplicate delivery."""
        with self._lock:
            return self.collateral.lock(collateral_id, owner)

    def on_asset_received(self, sender: str, asset: str, amount: int) -> int:
        """
        Acknowledge a fungible asset arrival.

        Balances are only credited when auto_credit_received_assets is set.
        Returns the amount to hand back to the sender, which is always 0.
        """
        check_amount(amount)
        with self._lock:
            if self.config.auto_credit_received_assets:
                self.balances.credit(sender, asset, amount)
                logger.info(f"Asset received and credited: {sender} +{amount} {asset}")
            else:
                logger.info(f"Asset received (not credited): {sender} {amount} {asset}")
        return 0

    # Compensation for failed notifications

    def reverse_transfer(self, account: str, asset: str, amount: int) -> None:
        """Give back a debit whose outbound transfer failed."""
        with self._lock:
            self.balances.credit(account, asset, amount)
        logger.warning(f"Transfer reversed: {account} +{amount} {asset}")

    def relock_collateral(self, collateral_id: str, owner: str) -> None:
        """Record a collateral item again after its release failed."""
        with self._lock:
            self.collateral.lock(collateral_id, owner)
        logger.warning(f"Collateral release reversed: {collateral_id} stays with the ledger")

    def drain_outbox(self) -> list[OutgoingMessage]:
        """Take the notifications produced by committed operations."""
        with self._lock:
            messages, self._outbox = self._outbox, []
            return messages

    # Read surface

    def get_balance(self, account: str, asset: str) -> int:
        return self.balances.get_balance(account, asset)

    def get_balances(self, account: str) -> dict[str, int]:
        return self.balances.get_balances(account)

    def get_reserve(self, asset: str) -> Optional[Reserve]:
        return self.reserves.get(asset)

    def get_deposits(self, owner: str) -> list[Deposit]:
        return self.deposits.deposits_for(owner)

    def get_borrow(self, borrow_id: int) -> Optional[Borrow]:
        return self.borrows.get(borrow_id)

    def get_borrows(self, owner: str) -> list[Borrow]:
        return self.borrows.borrows_for(owner)

    def get_locked_collateral(self, owner: str) -> list[str]:
        """Collateral ids held by the ledger for an account."""
        return self.collateral.locked_by(owner)

    def list_liquidatable(self) -> LiquidatableBorrows:
        return self.liquidation.list_liquidatable()
