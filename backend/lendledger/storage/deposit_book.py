import logging
from threading import RLock
from typing import Callable, Optional

from lendledger.errors import DepositNotFound, InsufficientBalance, NotOwner
from lendledger.models.account import check_amount
from lendledger.models.deposit import Deposit
from lendledger.storage.balance_ledger import BalanceLedger
from lendledger.storage.reserve_tracker import ReserveTracker

logger = logging.getLogger(__name__)


class DepositBook:
    """
    Interest-bearing deposits.

    Opening a deposit moves funds from the owner's balance into the asset's
    reserve; closing it returns the principal plus unclaimed growth. Deposit
    ids come from a counter that only moves forward, so an id is never
    reused after its deposit is closed.
    """

    def __init__(
        self,
        balances: BalanceLedger,
        reserves: ReserveTracker,
        clock: Callable[[], int],
        rate_bps: int,
    ) -> None:
        self._balances = balances
        self._reserves = reserves
        self._clock = clock
        self._rate_bps = rate_bps
        self._deposits: dict[int, Deposit] = {}
        self._next_id = 0
        self._lock = RLock()

    @property
    def rate_bps(self) -> int:
        """Annual rate given to new deposits."""
        return self._rate_bps

    def get(self, deposit_id: int) -> Optional[Deposit]:
        with self._lock:
            return self._deposits.get(deposit_id)

    def require(self, deposit_id: int) -> Deposit:
        with self._lock:
            deposit = self._deposits.get(deposit_id)
            if deposit is None:
                raise DepositNotFound(deposit_id)
            return deposit

    def deposits_for(self, owner: str) -> list[Deposit]:
        """Open deposits of an account, oldest first."""
        with self._lock:
            return [d for d in self._deposits.values() if d.owner == owner]

    def open_deposit(self, owner: str, asset: str, amount: int) -> int:
        """
        Move `amount` from the owner's balance into a new deposit.

        Raises ReserveNotFound if the asset has no reserve and
        InsufficientBalance if the owner cannot cover the amount.
        Returns the new deposit id.
        """
        check_amount(amount)
        with self._lock:
            self._reserves.check_increase_deposited(asset, amount)
            if not self._balances.can_debit(owner, asset, amount):
                raise InsufficientBalance(
                    owner, asset, amount, self._balances.get_balance(owner, asset)
                )

            now = self._clock()
            deposit = Deposit(
                id=self._next_id,
                owner=owner,
                asset=asset,
                principal=amount,
                opened_at=now,
                last_accrual_at=now,
                rate_bps=self._rate_bps,
            )

            self._balances.debit(owner, asset, amount)
            self._reserves.increase_deposited(asset, amount)
            self._deposits[deposit.id] = deposit
            self._next_id += 1

        logger.info(f"Deposit opened: #{deposit.id} {owner} {amount} {asset}")
        return deposit.id

    def refresh_growth(self, deposit: Deposit, now: Optional[int] = None) -> int:
        """Accrue growth on one deposit up to `now`. Returns the growth added."""
        with self._lock:
            return deposit.accrue(self._clock() if now is None else now)

    def refresh_all(self, now: Optional[int] = None) -> int:
        """Accrue growth on every open deposit. Returns the total growth added."""
        with self._lock:
            now = self._clock() if now is None else now
            total = sum(d.accrue(now) for d in self._deposits.values())
        logger.info(f"Growth refreshed on {len(self._deposits)} deposits: +{total}")
        return total

    def take_growth(self, deposit_id: int, requested_amount: int, caller: str) -> int:
        """
        Claim up to `requested_amount` of a deposit's accrued growth.

        Growth is refreshed first. Asking for more than is available is not
        an error; the claim is capped at the available growth. Returns the
        amount credited to the owner.
        """
        check_amount(requested_amount)
        with self._lock:
            deposit = self.require(deposit_id)
            if deposit.owner != caller:
                raise NotOwner(caller, deposit_id)

            self.refresh_growth(deposit)
            released = deposit.release_growth(requested_amount)
            self._balances.credit(deposit.owner, deposit.asset, released)

        logger.info(
            f"Growth taken: #{deposit_id} {released}/{requested_amount} {deposit.asset} "
            f"(remaining {deposit.growth})"
        )
        return released

    def close_deposit(self, deposit_id: int, caller: str) -> int:
        """
        Close a deposit and return principal plus growth to the owner.

        Raises DepositNotFound, NotOwner, or InsufficientLiquidity when the
        principal is currently lent out. Returns the amount credited.
        """
        with self._lock:
            deposit = self.require(deposit_id)
            if deposit.owner != caller:
                raise NotOwner(caller, deposit_id)
            self._reserves.check_decrease_deposited(deposit.asset, deposit.principal)

            self.refresh_growth(deposit)
            returned = deposit.value
            self._balances.credit(deposit.owner, deposit.asset, returned)
            self._reserves.decrease_deposited(deposit.asset, deposit.principal)
            del self._deposits[deposit_id]

        logger.info(f"Deposit closed: #{deposit_id} {caller} +{returned} {deposit.asset}")
        return returned

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._deposits)
