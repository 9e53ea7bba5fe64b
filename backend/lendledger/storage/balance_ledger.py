import logging
from threading import RLock
from typing import Optional

from lendledger.errors import InsufficientBalance
from lendledger.models.account import Account, check_amount
from lendledger.models.message import OutgoingMessage

logger = logging.getLogger(__name__)


class BalanceLedger:
    """
    Thread-safe in-memory storage for spendable balances.

    Tracks one unsigned balance per (account, asset).
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = RLock()

    def get(self, address: str) -> Optional[Account]:
        """Get an account by address, or None if not found."""
        with self._lock:
            return self._accounts.get(address)

    def get_or_create(self, address: str) -> Account:
        """Get an account by address, creating if not found."""
        with self._lock:
            if address not in self._accounts:
                self._accounts[address] = Account(address=address)
            return self._accounts[address]

    def credit(self, address: str, asset: str, amount: int) -> None:
        """
        Add funds to an account's balance.
        Creates the account (and the asset entry) if this is its first credit.
        """
        check_amount(amount)
        with self._lock:
            self.get_or_create(address).credit(asset, amount)

    def can_debit(self, address: str, asset: str, amount: int) -> bool:
        """Check if the account holds at least `amount` of the asset."""
        with self._lock:
            if amount == 0:
                return True
            account = self.get(address)
            if account is None:
                return False
            return account.can_debit(asset, amount)

    def debit(self, address: str, asset: str, amount: int) -> None:
        """
        Remove funds from an account's balance.
        Raises InsufficientBalance if the balance is too low or missing.
        """
        check_amount(amount)
        with self._lock:
            if amount == 0:
                return
            account = self.get(address)
            if account is None:
                raise InsufficientBalance(address, asset, amount, 0)
            account.debit(asset, amount)

    def transfer_out(self, address: str, asset: str, amount: int) -> OutgoingMessage:
        """
        Debit the balance and return the transfer request for the gateway.

        The request is only a notification; the caller queues it once the
        debit is committed.
        """
        with self._lock:
            self.debit(address, asset, amount)
            logger.debug(f"Transfer out: {address} -{amount} {asset}")
            return OutgoingMessage.create_transfer(address, asset, amount)

    def get_balance(self, address: str, asset: str) -> int:
        """Get an account's balance for an asset."""
        with self._lock:
            account = self.get(address)
            if account is None:
                return 0
            return account.get_balance(asset)

    def get_balances(self, address: str) -> dict[str, int]:
        """Get a copy of all of an account's balances."""
        with self._lock:
            account = self.get(address)
            if account is None:
                return {}
            return dict(account.balances)
