from dataclasses import dataclass, field

from lendledger.errors import InsufficientBalance, InvalidAmount


def check_amount(amount: int) -> None:
    """Amounts are unsigned integers."""
    if amount < 0:
        raise InvalidAmount(amount)


@dataclass
class Account:
    """
    Spendable balances of one account, keyed by asset.

    Entries are created at zero on first credit and are kept when they
    return to zero.
    """

    address: str
    balances: dict[str, int] = field(default_factory=dict)

    def get_balance(self, asset: str) -> int:
        """Balance for an asset (0 if the account never held it)."""
        return self.balances.get(asset, 0)

    def credit(self, asset: str, amount: int) -> None:
        """Add funds to the asset balance."""
        check_amount(amount)
        self.balances[asset] = self.balances.get(asset, 0) + amount

    def can_debit(self, asset: str, amount: int) -> bool:
        """Check if we can remove this amount."""
        if amount == 0:
            return True
        return asset in self.balances and self.balances[asset] >= amount

    def debit(self, asset: str, amount: int) -> None:
        """Remove funds from the asset balance."""
        check_amount(amount)
        if not self.can_debit(asset, amount):
            raise InsufficientBalance(self.address, asset, amount, self.get_balance(asset))
        if amount:
            self.balances[asset] -= amount
