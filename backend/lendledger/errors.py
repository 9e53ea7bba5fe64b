"""Exceptions raised by the lending ledger.

Every error is a precondition failure: it is raised before any store is
mutated, so a rejected operation leaves no trace in the ledger.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger errors."""

    pass


class InvalidAmount(LedgerError):
    """Raised when an amount is negative."""

    def __init__(self, amount: int):
        self.amount = amount
        super().__init__(f"Invalid amount: {amount}")


class InsufficientBalance(LedgerError):
    """Raised when a debit exceeds the available balance."""

    def __init__(self, account: str, asset: str, requested: int, available: int):
        self.account = account
        self.asset = asset
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient balance: {account} has {available} {asset}, need {requested}"
        )


class ReserveNotFound(LedgerError):
    """Raised when an asset has no reserve."""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Reserve not found: {asset}")


class ReserveAlreadyExists(LedgerError):
    """Raised when opening a reserve that is already open."""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Reserve already exists: {asset}")


class ReserveUnderflow(LedgerError):
    """Raised when a reserve total would go below zero."""

    def __init__(self, asset: str, field: str, requested: int, current: int):
        self.asset = asset
        self.field = field
        self.requested = requested
        self.current = current
        super().__init__(
            f"Reserve underflow: cannot decrease {asset} {field} by {requested}, "
            f"current total is {current}"
        )


class InsufficientLiquidity(LedgerError):
    """Raised when an operation would leave borrowed above deposited."""

    def __init__(self, asset: str, requested: int, available: int):
        self.asset = asset
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient liquidity in {asset} reserve: have {available}, need {requested}"
        )


class DepositNotFound(LedgerError):
    def __init__(self, deposit_id: int):
        self.deposit_id = deposit_id
        super().__init__(f"Deposit not found: {deposit_id}")


class BorrowNotFound(LedgerError):
    def __init__(self, borrow_id: int):
        self.borrow_id = borrow_id
        super().__init__(f"Borrow not found: {borrow_id}")


class NotOwner(LedgerError):
    """Raised when a caller acts on a deposit owned by another account."""

    def __init__(self, caller: str, deposit_id: int):
        self.caller = caller
        self.deposit_id = deposit_id
        super().__init__(f"{caller} does not own deposit {deposit_id}")


class NotCollateralOwner(LedgerError):
    """Raised when the caller is not the recorded owner of a locked collateral item."""

    def __init__(self, caller: str, collateral_id: str):
        self.caller = caller
        self.collateral_id = collateral_id
        super().__init__(
            f"{caller} did not lock collateral {collateral_id} on the ledger"
        )


class CollateralAlreadyLocked(LedgerError):
    """Raised when collateral arrives for an id already locked by another owner."""

    def __init__(self, collateral_id: str, owner: str):
        self.collateral_id = collateral_id
        self.owner = owner
        super().__init__(f"Collateral {collateral_id} is already locked by {owner}")


class CollateralInUse(LedgerError):
    """Raised when a collateral item already backs an open borrow."""

    def __init__(self, collateral_id: str, borrow_id: int):
        self.collateral_id = collateral_id
        self.borrow_id = borrow_id
        super().__init__(f"Collateral {collateral_id} already backs borrow {borrow_id}")


class CollateralNotValued(LedgerError):
    """Raised when the valuation feed has no value for a collateral item."""

    def __init__(self, collateral_id: str):
        self.collateral_id = collateral_id
        super().__init__(f"No valuation for collateral {collateral_id}")


class ValuationAssetMismatch(LedgerError):
    """Raised when a valuation names another asset than the borrow it backs."""

    def __init__(self, collateral_id: str, expected: str, got: str):
        self.collateral_id = collateral_id
        self.expected = expected
        self.got = got
        super().__init__(
            f"Collateral {collateral_id} backs a borrow in {expected}, "
            f"cannot value it in {got}"
        )


class HealthFactorTooLow(LedgerError):
    """Raised when repaying a position whose health factor is below 1.0."""

    def __init__(self, borrow_id: int, health_factor: Decimal):
        self.borrow_id = borrow_id
        self.health_factor = health_factor
        super().__init__(
            f"Borrow {borrow_id} health factor {health_factor} is below 1.0, "
            f"restore it before repaying"
        )


class HealthFactorAboveThreshold(LedgerError):
    """Raised when liquidating a position that is still safe."""

    def __init__(self, borrow_id: int, health_factor: Decimal):
        self.borrow_id = borrow_id
        self.health_factor = health_factor
        super().__init__(
            f"Borrow {borrow_id} is healthy (health factor {health_factor})"
        )


class InsufficientLiquidationPayment(LedgerError):
    """Raised when a liquidator pays less than the discounted collateral value."""

    def __init__(self, required: Decimal, supplied: int):
        self.required = required
        self.supplied = supplied
        super().__init__(
            f"Liquidation payment too low: need at least {required}, supplied {supplied}"
        )


class LiquidationOvershoot(LedgerError):
    """Raised when a liquidation step would close or fully heal the position."""

    def __init__(self, borrow_id: int, reason: str):
        self.borrow_id = borrow_id
        self.reason = reason
        super().__init__(f"Liquidation of borrow {borrow_id} rejected: {reason}")


class Unauthorized(LedgerError):
    """Raised when a non-admin caller reaches an admin-only operation."""

    def __init__(self, caller: Optional[str], operation: str):
        self.caller = caller
        self.operation = operation
        super().__init__(f"{caller} is not allowed to {operation}")
