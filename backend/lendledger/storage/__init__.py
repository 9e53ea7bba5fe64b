from lendledger.storage.balance_ledger import BalanceLedger
from lendledger.storage.reserve_tracker import ReserveTracker
from lendledger.storage.collateral_registry import CollateralRegistry
from lendledger.storage.deposit_book import DepositBook
from lendledger.storage.borrow_book import BorrowBook, Repayment
from lendledger.storage.message_store import MessageStore

__all__ = [
    "BalanceLedger",
    "ReserveTracker",
    "CollateralRegistry",
    "DepositBook",
    "BorrowBook",
    "Repayment",
    "MessageStore",
]
