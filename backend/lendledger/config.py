"""Ledger configuration, read from environment variables."""

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

# Testnet defaults - can be overridden via environment variables
DEFAULT_SOROBAN_RPC_URL = "https://soroban-testnet.stellar.org"

DEFAULT_DEPOSIT_APR_BPS = 500  # 5% per year
DEFAULT_BORROW_APR_BPS = 800  # 8% per year
DEFAULT_BORROW_RATIO = Decimal("0.8")
DEFAULT_LIQUIDATION_THRESHOLD = Decimal("1")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class LedgerConfig:
    """
    Protocol parameters and deployment settings.

    - deposit_apr_bps / borrow_apr_bps: annual rates in basis points
    - borrow_ratio: share of collateral value lent out on a new borrow
    - liquidation_threshold: divisor applied to the debt in the health factor
    - auto_credit_received_assets: credit balances when fungible assets arrive
    """

    admin_address: Optional[str] = None
    deposit_apr_bps: int = DEFAULT_DEPOSIT_APR_BPS
    borrow_apr_bps: int = DEFAULT_BORROW_APR_BPS
    borrow_ratio: Decimal = DEFAULT_BORROW_RATIO
    liquidation_threshold: Decimal = DEFAULT_LIQUIDATION_THRESHOLD
    auto_credit_received_assets: bool = False

    # Chain settings used by the host service
    lending_contract_id: Optional[str] = None
    soroban_rpc_url: str = DEFAULT_SOROBAN_RPC_URL
    admin_secret_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.deposit_apr_bps < 0 or self.borrow_apr_bps < 0:
            raise ValueError("Rates must not be negative")
        if not Decimal("0") < self.borrow_ratio < Decimal("1"):
            raise ValueError(f"Borrow ratio must be between 0 and 1: {self.borrow_ratio}")
        if self.liquidation_threshold <= 0:
            raise ValueError(
                f"Liquidation threshold must be positive: {self.liquidation_threshold}"
            )

    @property
    def opening_health_factor(self) -> Decimal:
        """Health factor of a freshly opened borrow."""
        return Decimal("1") / (self.borrow_ratio * self.liquidation_threshold)

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Build a config from environment variables, falling back to defaults."""
        return cls(
            admin_address=os.environ.get("LENDLEDGER_ADMIN_ADDRESS"),
            deposit_apr_bps=int(os.environ.get("DEPOSIT_APR_BPS", DEFAULT_DEPOSIT_APR_BPS)),
            borrow_apr_bps=int(os.environ.get("BORROW_APR_BPS", DEFAULT_BORROW_APR_BPS)),
            borrow_ratio=Decimal(os.environ.get("BORROW_RATIO", str(DEFAULT_BORROW_RATIO))),
            liquidation_threshold=Decimal(
                os.environ.get("LIQUIDATION_THRESHOLD", str(DEFAULT_LIQUIDATION_THRESHOLD))
            ),
            auto_credit_received_assets=_env_bool("AUTO_CREDIT_RECEIVED_ASSETS"),
            lending_contract_id=os.environ.get("LENDING_CONTRACT_ID"),
            soroban_rpc_url=os.environ.get("SOROBAN_RPC_URL", DEFAULT_SOROBAN_RPC_URL),
            admin_secret_key=os.environ.get("ADMIN_SECRET_KEY"),
        )
