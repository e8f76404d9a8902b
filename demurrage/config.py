"""
config.py - Ledger configuration

LedgerConfig is an immutable term sheet for one ledger: everything fixed at
construction. Numeric fields given as int, float or str are converted to
Decimal; rates are truncated to RATE_DECIMALS.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from .core import (
    DEFAULT_DEMURRAGE_RATE, DEFAULT_FEE_COLLECTOR,
    DEFAULT_TRANSFER_FEE_RATE, DEFAULT_VAULT, DEFAULT_WITHDRAWAL_FEE_RATE,
    PERIOD_LENGTH, SYSTEM_WALLET, ZERO, ONE,
    quantize_rate, to_decimal,
)


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """
    Fixed parameters of a demurrage ledger.

    Attributes:
        name: Ledger identifier (used in execution ids)
        vault: Collateral account the ledger controls
        fee_collector: Holder receiving transfer/withdrawal fees and demurrage
        genesis_rate: Demurrage rate in force from the epoch
        transfer_fee_rate: Fee fraction charged on transfers
        withdrawal_fee_rate: Fee fraction charged on withdrawals
        period_length: Duration of one decay period
        collect_demurrage: Credit realized decay to the fee collector
            (False retires it to the system wallet)
        verbose: Print one line per applied or rejected operation
    """
    name: str = "demurrage"
    vault: str = DEFAULT_VAULT
    fee_collector: str = DEFAULT_FEE_COLLECTOR
    genesis_rate: Decimal = DEFAULT_DEMURRAGE_RATE
    transfer_fee_rate: Decimal = DEFAULT_TRANSFER_FEE_RATE
    withdrawal_fee_rate: Decimal = DEFAULT_WITHDRAWAL_FEE_RATE
    period_length: timedelta = PERIOD_LENGTH
    collect_demurrage: bool = True
    verbose: bool = False

    def __post_init__(self):
        for name in ('genesis_rate', 'transfer_fee_rate', 'withdrawal_fee_rate'):
            value = to_decimal(getattr(self, name))
            if not value.is_finite() or value < ZERO or value > ONE:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
            object.__setattr__(self, name, quantize_rate(value))

        if self.period_length <= timedelta(0):
            raise ValueError(f"period_length must be positive, got {self.period_length}")
        if not self.vault or not self.fee_collector:
            raise ValueError("vault and fee_collector cannot be empty")
        if SYSTEM_WALLET in (self.vault, self.fee_collector):
            raise ValueError(f"'{SYSTEM_WALLET}' is reserved")
        if self.vault == self.fee_collector:
            raise ValueError("vault and fee_collector must be different accounts")
