"""
demurrage - Collateral-Pegged Demurrage Ledger

A ledger token backed 1:1 by a collateral asset, whose idle balances decay
each period and which charges a fee on transfers and withdrawals.

Usage:
    from datetime import datetime
    from decimal import Decimal
    from demurrage import (
        DemurrageLedger, ManualClock, InMemoryCollateral, OwnerAuthority, PERIOD_LENGTH,
    )

    clock = ManualClock(datetime(2025, 1, 1))
    usd = InMemoryCollateral("USD", {"alice": Decimal("200")})
    ledger = DemurrageLedger(clock, usd, OwnerAuthority("owner"))

    # Deposit collateral and mint ledger units
    usd.approve("alice", ledger.vault, Decimal("200"))
    ledger.mint("alice", Decimal("200"))

    # Transfer between holders (1% fee to the fee collector)
    ledger.transfer("alice", "bob", Decimal("100"))

    # Idle balances decay by 1% per period
    clock.advance(PERIOD_LENGTH)
    ledger.balance_of("bob")   # Decimal("99")
"""

# Core types
from .core import (
    HolderAccount,
    RateCheckpoint,
    Move,
    PendingTransaction,
    Transaction,
    TimeSource,
    CollateralAsset,
    AdminAuthority,
    LedgerView,
    LedgerError,
    InsufficientBalance,
    InvalidRateCheckpoint,
    PermissionDenied,
    CollateralTransferFailed,
    InvalidAmount,
    SYSTEM_WALLET,
    DEFAULT_FEE_COLLECTOR,
    DEFAULT_VAULT,
    TOKEN_DECIMALS,
    RATE_DECIMALS,
    EPOCH,
    PERIOD_LENGTH,
    DEFAULT_DEMURRAGE_RATE,
    DEFAULT_TRANSFER_FEE_RATE,
    DEFAULT_WITHDRAWAL_FEE_RATE,
    REASON_MINT,
    REASON_TRANSFER,
    REASON_WITHDRAW,
    REASON_FEE,
    REASON_DEMURRAGE,
)

# Pure arithmetic
from .schedule import RateSchedule
from .decay import compound_factor, combined_factor, apply_factor, decayed_balance
from .fees import fee

# Events
from .events import Minted, Transferred, Withdrawn, RateUpdated, DemurrageCollected

# Collaborators
from .clock import SystemClock, ManualClock
from .collateral import InMemoryCollateral
from .authority import OwnerAuthority

# Ledger
from .config import LedgerConfig
from .ledger import DemurrageLedger

__all__ = [
    # Core
    'HolderAccount', 'RateCheckpoint', 'Move', 'PendingTransaction', 'Transaction',
    'TimeSource', 'CollateralAsset', 'AdminAuthority', 'LedgerView',
    'LedgerError', 'InsufficientBalance', 'InvalidRateCheckpoint', 'PermissionDenied',
    'CollateralTransferFailed', 'InvalidAmount',
    'SYSTEM_WALLET', 'DEFAULT_FEE_COLLECTOR', 'DEFAULT_VAULT',
    'TOKEN_DECIMALS', 'RATE_DECIMALS', 'EPOCH', 'PERIOD_LENGTH',
    'DEFAULT_DEMURRAGE_RATE', 'DEFAULT_TRANSFER_FEE_RATE', 'DEFAULT_WITHDRAWAL_FEE_RATE',
    'REASON_MINT', 'REASON_TRANSFER', 'REASON_WITHDRAW', 'REASON_FEE', 'REASON_DEMURRAGE',
    # Arithmetic
    'RateSchedule', 'compound_factor', 'combined_factor', 'apply_factor',
    'decayed_balance', 'fee',
    # Events
    'Minted', 'Transferred', 'Withdrawn', 'RateUpdated', 'DemurrageCollected',
    # Collaborators
    'SystemClock', 'ManualClock', 'InMemoryCollateral', 'OwnerAuthority',
    # Ledger
    'LedgerConfig', 'DemurrageLedger',
]

__version__ = '1.0.0'
