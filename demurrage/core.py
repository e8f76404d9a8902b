"""
Core types and pure functions for the demurrage ledger.

This module provides the foundational data structures and protocols:
1. Protocols: TimeSource, CollateralAsset, AdminAuthority, LedgerView
2. Immutable data structures: HolderAccount, RateCheckpoint, Move,
   PendingTransaction, Transaction
3. Exceptions: LedgerError and domain-specific error types
4. Fixed-point helpers: quantize_amount, quantize_rate, to_decimal

All functions in this module are pure. No function can mutate ledger state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_EVEN, getcontext
from typing import (
    Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable,
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Balances carry 18 fractional digits, so intermediate products of a balance
# and a rate factor need well over 30 significant digits. prec=50 keeps every
# product exact before the explicit ROUND_DOWN quantization.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet acting as counterparty for issuance (mint) and
# redemption (withdraw). Never decays and is exempt from balance checks.
SYSTEM_WALLET = "system"

DEFAULT_FEE_COLLECTOR = "fee_collector"
DEFAULT_VAULT = "vault"

# Fixed-point precision. Amounts are token units with 18 fractional digits,
# rates are fractions with 6 fractional digits (1% == 0.010000).
TOKEN_DECIMALS = 18
RATE_DECIMALS = 6
TOKEN_QUANTUM = Decimal(10) ** -TOKEN_DECIMALS
RATE_QUANTUM = Decimal(10) ** -RATE_DECIMALS

ZERO = Decimal("0")
ONE = Decimal("1")

# Period counting is epoch-aligned: period_index(t) = (t - EPOCH) // PERIOD_LENGTH
EPOCH = datetime(1970, 1, 1)
PERIOD_LENGTH = timedelta(days=31)

DEFAULT_DEMURRAGE_RATE = Decimal("0.01")
DEFAULT_TRANSFER_FEE_RATE = Decimal("0.01")
DEFAULT_WITHDRAWAL_FEE_RATE = Decimal("0.01")

# Move reasons
REASON_MINT = "mint"
REASON_TRANSFER = "transfer"
REASON_WITHDRAW = "withdraw"
REASON_FEE = "fee"
REASON_DEMURRAGE = "demurrage"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a realized balance is below the amount plus fee being debited."""
    pass


class InvalidRateCheckpoint(LedgerError):
    """Raised when a rate checkpoint is not strictly in the future, out of order, or out of range."""
    pass


class PermissionDenied(LedgerError):
    """Raised when an unauthorized caller attempts to change the demurrage rate."""
    pass


class CollateralTransferFailed(LedgerError):
    """Raised when a call into the collateral asset does not succeed."""
    pass


class InvalidAmount(LedgerError):
    """Raised when an operation amount is not a positive finite number."""
    pass


# ============================================================================
# FIXED-POINT HELPERS
# ============================================================================

def to_decimal(value: Any) -> Decimal:
    """
    Convert a numeric value to Decimal.

    Floats go through str() so that 0.01 becomes Decimal("0.01") rather than
    its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, (int, float, str)):
        try:
            return Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Expected a number, got {value!r}") from exc
    raise ValueError(f"Expected a number, got {type(value).__name__}")


def quantize_amount(value: Decimal) -> Decimal:
    """Truncate an amount to token precision (floor for non-negative values)."""
    return value.quantize(TOKEN_QUANTUM, rounding=ROUND_DOWN)


def quantize_rate(value: Decimal) -> Decimal:
    """Truncate a rate or factor to rate precision."""
    return value.quantize(RATE_QUANTUM, rounding=ROUND_DOWN)


def _normalize_decimal(d: Decimal) -> str:
    """
    Render a Decimal without trailing zeros or scientific notation.

    Decimal("1.000000000000000000") and Decimal("1") both become "1".
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class TimeSource(Protocol):
    """Supplies the current timestamp."""

    def now(self) -> datetime:
        """Return the current time."""
        ...


@runtime_checkable
class CollateralAsset(Protocol):
    """
    Fungible asset backing the ledger 1:1.

    The acting account is passed explicitly: transfer() moves funds owned by
    `source`, transfer_from() moves funds from `source` on behalf of
    `spender`, which must hold an allowance. Both return False when the
    asset refuses the movement.
    """

    def transfer(self, source: str, dest: str, amount: Decimal) -> bool:
        ...

    def transfer_from(self, spender: str, source: str, dest: str, amount: Decimal) -> bool:
        ...

    def approve(self, owner: str, spender: str, amount: Decimal) -> bool:
        ...

    def balance_of(self, holder: str) -> Decimal:
        ...


@runtime_checkable
class AdminAuthority(Protocol):
    """Gates who may register new rate checkpoints."""

    def is_authorized(self, caller: str) -> bool:
        ...


@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Functions accepting a LedgerView declare their read-only intent. The
    DemurrageLedger implements this protocol but also provides mutation
    methods.
    """

    @property
    def current_time(self) -> datetime:
        """Return the time reported by the ledger's time source."""
        ...

    def balance_of(self, holder: str) -> Decimal:
        """Return the decayed balance of a holder (0 for unknown holders)."""
        ...

    def get_account(self, holder: str) -> Optional['HolderAccount']:
        """Return the stored record for a holder, or None."""
        ...

    def list_holders(self) -> List[str]:
        """Return all holders with a stored record."""
        ...

    def rate_at(self, when: datetime) -> Decimal:
        """Return the demurrage rate active at a timestamp."""
        ...


# ============================================================================
# ACCOUNT AND SCHEDULE RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class HolderAccount:
    """
    Stored balance record of one holder.

    Attributes:
        holder: Opaque holder identity.
        raw_balance: Balance as of last_updated, before any decay after it.
        last_updated: Instant at which raw_balance was last realized.
    """
    holder: str
    raw_balance: Decimal
    last_updated: datetime

    def __post_init__(self):
        if not self.holder or not self.holder.strip():
            raise ValueError("HolderAccount holder cannot be empty")
        if not isinstance(self.raw_balance, Decimal):
            raise ValueError(f"raw_balance must be Decimal, got {type(self.raw_balance)}")

    def __repr__(self) -> str:
        return (f"HolderAccount({self.holder}: {_normalize_decimal(self.raw_balance)}"
                f" @ {self.last_updated.isoformat()})")


@dataclass(frozen=True, slots=True)
class RateCheckpoint:
    """
    A demurrage rate taking effect at a specific time.

    Attributes:
        rate: Per-period decay fraction at RATE_DECIMALS precision.
        effective_at: First instant at which the rate applies.
    """
    rate: Decimal
    effective_at: datetime

    def __repr__(self) -> str:
        return f"RateCheckpoint({_normalize_decimal(self.rate)} from {self.effective_at.isoformat()})"


# ============================================================================
# MOVES AND TRANSACTIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of ledger units between two accounts.

    Attributes:
        quantity: Amount moved (positive, token precision).
        source: Account debited.
        dest: Account credited.
        reason: Why the move happened (mint, transfer, fee, demurrage, withdraw).
    """
    quantity: Decimal
    source: str
    dest: str
    reason: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.reason:
            raise ValueError("Move reason cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if not self.quantity.is_finite():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if self.quantity <= ZERO:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({_normalize_decimal(self.quantity)} {self.reason}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    Staged effects of one ledger operation - represents INTENT.

    Holds the realized-and-mutated copies of every touched account together
    with the moves that explain the change. Nothing here is visible to
    readers until the ledger commits it.

    Attributes:
        accounts: Post-operation records of every touched account
        moves: Realization, principal and fee moves in application order
        events: Realization events followed by the operation's own event
        timestamp: Time the operation was staged at
    """
    accounts: Tuple[HolderAccount, ...]
    moves: Tuple[Move, ...]
    events: Tuple[Any, ...]
    timestamp: datetime

    def account(self, holder: str) -> Optional[HolderAccount]:
        for acct in self.accounts:
            if acct.holder == holder:
                return acct
        return None

    def is_empty(self) -> bool:
        """Return True if nothing would be logged for this operation."""
        return not self.moves and not self.events

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.accounts)} accounts, {len(self.events)} events)"


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    A committed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Realization, principal and fee moves
        events: Observable events emitted by the operation, in order
        timestamp: Time the operation took effect
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that committed this
        sequence_number: Monotonic sequence within the ledger
    """
    moves: Tuple[Move, ...]
    events: Tuple[Any, ...]
    timestamp: datetime
    exec_id: str
    ledger_name: str
    sequence_number: int

    @property
    def event(self) -> Any:
        """The operation's own event (the last one emitted)."""
        return self.events[-1] if self.events else None

    def moved(self, reason: str) -> Decimal:
        """Total quantity moved for a given reason."""
        return sum((m.quantity for m in self.moves if m.reason == reason), ZERO)

    def __repr__(self) -> str:
        w = 80
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   timestamp : ' + str(self.timestamp))}│",
            f"│{pad('   sequence  : ' + str(self.sequence_number))}│",
        ]
        for event in self.events:
            lines.append(f"│{pad('   event     : ' + repr(event))}│")
        lines.append(f"├{bar}┤")
        lines.append(f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│")
        for i, move in enumerate(self.moves):
            lines.append(f"│{pad(f'   [{i}] {move!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


def summarize_moves(moves: Tuple[Move, ...]) -> Dict[str, Decimal]:
    """Net balance change per account implied by a sequence of moves."""
    net: Dict[str, Decimal] = {}
    for m in moves:
        net[m.source] = net.get(m.source, ZERO) - m.quantity
        net[m.dest] = net.get(m.dest, ZERO) + m.quantity
    return net
