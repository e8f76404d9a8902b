"""
events.py - Observable ledger events

Events are just data. Each committed Transaction ends with the event
describing the operation, preceded by a DemurrageCollected event for every
holder whose decay it realized. The transaction log IS the audit trail, so
there is no separate event store.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from .core import _normalize_decimal


@dataclass(frozen=True, slots=True)
class Minted:
    """Collateral deposited and the same amount of ledger units issued."""
    holder: str
    amount: Decimal
    timestamp: datetime

    def __repr__(self) -> str:
        return f"Minted({self.holder}, {_normalize_decimal(self.amount)})"


@dataclass(frozen=True, slots=True)
class Transferred:
    sender: str
    recipient: str
    amount: Decimal
    fee: Decimal
    timestamp: datetime

    def __repr__(self) -> str:
        return (f"Transferred({self.sender}→{self.recipient}, {_normalize_decimal(self.amount)}, "
                f"fee={_normalize_decimal(self.fee)})")


@dataclass(frozen=True, slots=True)
class Withdrawn:
    """Ledger units redeemed; `amount` collateral paid out, `fee` kept in ledger units."""
    holder: str
    amount: Decimal
    fee: Decimal
    timestamp: datetime

    def __repr__(self) -> str:
        return (f"Withdrawn({self.holder}, {_normalize_decimal(self.amount)}, "
                f"fee={_normalize_decimal(self.fee)})")


@dataclass(frozen=True, slots=True)
class RateUpdated:
    rate: Decimal
    effective_at: datetime
    timestamp: datetime

    def __repr__(self) -> str:
        return f"RateUpdated({_normalize_decimal(self.rate)} from {self.effective_at.isoformat()})"


@dataclass(frozen=True, slots=True)
class DemurrageCollected:
    """
    Decay realized on a holder's balance.

    `collector` is the fee collector, or the system wallet when the decayed
    amount is retired from supply.
    """
    holder: str
    amount: Decimal
    collector: str
    timestamp: datetime

    def __repr__(self) -> str:
        return f"DemurrageCollected({self.holder}→{self.collector}, {_normalize_decimal(self.amount)})"
