"""
collateral.py - In-memory collateral asset

A minimal fungible token with balances and allowances, implementing the
CollateralAsset protocol. It stands in for the reference asset the ledger is
pegged to: tests and simulations fund holders with issue(), holders approve
the vault, and the ledger pulls and pays out collateral through it.

Transfers that the asset refuses (insufficient balance or allowance) return
False rather than raising, so callers decide how to fail.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Optional, Tuple

from .core import ZERO, to_decimal, _normalize_decimal


class InMemoryCollateral:
    """
    Fungible collateral token kept in memory.

    Example:
        usdc = InMemoryCollateral("USDC")
        usdc.issue("alice", Decimal("200"))
        usdc.approve("alice", "vault", Decimal("200"))
        usdc.transfer_from("vault", "alice", "vault", Decimal("200"))  # True
    """

    def __init__(self, symbol: str = "USD", balances: Optional[Dict[str, Decimal]] = None):
        self.symbol = symbol
        self.balances: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        self.allowances: Dict[Tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
        for holder, amount in (balances or {}).items():
            self.issue(holder, amount)

    def issue(self, holder: str, amount: Decimal) -> None:
        """Create new collateral in a holder's account."""
        amount = to_decimal(amount)
        if amount < ZERO:
            raise ValueError(f"Cannot issue a negative amount: {amount}")
        self.balances[holder] += amount

    def balance_of(self, holder: str) -> Decimal:
        return self.balances.get(holder, ZERO)

    def allowance(self, owner: str, spender: str) -> Decimal:
        return self.allowances.get((owner, spender), ZERO)

    def total_supply(self) -> Decimal:
        return sum(self.balances.values(), ZERO)

    def approve(self, owner: str, spender: str, amount: Decimal) -> bool:
        """Set (not increase) the amount `spender` may pull from `owner`."""
        amount = to_decimal(amount)
        if amount < ZERO:
            return False
        self.allowances[(owner, spender)] = amount
        return True

    def transfer(self, source: str, dest: str, amount: Decimal) -> bool:
        """Move funds owned by `source`. Returns False if the balance is short."""
        amount = to_decimal(amount)
        if amount < ZERO or self.balance_of(source) < amount:
            return False
        self.balances[source] -= amount
        self.balances[dest] += amount
        return True

    def transfer_from(self, spender: str, source: str, dest: str, amount: Decimal) -> bool:
        """
        Move funds from `source` on behalf of `spender`.

        Consumes allowance. Returns False if either the allowance or the
        balance of `source` is short; nothing changes in that case.
        """
        amount = to_decimal(amount)
        if amount < ZERO:
            return False
        if self.allowance(source, spender) < amount:
            return False
        if self.balance_of(source) < amount:
            return False
        self.allowances[(source, spender)] -= amount
        self.balances[source] -= amount
        self.balances[dest] += amount
        return True

    def __repr__(self):
        return (f"InMemoryCollateral({self.symbol}, {len(self.balances)} holders, "
                f"supply={_normalize_decimal(self.total_supply())})")
