"""
conftest.py - Shared pytest fixtures for demurrage ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- A manual clock starting mid-period
- A collateral asset with funded holders
- A ledger wired to both, with a single owner authorized to change rates
- Helpers to deposit collateral and to build failing collateral assets
"""

import pytest
from datetime import datetime
from decimal import Decimal

from demurrage import (
    DemurrageLedger, LedgerConfig, ManualClock, InMemoryCollateral, OwnerAuthority,
    PERIOD_LENGTH,
)


# Deliberately not aligned to a period boundary
START_TIME = datetime(2025, 1, 15, 12, 0, 0)
OWNER = "owner"
FEE_COLLECTOR = "fee_collector"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def months(n: int):
    """Duration of n decay periods."""
    return PERIOD_LENGTH * n


def deposit(ledger: DemurrageLedger, holder: str, amount) -> None:
    """Approve the vault and mint `amount` ledger units for `holder`."""
    amount = Decimal(str(amount))
    ledger.collateral.approve(holder, ledger.vault, amount)
    ledger.mint(holder, amount)


def make_ledger(clock=None, collateral=None, **config) -> DemurrageLedger:
    """Ledger on a manual clock with default fees and a 1% genesis rate."""
    clock = clock or ManualClock(START_TIME)
    collateral = collateral or funded_collateral()
    config.setdefault("name", "test")
    return DemurrageLedger(clock, collateral, OwnerAuthority(OWNER), LedgerConfig(**config))


def funded_collateral() -> InMemoryCollateral:
    return InMemoryCollateral("USD", {
        OWNER: Decimal("1000000"),
        "leen": Decimal("200"),
        "julien": Decimal("1000"),
        "marc": Decimal("1000"),
    })


class FlakyCollateral(InMemoryCollateral):
    """
    Collateral asset that can be told to refuse or blow up.

    mode:
        None     - behave normally
        "refuse" - transfer/transfer_from return False
        "raise"  - transfer/transfer_from raise RuntimeError
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.mode = None

    def _misbehave(self) -> bool:
        if self.mode == "raise":
            raise RuntimeError("collateral node unavailable")
        return self.mode == "refuse"

    def transfer(self, source, dest, amount):
        if self._misbehave():
            return False
        return super().transfer(source, dest, amount)

    def transfer_from(self, spender, source, dest, amount):
        if self._misbehave():
            return False
        return super().transfer_from(spender, source, dest, amount)


def snapshot(ledger: DemurrageLedger) -> dict:
    """Observable state of a ledger, for before/after comparisons."""
    return {
        'accounts': dict(ledger.accounts),
        'log': len(ledger.transaction_log),
        'checkpoints': ledger.schedule.checkpoints,
        'collateral': dict(ledger.collateral.balances),
    }


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Manual clock starting mid-period."""
    return ManualClock(START_TIME)


@pytest.fixture
def collateral():
    """Collateral asset with funded holders."""
    return funded_collateral()


@pytest.fixture
def ledger(clock, collateral):
    """Ledger at 1% demurrage with 1% transfer and withdrawal fees."""
    return make_ledger(clock=clock, collateral=collateral)


@pytest.fixture
def flaky_collateral():
    collateral = FlakyCollateral("USD", {"alice": Decimal("1000")})
    return collateral


@pytest.fixture
def flaky_ledger(clock, flaky_collateral):
    """Ledger over a collateral asset that can be made to fail."""
    return make_ledger(clock=clock, collateral=flaky_collateral)
