#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Demurrage Ledger Step by Step

This is a pedagogical demonstration of a collateral-backed citizen coin whose
idle balances melt a little every period. Each step builds on the previous
one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation  - The empty ledger, minting against collateral, fees
  4-6:  Demurrage   - Decay over time, lazy realization, rate changes
  7-9:  Safety      - Rejections, rollback of a failed payout, the peg

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import sys

from demurrage import (
    DemurrageLedger, LedgerConfig, ManualClock, InMemoryCollateral, OwnerAuthority,
    InsufficientBalance, InvalidRateCheckpoint, PermissionDenied, CollateralTransferFailed,
    SYSTEM_WALLET, PERIOD_LENGTH, compound_factor,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 15, 12, 0, 0)
    owner: str = "owner"

    # Collateral each citizen starts with
    leen_collateral: Decimal = Decimal("200")
    julien_collateral: Decimal = Decimal("1000")
    marc_collateral: Decimal = Decimal("1000")

    # Rate change
    new_rate: Decimal = Decimal("0.02")


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_balances(ledger: DemurrageLedger):
    for holder in ledger.list_holders():
        print(f"  {holder:<15} {ledger.balance_of(holder)}")
    print(f"  {'(system raw)':<15} {ledger.get_account(SYSTEM_WALLET).raw_balance}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_empty_ledger():
    """Create an empty ledger wired to a clock, a collateral asset and an owner."""
    step_header(1, "The Empty Ledger",
        "A demurrage ledger is a clock, a collateral asset and a rate schedule.")

    print("""
    The ledger never reads the wall clock or moves money on its own. It is
    given three collaborators:

    1. CLOCK      - answers "what time is it?" (a ManualClock here)
    2. COLLATERAL - the reference asset every ledger unit is backed by
    3. AUTHORITY  - decides who may change the demurrage rate
    """)

    wait_for_enter()

    clock = ManualClock(CONFIG.start_time)
    usd = InMemoryCollateral("USD", {
        "leen": CONFIG.leen_collateral,
        "julien": CONFIG.julien_collateral,
        "marc": CONFIG.marc_collateral,
    })
    ledger = DemurrageLedger(
        clock, usd, OwnerAuthority(CONFIG.owner),
        LedgerConfig(name="tutorial", verbose=True),
    )

    section_header("Initial State")
    print(f"Ledger:            {ledger!r}")
    print(f"Current time:      {ledger.current_time}")
    print(f"Demurrage rate:    {ledger.current_rate()} per period of {PERIOD_LENGTH.days} days")
    print(f"Transfer fee:      {ledger.transfer_fee_rate}")
    print(f"Withdrawal fee:    {ledger.withdrawal_fee_rate}")
    print(f"Collateral:        {usd!r}")

    return ledger, clock, usd


def step_02_mint(ledger: DemurrageLedger, usd: InMemoryCollateral):
    """Mint ledger units against collateral."""
    step_header(2, "Minting",
        "Every ledger unit in circulation is backed by one unit of collateral.")

    print(">>> usd.approve('julien', ledger.vault, 1000); ledger.mint('julien', 1000)")
    for holder, amount in (("julien", CONFIG.julien_collateral), ("marc", CONFIG.marc_collateral)):
        usd.approve(holder, ledger.vault, amount)
        ledger.mint(holder, amount)

    section_header("Balances")
    show_balances(ledger)
    print(f"\n  vault collateral: {usd.balance_of(ledger.vault)}")

    section_header("Key Insight")
    print("""
    Units ENTER circulation from the system wallet, whose raw balance goes
    negative by the same amount. Raw balances always sum to zero.
    """)


def step_03_transfer_fee(ledger: DemurrageLedger):
    """Transfers pay a fee to the fee collector."""
    step_header(3, "Transfers and Fees",
        "A transfer debits amount + 1% and credits the fee to the collector.")

    print(">>> ledger.transfer('marc', 'leen', 100)")
    tx = ledger.transfer("marc", "leen", Decimal("100"))
    print(tx)

    section_header("Balances")
    show_balances(ledger)


# ============================================================================
# PHASE 2: DEMURRAGE (Steps 4-6)
# ============================================================================

def step_04_decay(ledger: DemurrageLedger, clock: ManualClock):
    """Idle balances decay once per period."""
    step_header(4, "Demurrage",
        "Money that sits still loses 1% per period, compounded.")

    for n in (1, 2, 6):
        print(f"  compound_factor(0.01, {n}) = {compound_factor(Decimal('0.01'), n)}")

    print("\n>>> clock.advance(PERIOD_LENGTH * 6)")
    clock.advance(PERIOD_LENGTH * 6)

    section_header("Balances after six periods")
    show_balances(ledger)

    section_header("Key Insight")
    print("""
    Nothing ran in the background. balance_of() computes the decayed value
    on the fly; the stored records still hold the old raw balances.
    """)


def step_05_realization(ledger: DemurrageLedger):
    """Touching an account realizes its decay."""
    step_header(5, "Lazy Realization",
        "An operation settles decay for every holder it touches, first.")

    before = ledger.get_account("julien")
    print(f"Stored before: {before!r}")
    print("\n>>> ledger.transfer('julien', 'leen', 200)")
    tx = ledger.transfer("julien", "leen", Decimal("200"))
    print(tx)
    print(f"\nStored after:  {ledger.get_account('julien')!r}")

    section_header("Key Insight")
    print("""
    Julien's six periods of decay moved to the fee collector before the
    transfer was checked. Leen's 200 starts its own decay clock now.
    """)


def step_06_rate_change(ledger: DemurrageLedger, clock: ManualClock):
    """Rate changes only apply from their checkpoint onwards."""
    step_header(6, "Changing the Rate",
        "A new rate takes effect in the future and never rewrites the past.")

    effective = clock.now() + PERIOD_LENGTH
    marc_now = ledger.balance_of("marc")

    print(f">>> ledger.update_demurrage_rate('{CONFIG.owner}', {CONFIG.new_rate}, {effective})")
    ledger.update_demurrage_rate(CONFIG.owner, CONFIG.new_rate, effective)
    print(f"Pending checkpoint: {ledger.pending_checkpoint()!r}")
    print(f"Marc now, unchanged: {marc_now} == {ledger.balance_of('marc')}")

    print("\n>>> ledger.update_demurrage_rate('marc', 0.5, ...)")
    try:
        ledger.update_demurrage_rate("marc", Decimal("0.5"), effective + PERIOD_LENGTH)
    except PermissionDenied:
        pass

    print("\n>>> ledger.update_demurrage_rate(owner, 0.03, ...) while one is pending")
    try:
        ledger.update_demurrage_rate(CONFIG.owner, Decimal("0.03"), effective + PERIOD_LENGTH)
    except InvalidRateCheckpoint:
        pass

    clock.advance(PERIOD_LENGTH * 2)
    section_header("Two periods later (1% then 2%)")
    show_balances(ledger)


# ============================================================================
# PHASE 3: SAFETY (Steps 7-9)
# ============================================================================

def step_07_rejection(ledger: DemurrageLedger):
    step_header(7, "Rejected Operations",
        "A rejected operation changes nothing, not even last_updated.")

    before = ledger.get_account("leen")
    print(">>> ledger.transfer('leen', 'marc', 10_000)")
    try:
        ledger.transfer("leen", "marc", Decimal("10000"))
    except InsufficientBalance:
        pass
    print(f"Leen's record untouched: {ledger.get_account('leen') == before}")


def step_08_withdraw(ledger: DemurrageLedger, usd: InMemoryCollateral):
    """Withdraw collateral, and watch a failed payout roll back."""
    step_header(8, "Withdrawing",
        "Redeem ledger units for collateral; a failed payout is undone.")

    print(">>> ledger.withdraw('leen', 100)")
    ledger.withdraw("leen", Decimal("100"))
    print(f"Leen's collateral: {usd.balance_of('leen')}")

    section_header("A vault that cannot pay")
    vault_funds = usd.balances[ledger.vault]
    usd.balances[ledger.vault] = Decimal("0")
    before = ledger.get_account("julien")
    try:
        ledger.withdraw("julien", Decimal("50"))
    except CollateralTransferFailed:
        pass
    usd.balances[ledger.vault] = vault_funds
    print(f"Julien's record restored: {ledger.get_account('julien') == before}")


def step_09_peg(ledger: DemurrageLedger):
    """Verify double entry and collateral backing."""
    step_header(9, "The Peg",
        "Collateral in the vault always covers the circulating supply.")

    result = ledger.verify_peg()
    print(f"Valid:      {result['valid']}")
    print(f"Collateral: {result['collateral']}")
    print(f"Supply:     {result['supply']}")
    print(f"Surplus:    {result['surplus']}")
    print(f"Log:        {len(ledger.transaction_log)} transactions, {len(ledger.events)} events")


def main():
    print("=" * 70)
    print("       DEMURRAGE LEDGER TUTORIAL")
    print("=" * 70)

    ledger, clock, usd = step_01_empty_ledger()
    wait_for_enter()

    step_02_mint(ledger, usd)
    wait_for_enter()

    step_03_transfer_fee(ledger)
    wait_for_enter()

    step_04_decay(ledger, clock)
    wait_for_enter()

    step_05_realization(ledger)
    wait_for_enter()

    step_06_rate_change(ledger, clock)
    wait_for_enter()

    step_07_rejection(ledger)
    wait_for_enter()

    step_08_withdraw(ledger, usd)
    wait_for_enter()

    step_09_peg(ledger)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:
      - Ledger units are minted 1:1 against collateral
      - Transfers and withdrawals pay a fee to the fee collector
      - Idle balances decay per period, realized lazily on touch
      - Rate changes are future-only checkpoints
      - Failed operations leave no trace

    Next steps:
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
