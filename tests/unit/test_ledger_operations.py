"""
test_ledger_operations.py - Unit tests for DemurrageLedger operations

Tests:
- Ledger creation and configuration
- Mint, transfer and withdraw
- Rate updates and authorization
- Realization and balance reads
- Collateral failures and rollback
- Transaction log, execution ids and verbose output
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from demurrage import (
    DemurrageLedger, LedgerConfig, ManualClock, InMemoryCollateral, OwnerAuthority,
    Minted, Transferred, Withdrawn, RateUpdated, DemurrageCollected,
    InsufficientBalance, InvalidRateCheckpoint, PermissionDenied,
    CollateralTransferFailed, InvalidAmount,
    SYSTEM_WALLET, REASON_MINT, REASON_TRANSFER, REASON_WITHDRAW, REASON_FEE, REASON_DEMURRAGE,
)

from conftest import START_TIME, OWNER, FEE_COLLECTOR, months, deposit, make_ledger, snapshot


class TestLedgerCreation:
    """Tests for DemurrageLedger initialization."""

    def test_default_config(self):
        ledger = DemurrageLedger(ManualClock(START_TIME), InMemoryCollateral(), OwnerAuthority(OWNER))
        assert ledger.name == "demurrage"
        assert ledger.vault == "vault"
        assert ledger.fee_collector == FEE_COLLECTOR
        assert ledger.current_rate() == Decimal("0.01")
        assert ledger.verbose is False

    def test_starts_empty(self, ledger):
        assert ledger.list_holders() == []
        assert ledger.transaction_log == []
        assert ledger.total_supply() == Decimal("0")
        assert ledger.get_account(SYSTEM_WALLET).raw_balance == Decimal("0")

    def test_current_time_follows_clock(self, ledger, clock):
        assert ledger.current_time == START_TIME
        clock.advance(timedelta(days=3))
        assert ledger.current_time == START_TIME + timedelta(days=3)

    def test_custom_config(self):
        ledger = make_ledger(
            name="brussels", fee_collector="treasury",
            transfer_fee_rate="0.02", genesis_rate=Decimal("0.05"),
        )
        assert ledger.name == "brussels"
        assert ledger.fee_collector == "treasury"
        assert ledger.transfer_fee_rate == Decimal("0.02")
        assert ledger.rate_at(START_TIME) == Decimal("0.05")

    def test_repr(self, ledger):
        deposit(ledger, "leen", 10)
        assert repr(ledger) == "DemurrageLedger(test, 1 holders, 1 transactions)"


class TestMint:

    def test_mint_credits_holder(self, ledger):
        deposit(ledger, "leen", 200)
        assert ledger.balance_of("leen") == Decimal("200")
        assert ledger.list_holders() == ["leen"]

    def test_mint_moves_collateral_to_vault(self, ledger, collateral):
        deposit(ledger, "leen", 200)
        assert collateral.balance_of("leen") == Decimal("0")
        assert collateral.balance_of("vault") == Decimal("200")
        assert collateral.allowance("leen", "vault") == Decimal("0")

    def test_mint_charges_no_fee(self, ledger):
        deposit(ledger, "leen", 200)
        assert ledger.balance_of(FEE_COLLECTOR) == Decimal("0")

    def test_mint_debits_system_wallet(self, ledger):
        deposit(ledger, "julien", 1000)
        assert ledger.get_account(SYSTEM_WALLET).raw_balance == Decimal("-1000")

    def test_mint_returns_transaction(self, ledger, collateral):
        collateral.approve("leen", "vault", Decimal("200"))
        tx = ledger.mint("leen", Decimal("200"))
        assert tx.event == Minted("leen", Decimal("200"), START_TIME)
        assert tx.moved(REASON_MINT) == Decimal("200")
        assert tx.moves[0].source == SYSTEM_WALLET
        assert tx.moves[0].dest == "leen"
        assert ledger.transaction_log == [tx]

    def test_mint_accepts_int_and_float(self, ledger, collateral):
        collateral.approve("marc", "vault", Decimal("1000"))
        ledger.mint("marc", 10)
        ledger.mint("marc", 0.5)
        assert ledger.balance_of("marc") == Decimal("10.5")

    def test_mint_without_allowance_fails(self, ledger, collateral):
        before = snapshot(ledger)
        with pytest.raises(CollateralTransferFailed):
            ledger.mint("leen", Decimal("200"))
        assert snapshot(ledger) == before

    def test_mint_beyond_collateral_balance_fails(self, ledger, collateral):
        collateral.approve("leen", "vault", Decimal("500"))
        with pytest.raises(CollateralTransferFailed):
            ledger.mint("leen", Decimal("201"))
        assert ledger.get_account("leen") is None
        assert collateral.balance_of("leen") == Decimal("200")

    @pytest.mark.parametrize("amount", [0, -5, Decimal("NaN"), Decimal("Infinity"), "abc", True, None])
    def test_mint_invalid_amount(self, ledger, amount):
        with pytest.raises(InvalidAmount):
            ledger.mint("leen", amount)
        assert ledger.transaction_log == []

    def test_mint_below_smallest_unit(self, ledger):
        with pytest.raises(InvalidAmount, match="smallest unit"):
            ledger.mint("leen", Decimal("1e-19"))

    @pytest.mark.parametrize("holder", [SYSTEM_WALLET, "vault", "", "   "])
    def test_mint_reserved_or_empty_holder(self, ledger, holder):
        with pytest.raises(ValueError):
            ledger.mint(holder, Decimal("1"))

    def test_mint_realizes_existing_balance_first(self, ledger, clock):
        deposit(ledger, "julien", 200)
        clock.advance(months(1))
        deposit(ledger, "julien", 100)
        account = ledger.get_account("julien")
        assert account.raw_balance == Decimal("298")
        assert account.last_updated == clock.now()


class TestTransfer:

    def test_transfer_charges_one_percent(self, ledger):
        deposit(ledger, "leen", 200)
        ledger.transfer("leen", "julien", Decimal("100"))
        assert ledger.balance_of("leen") == Decimal("99")
        assert ledger.balance_of("julien") == Decimal("100")
        assert ledger.balance_of(FEE_COLLECTOR) == Decimal("1")

    def test_transfer_transaction_contents(self, ledger):
        deposit(ledger, "leen", 200)
        tx = ledger.transfer("leen", "julien", Decimal("100"))
        assert tx.event == Transferred("leen", "julien", Decimal("100"), Decimal("1"), START_TIME)
        assert tx.moved(REASON_TRANSFER) == Decimal("100")
        assert tx.moved(REASON_FEE) == Decimal("1")
        assert [m.reason for m in tx.moves] == [REASON_TRANSFER, REASON_FEE]

    def test_transfer_insufficient_balance(self, ledger):
        deposit(ledger, "leen", 200)
        before = snapshot(ledger)
        with pytest.raises(InsufficientBalance):
            ledger.transfer("leen", "julien", Decimal("199"))
        assert snapshot(ledger) == before

    def test_transfer_entire_balance_including_fee(self, ledger):
        deposit(ledger, "leen", 101)
        ledger.transfer("leen", "julien", Decimal("100"))
        assert ledger.balance_of("leen") == Decimal("0")

    def test_transfer_from_unknown_holder(self, ledger):
        with pytest.raises(InsufficientBalance):
            ledger.transfer("nobody", "julien", Decimal("1"))
        assert ledger.list_holders() == []

    def test_self_transfer_costs_only_the_fee(self, ledger):
        deposit(ledger, "leen", 200)
        tx = ledger.transfer("leen", "leen", Decimal("100"))
        assert ledger.balance_of("leen") == Decimal("199")
        assert ledger.balance_of(FEE_COLLECTOR) == Decimal("1")
        assert tx.moved(REASON_TRANSFER) == Decimal("0")

    def test_zero_fee_rate(self):
        ledger = make_ledger(transfer_fee_rate=0)
        deposit(ledger, "leen", 200)
        tx = ledger.transfer("leen", "julien", Decimal("200"))
        assert ledger.balance_of("julien") == Decimal("200")
        assert tx.moved(REASON_FEE) == Decimal("0")
        assert tx.event.fee == Decimal("0")

    def test_fee_collector_pays_no_fee_to_itself(self, ledger):
        deposit(ledger, "leen", 200)
        ledger.transfer("leen", "julien", Decimal("100"))
        tx = ledger.transfer(FEE_COLLECTOR, "marc", Decimal("0.5"))
        assert ledger.balance_of(FEE_COLLECTOR) == Decimal("0.5")
        assert ledger.balance_of("marc") == Decimal("0.5")
        assert tx.moved(REASON_FEE) == Decimal("0")

    def test_transfer_to_reserved_account_rejected(self, ledger):
        deposit(ledger, "leen", 200)
        with pytest.raises(ValueError):
            ledger.transfer("leen", SYSTEM_WALLET, Decimal("1"))
        with pytest.raises(ValueError):
            ledger.transfer("leen", "vault", Decimal("1"))

    def test_transfer_invalid_amount(self, ledger):
        deposit(ledger, "leen", 200)
        with pytest.raises(InvalidAmount):
            ledger.transfer("leen", "julien", Decimal("-1"))

    def test_recipient_starts_decay_clock_on_receipt(self, ledger, clock):
        deposit(ledger, "julien", 1000)
        clock.advance(months(6))
        ledger.transfer("julien", "leen", Decimal("200"))
        assert ledger.get_account("leen").last_updated == clock.now()
        assert ledger.balance_of("leen") == Decimal("200")


class TestWithdraw:

    def test_withdraw_pays_out_collateral(self, ledger, collateral):
        deposit(ledger, "leen", 200)
        ledger.withdraw("leen", Decimal("100"))
        assert collateral.balance_of("leen") == Decimal("100")
        assert collateral.balance_of("vault") == Decimal("100")

    def test_withdraw_charges_fee(self, ledger):
        deposit(ledger, "leen", 200)
        tx = ledger.withdraw("leen", Decimal("100"))
        assert ledger.balance_of("leen") == Decimal("99")
        assert ledger.balance_of(FEE_COLLECTOR) == Decimal("1")
        assert tx.event == Withdrawn("leen", Decimal("100"), Decimal("1"), START_TIME)
        assert tx.moved(REASON_WITHDRAW) == Decimal("100")

    def test_withdraw_credits_system_wallet(self, ledger):
        deposit(ledger, "leen", 200)
        ledger.withdraw("leen", Decimal("100"))
        assert ledger.get_account(SYSTEM_WALLET).raw_balance == Decimal("-100")

    def test_withdraw_insufficient_balance(self, ledger, collateral):
        deposit(ledger, "leen", 200)
        before = snapshot(ledger)
        with pytest.raises(InsufficientBalance):
            ledger.withdraw("leen", Decimal("199"))
        assert snapshot(ledger) == before

    def test_withdraw_zero_fee_rate(self):
        ledger = make_ledger(withdrawal_fee_rate=0)
        deposit(ledger, "leen", 200)
        ledger.withdraw("leen", Decimal("200"))
        assert ledger.balance_of("leen") == Decimal("0")
        assert ledger.collateral.balance_of("leen") == Decimal("200")

    @pytest.mark.parametrize("mode", ["refuse", "raise"])
    def test_failed_payout_rolls_back(self, flaky_ledger, flaky_collateral, mode):
        deposit(flaky_ledger, "alice", 1000)
        before = snapshot(flaky_ledger)
        flaky_collateral.mode = mode
        with pytest.raises(CollateralTransferFailed):
            flaky_ledger.withdraw("alice", Decimal("100"))
        assert snapshot(flaky_ledger) == before
        assert flaky_ledger.balance_of("alice") == Decimal("1000")

    def test_failed_payout_keeps_cause(self, flaky_ledger, flaky_collateral):
        deposit(flaky_ledger, "alice", 1000)
        flaky_collateral.mode = "raise"
        with pytest.raises(CollateralTransferFailed) as info:
            flaky_ledger.withdraw("alice", Decimal("100"))
        assert isinstance(info.value.__cause__, RuntimeError)

    def test_failed_payout_after_decay_rolls_back_realization(self, flaky_ledger, flaky_collateral, clock):
        deposit(flaky_ledger, "alice", 1000)
        clock.advance(months(1))
        before = snapshot(flaky_ledger)
        flaky_collateral.mode = "refuse"
        with pytest.raises(CollateralTransferFailed):
            flaky_ledger.withdraw("alice", Decimal("100"))
        assert snapshot(flaky_ledger) == before
        assert flaky_ledger.get_account("alice").last_updated == START_TIME

    def test_failed_mint_leaves_no_trace(self, flaky_ledger, flaky_collateral):
        flaky_collateral.approve("alice", "vault", Decimal("100"))
        flaky_collateral.mode = "raise"
        with pytest.raises(CollateralTransferFailed):
            flaky_ledger.mint("alice", Decimal("100"))
        assert flaky_ledger.get_account("alice") is None
        assert flaky_ledger.transaction_log == []


class TestRateUpdate:

    def test_owner_registers_checkpoint(self, ledger):
        effective = START_TIME + months(2)
        tx = ledger.update_demurrage_rate(OWNER, Decimal("0.02"), effective)
        assert tx.event == RateUpdated(Decimal("0.02"), effective, START_TIME)
        assert tx.moves == ()
        assert ledger.pending_checkpoint().effective_at == effective
        assert ledger.rate_at(effective) == Decimal("0.02")
        assert ledger.current_rate() == Decimal("0.01")

    def test_non_owner_denied(self, ledger):
        with pytest.raises(PermissionDenied):
            ledger.update_demurrage_rate("julien", Decimal("0.02"), START_TIME + months(1))
        assert len(ledger.schedule) == 0
        assert ledger.transaction_log == []

    def test_past_checkpoint_rejected(self, ledger):
        with pytest.raises(InvalidRateCheckpoint):
            ledger.update_demurrage_rate(OWNER, Decimal("0.02"), START_TIME)
        assert ledger.transaction_log == []

    def test_pending_checkpoint_blocks_new_one(self, ledger):
        ledger.update_demurrage_rate(OWNER, Decimal("0.02"), START_TIME + months(1))
        with pytest.raises(InvalidRateCheckpoint):
            ledger.update_demurrage_rate(OWNER, Decimal("0.03"), START_TIME + months(2))

    def test_rate_out_of_range_rejected(self, ledger):
        with pytest.raises(InvalidRateCheckpoint):
            ledger.update_demurrage_rate(OWNER, Decimal("2"), START_TIME + months(1))

    def test_pending_cleared_once_effective(self, ledger, clock):
        ledger.update_demurrage_rate(OWNER, Decimal("0.02"), START_TIME + months(1))
        clock.advance(months(1))
        assert ledger.pending_checkpoint() is None
        assert ledger.current_rate() == Decimal("0.02")


class TestRealizeAndReads:

    def test_balance_read_is_pure(self, ledger, clock):
        deposit(ledger, "julien", 200)
        clock.advance(months(1))
        account = ledger.get_account("julien")
        assert ledger.balance_of("julien") == Decimal("198")
        assert ledger.balance_of("julien") == Decimal("198")
        assert ledger.get_account("julien") is account
        assert len(ledger.transaction_log) == 1

    def test_unknown_holder_reads_zero(self, ledger):
        assert ledger.balance_of("stranger") == Decimal("0")
        assert ledger.get_account("stranger") is None

    def test_reserved_accounts_read_zero(self, ledger):
        deposit(ledger, "leen", 10)
        assert ledger.balance_of(SYSTEM_WALLET) == Decimal("0")
        assert ledger.balance_of("vault") == Decimal("0")
        assert ledger.balance_at(SYSTEM_WALLET, START_TIME + months(1)) == Decimal("0")
        assert ledger.get_account(SYSTEM_WALLET).raw_balance == Decimal("-10")

    def test_realize_stores_decay(self, ledger, clock):
        deposit(ledger, "julien", 200)
        clock.advance(months(1))
        assert ledger.realize("julien") == Decimal("198")
        account = ledger.get_account("julien")
        assert account.raw_balance == Decimal("198")
        assert account.last_updated == clock.now()
        tx = ledger.transaction_log[-1]
        assert tx.event == DemurrageCollected("julien", Decimal("2"), FEE_COLLECTOR, clock.now())
        assert tx.moved(REASON_DEMURRAGE) == Decimal("2")

    def test_realize_unknown_holder_creates_nothing(self, ledger):
        assert ledger.realize("stranger") == Decimal("0")
        assert ledger.get_account("stranger") is None
        assert ledger.transaction_log == []

    def test_realize_without_decay_logs_nothing(self, ledger, clock):
        deposit(ledger, "julien", 200)
        clock.advance(timedelta(days=1))
        assert ledger.realize("julien") == Decimal("200")
        assert len(ledger.transaction_log) == 1
        assert ledger.get_account("julien").last_updated == clock.now()

    def test_balance_at_projects_forward(self, ledger):
        deposit(ledger, "julien", 200)
        assert ledger.balance_at("julien", START_TIME + months(2)) == Decimal("196.02")

    def test_balance_at_before_last_update_rejected(self, ledger):
        deposit(ledger, "julien", 200)
        with pytest.raises(ValueError):
            ledger.balance_at("julien", START_TIME - timedelta(seconds=1))

    def test_total_supply_is_decayed_sum(self, ledger, clock):
        deposit(ledger, "julien", 1000)
        deposit(ledger, "marc", 1000)
        clock.advance(months(1))
        assert ledger.total_supply() == Decimal("1980")

    def test_verify_peg_after_activity(self, ledger, clock):
        deposit(ledger, "julien", 1000)
        deposit(ledger, "leen", 200)
        clock.advance(months(2))
        ledger.transfer("julien", "marc", Decimal("300"))
        ledger.withdraw("leen", Decimal("50"))
        result = ledger.verify_peg()
        assert result['valid'], result['discrepancies']
        assert result['collateral'] == Decimal("1150")
        assert result['surplus'] >= Decimal("0")

    def test_verify_peg_detects_missing_collateral(self, ledger, collateral):
        deposit(ledger, "julien", 1000)
        collateral.balances["vault"] = Decimal("10")
        result = ledger.verify_peg()
        assert not result['valid']
        assert result['discrepancies'][0]['check'] == 'collateral'


class TestTransactionLog:

    def test_sequence_and_exec_ids(self, ledger):
        deposit(ledger, "leen", 200)
        ledger.transfer("leen", "julien", Decimal("10"))
        first, second = ledger.transaction_log
        assert [first.sequence_number, second.sequence_number] == [0, 1]
        assert first.exec_id.startswith("exec:test:000000000000:")
        assert second.exec_id.startswith("exec:test:000000000001:")
        assert first.ledger_name == "test"

    def test_events_in_commit_order(self, ledger, clock):
        deposit(ledger, "julien", 1000)
        clock.advance(months(1))
        ledger.transfer("julien", "leen", Decimal("100"))
        kinds = [type(e) for e in ledger.events]
        assert kinds == [Minted, DemurrageCollected, Transferred]

    def test_rejected_operations_are_not_logged(self, ledger):
        deposit(ledger, "leen", 200)
        for bad in (
            lambda: ledger.transfer("leen", "julien", Decimal("500")),
            lambda: ledger.withdraw("leen", Decimal("500")),
            lambda: ledger.update_demurrage_rate("leen", Decimal("0.5"), START_TIME + months(1)),
        ):
            with pytest.raises(Exception):
                bad()
        assert len(ledger.transaction_log) == 1


class TestVerboseOutput:

    def test_applied_and_rejected_lines(self, capsys):
        ledger = make_ledger(verbose=True)
        deposit(ledger, "leen", 200)
        with pytest.raises(InsufficientBalance):
            ledger.transfer("leen", "julien", Decimal("500"))
        out = capsys.readouterr().out
        assert "✓ APPLIED [0] Minted(leen, 200)" in out
        assert "✗ REJECTED: InsufficientBalance" in out

    def test_quiet_by_default(self, ledger, capsys):
        deposit(ledger, "leen", 200)
        assert capsys.readouterr().out == ""
