"""
ledger.py - Stateful Demurrage Ledger

The DemurrageLedger is the central state manager. It is the only module that
mutates holder records, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView for read-only access by pure functions
    - Realizes pending decay for every holder an operation touches, before
      any balance arithmetic for that operation
    - Executes mint / transfer / withdraw atomically (all effects or none)
    - Orders collateral calls checks-effects-interactions: mint pulls
      collateral before committing, withdraw pays out after committing and
      rolls back if the payout fails
    - Logs every committed operation as a Transaction with its events

Every operation goes through the same pipeline:

    stage (realize touched holders) -> validate -> apply moves to the
    staged copies -> [collateral call] -> commit -> log

Staged copies are private to the operation. A failure at any step discards
them, so readers only ever observe committed state.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .core import (
    # Types
    HolderAccount, Move, PendingTransaction, RateCheckpoint, Transaction,
    TimeSource, CollateralAsset, AdminAuthority,
    # Constants
    SYSTEM_WALLET, ZERO, EPOCH,
    REASON_MINT, REASON_TRANSFER, REASON_WITHDRAW, REASON_FEE, REASON_DEMURRAGE,
    # Exceptions
    LedgerError, InsufficientBalance, InvalidRateCheckpoint, PermissionDenied,
    CollateralTransferFailed, InvalidAmount,
    # Helpers
    quantize_amount, to_decimal, _normalize_decimal,
)
from .config import LedgerConfig
from .decay import decayed_balance
from .events import Minted, Transferred, Withdrawn, RateUpdated, DemurrageCollected
from .fees import fee
from .schedule import RateSchedule


class _Staging:
    """
    Copy-on-write view of the accounts touched by one operation.

    Reads fall through to the ledger's committed records; writes land in a
    private dict that becomes the PendingTransaction.
    """

    def __init__(self, ledger: DemurrageLedger, now: datetime):
        self.ledger = ledger
        self.now = now
        self.accounts: Dict[str, HolderAccount] = {}
        self.moves: List[Move] = []
        self.events: List[Any] = []

    def account(self, holder: str) -> HolderAccount:
        if holder not in self.accounts:
            existing = self.ledger.accounts.get(holder)
            self.accounts[holder] = existing or HolderAccount(holder, ZERO, self.now)
        return self.accounts[holder]

    def balance(self, holder: str) -> Decimal:
        return self.account(holder).raw_balance

    def realize(self, holder: str) -> None:
        """
        Settle all decay accrued since the holder's last update.

        The decayed amount moves to the demurrage sink (the fee collector, or
        the system wallet for the collector itself). The sink is realized
        first so that the credit starts its own decay clock at now.
        """
        account = self.account(holder)
        if holder == SYSTEM_WALLET or account.last_updated == self.now:
            return
        decayed = decayed_balance(
            account.raw_balance, account.last_updated, self.now, self.ledger.schedule
        )
        self.accounts[holder] = replace(account, last_updated=self.now)
        demurrage = account.raw_balance - decayed
        if demurrage > ZERO:
            sink = self.ledger._demurrage_sink(holder)
            self.realize(sink)
            self.apply(Move(demurrage, holder, sink, REASON_DEMURRAGE))
            self.events.append(DemurrageCollected(holder, demurrage, sink, self.now))

    def apply(self, move: Move) -> None:
        source = self.account(move.source)
        self.accounts[move.source] = replace(
            source, raw_balance=source.raw_balance - move.quantity
        )
        dest = self.account(move.dest)
        self.accounts[move.dest] = replace(
            dest, raw_balance=dest.raw_balance + move.quantity
        )
        self.moves.append(move)

    def pending(self, event: Any = None) -> PendingTransaction:
        events = list(self.events)
        if event is not None:
            events.append(event)
        return PendingTransaction(
            accounts=tuple(self.accounts.values()),
            moves=tuple(self.moves),
            events=tuple(events),
            timestamp=self.now,
        )


class DemurrageLedger:
    """
    Collateral-backed ledger whose idle balances decay over time.

    Implements the LedgerView protocol.

    Design Principles:
        - Lazy decay: nothing ticks in the background. A holder's stored
          balance is only brought up to date when an operation touches it;
          reads compute the decayed value without storing it.
        - Non-retroactive rates: the schedule is an append-only log of
          future checkpoints, so decay for elapsed periods never changes.
        - Always logs: every committed operation is recorded in the
          transaction log together with its events.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own ledger instance.

    Example:
        clock = ManualClock(datetime(2025, 1, 1))
        usd = InMemoryCollateral("USD", {"alice": Decimal("200")})
        ledger = DemurrageLedger(clock, usd, OwnerAuthority("owner"))

        usd.approve("alice", ledger.vault, Decimal("200"))
        ledger.mint("alice", Decimal("200"))
        ledger.transfer("alice", "bob", Decimal("100"))
        ledger.balance_of("alice")   # Decimal("99")
    """

    def __init__(
        self,
        clock: TimeSource,
        collateral: CollateralAsset,
        authority: AdminAuthority,
        config: Optional[LedgerConfig] = None,
    ):
        """
        Create a ledger.

        Args:
            clock: Source of the current time
            collateral: Asset backing the ledger 1:1
            authority: Decides who may register rate checkpoints
            config: Fixed parameters (defaults to LedgerConfig())
        """
        self.config = config or LedgerConfig()
        self.name = self.config.name
        self.vault = self.config.vault
        self.fee_collector = self.config.fee_collector
        self.transfer_fee_rate = self.config.transfer_fee_rate
        self.withdrawal_fee_rate = self.config.withdrawal_fee_rate
        self.verbose = self.config.verbose

        self.clock = clock
        self.collateral = collateral
        self.authority = authority

        self.schedule = RateSchedule(self.config.genesis_rate, self.config.period_length)
        self.accounts: Dict[str, HolderAccount] = {
            SYSTEM_WALLET: HolderAccount(SYSTEM_WALLET, ZERO, EPOCH),
        }
        self.transaction_log: List[Transaction] = []
        # Monotonic sequence counter for execution ordering
        self._next_sequence: int = 0

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Time reported by the ledger's time source."""
        return self.clock.now()

    def balance_of(self, holder: str) -> Decimal:
        """
        Decayed balance of a holder at the current time.

        Pure read: the stored record is not modified, and repeated calls at
        the same time return identical results. Unknown holders have a
        balance of zero.
        """
        return self.balance_at(holder, self.clock.now())

    def balance_at(self, holder: str, when: datetime) -> Decimal:
        """
        Decayed balance of a holder at an explicit time.

        Projections into the future use the checkpoints registered so far.
        The system wallet reads as zero; its raw counterparty balance is
        available through get_account().

        Raises:
            ValueError: If `when` precedes the holder's last realization
        """
        account = self.accounts.get(holder)
        if account is None or holder == SYSTEM_WALLET:
            return ZERO
        if when < account.last_updated:
            raise ValueError(
                f"Cannot read {holder} at {when}: last realized at {account.last_updated}"
            )
        return decayed_balance(account.raw_balance, account.last_updated, when, self.schedule)

    def get_account(self, holder: str) -> Optional[HolderAccount]:
        """Stored record of a holder, or None if it was never touched."""
        return self.accounts.get(holder)

    def list_holders(self) -> List[str]:
        """All holders with a stored record (the system wallet excluded)."""
        return sorted(h for h in self.accounts if h != SYSTEM_WALLET)

    def rate_at(self, when: datetime) -> Decimal:
        """Demurrage rate active at a timestamp."""
        return self.schedule.rate_at(when)

    def current_rate(self) -> Decimal:
        """Demurrage rate active now."""
        return self.schedule.rate_at(self.clock.now())

    def pending_checkpoint(self) -> Optional[RateCheckpoint]:
        """Registered rate change that has not taken effect yet."""
        return self.schedule.pending_checkpoint(self.clock.now())

    def total_supply(self) -> Decimal:
        """
        Sum of decayed balances across all holders at the current time.

        Holders are sorted before summation for a deterministic
        accumulation order.
        """
        now = self.clock.now()
        return sum((self.balance_at(h, now) for h in self.list_holders()), ZERO)

    @property
    def events(self) -> List[Any]:
        """All emitted events in commit order."""
        return [event for tx in self.transaction_log for event in tx.events]

    def verify_peg(self) -> Dict[str, Any]:
        """
        Verify the ledger's accounting and collateral backing.

        Two checks:
        1. Double entry: raw balances of all accounts, the system wallet
           included, sum to exactly zero.
        2. Backing: the vault's collateral covers the realized supply
           (the negated system wallet balance).

        Returns:
            Dict with keys:
            - 'valid': bool - True if both checks hold
            - 'collateral': Decimal - collateral held by the vault
            - 'supply': Decimal - decayed supply at the current time
            - 'surplus': Decimal - collateral minus decayed supply
            - 'discrepancies': List[Dict] - details of failed checks

        Example:
            result = ledger.verify_peg()
            assert result['valid'], f"Peg violated: {result['discrepancies']}"
        """
        discrepancies = []

        raw_total = sum((a.raw_balance for a in self.accounts.values()), ZERO)
        if raw_total != ZERO:
            discrepancies.append({
                'check': 'double_entry',
                'expected': ZERO,
                'actual': raw_total,
                'difference': raw_total,
            })

        realized_supply = -self.accounts[SYSTEM_WALLET].raw_balance
        collateral = self.collateral.balance_of(self.vault)
        if collateral < realized_supply:
            discrepancies.append({
                'check': 'collateral',
                'expected': realized_supply,
                'actual': collateral,
                'difference': realized_supply - collateral,
            })

        supply = self.total_supply()
        return {
            'valid': len(discrepancies) == 0,
            'collateral': collateral,
            'supply': supply,
            'surplus': collateral - supply,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    def realize(self, holder: str) -> Decimal:
        """
        Store a holder's decayed balance and restart its decay clock at now.

        Unknown holders are left without a record.

        Returns:
            The realized balance
        """
        self._check_holder(holder)
        if holder not in self.accounts:
            return ZERO
        stage = _Staging(self, self.clock.now())
        stage.realize(holder)
        self._commit(stage.pending())
        return self.accounts[holder].raw_balance

    def mint(self, holder: str, amount) -> Transaction:
        """
        Deposit collateral and issue the same amount of ledger units.

        The holder must have approved the vault for at least `amount`. No fee
        is charged.

        Raises:
            InvalidAmount: If amount is not positive
            CollateralTransferFailed: If the collateral could not be pulled;
                nothing is changed in that case
        """
        amount = self._checked_amount(amount)
        self._check_holder(holder)

        stage = _Staging(self, self.clock.now())
        stage.realize(holder)
        stage.apply(Move(amount, SYSTEM_WALLET, holder, REASON_MINT))
        pending = stage.pending(Minted(holder, amount, stage.now))

        # Interaction before effects: only commit once the funds are in the vault
        self._call_collateral(
            "transfer_from", self.vault, holder, self.vault, amount,
        )
        return self._commit(pending)

    def transfer(self, sender: str, recipient: str, amount) -> Transaction:
        """
        Move ledger units between holders, charging the transfer fee.

        The sender is debited amount + fee, the recipient credited amount and
        the fee collector credited the fee.

        Raises:
            InvalidAmount: If amount is not positive
            InsufficientBalance: If the sender's realized balance is below
                amount + fee
        """
        amount = self._checked_amount(amount)
        self._check_holder(sender)
        self._check_holder(recipient)

        stage = _Staging(self, self.clock.now())
        stage.realize(self.fee_collector)
        stage.realize(sender)
        stage.realize(recipient)

        charged = fee(amount, self.transfer_fee_rate)
        self._require_balance(stage, sender, amount, charged)

        if sender != recipient:
            stage.apply(Move(amount, sender, recipient, REASON_TRANSFER))
        if charged > ZERO and sender != self.fee_collector:
            stage.apply(Move(charged, sender, self.fee_collector, REASON_FEE))

        pending = stage.pending(Transferred(sender, recipient, amount, charged, stage.now))
        return self._commit(pending)

    def withdraw(self, holder: str, amount) -> Transaction:
        """
        Redeem ledger units for collateral, charging the withdrawal fee.

        The holder is debited amount + fee in ledger units and paid the full
        amount in collateral.

        Raises:
            InvalidAmount: If amount is not positive
            InsufficientBalance: If the realized balance is below amount + fee
            CollateralTransferFailed: If the payout failed; the local debit is
                rolled back
        """
        amount = self._checked_amount(amount)
        self._check_holder(holder)

        stage = _Staging(self, self.clock.now())
        stage.realize(self.fee_collector)
        stage.realize(holder)

        charged = fee(amount, self.withdrawal_fee_rate)
        self._require_balance(stage, holder, amount, charged)

        stage.apply(Move(amount, holder, SYSTEM_WALLET, REASON_WITHDRAW))
        if charged > ZERO and holder != self.fee_collector:
            stage.apply(Move(charged, holder, self.fee_collector, REASON_FEE))
        pending = stage.pending(Withdrawn(holder, amount, charged, stage.now))

        # Effects before interaction: the ledger is consistent before paying out
        previous = self._apply_accounts(pending)
        try:
            self._call_collateral("transfer", self.vault, holder, amount)
        except CollateralTransferFailed:
            self._restore_accounts(previous)
            raise
        return self._log(pending)

    def update_demurrage_rate(self, caller: str, rate, effective_at: datetime) -> Transaction:
        """
        Register a new demurrage rate taking effect at a future time.

        Args:
            caller: Principal requesting the change
            rate: Per-period decay fraction in [0, 1]
            effective_at: First instant the rate applies (strictly in the future)

        Raises:
            PermissionDenied: If the caller is not authorized
            InvalidRateCheckpoint: If the checkpoint is rejected by the schedule
        """
        if not self.authority.is_authorized(caller):
            raise self._rejected(PermissionDenied(f"{caller} may not update the demurrage rate"))

        now = self.clock.now()
        try:
            checkpoint = self.schedule.add_checkpoint(rate, effective_at, now)
        except InvalidRateCheckpoint as exc:
            self._rejected(exc)
            raise

        event = RateUpdated(checkpoint.rate, checkpoint.effective_at, now)
        return self._log(PendingTransaction(accounts=(), moves=(), events=(event,), timestamp=now))

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _demurrage_sink(self, holder: str) -> str:
        """Account credited with a holder's realized decay."""
        if self.config.collect_demurrage and holder != self.fee_collector:
            return self.fee_collector
        return SYSTEM_WALLET

    def _check_holder(self, holder: str) -> None:
        if not holder or not holder.strip():
            raise ValueError("Holder cannot be empty")
        if holder in (SYSTEM_WALLET, self.vault):
            raise ValueError(f"'{holder}' is a reserved account")

    def _checked_amount(self, amount) -> Decimal:
        try:
            value = to_decimal(amount)
        except ValueError as exc:
            raise self._rejected(InvalidAmount(str(exc))) from exc
        if not value.is_finite() or value <= ZERO:
            raise self._rejected(InvalidAmount(f"Amount must be positive, got {amount}"))
        value = quantize_amount(value)
        if value == ZERO:
            raise self._rejected(InvalidAmount(f"Amount {amount} is below the smallest unit"))
        return value

    def _require_balance(self, stage: _Staging, holder: str, amount: Decimal, charged: Decimal) -> None:
        available = stage.balance(holder)
        if available < amount + charged:
            raise self._rejected(InsufficientBalance(
                f"{holder}: {_normalize_decimal(available)} < "
                f"{_normalize_decimal(amount)} + fee {_normalize_decimal(charged)}"
            ))

    def _call_collateral(self, method: str, *args) -> None:
        """Call the collateral asset, turning refusal or errors into CollateralTransferFailed."""
        try:
            ok = getattr(self.collateral, method)(*args)
        except Exception as exc:
            raise self._rejected(CollateralTransferFailed(f"{method}{args}: {exc}")) from exc
        if not ok:
            raise self._rejected(CollateralTransferFailed(f"{method}{args} refused"))

    def _rejected(self, error: LedgerError) -> LedgerError:
        if self.verbose:
            print(f"✗ REJECTED: {type(error).__name__}: {error}")
        return error

    def _apply_accounts(self, pending: PendingTransaction) -> Dict[str, Optional[HolderAccount]]:
        """Install staged records; return what they replaced for rollback."""
        previous = {a.holder: self.accounts.get(a.holder) for a in pending.accounts}
        for account in pending.accounts:
            self.accounts[account.holder] = account
        return previous

    def _restore_accounts(self, previous: Dict[str, Optional[HolderAccount]]) -> None:
        for holder, account in previous.items():
            if account is None:
                self.accounts.pop(holder, None)
            else:
                self.accounts[holder] = account

    def _commit(self, pending: PendingTransaction) -> Optional[Transaction]:
        self._apply_accounts(pending)
        if pending.is_empty():
            return None
        return self._log(pending)

    def _generate_exec_id(self, sequence: int, timestamp: datetime) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{micros_since_epoch}
        """
        micros = (timestamp - EPOCH) // timedelta(microseconds=1)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def _log(self, pending: PendingTransaction) -> Transaction:
        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=pending.moves,
            events=pending.events,
            timestamp=pending.timestamp,
            exec_id=self._generate_exec_id(sequence, pending.timestamp),
            ledger_name=self.name,
            sequence_number=sequence,
        )
        # Log transaction (always - audit trail is mandatory)
        self.transaction_log.append(tx)
        if self.verbose:
            print(f"✓ APPLIED [{sequence}] {tx.event!r}")
        return tx

    def __repr__(self) -> str:
        return (f"DemurrageLedger({self.name}, {len(self.list_holders())} holders, "
                f"{len(self.transaction_log)} transactions)")
