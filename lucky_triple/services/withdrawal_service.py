"""
Withdrawal workflow: pending -> approved | rejected.

Approved and rejected are terminal. Funds are not held while a request is
pending, so the balance is checked twice: when the player asks and again
when an admin approves. Several pending requests can therefore add up to
more than the balance; only the approval that still fits goes through.
"""
import math
import time
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from lucky_triple.core import metrics
from lucky_triple.core.errors import (
    AlreadyProcessed,
    BalanceConflict,
    InsufficientBalance,
    NotFound,
    ValidationFailed,
)
from lucky_triple.core.logging import get_logger
from lucky_triple.models import Account, LedgerEntry, LedgerKind, LedgerStatus
from lucky_triple.repositories import AccountRepository, LedgerRepository
from lucky_triple.services.notification_service import NotificationPurpose, NotificationQueue, money

logger = get_logger(__name__)

DEFAULT_REJECTION_REASON = "Rejected by admin"


def withdrawal_reference(account_id: str) -> str:
    return f"WTH_{int(time.time() * 1000)}_{account_id}"


class WithdrawalService:
    """Player requests and admin decisions on withdrawals."""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository(db)
        self.ledger = LedgerRepository(db)
        self.notifications = NotificationQueue(db)

    def request(self, account: Account, amount: float) -> LedgerEntry:
        """Create a pending withdrawal and alert the player and every admin."""
        amount = round(amount, 2) if amount is not None and math.isfinite(amount) else 0
        if amount <= 0:
            raise ValidationFailed("Invalid amount")
        if account.balance < amount:
            raise InsufficientBalance()

        entry = self.ledger.create(
            account_id=account.id,
            kind=LedgerKind.WITHDRAWAL.value,
            amount=amount,
            status=LedgerStatus.PENDING.value,
            reference=withdrawal_reference(account.id),
        )

        self.notifications.enqueue(
            account.phone,
            f"Your withdrawal request of {money(amount)} has been submitted and is pending admin "
            f"approval. You'll receive another SMS once processed.",
            NotificationPurpose.WITHDRAWAL_REQUESTED,
            account.id,
        )
        for admin in self.accounts.find_admins():
            self.notifications.enqueue(
                admin.phone,
                f"New withdrawal request: {money(amount)} from {account.email}. Login to approve/reject.",
                NotificationPurpose.WITHDRAWAL_ADMIN_ALERT,
                admin.id,
            )

        self.db.commit()
        metrics.withdrawals_total.labels(status="requested").inc()
        logger.info(f"Withdrawal requested: {amount}", extra={"transaction_id": entry.id})
        return entry

    def for_account(self, account: Account) -> List[LedgerEntry]:
        return self.ledger.withdrawals_for_account(account.id)

    def all(self) -> List[LedgerEntry]:
        return self.ledger.all_withdrawals()

    def _load_pending(self, transaction_id: str) -> LedgerEntry:
        entry = self.ledger.find_with_account(transaction_id) if transaction_id else None
        if entry is None or entry.kind != LedgerKind.WITHDRAWAL.value:
            raise NotFound("Transaction not found")
        if entry.status != LedgerStatus.PENDING.value:
            raise AlreadyProcessed()
        return entry

    def _decide(self, entry: LedgerEntry, status: LedgerStatus, admin: Account, **values) -> None:
        """Conditional pending -> ``status`` write; a concurrent decision wins and this one aborts."""
        decided = self.ledger.transition(
            entry,
            LedgerStatus.PENDING,
            status,
            processed_at=datetime.utcnow(),
            processed_by=admin.id,
            **values,
        )
        if not decided:
            self.db.rollback()
            raise AlreadyProcessed()

    def approve(self, transaction_id: str, admin: Account) -> LedgerEntry:
        """
        Debit the balance and mark the withdrawal approved.

        The balance is re-checked here because it may have dropped since the request.
        """
        entry = self._load_pending(transaction_id)
        account = entry.account

        balance_before = account.balance
        if balance_before < entry.amount:
            raise InsufficientBalance("User has insufficient balance")

        self._decide(entry, LedgerStatus.APPROVED, admin)
        balance_after = round(balance_before - entry.amount, 2)
        if not self.accounts.compare_and_set_balance(account, balance_before, balance_after):
            self.db.rollback()
            metrics.balance_conflicts_total.labels(operation="withdrawal").inc()
            raise BalanceConflict()

        self.notifications.enqueue(
            account.phone,
            f"Your withdrawal request of {money(entry.amount)} has been approved! "
            f"The funds will be sent to your account within 24 hours.",
            NotificationPurpose.WITHDRAWAL_APPROVED,
            account.id,
        )
        self.db.commit()

        metrics.withdrawals_total.labels(status="approved").inc()
        logger.info(f"Withdrawal approved by {admin.email}", extra={"transaction_id": entry.id})
        return entry

    def reject(self, transaction_id: str, admin: Account, reason: Optional[str] = None) -> LedgerEntry:
        """Mark the withdrawal rejected; the balance is untouched."""
        entry = self._load_pending(transaction_id)
        reason = (reason or "").strip()

        self._decide(entry, LedgerStatus.REJECTED, admin, reference=reason or DEFAULT_REJECTION_REASON)

        explanation = f"Reason: {reason}" if reason else "Please contact support for more information."
        self.notifications.enqueue(
            entry.account.phone,
            f"Your withdrawal request of {money(entry.amount)} has been rejected. {explanation}",
            NotificationPurpose.WITHDRAWAL_REJECTED,
            entry.account_id,
        )
        self.db.commit()

        metrics.withdrawals_total.labels(status="rejected").inc()
        logger.info(f"Withdrawal rejected by {admin.email}", extra={"transaction_id": entry.id})
        return entry
