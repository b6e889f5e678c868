"""
Inbound deposit callbacks from the payment provider.

Callbacks carry no idempotency key: a replayed "completed" callback credits
the account again.
"""
import math
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from lucky_triple.core import metrics
from lucky_triple.core.errors import BalanceConflict, NotFound, ValidationFailed
from lucky_triple.core.logging import get_logger
from lucky_triple.models import LedgerKind, LedgerStatus
from lucky_triple.repositories import AccountRepository, LedgerRepository
from lucky_triple.services.notification_service import NotificationPurpose, NotificationQueue, money

logger = get_logger(__name__)

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def parse_amount(raw: Any) -> Optional[float]:
    """Amount rounded to cents from a number or numeric string; None unless it stays positive."""
    if isinstance(raw, bool):
        return None
    try:
        amount = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount):
        return None
    amount = round(amount, 2)
    return amount if amount > 0 else None


class PaymentService:
    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository(db)
        self.ledger = LedgerRepository(db)
        self.notifications = NotificationQueue(db)

    def process_callback(self, payload: Dict[str, Any]) -> str:
        """
        Apply one payment status callback.

        Returns:
            The acknowledgement message for the provider

        Raises:
            NotFound: completed payment for an unknown account
            ValidationFailed: completed payment with a bad amount
        """
        status = str(payload.get("status") or "").lower()

        if status == STATUS_FAILED:
            metrics.deposits_total.labels(outcome="failed").inc()
            logger.info("Payment callback reported failure")
            return "Payment failed"
        if status != STATUS_COMPLETED:
            metrics.deposits_total.labels(outcome="pending").inc()
            return "Payment processing"

        metadata = payload.get("metadata") or {}
        account_id = metadata.get("user_id") if isinstance(metadata, dict) else None
        account = self.accounts.find_by_id(str(account_id)) if account_id else None
        if account is None:
            raise NotFound("User not found")

        amount = parse_amount(payload.get("amount"))
        if amount is None:
            raise ValidationFailed("Invalid amount")

        balance_before = account.balance
        balance_after = round(balance_before + amount, 2)
        if not self.accounts.compare_and_set_balance(account, balance_before, balance_after):
            self.db.rollback()
            metrics.balance_conflicts_total.labels(operation="deposit").inc()
            raise BalanceConflict()

        self.ledger.create(
            account_id=account.id,
            kind=LedgerKind.DEPOSIT.value,
            amount=amount,
            status=LedgerStatus.COMPLETED.value,
            details=payload,
            processed_at=datetime.utcnow(),
        )
        self.notifications.enqueue(
            account.phone,
            f"Deposit successful! {money(amount)} has been added to your account. "
            f"New balance: {money(balance_after)}",
            NotificationPurpose.DEPOSIT,
            account.id,
        )
        self.db.commit()

        metrics.deposits_total.labels(outcome="completed").inc()
        logger.info(f"Deposit credited: {amount}", extra={"account_id": account.id})
        return "Payment processed"
