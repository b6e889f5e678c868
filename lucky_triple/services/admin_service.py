"""
Admin console operations: player management, manual credits, game settings,
SMS broadcasts and the dashboard summary.
"""
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from lucky_triple.core import metrics
from lucky_triple.core.errors import BalanceConflict, NotFound, ValidationFailed
from lucky_triple.core.logging import get_logger
from lucky_triple.models import Account, GameSettings, LedgerKind, LedgerStatus, NotificationLog
from lucky_triple.repositories import (
    AccountRepository,
    GameSettingsRepository,
    LedgerRepository,
    NotificationLogRepository,
)
from lucky_triple.services.notification_service import NotificationPurpose, NotificationQueue, money
from lucky_triple.services.payloqa_client import PayloqaClient

logger = get_logger(__name__)

DEFAULT_CREDIT_REASON = "Admin credit"

# Partial-update keys accepted for the settings row
SETTINGS_FIELDS = (
    "house_fee",
    "min_bet",
    "max_bet",
    "one_match_multiplier",
    "two_matches_multiplier",
    "three_matches_multiplier",
)
MULTIPLIER_FIELDS = SETTINGS_FIELDS[3:]


class AdminService:
    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository(db)
        self.ledger = LedgerRepository(db)
        self.settings_repo = GameSettingsRepository(db)
        self.sms_logs = NotificationLogRepository(db)
        self.notifications = NotificationQueue(db)

    def list_players(self) -> List[Account]:
        return self.accounts.find_players()

    def credit_account(self, account_id: str, amount: float, admin: Account, reason: Optional[str] = None) -> float:
        """
        Add funds to an account outside the payment flow.

        Returns:
            The account's new balance
        """
        amount = round(amount, 2) if amount is not None and math.isfinite(amount) else 0
        if amount <= 0:
            raise ValidationFailed("Invalid amount")
        account = self.accounts.find_by_id(account_id) if account_id else None
        if account is None:
            raise NotFound("User not found")

        balance_before = account.balance
        balance_after = round(balance_before + amount, 2)
        if not self.accounts.compare_and_set_balance(account, balance_before, balance_after):
            self.db.rollback()
            metrics.balance_conflicts_total.labels(operation="credit").inc()
            raise BalanceConflict()

        reason = (reason or "").strip() or DEFAULT_CREDIT_REASON
        self.ledger.create(
            account_id=account.id,
            kind=LedgerKind.CREDIT.value,
            amount=amount,
            status=LedgerStatus.COMPLETED.value,
            reference=reason,
            processed_at=datetime.utcnow(),
            processed_by=admin.id,
        )
        self.notifications.enqueue(
            account.phone,
            f"Your account has been credited with {money(amount)}. Reason: {reason}. "
            f"New balance: {money(balance_after)}",
            NotificationPurpose.CREDIT,
            account.id,
        )
        self.db.commit()

        metrics.admin_credits_total.inc(amount)
        logger.info(f"Account credited by {admin.email}: {amount}", extra={"target_account": account.id})
        return balance_after

    def update_game_settings(self, changes: Dict[str, Any], admin: Account) -> GameSettings:
        """
        Apply a partial update; fields absent from ``changes`` (or None) keep their value.

        Raises:
            ValidationFailed: merged bounds or multipliers are invalid
        """
        game_settings = self.settings_repo.load()
        merged = {field: getattr(game_settings, field) for field in SETTINGS_FIELDS}
        for field in SETTINGS_FIELDS:
            if changes.get(field) is not None:
                merged[field] = float(changes[field])

        if merged["min_bet"] <= 0:
            raise ValidationFailed("Minimum bet must be greater than zero")
        if merged["min_bet"] > merged["max_bet"]:
            raise ValidationFailed("Minimum bet cannot exceed maximum bet")
        if any(merged[field] < 0 for field in MULTIPLIER_FIELDS):
            raise ValidationFailed("Payout multipliers cannot be negative")
        if merged["house_fee"] < 0:
            raise ValidationFailed("House fee cannot be negative")

        for field, value in merged.items():
            setattr(game_settings, field, value)
        game_settings.updated_at = datetime.utcnow()
        game_settings.updated_by = admin.id
        self.db.commit()

        logger.info(f"Game settings updated by {admin.email}", extra={"settings": merged})
        return game_settings

    async def send_sms(self, account_ids: List[str], message: str, admin: Account, client: PayloqaClient) -> Dict:
        """Send an SMS to the selected accounts now and log the outcome."""
        if not message or not message.strip():
            raise ValidationFailed("Message is required")
        phones = [account.phone for account in self.accounts.find_by_ids(account_ids or []) if account.phone]
        return await self._broadcast(phones, message, admin, client)

    async def send_sms_all(self, message: str, admin: Account, client: PayloqaClient) -> Dict:
        """Send an SMS to every player account."""
        if not message or not message.strip():
            raise ValidationFailed("Message is required")
        phones = [account.phone for account in self.accounts.find_players() if account.phone]
        return await self._broadcast(phones, message, admin, client)

    async def _broadcast(self, phones: List[str], message: str, admin: Account, client: PayloqaClient) -> Dict:
        if not phones:
            raise ValidationFailed("No valid phone numbers found")

        try:
            result = await client.send_bulk_sms(phones, message)
            status = "sent"
        except Exception as e:
            logger.error(f"Bulk SMS failed: {e}")
            result = {"success": False, "error": str(e)}
            status = "failed"

        self.sms_logs.create(
            phones=phones,
            message=message,
            status=status,
            sent_by=admin.id,
            response=result,
        )
        self.db.commit()
        return result

    def recent_sms_logs(self) -> List[NotificationLog]:
        return self.sms_logs.recent()

    def stats(self) -> Dict[str, Any]:
        """Dashboard aggregates; house profit is total bets minus total wins."""
        total_bets = self.ledger.total(LedgerKind.BET)
        total_wins = self.ledger.total(LedgerKind.WIN)
        return {
            "total_users": self.accounts.count_players(),
            "total_balance": round(self.accounts.total_player_balance(), 2),
            "total_deposits": round(self.ledger.total(LedgerKind.DEPOSIT, LedgerStatus.COMPLETED), 2),
            "total_withdrawals": round(self.ledger.total(LedgerKind.WITHDRAWAL, LedgerStatus.APPROVED), 2),
            "total_credits": round(self.ledger.total(LedgerKind.CREDIT, LedgerStatus.COMPLETED), 2),
            "total_bets": round(total_bets, 2),
            "total_wins": round(total_wins, 2),
            "pending_withdrawals": self.ledger.count_by(LedgerKind.WITHDRAWAL, LedgerStatus.PENDING),
            "house_profit": round(total_bets - total_wins, 2),
        }
