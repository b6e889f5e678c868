"""
ORM models.

Usage:
    from lucky_triple.models import Account, LedgerEntry, Wager
"""
from lucky_triple.models.models import (
    Base,
    Account,
    AccountRole,
    LedgerEntry,
    LedgerKind,
    LedgerStatus,
    Wager,
    NotificationLog,
    GameSettings,
    OutboundNotification,
    OutboxStatus,
)

__all__ = [
    "Base",
    "Account",
    "AccountRole",
    "LedgerEntry",
    "LedgerKind",
    "LedgerStatus",
    "Wager",
    "NotificationLog",
    "GameSettings",
    "OutboundNotification",
    "OutboxStatus",
]
