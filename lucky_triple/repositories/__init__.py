"""
Repository layer for data access.

Usage:
    from lucky_triple.repositories import AccountRepository
    from lucky_triple.core.database import SessionLocal

    db = SessionLocal()
    account = AccountRepository(db).find_by_email("player@example.com")
    db.close()
"""
from lucky_triple.repositories.base import BaseRepository
from lucky_triple.repositories.account_repository import AccountRepository
from lucky_triple.repositories.ledger_repository import LedgerRepository
from lucky_triple.repositories.game_repository import WagerRepository, GameSettingsRepository
from lucky_triple.repositories.notification_repository import NotificationLogRepository, OutboxRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "LedgerRepository",
    "WagerRepository",
    "GameSettingsRepository",
    "NotificationLogRepository",
    "OutboxRepository",
]
