"""
Wager history and the game settings singleton.
"""
from typing import List

from lucky_triple.models import GameSettings, Wager
from lucky_triple.repositories.base import BaseRepository

HISTORY_LIMIT = 50


class WagerRepository(BaseRepository[Wager]):
    """Repository for wager records."""

    def __init__(self, db):
        super().__init__(Wager, db)

    def recent_for_account(self, account_id: str, limit: int = HISTORY_LIMIT) -> List[Wager]:
        return self.where(Wager.account_id == account_id, order_by="-created_at", limit=limit)


class GameSettingsRepository(BaseRepository[GameSettings]):
    """Repository for the payout configuration singleton."""

    def __init__(self, db):
        super().__init__(GameSettings, db)

    def load(self) -> GameSettings:
        """
        Read the current settings row, creating it with defaults if missing.

        Always hits the database; callers must not hold the result across requests.
        """
        current = self.find_by_id(GameSettings.SINGLETON_ID)
        if current is None:
            current = self.create(id=GameSettings.SINGLETON_ID)
        return current
