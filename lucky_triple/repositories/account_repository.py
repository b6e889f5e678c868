"""
Account repository.

Usage:
    repo = AccountRepository(db)
    account = repo.find_by_email("player@example.com")
    if not repo.compare_and_set_balance(account, expected=account.balance, new_balance=25.0):
        raise BalanceConflict()
"""
from typing import Optional, List

from sqlalchemy import update
from sqlalchemy.orm.attributes import set_committed_value

from lucky_triple.models import Account, AccountRole
from lucky_triple.repositories.base import BaseRepository


class AccountRepository(BaseRepository[Account]):
    """Repository for accounts and their balances."""

    def __init__(self, db):
        super().__init__(Account, db)

    def find_by_email(self, email: str) -> Optional[Account]:
        return self.where_first(Account.email == email.strip().lower())

    def find_by_ids(self, ids: List[str]) -> List[Account]:
        if not ids:
            return []
        return self.where(Account.id.in_(ids))

    def find_players(self) -> List[Account]:
        """Non-admin accounts, newest first."""
        return self.where(Account.role == AccountRole.PLAYER.value, order_by="-created_at")

    def find_admins(self) -> List[Account]:
        return self.where(Account.role == AccountRole.ADMIN.value)

    def count_players(self) -> int:
        return self.count(Account.role == AccountRole.PLAYER.value)

    def total_player_balance(self) -> float:
        return self.sum(Account.balance, Account.role == AccountRole.PLAYER.value)

    def compare_and_set_balance(self, account: Account, expected: float, new_balance: float) -> bool:
        """
        Write ``new_balance`` only if the stored balance still equals ``expected``.

        Returns False when a concurrent request changed the balance first; the
        caller must roll back. On success the in-memory instance is updated.
        """
        result = self.db.execute(
            update(Account)
            .where(Account.id == account.id, Account.balance == expected)
            .values(balance=new_balance)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        set_committed_value(account, "balance", new_balance)
        return True
