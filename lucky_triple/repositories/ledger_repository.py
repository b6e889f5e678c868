"""
Ledger entry repository: withdrawal lookups and dashboard aggregates.
"""
from typing import Optional, List

from sqlalchemy import update
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.attributes import set_committed_value

from lucky_triple.models import LedgerEntry, LedgerKind, LedgerStatus
from lucky_triple.repositories.base import BaseRepository


class LedgerRepository(BaseRepository[LedgerEntry]):
    """Repository for ledger entries."""

    def __init__(self, db):
        super().__init__(LedgerEntry, db)

    def find_with_account(self, entry_id: str) -> Optional[LedgerEntry]:
        return (
            self.query()
            .options(joinedload(LedgerEntry.account))
            .filter(LedgerEntry.id == entry_id)
            .first()
        )

    def withdrawals_for_account(self, account_id: str) -> List[LedgerEntry]:
        """The account's withdrawals, newest first."""
        return self.where(
            LedgerEntry.account_id == account_id,
            LedgerEntry.kind == LedgerKind.WITHDRAWAL.value,
            order_by="-created_at",
        )

    def all_withdrawals(self) -> List[LedgerEntry]:
        return (
            self.query()
            .options(joinedload(LedgerEntry.account))
            .filter(LedgerEntry.kind == LedgerKind.WITHDRAWAL.value)
            .order_by(LedgerEntry.created_at.desc())
            .all()
        )

    def total(self, kind: LedgerKind, status: Optional[LedgerStatus] = None) -> float:
        """Sum of amounts for a kind, optionally restricted to one status."""
        criterion = [LedgerEntry.kind == kind.value]
        if status is not None:
            criterion.append(LedgerEntry.status == status.value)
        return self.sum(LedgerEntry.amount, *criterion)

    def count_by(self, kind: LedgerKind, status: LedgerStatus) -> int:
        return self.count(LedgerEntry.kind == kind.value, LedgerEntry.status == status.value)

    def transition(self, entry: LedgerEntry, from_status: LedgerStatus, to_status: LedgerStatus, **values) -> bool:
        """
        Move ``entry`` to ``to_status`` only if the stored status is still ``from_status``.

        Returns False when another request already moved it; the caller must
        roll back. On success the in-memory instance is updated.
        """
        values["status"] = to_status.value
        result = self.db.execute(
            update(LedgerEntry)
            .where(LedgerEntry.id == entry.id, LedgerEntry.status == from_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        for key, value in values.items():
            set_committed_value(entry, key, value)
        return True
