"""
Notification logs and the SMS outbox.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.attributes import set_committed_value

from lucky_triple.models import NotificationLog, OutboundNotification, OutboxStatus
from lucky_triple.repositories.base import BaseRepository

LOG_LIMIT = 100


class NotificationLogRepository(BaseRepository[NotificationLog]):
    def __init__(self, db):
        super().__init__(NotificationLog, db)

    def recent(self, limit: int = LOG_LIMIT) -> List[NotificationLog]:
        return (
            self.query()
            .options(joinedload(NotificationLog.sender))
            .order_by(NotificationLog.created_at.desc())
            .limit(limit)
            .all()
        )


def _claimable(now: datetime):
    return (
        OutboundNotification.status == OutboxStatus.PENDING.value,
        or_(OutboundNotification.claimed_until.is_(None), OutboundNotification.claimed_until < now),
    )


class OutboxRepository(BaseRepository[OutboundNotification]):
    def __init__(self, db):
        super().__init__(OutboundNotification, db)

    def next_pending(self, limit: int, now: Optional[datetime] = None) -> List[OutboundNotification]:
        """Oldest pending items first, skipping items another dispatcher holds."""
        return self.where(*_claimable(now or datetime.utcnow()), order_by="created_at", limit=limit)

    def claim(self, item: OutboundNotification, lease_seconds: int, now: Optional[datetime] = None) -> bool:
        """
        Take ``item`` for sending until the lease runs out.

        Returns False when another dispatcher claimed it or it is no longer
        pending. The caller commits the claim before sending.
        """
        now = now or datetime.utcnow()
        claimed_until = now + timedelta(seconds=lease_seconds)
        result = self.db.execute(
            update(OutboundNotification)
            .where(OutboundNotification.id == item.id, *_claimable(now))
            .values(claimed_until=claimed_until)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        set_committed_value(item, "claimed_until", claimed_until)
        return True

    def pending_count(self) -> int:
        return self.count(OutboundNotification.status == OutboxStatus.PENDING.value)
