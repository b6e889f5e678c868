"""
Outbound notification queue.

Business operations call ``NotificationQueue.enqueue`` inside their own
transaction; nothing is sent during the request. ``NotificationDispatcher``
drains pending rows independently (scheduler job or CLI) and records the
delivery outcome on each row.
"""
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from lucky_triple.core import metrics
from lucky_triple.core.config import settings
from lucky_triple.core.logging import get_logger
from lucky_triple.models import OutboundNotification, OutboxStatus
from lucky_triple.repositories import OutboxRepository
from lucky_triple.services.payloqa_client import PayloqaClient

logger = get_logger(__name__)


class NotificationPurpose:
    WELCOME = "welcome"
    WIN = "win"
    DEPOSIT = "deposit"
    CREDIT = "credit"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    WITHDRAWAL_ADMIN_ALERT = "withdrawal_admin_alert"
    WITHDRAWAL_APPROVED = "withdrawal_approved"
    WITHDRAWAL_REJECTED = "withdrawal_rejected"


def money(amount: float) -> str:
    """Format an amount for SMS text: 'GHS 12.50'."""
    return f"{settings.CURRENCY} {amount:.2f}"


class NotificationQueue:
    """Adds SMS to the outbox; the caller's commit makes them visible to the dispatcher."""

    def __init__(self, db: Session):
        self.repo = OutboxRepository(db)

    def enqueue(
        self,
        phone: str,
        message: str,
        purpose: str,
        account_id: Optional[str] = None,
    ) -> OutboundNotification:
        item = self.repo.create(
            phone=phone,
            message=message,
            purpose=purpose,
            account_id=account_id,
            status=OutboxStatus.PENDING.value,
        )
        logger.debug(f"Queued {purpose} SMS", extra={"outbox_id": item.id})
        return item


class NotificationDispatcher:
    """
    Delivers pending outbox items through the SMS client.

    Each item is claimed with a conditional update and the claim is committed
    before sending; other dispatchers (one per API worker, plus the CLI) skip
    it until the claim expires. A failed send increments
    ``attempts``; the item stays pending until it reaches ``max_attempts``
    and is then marked failed.
    """

    def __init__(
        self,
        db: Session,
        client: PayloqaClient,
        max_attempts: int = 3,
        batch_size: int = 50,
        claim_seconds: int = 120,
    ):
        self.db = db
        self.client = client
        self.repo = OutboxRepository(db)
        self.max_attempts = max_attempts
        self.batch_size = batch_size
        self.claim_seconds = claim_seconds

    async def _send(self, item: OutboundNotification) -> Dict:
        try:
            return await self.client.send_sms(item.phone, item.message)
        except Exception as e:
            logger.error(f"SMS client raised for {item.purpose} SMS: {e}", extra={"outbox_id": item.id})
            return {"success": False, "error": str(e) or e.__class__.__name__}

    async def dispatch_pending(self) -> Dict[str, int]:
        """
        Process one batch of pending items.

        Returns:
            Counts: {"processed", "sent", "retrying", "failed"}
        """
        counts = {"processed": 0, "sent": 0, "retrying": 0, "failed": 0}
        items = self.repo.next_pending(self.batch_size)

        for item in items:
            claimed = self.repo.claim(item, self.claim_seconds)
            self.db.commit()
            if not claimed:
                logger.debug("Outbox item claimed by another dispatcher", extra={"outbox_id": item.id})
                continue

            result = await self._send(item)
            item.attempts += 1
            item.provider_response = result
            item.claimed_until = None
            counts["processed"] += 1

            if result.get("success"):
                item.status = OutboxStatus.SENT.value
                item.sent_at = datetime.utcnow()
                item.last_error = None
                counts["sent"] += 1
                metrics.outbox_dispatch_total.labels(result="sent").inc()
            else:
                item.last_error = str(result.get("error"))[:255]
                if item.attempts >= self.max_attempts:
                    item.status = OutboxStatus.FAILED.value
                    counts["failed"] += 1
                    metrics.outbox_dispatch_total.labels(result="failed").inc()
                    logger.warning(
                        f"Giving up on {item.purpose} SMS after {item.attempts} attempts",
                        extra={"outbox_id": item.id, "error": item.last_error},
                    )
                else:
                    counts["retrying"] += 1
                    metrics.outbox_dispatch_total.labels(result="retrying").inc()

            # Commit per item so a crash mid-batch never re-sends delivered messages
            self.db.commit()

        metrics.outbox_pending.set(self.repo.pending_count())
        if counts["processed"]:
            logger.info(
                f"Outbox dispatch: {counts['sent']} sent, {counts['retrying']} retrying, "
                f"{counts['failed']} failed"
            )
        return counts


async def dispatch_outbox_once(client: Optional[PayloqaClient] = None) -> Dict[str, int]:
    """Drain one batch using a fresh session; used by the scheduler job and the CLI."""
    from lucky_triple.core.database import SessionLocal

    if client is None and not settings.sms_enabled:
        logger.debug("Payloqa credentials not configured - outbox dispatch skipped")
        return {"processed": 0, "sent": 0, "retrying": 0, "failed": 0}

    owns_client = client is None
    client = client or PayloqaClient.from_settings()
    db = SessionLocal()
    try:
        dispatcher = NotificationDispatcher(
            db,
            client,
            max_attempts=settings.NOTIFICATION_MAX_ATTEMPTS,
            batch_size=settings.NOTIFICATION_BATCH_SIZE,
            claim_seconds=settings.NOTIFICATION_CLAIM_SECONDS,
        )
        return await dispatcher.dispatch_pending()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        if owns_client:
            await client.close()
