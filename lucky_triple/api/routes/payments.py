"""
Payment provider callback route.
"""
import json

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from lucky_triple.core.config import settings
from lucky_triple.core.database import get_db
from lucky_triple.core.errors import LuckyTripleError, ServiceFailure, ValidationFailed
from lucky_triple.core.logging import get_logger
from lucky_triple.core.webhook_security import SIGNATURE_HEADER, get_client_ip, verify_signature
from lucky_triple.services.payment_service import PaymentService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/webhook")
async def payment_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Receive a payment status callback.

    Body: {"status": "completed" | "failed" | ..., "amount": 25.5, "metadata": {"user_id": "..."}}
    """
    body = await request.body()
    verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.PAYMENT_WEBHOOK_SECRET)

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise ValidationFailed("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON body")

    logger.info(
        f"Payment callback received: status={payload.get('status')}",
        extra={"client_ip": get_client_ip(request)},
    )
    try:
        message = PaymentService(db).process_callback(payload)
        return {"success": True, "message": message}
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)
        raise ServiceFailure("Webhook processing error")
