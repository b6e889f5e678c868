"""
Signature checks for inbound payment callbacks.

Signing is opt-in: with no PAYMENT_WEBHOOK_SECRET configured every callback is
accepted. When a secret is set the ``X-Payloqa-Signature`` header must carry
``sha256=<hex hmac of the raw body>``.
"""
import hashlib
import hmac
from typing import Optional

from fastapi import Request

from lucky_triple.core.errors import AuthenticationRequired
from lucky_triple.core.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Payloqa-Signature"
SIGNATURE_PREFIX = "sha256="


def sign_payload(payload: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify an HMAC-SHA256 callback signature.

    Returns:
        True if the signature matches, or no secret is configured

    Raises:
        AuthenticationRequired: header missing, malformed or wrong
    """
    if not secret:
        return True

    if not signature:
        logger.warning("Payment callback missing signature header")
        raise AuthenticationRequired("Missing signature header")

    if not signature.startswith(SIGNATURE_PREFIX):
        logger.warning(f"Payment callback signature has invalid format (expected prefix: {SIGNATURE_PREFIX})")
        raise AuthenticationRequired("Invalid signature format")

    # Constant-time comparison
    if not hmac.compare_digest(sign_payload(payload, secret), signature.strip()):
        logger.warning("Payment callback signature verification failed")
        raise AuthenticationRequired("Invalid signature")

    return True


def get_client_ip(request: Request) -> str:
    """Get client IP address from request, handling proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"
