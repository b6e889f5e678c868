"""
Payloqa SMS client.

Sends single and bulk SMS through the Payloqa messaging API. Every public
method returns a result dict and never raises: callers treat delivery as
best-effort and carry on regardless of the outcome.

Known provider error codes are classified for logging:
- INSUFFICIENT_BALANCE: the platform wallet cannot pay for the message
- INVALID_PHONE_NUMBER: recipient rejected by the provider
- SERVICE_ACCESS_DENIED: SMS permission not granted for the platform
"""
import asyncio
import re
from typing import Dict, List, Optional, Any

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from lucky_triple.core import metrics
from lucky_triple.core.config import settings
from lucky_triple.core.logging import get_logger

logger = get_logger(__name__)

KNOWN_PROVIDER_ERRORS = {
    "INSUFFICIENT_BALANCE": "Payloqa wallet has insufficient balance",
    "INVALID_PHONE_NUMBER": "Invalid phone number format",
    "SERVICE_ACCESS_DENIED": "SMS permission not granted, contact Payloqa support",
}

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str) -> str:
    """Strip everything but digits and prefix '+': '(233) 24-555' -> '+23324555'."""
    return "+" + _NON_DIGITS.sub("", phone or "")


def classify_provider_error(payload: Any) -> Optional[str]:
    """Extract the provider error code from an error response body, if any."""
    if isinstance(payload, dict):
        code = payload.get("error")
        if isinstance(code, str):
            return code
    return None


class PayloqaClient:
    """
    Async client for the Payloqa SMS API.

    Usage:
        client = PayloqaClient.from_settings()
        result = await client.send_sms("+233245550000", "Welcome!")
        await client.close()
    """

    def __init__(
        self,
        api_key: str,
        platform_id: str,
        base_url: str = "https://sms.payloqa.com/api/v1",
        sender_id: str = "LuckyTriple",
        timeout: float = 10.0,
        bulk_delay: float = 0.1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.platform_id = platform_id
        self.base_url = base_url.rstrip("/")
        self.sender_id = sender_id
        self.timeout = timeout
        self.bulk_delay = bulk_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, **overrides) -> "PayloqaClient":
        options = dict(
            api_key=settings.PAYLOQA_API_KEY,
            platform_id=settings.PAYLOQA_PLATFORM_ID,
            base_url=settings.PAYLOQA_SMS_BASE_URL,
            sender_id=settings.PAYLOQA_SENDER_ID,
            timeout=settings.SMS_TIMEOUT_SECONDS,
            bulk_delay=settings.SMS_BULK_DELAY_SECONDS,
        )
        options.update(overrides)
        return cls(**options)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "X-API-Key": self.api_key,
            "X-Platform-Id": self.platform_id,
            "Content-Type": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=self._get_headers(),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post_sms(self, body: Dict[str, Any]) -> httpx.Response:
        """POST /sms/send, retrying transport failures only (provider errors are final)."""
        client = await self._get_client()
        return await client.post("/sms/send", json=body)

    async def send_sms(self, phone: str, message: str) -> Dict[str, Any]:
        """
        Send one SMS.

        Returns:
            {"success": True, "message_id", "cost", "status"} or
            {"success": False, "error": <provider code or description>}
        """
        recipient = normalize_phone(phone)
        if recipient == "+":
            logger.warning("SMS skipped: recipient has no digits", extra={"phone": phone})
            metrics.sms_sent_total.labels(outcome="invalid_recipient").inc()
            return {"success": False, "error": "INVALID_PHONE_NUMBER"}

        body = {
            "recipient_number": recipient,
            "sender_id": self.sender_id,
            "message": message,
            "usage_message_type": "notification",
        }

        try:
            response = await self._post_sms(body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            payload = _safe_json(e.response)
            code = classify_provider_error(payload) or f"HTTP_{e.response.status_code}"
            self._log_provider_error(code, recipient, payload)
            metrics.sms_sent_total.labels(outcome="provider_error").inc()
            return {"success": False, "error": code}
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"SMS to {recipient} failed: {e}")
            metrics.sms_sent_total.labels(outcome="transport_error").inc()
            return {"success": False, "error": str(e) or e.__class__.__name__}

        # A 2xx means the provider accepted the message; delivery metadata is optional
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            logger.warning(f"SMS to {recipient} accepted without delivery metadata", extra={"body": repr(payload)[:200]})
            data = {}

        logger.info(f"SMS sent to {recipient}", extra={"message_id": data.get("message_id")})
        metrics.sms_sent_total.labels(outcome="sent").inc()
        return {
            "success": True,
            "message_id": data.get("message_id"),
            "cost": data.get("cost"),
            "status": data.get("status"),
        }

    async def send_bulk_sms(self, phones: List[str], message: str) -> Dict[str, Any]:
        """
        Send the same SMS to each phone sequentially with a fixed delay between calls.

        Returns:
            {"success": True, "total", "sent", "failed", "results": [{"phone", "success"}]}
        """
        logger.info(f"Sending bulk SMS to {len(phones)} recipients")
        results = []

        for index, phone in enumerate(phones):
            result = await self.send_sms(phone, message)
            results.append({"phone": phone, "success": bool(result.get("success"))})

            if self.bulk_delay and index < len(phones) - 1:
                await asyncio.sleep(self.bulk_delay)

        sent = sum(1 for r in results if r["success"])
        logger.info(f"Bulk SMS complete: {sent}/{len(phones)} sent")
        return {
            "success": True,
            "total": len(phones),
            "sent": sent,
            "failed": len(phones) - sent,
            "results": results,
        }

    def _log_provider_error(self, code: str, recipient: str, payload: Any) -> None:
        description = KNOWN_PROVIDER_ERRORS.get(code)
        if description:
            logger.error(f"SMS to {recipient} rejected: {description}", extra={"provider_error": code})
        else:
            logger.error(f"SMS to {recipient} failed: {payload}", extra={"provider_error": code})


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
