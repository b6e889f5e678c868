#!/usr/bin/env python3
"""
Drain the SMS outbox outside the API process.

Usage:
    python scripts/dispatch_notifications.py            # one batch
    python scripts/dispatch_notifications.py --all      # repeat until a batch sends nothing
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lucky_triple.core.logging import configure_logging, get_logger

configure_logging(level="INFO", json_output=False)
logger = get_logger(__name__)


async def main():
    parser = argparse.ArgumentParser(description="Send queued SMS notifications")
    parser.add_argument("--all", action="store_true", help="Keep dispatching batches until one sends nothing")
    args = parser.parse_args()

    from lucky_triple.core.config import settings
    from lucky_triple.services.notification_service import dispatch_outbox_once

    if not settings.sms_enabled:
        logger.error("PAYLOQA_API_KEY and PAYLOQA_PLATFORM_ID must be set")
        sys.exit(1)

    totals = {"processed": 0, "sent": 0, "retrying": 0, "failed": 0}
    while True:
        counts = await dispatch_outbox_once()
        for key, value in counts.items():
            totals[key] += value
        if not args.all or counts["sent"] + counts["failed"] == 0:
            break

    logger.info(
        f"Processed {totals['processed']}: {totals['sent']} sent, "
        f"{totals['retrying']} retrying, {totals['failed']} failed"
    )


if __name__ == "__main__":
    asyncio.run(main())
