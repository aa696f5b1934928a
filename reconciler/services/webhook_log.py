# reconciler/services/webhook_log.py
"""
Webhook log recorder.

Webhook log rows are observability only, so updates go through their own
short sessions and never share a transaction with order processing. Status
updates swallow their own failures: a broken log write must not mask the
outcome of the order itself.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker

from reconciler.core.config import get_settings
from reconciler.core.enums import WebhookStatus
from reconciler.models.webhook import WebhookEvent

logger = logging.getLogger(__name__)


class WebhookLogRecorder:
    """Writes webhook receipts and their processing outcome."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record_receipt(
        self,
        payload: Optional[Dict[str, Any]],
        topic: Optional[str] = None,
    ) -> int:
        """
        Store a received event and return its log id.

        Unlike status updates this raises on failure; without a log row the
        caller has nothing to process against.
        """
        external_order_id = None
        if isinstance(payload, dict) and payload.get("id") is not None:
            external_order_id = str(payload["id"])

        async with self.session_factory() as db:
            entry = WebhookEvent(
                topic=topic or get_settings().WEBHOOK_TOPIC,
                external_order_id=external_order_id,
                status=WebhookStatus.RECEIVED.value,
                payload=payload,
            )
            db.add(entry)
            await db.commit()
            logger.info("Received webhook %s for order %s (log id %s)", entry.topic, external_order_id, entry.id)
            return entry.id

    async def update_status(
        self,
        webhook_log_id: Optional[int],
        status: WebhookStatus,
        error_message: Optional[str] = None,
    ) -> bool:
        """Best effort status update; returns False instead of raising."""
        if webhook_log_id is None:
            return False
        try:
            async with self.session_factory() as db:
                await db.execute(
                    update(WebhookEvent)
                    .where(WebhookEvent.id == webhook_log_id)
                    .values(
                        status=WebhookStatus(status).value,
                        error_message=error_message,
                        processed_at=datetime.now(timezone.utc),
                    )
                )
                await db.commit()
            return True
        except Exception as e:
            logger.error(f"Failed to update webhook log {webhook_log_id}: {str(e)}")
            # Don't raise, as logging should not interrupt the main flow
            return False

    async def mark_processed(self, webhook_log_id: Optional[int]) -> bool:
        return await self.update_status(webhook_log_id, WebhookStatus.PROCESSED)

    async def mark_failed(self, webhook_log_id: Optional[int], error_message: str) -> bool:
        return await self.update_status(webhook_log_id, WebhookStatus.FAILED, error_message)
