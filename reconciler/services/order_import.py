# reconciler/services/order_import.py
"""
Bulk import of historical orders.

Reconciles orders that were fulfilled before the webhook was registered (or
while it was down). Every order goes through the same path as a live
delivery: a webhook log row, then OrderProcessor. Already processed orders
are skipped by the idempotency gate, so re-running an import is safe.
"""

import asyncio
import logging
from typing import Any, AsyncIterable, Dict, Iterable, Optional, Union

from reconciler.core.config import get_settings
from reconciler.core.exceptions import BaseServiceError
from reconciler.schemas.results import ImportSummary
from reconciler.services.order_processor import OrderProcessor

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10

OrderSource = Union[Iterable[Dict[str, Any]], AsyncIterable[Dict[str, Any]]]


async def _iterate(orders: OrderSource):
    if hasattr(orders, "__aiter__"):
        async for order in orders:
            yield order
    else:
        for order in orders:
            yield order


class OrderImporter:
    """Feeds a sequence of order payloads through the order processor."""

    def __init__(self, processor: OrderProcessor, delay_seconds: Optional[float] = None):
        self.processor = processor
        self.delay_seconds = get_settings().IMPORT_DELAY_SECONDS if delay_seconds is None else delay_seconds

    async def import_orders(self, orders: OrderSource, topic: Optional[str] = None) -> ImportSummary:
        """
        Process every order and return counts.

        Failures are recorded per order and never stop the import; there is
        no retry, a failed order is picked up by the next run.
        """
        summary = ImportSummary()
        first = True

        async for payload in _iterate(orders):
            if not first and self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            first = False

            summary.total_orders += 1
            order_id = str(payload.get("id")) if isinstance(payload, dict) else "?"
            logger.info("[Bulk Import] Processing order %d: %s", summary.total_orders, order_id)

            try:
                log_id = await self.processor.webhook_log.record_receipt(payload, topic=topic)
                result = await self.processor.process_order(payload, log_id)
            except BaseServiceError as e:
                self._record_error(summary, order_id, e)
                continue
            except Exception as e:
                logger.exception("[Bulk Import] Unexpected error processing order %s", order_id)
                self._record_error(summary, order_id, e)
                continue

            if result.skipped:
                summary.skipped_count += 1
            else:
                summary.processed_count += 1

        logger.info(
            "[Bulk Import] Complete: %d processed, %d skipped, %d errors",
            summary.processed_count, summary.skipped_count, summary.error_count,
        )
        return summary

    @staticmethod
    def _record_error(summary: ImportSummary, order_id: str, error: Exception) -> None:
        summary.error_count += 1
        logger.error("[Bulk Import] Error processing order %s: %s", order_id, error)
        if len(summary.errors) < MAX_REPORTED_ERRORS:
            summary.errors.append({"order_id": order_id, "error": str(error)})
