# reconciler/services/order_queries.py
"""Read-only lookups for processed orders and webhook logs."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from reconciler.core.config import get_settings
from reconciler.core.exceptions import NotFoundError
from reconciler.models.order import ExternalOrder
from reconciler.models.webhook import WebhookEvent
from reconciler.schemas.orders import OrderLineItemRead, OrderRead, OrderStatusRead, WebhookEventRead


async def get_order_status(db: AsyncSession, external_order_id: str) -> OrderStatusRead:
    """Order header, persisted line items and processing flags."""
    result = await db.execute(
        select(ExternalOrder)
        .options(selectinload(ExternalOrder.line_items))
        .where(ExternalOrder.external_order_id == str(external_order_id))
    )
    order = result.scalars().first()
    if order is None:
        raise NotFoundError(f"Order {external_order_id} not found")

    return OrderStatusRead(
        order=OrderRead.model_validate(order),
        line_items=[OrderLineItemRead.model_validate(item) for item in order.line_items],
        processed=order.processed_at is not None,
        has_errors=bool(order.error_message),
    )


async def list_webhook_logs(db: AsyncSession, limit: Optional[int] = None) -> List[WebhookEventRead]:
    """Most recent webhook logs first."""
    result = await db.execute(
        select(WebhookEvent)
        .order_by(WebhookEvent.id.desc())
        .limit(limit or get_settings().WEBHOOK_LOG_LIMIT)
    )
    return [WebhookEventRead.model_validate(event) for event in result.scalars().all()]
