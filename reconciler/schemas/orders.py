"""
Read schemas for persisted orders and webhook logs.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from reconciler.schemas.base import BaseSchema


class OrderLineItemRead(BaseSchema):
    id: int
    external_line_item_id: Optional[str] = None
    external_product_id: Optional[str] = None
    external_variant_id: Optional[str] = None
    sku: Optional[str] = None
    title: Optional[str] = None
    quantity: Decimal
    price: Optional[Decimal] = None
    product_variant_id: Optional[int] = None
    mapping_status: str
    mapping_strategy: Optional[str] = None
    unmapped_reason: Optional[str] = None


class OrderRead(BaseSchema):
    id: int
    external_order_id: str
    order_number: Optional[str] = None
    status: Optional[str] = None
    total_amount: Optional[Decimal] = None
    customer_email: Optional[str] = None
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None


class OrderStatusRead(BaseSchema):
    order: OrderRead
    line_items: List[OrderLineItemRead]
    processed: bool
    has_errors: bool


class WebhookEventRead(BaseSchema):
    id: int
    topic: str
    external_order_id: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    payload: Optional[Any] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
