# reconciler/services/order_processor.py
"""
Order Processor Service

Processes fulfilled external orders into inventory deductions:
- Each line item's variant id is resolved through the identity chain
- Resolved variants are matched to internal components (bundles fan out)
- Component quantities are aggregated per internal variant and deducted once

ExternalOrder.processed_at is the idempotency gate. It is set with a
compare-and-set inside the same transaction as the deduction, so a
redelivered order can never deduct twice even when deliveries race.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reconciler.core.enums import LineItemMappingStatus
from reconciler.core.exceptions import (
    InsufficientStockWarning,
    PersistenceError,
    UnmappedItemWarning,
    ValidationError,
)
from reconciler.database import dialect_insert
from reconciler.models.order import ExternalOrder, ExternalOrderLineItem
from reconciler.schemas.order_payload import LineItemPayload, OrderPayload
from reconciler.schemas.results import ProcessOrderResult
from reconciler.services.inventory_ledger import InventoryLedger
from reconciler.services.mapping_matcher import ComponentMatch, MappingMatcher, unmapped_reason
from reconciler.services.variant_resolver import VariantResolver
from reconciler.services.webhook_log import WebhookLogRecorder

logger = logging.getLogger(__name__)

NOTHING_MAPPED_MESSAGE = "No items could be mapped to internal variants"


@dataclass
class MappedLine:
    line_item: LineItemPayload
    variant_id: str
    match: ComponentMatch

    @property
    def total_quantity(self) -> Decimal:
        return self.match.quantity_multiplier * self.line_item.quantity


@dataclass
class UnmappedLine:
    line_item: LineItemPayload
    variant_id: Optional[str]
    reason: str

    def to_warning(self) -> UnmappedItemWarning:
        return UnmappedItemWarning(
            sku=self.line_item.sku,
            title=self.line_item.title,
            variant_id=self.variant_id or "",
            reason=self.reason,
        )


@dataclass
class LineOutcomes:
    """Per-line results of one order, collected before anything is deducted."""
    mapped: List[MappedLine] = field(default_factory=list)
    unmapped: List[UnmappedLine] = field(default_factory=list)

    def aggregate(self) -> Dict[int, Decimal]:
        """Total quantity per internal variant across all line items."""
        totals: Dict[int, Decimal] = {}
        for line in self.mapped:
            variant_id = line.match.internal_variant_id
            totals[variant_id] = totals.get(variant_id, Decimal("0")) + line.total_quantity
        return totals

    def components(self) -> Dict[int, ComponentMatch]:
        return {line.match.internal_variant_id: line.match for line in self.mapped}


class OrderAlreadyClaimed(Exception):
    """Another delivery set processed_at first; this unit of work must roll back."""

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} was processed concurrently")


def parse_order_payload(raw_payload: Union[OrderPayload, Mapping[str, Any]]) -> OrderPayload:
    """Validate an untyped order event into the typed boundary model."""
    if isinstance(raw_payload, OrderPayload):
        return raw_payload
    if not isinstance(raw_payload, Mapping):
        raise ValidationError("Invalid webhook payload structure: expected a JSON object")
    try:
        return OrderPayload.model_validate(dict(raw_payload))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid webhook payload structure: {e}") from e


class OrderProcessor:
    """
    Processes one order event end to end.

    Steps 2-7 (header upsert through deduction) run in a single
    transaction; webhook log updates run afterwards in their own sessions.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        webhook_log: Optional[WebhookLogRecorder] = None,
    ):
        self.session_factory = session_factory
        self.webhook_log = webhook_log or WebhookLogRecorder(session_factory)

    async def _find_order(self, db: AsyncSession, external_order_id: str) -> Optional[ExternalOrder]:
        result = await db.execute(
            select(ExternalOrder).where(ExternalOrder.external_order_id == external_order_id).limit(1)
        )
        return result.scalars().first()

    async def _upsert_order(self, db: AsyncSession, payload: OrderPayload, raw: Dict[str, Any]) -> int:
        now = datetime.now(timezone.utc)
        values = {
            "external_order_id": payload.id,
            "order_number": payload.display_number,
            "status": "cancelled" if payload.cancelled_at else (payload.fulfillment_status or "fulfilled"),
            "fulfilled_at": now,
            "total_amount": payload.total_price,
            "total_currency": payload.currency,
            "customer_id": payload.customer_id,
            "customer_email": payload.customer_email,
            "raw_payload": raw,
        }
        stmt = dialect_insert(db, ExternalOrder).values(**values)
        refreshed = {key: stmt.excluded[key] for key in values if key != "external_order_id"}
        refreshed["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=["external_order_id"],
            set_=refreshed,
        ).returning(ExternalOrder.id)

        try:
            order_id = (await db.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            logger.error(
                "[Order %s] Database error creating order: %s", payload.id, e, exc_info=True
            )
            raise PersistenceError(f"Failed to create order in database: {e}") from e

        logger.info("[Order %s] Order record upserted (id=%s, number=%s)", payload.id, order_id, payload.display_number)
        return order_id

    async def _map_line_items(self, db: AsyncSession, order_id: int, payload: OrderPayload) -> LineOutcomes:
        resolver = VariantResolver(db)
        matcher = MappingMatcher(db)
        outcomes = LineOutcomes()

        for line_item in payload.line_items:
            original_variant_id = line_item.variant_id
            sku = line_item.sku or (f"variant-{original_variant_id}" if original_variant_id else "")

            if not original_variant_id:
                logger.warning("[Order %s] Line item %s has no variant_id", payload.id, line_item.id)
                reason = unmapped_reason(None, line_item.sku)
                outcomes.unmapped.append(UnmappedLine(line_item, None, reason))
                db.add(self._line_row(order_id, line_item, None, sku, line_item.quantity, None, None, reason))
                continue

            variant_id = await resolver.resolve_or_original(line_item.product_id, original_variant_id)
            if variant_id != original_variant_id:
                logger.info("[Order %s] Variant %s resolved to %s", payload.id, original_variant_id, variant_id)

            matches = await matcher.match_line_item(variant_id, line_item.property_pairs)
            if not matches:
                reason = unmapped_reason(variant_id, line_item.sku, line_item.title)
                outcomes.unmapped.append(UnmappedLine(line_item, variant_id, reason))
                db.add(self._line_row(order_id, line_item, original_variant_id, sku, line_item.quantity,
                                      None, None, reason))
                continue

            logger.info(
                "[Order %s] Found %d component(s) for variant %s via %s mappings",
                payload.id, len(matches), variant_id, matches[0].strategy.value,
            )
            for match in matches:
                mapped = MappedLine(line_item, variant_id, match)
                outcomes.mapped.append(mapped)
                db.add(self._line_row(order_id, line_item, original_variant_id, sku, mapped.total_quantity,
                                      match, match.strategy.value, None))

        await db.flush()
        return outcomes

    @staticmethod
    def _line_row(
        order_id: int,
        line_item: LineItemPayload,
        variant_id: Optional[str],
        sku: str,
        quantity,
        match: Optional[ComponentMatch],
        strategy: Optional[str],
        reason: Optional[str],
    ) -> ExternalOrderLineItem:
        return ExternalOrderLineItem(
            order_id=order_id,
            external_line_item_id=line_item.id,
            external_product_id=line_item.product_id,
            external_variant_id=variant_id,
            sku=sku,
            title=line_item.title or None,
            quantity=Decimal(quantity),
            price=line_item.price,
            product_variant_id=match.internal_variant_id if match else None,
            mapping_status=(LineItemMappingStatus.MAPPED if match else LineItemMappingStatus.UNMAPPED).value,
            mapping_strategy=strategy,
            unmapped_reason=reason,
        )

    async def _check_stock(
        self, ledger: InventoryLedger, outcomes: LineOutcomes, aggregates: Dict[int, Decimal]
    ) -> List[InsufficientStockWarning]:
        levels = await ledger.on_hand_many(aggregates.keys())
        components = outcomes.components()
        shortfalls = []
        for variant_id, required in aggregates.items():
            on_hand = levels.get(variant_id, Decimal("0"))
            if on_hand < required:
                component = components[variant_id]
                shortfalls.append(
                    InsufficientStockWarning(variant_id, component.product_name, component.sku, required, on_hand)
                )
        return shortfalls

    async def _claim(self, db: AsyncSession, order_id: int) -> bool:
        """Compare-and-set processed_at; False when another delivery got there first."""
        result = await db.execute(
            update(ExternalOrder)
            .where(ExternalOrder.id == order_id, ExternalOrder.processed_at.is_(None))
            .values(processed_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _process_in_transaction(
        self, db: AsyncSession, payload: OrderPayload, raw: Dict[str, Any]
    ) -> tuple:
        order_id = await self._upsert_order(db, payload, raw)

        logger.info("[Order %s] Processing %d line items...", payload.id, len(payload.line_items))
        outcomes = await self._map_line_items(db, order_id, payload)

        error_parts = []
        unmapped_warnings = [line.to_warning() for line in outcomes.unmapped]
        if unmapped_warnings:
            error_parts.append(
                "Unmapped items: " + "; ".join(f"{w}" for w in unmapped_warnings)
            )
            logger.warning("[Order %s] has unmapped items: %s", payload.id, error_parts[-1])

        ledger = InventoryLedger(db)
        aggregates = outcomes.aggregate()
        shortfalls = await self._check_stock(ledger, outcomes, aggregates)
        if shortfalls:
            error_parts.append("Insufficient stock: " + "; ".join(str(w) for w in shortfalls))
            logger.warning("[Order %s] has insufficient stock: %s", payload.id, error_parts[-1])

        if outcomes.mapped:
            if not await self._claim(db, order_id):
                raise OrderAlreadyClaimed(order_id)

            logger.info(
                "[Order %s] Deducting %d component(s) aggregated into %d variant(s)",
                payload.id, len(outcomes.mapped), len(aggregates),
            )
            product_ids = {vid: match.product_id for vid, match in outcomes.components().items()}
            remaining = await ledger.deduct_sale(aggregates, reference=payload.id, product_ids=product_ids)
            for variant_id, quantity in remaining.items():
                logger.info(
                    "[Order %s] Deducted %s x variant %s: %s remaining",
                    payload.id, aggregates[variant_id], variant_id, quantity,
                )
        else:
            error_parts.insert(0, NOTHING_MAPPED_MESSAGE)

        await db.execute(
            update(ExternalOrder)
            .where(ExternalOrder.id == order_id)
            .values(error_message="; ".join(error_parts) or None)
            .execution_options(synchronize_session=False)
        )

        result = ProcessOrderResult(
            success=True,
            order_id=order_id,
            processed_item_count=len(outcomes.mapped),
            unmapped_item_count=len(outcomes.unmapped),
            insufficient_stock_count=len(shortfalls),
            warnings=[str(w) for w in unmapped_warnings] + [str(w) for w in shortfalls],
        )
        return result, outcomes

    async def process_order(
        self,
        raw_payload: Union[OrderPayload, Mapping[str, Any]],
        webhook_log_id: Optional[int] = None,
    ) -> ProcessOrderResult:
        """
        Process a fulfilled order event.

        Returns a skipped result when the order was already processed.
        Raises ValidationError for malformed payloads and PersistenceError
        for database failures; the webhook log is marked failed first.
        """
        try:
            payload = parse_order_payload(raw_payload)
        except ValidationError as e:
            logger.error("Rejected order payload (webhook log %s): %s", webhook_log_id, e)
            await self.webhook_log.mark_failed(webhook_log_id, str(e))
            raise

        raw = dict(raw_payload) if isinstance(raw_payload, Mapping) else payload.model_dump(mode="json")
        logger.info(
            "[Order %s] Starting processing... (%d line items, webhook log %s)",
            payload.id, len(payload.line_items), webhook_log_id,
        )

        skipped_order_id = None
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    existing = await self._find_order(db, payload.id)
                    if existing is not None and existing.processed_at is not None:
                        skipped_order_id = existing.id
                    else:
                        result, outcomes = await self._process_in_transaction(db, payload, raw)
        except OrderAlreadyClaimed as e:
            skipped_order_id = e.order_id
            logger.info("[Order %s] Processed by a concurrent delivery, rolled back", payload.id)
        except SQLAlchemyError as e:
            logger.error("[Order %s] Fatal database error: %s", payload.id, e, exc_info=True)
            await self.webhook_log.mark_failed(webhook_log_id, str(e))
            raise PersistenceError(f"Order {payload.id} could not be processed: {e}") from e
        except Exception as e:
            logger.error("[Order %s] Fatal error: %s", payload.id, e, exc_info=True)
            await self.webhook_log.mark_failed(webhook_log_id, str(e) or e.__class__.__name__)
            raise

        if skipped_order_id is not None:
            logger.info("Order %s already processed, skipping", payload.id)
            await self.webhook_log.mark_processed(webhook_log_id)
            return ProcessOrderResult(success=True, skipped=True, order_id=skipped_order_id)

        if outcomes.unmapped:
            await self.webhook_log.mark_failed(
                webhook_log_id, f"Partially processed: {len(outcomes.unmapped)} unmapped items"
            )
        else:
            await self.webhook_log.mark_processed(webhook_log_id)

        logger.info(
            "[Order %s] Processed (mapped=%d, unmapped=%d, insufficient=%d)",
            payload.id, result.processed_item_count, result.unmapped_item_count, result.insufficient_stock_count,
        )
        return result


async def process_order(
    session_factory: async_sessionmaker,
    raw_payload: Union[OrderPayload, Mapping[str, Any]],
    webhook_log_id: Optional[int] = None,
) -> ProcessOrderResult:
    """
    Convenience function to process a single order event.
    """
    processor = OrderProcessor(session_factory)
    return await processor.process_order(raw_payload, webhook_log_id)
