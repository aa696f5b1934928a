# reconciler/services/inventory_ledger.py
"""
Inventory ledger.

Every change to on-hand stock is a pair of writes: an append-only
InventoryMovement row and a single atomic upsert of the InventoryRecord
aggregate. The ledger never commits; both writes join the caller's
transaction, so they commit or roll back together.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reconciler.core.enums import AdjustmentDirection, InventoryAction
from reconciler.core.exceptions import NotFoundError, ValidationError
from reconciler.database import dialect_insert
from reconciler.models.catalog import ProductVariant
from reconciler.models.inventory import InventoryMovement, InventoryRecord

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class InventoryLedger:
    """Append-movement plus atomic aggregate update, per internal variant."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def on_hand(self, variant_id: int) -> Decimal:
        quantity = await self.db.scalar(
            select(InventoryRecord.quantity_on_hand).where(
                InventoryRecord.product_variant_id == variant_id
            )
        )
        return Decimal(quantity) if quantity is not None else ZERO

    async def on_hand_many(self, variant_ids: Iterable[int]) -> Dict[int, Decimal]:
        ids = list(set(variant_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(InventoryRecord.product_variant_id, InventoryRecord.quantity_on_hand).where(
                InventoryRecord.product_variant_id.in_(ids)
            )
        )
        levels = {variant_id: ZERO for variant_id in ids}
        for variant_id, quantity in result.all():
            levels[variant_id] = Decimal(quantity)
        return levels

    async def apply_movement(
        self,
        variant_id: int,
        delta: Decimal,
        action: InventoryAction,
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        product_id: Optional[int] = None,
    ) -> Decimal:
        """
        Append a movement and shift on-hand by `delta` in one statement.

        Returns the new on-hand quantity.
        """
        delta = Decimal(delta)
        if delta == ZERO:
            raise ValidationError("Inventory movement quantity must not be zero")

        if product_id is None:
            product_id = await self.db.scalar(
                select(ProductVariant.product_id).where(ProductVariant.id == variant_id)
            )

        self.db.add(
            InventoryMovement(
                product_id=product_id,
                product_variant_id=variant_id,
                quantity=delta,
                action=InventoryAction(action).value,
                reason=reason,
                reference=reference,
            )
        )

        # INSERT ... ON CONFLICT DO UPDATE SET qty = qty + delta: no read-modify-write
        stmt = dialect_insert(self.db, InventoryRecord).values(
            product_variant_id=variant_id,
            quantity_on_hand=delta,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["product_variant_id"],
            set_={"quantity_on_hand": InventoryRecord.quantity_on_hand + stmt.excluded.quantity_on_hand},
        ).returning(InventoryRecord.quantity_on_hand)

        new_quantity = (await self.db.execute(stmt)).scalar_one()
        await self.db.flush()
        return Decimal(new_quantity)

    async def deduct_sale(
        self,
        aggregates: Mapping[int, Decimal],
        reference: Optional[str] = None,
        reason: Optional[str] = None,
        product_ids: Optional[Mapping[int, int]] = None,
    ) -> Dict[int, Decimal]:
        """
        Deduct aggregated sale quantities, one movement per variant.

        Negative on-hand is allowed and only logged.
        """
        product_ids = product_ids or {}
        remaining = {}
        for variant_id, quantity in aggregates.items():
            quantity = Decimal(quantity)
            if quantity <= ZERO:
                continue
            new_quantity = await self.apply_movement(
                variant_id,
                -quantity,
                InventoryAction.SALE,
                reason=reason or (f"Sale: order {reference}" if reference else "Sale"),
                reference=reference,
                product_id=product_ids.get(variant_id),
            )
            remaining[variant_id] = new_quantity
            if new_quantity < ZERO:
                logger.warning(
                    "Negative inventory for variant %s after deducting %s: %s",
                    variant_id, quantity, new_quantity,
                )
        return remaining

    async def adjust(
        self,
        variant_id: int,
        quantity: Decimal,
        direction: AdjustmentDirection,
        reason: Optional[str] = None,
    ) -> Decimal:
        """Manual stock correction of a positive quantity in either direction."""
        quantity = Decimal(quantity)
        if quantity <= ZERO:
            raise ValidationError("Adjustment quantity must be greater than zero")

        product_id = await self.db.scalar(
            select(ProductVariant.product_id).where(ProductVariant.id == variant_id)
        )
        if product_id is None:
            raise NotFoundError(f"Product variant {variant_id} not found")

        direction = AdjustmentDirection(direction)
        delta = -quantity if direction == AdjustmentDirection.DECREASE else quantity
        new_quantity = await self.apply_movement(
            variant_id,
            delta,
            InventoryAction.ADJUSTMENT,
            reason=reason,
            product_id=product_id,
        )
        logger.info("Adjusted variant %s by %s -> %s", variant_id, delta, new_quantity)
        return new_quantity

    async def movements(self, variant_id: int, limit: Optional[int] = None) -> List[InventoryMovement]:
        """Movement history of a variant, newest first."""
        stmt = (
            select(InventoryMovement)
            .where(InventoryMovement.product_variant_id == variant_id)
            .order_by(InventoryMovement.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
