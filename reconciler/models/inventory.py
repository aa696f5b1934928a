# reconciler/models/inventory.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.sql import func

from reconciler.database import Base
from reconciler.models._types import Quantity


class InventoryRecord(Base):
    """
    Aggregate on-hand quantity of one internal variant.

    Changed only through single-statement upserts issued by the ledger.
    """
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True)
    product_variant_id = Column(
        Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    quantity_on_hand = Column(Quantity, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<InventoryRecord(variant={self.product_variant_id}, on_hand={self.quantity_on_hand})>"


class InventoryMovement(Base):
    """Append-only ledger entry of a signed quantity change."""
    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True, index=True)
    quantity = Column(Quantity, nullable=False)
    action = Column(String(20), nullable=False, index=True)  # PURCHASE, OUTPUT, CONSUMPTION, ADJUSTMENT, SALE
    reason = Column(Text, nullable=True)
    reference = Column(String, nullable=True, index=True)  # e.g. external order id
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<InventoryMovement {self.action} variant={self.product_variant_id} qty={self.quantity}>"
