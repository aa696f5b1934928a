# reconciler/models/order.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from reconciler.database import Base
from reconciler.models._types import JSONType, Quantity


class ExternalOrder(Base):
    __tablename__ = "external_orders"

    id = Column(Integer, primary_key=True, index=True)
    # Platform identifiers
    external_order_id = Column(String, nullable=False, unique=True)
    order_number = Column(String)

    # Order status
    status = Column(String)
    fulfilled_at = Column(DateTime(timezone=True))

    # Financial details
    total_amount = Column(Numeric(12, 2))
    total_currency = Column(String(8))

    # Customer details
    customer_id = Column(String)
    customer_email = Column(String)

    # Raw data
    raw_payload = Column(JSONType, nullable=False)

    # Inventory processing; processed_at is the idempotency gate
    processed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    # Row timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    line_items = relationship(
        "ExternalOrderLineItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ExternalOrderLineItem.id",
    )

    def __repr__(self):
        return (f"<ExternalOrder(id={self.id}, external_order_id='{self.external_order_id}', "
                f"processed_at={self.processed_at})>")


class ExternalOrderLineItem(Base):
    """
    One persisted outcome of a line item.

    A mapped bundle fans out into one row per component; an unmapped line
    item leaves a single row with the reason.
    """
    __tablename__ = "external_order_line_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("external_orders.id", ondelete="CASCADE"), nullable=False, index=True)

    external_line_item_id = Column(String)
    external_product_id = Column(String)
    external_variant_id = Column(String, index=True)
    sku = Column(String)
    title = Column(String)

    quantity = Column(Quantity, nullable=False)
    price = Column(Numeric(12, 2))

    product_variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True)
    mapping_status = Column(String(20), nullable=False)  # mapped, unmapped
    mapping_strategy = Column(String(20), nullable=True)  # variant, property
    unmapped_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("ExternalOrder", back_populates="line_items")
