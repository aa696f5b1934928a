# reconciler/models/mapping.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.sql import func

from reconciler.database import Base
from reconciler.models._types import JSONType, Quantity


class VariantMapping(Base):
    """
    Fixed component of an external variant.

    One external variant may own several rows, which together form a bundle
    (e.g. 1x ski pole set -> 2x grips, 2x sticks, 2x baskets).
    """
    __tablename__ = "variant_mappings"

    id = Column(Integer, primary_key=True, index=True)
    external_product_id = Column(String, nullable=True, index=True)
    external_variant_id = Column(String, nullable=False, index=True)
    external_product_title = Column(String, nullable=True)
    external_variant_title = Column(String, nullable=True)

    product_variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Quantity, nullable=False, default=1)  # multiplier per external unit

    status = Column(String(20), nullable=False, default="active", index=True)  # active, disabled, error
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    sync_errors = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return (f"<VariantMapping(id={self.id}, external_variant_id='{self.external_variant_id}', "
                f"product_variant_id={self.product_variant_id}, quantity={self.quantity}, status='{self.status}')>")


class PropertyMapping(Base):
    """
    Conditional component of a customizable external variant.

    The platform encodes the customer's choice as line-item properties, so
    a row applies only when every rule name/value pair is present.
    """
    __tablename__ = "property_mappings"

    id = Column(Integer, primary_key=True, index=True)
    external_product_id = Column(String, nullable=True, index=True)
    external_variant_id = Column(String, nullable=False, index=True)
    external_product_title = Column(String, nullable=True)
    external_variant_title = Column(String, nullable=True)

    property_rules = Column(JSONType, nullable=False)  # {"Farbe": "Rot", "Size": "L"}

    product_variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Quantity, nullable=False, default=1)

    status = Column(String(20), nullable=False, default="active", index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return (f"<PropertyMapping(id={self.id}, external_variant_id='{self.external_variant_id}', "
                f"rules={self.property_rules}, status='{self.status}')>")


class VariantIdentityEdge(Base):
    """
    Records that the platform replaced one external variant id by another.

    At most one outgoing edge per (product, old id), so the edges form a
    functional graph that resolution can walk.
    """
    __tablename__ = "variant_identity_edges"

    id = Column(Integer, primary_key=True)
    external_product_id = Column(String, nullable=False)
    old_variant_id = Column(String, nullable=False)
    new_variant_id = Column(String, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("external_product_id", "old_variant_id", name="uq_identity_edge_product_old_variant"),
    )

    def __repr__(self):
        return (f"<VariantIdentityEdge(product='{self.external_product_id}', "
                f"{self.old_variant_id} -> {self.new_variant_id})>")
