# reconciler/models/catalog.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from reconciler.database import Base
from reconciler.models._types import Quantity


class Product(Base):
    """
    Internal product (raw material, intermediate or final good).

    Maintained by the catalog CRUD screens; the reconciler only reads it.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String(20), nullable=False)  # RAW, INTERMEDIATE, FINAL
    unit = Column(String(32), nullable=False, default="pcs")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    variants = relationship("ProductVariant", back_populates="product")

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', type='{self.type}')>"


class ProductVariant(Base):
    """SKU-level inventory entity of a product."""
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="variants")

    def __repr__(self):
        return f"<ProductVariant(id={self.id}, sku='{self.sku}')>"


class ProductVariation(Base):
    """A variation axis of a product, e.g. 'Farbe' or 'Size'."""
    __tablename__ = "product_variations"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)


class ProductVariationOption(Base):
    __tablename__ = "product_variation_options"

    id = Column(Integer, primary_key=True)
    variation_id = Column(Integer, ForeignKey("product_variations.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(String, nullable=False)


class ProductVariantSelection(Base):
    """Which option a variant carries for one variation axis."""
    __tablename__ = "product_variant_selections"

    id = Column(Integer, primary_key=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True)
    variation_id = Column(Integer, ForeignKey("product_variations.id", ondelete="CASCADE"), nullable=False)
    option_id = Column(Integer, ForeignKey("product_variation_options.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("variant_id", "variation_id", name="uq_variant_selection_per_variation"),
    )


class VariantBillOfMaterials(Base):
    """Component variants consumed to build one product variant."""
    __tablename__ = "variant_bill_of_materials"

    id = Column(Integer, primary_key=True)
    product_variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True)
    component_variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity_required = Column(Quantity, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
