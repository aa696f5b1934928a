# tests/conftest.py
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from reconciler.core.config import Settings
from reconciler.database import Base, build_session_factory
from reconciler import models  # noqa: F401  registers every table on Base
from reconciler.models.catalog import (
    Product,
    ProductVariant,
    ProductVariantSelection,
    ProductVariation,
    ProductVariationOption,
    VariantBillOfMaterials,
)
from reconciler.models.inventory import InventoryRecord
from reconciler.models.mapping import PropertyMapping, VariantIdentityEdge, VariantMapping


@pytest.fixture
def settings(tmp_path):
    """Provide test settings"""
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        ENVIRONMENT="test",
        IMPORT_DELAY_SECONDS=0,
    )


@pytest.fixture(scope="function")
async def test_engine(settings):
    """
    Fresh SQLite database file per test.

    NullPool so every session gets its own connection: the order processor
    and the webhook log recorder open separate sessions, as in production.
    """
    engine = create_async_engine(settings.async_database_url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


class CatalogBuilder:
    """Seeds products, variants, mappings and stock for a test."""

    def __init__(self, session):
        self.session = session
        self._variations = {}

    async def variant(self, name, sku, selections=None, on_hand=None, product_type="FINAL", product=None):
        if product is None:
            product = Product(name=name, type=product_type, unit="pcs")
            self.session.add(product)
            await self.session.flush()

        variant = ProductVariant(product_id=product.id, sku=sku)
        self.session.add(variant)
        await self.session.flush()

        for variation_name, option_value in (selections or {}).items():
            variation = self._variations.get((product.id, variation_name))
            if variation is None:
                variation = ProductVariation(product_id=product.id, name=variation_name)
                self.session.add(variation)
                await self.session.flush()
                self._variations[(product.id, variation_name)] = variation
            option = ProductVariationOption(variation_id=variation.id, value=option_value)
            self.session.add(option)
            await self.session.flush()
            self.session.add(
                ProductVariantSelection(variant_id=variant.id, variation_id=variation.id, option_id=option.id)
            )

        if on_hand is not None:
            self.session.add(InventoryRecord(product_variant_id=variant.id, quantity_on_hand=Decimal(on_hand)))

        await self.session.flush()
        return variant

    async def variant_mapping(self, external_variant_id, variant, quantity=1, title=None,
                              status="active", external_product_id="P1", product_title="Shop product"):
        mapping = VariantMapping(
            external_product_id=external_product_id,
            external_variant_id=external_variant_id,
            external_product_title=product_title,
            external_variant_title=title,
            product_variant_id=variant.id,
            quantity=Decimal(quantity),
            status=status,
        )
        self.session.add(mapping)
        await self.session.flush()
        return mapping

    async def property_mapping(self, external_variant_id, rules, variant, quantity=1,
                               status="active", external_product_id="P1"):
        mapping = PropertyMapping(
            external_product_id=external_product_id,
            external_variant_id=external_variant_id,
            external_product_title="Customizable product",
            property_rules=rules,
            product_variant_id=variant.id,
            quantity=Decimal(quantity),
            status=status,
        )
        self.session.add(mapping)
        await self.session.flush()
        return mapping

    async def bom(self, product_variant, component_variant, quantity=1):
        entry = VariantBillOfMaterials(
            product_variant_id=product_variant.id,
            component_variant_id=component_variant.id,
            quantity_required=Decimal(quantity),
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def identity_edge(self, product_id, old_id, new_id):
        self.session.add(
            VariantIdentityEdge(external_product_id=product_id, old_variant_id=old_id, new_variant_id=new_id)
        )
        await self.session.flush()


@pytest.fixture
def catalog(db_session):
    return CatalogBuilder(db_session)


async def fetch_on_hand(session_factory, variant_id):
    """Read on-hand through a fresh session, bypassing any identity map."""
    async with session_factory() as session:
        quantity = await session.scalar(
            select(InventoryRecord.quantity_on_hand).where(InventoryRecord.product_variant_id == variant_id)
        )
    return Decimal(quantity) if quantity is not None else None


@pytest.fixture
def on_hand(session_factory):
    async def _on_hand(variant_id):
        return await fetch_on_hand(session_factory, variant_id)
    return _on_hand


@pytest.fixture
def make_order():
    """Build an order event payload in the platform's REST shape."""
    def _make_order(order_id="9001", line_items=None, **extra):
        payload = {
            "id": order_id,
            "order_number": f"#{order_id}",
            "email": "customer@example.com",
            "currency": "EUR",
            "total_price": "49.90",
            "fulfillment_status": "fulfilled",
            "line_items": line_items if line_items is not None else [],
        }
        payload.update(extra)
        return payload
    return _make_order
