# reconciler/services/mapping_matcher.py
"""
Line item to internal component matching.

Two strategies, tried in order, never combined:
1. Variant mappings: fixed component sets of an external variant.
2. Property mappings: components selected by the line item's properties,
   for customizable products that share one external variant.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reconciler.core.enums import MappingStatus, MatchStrategy
from reconciler.models.catalog import Product, ProductVariant
from reconciler.models.mapping import PropertyMapping, VariantMapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentMatch:
    """One internal variant to deduct for each unit of the external line item."""
    internal_variant_id: int
    quantity_multiplier: Decimal
    mapping_id: int
    strategy: MatchStrategy
    product_id: Optional[int] = None
    sku: str = ""
    product_name: str = ""


def rules_match(rules: Mapping[str, str], properties: Iterable[Tuple[str, str]]) -> bool:
    """
    True when every rule name/value has a case-insensitive equal property.

    The line item may carry properties the rule does not mention. An empty
    rule set matches nothing.
    """
    if not rules:
        return False
    props: Dict[str, List[str]] = {}
    for name, value in properties:
        props.setdefault(str(name).upper(), []).append(str(value).upper())

    for rule_name, rule_value in rules.items():
        values = props.get(str(rule_name).upper())
        if not values or str(rule_value).upper() not in values:
            return False
    return True


def unmapped_reason(variant_id: Optional[str], sku: str, title: str = "") -> str:
    """Human readable explanation stored with an unmapped line item."""
    if not variant_id:
        return "No variant_id in order"
    label = f"SKU: {sku}" if sku else "no SKU"
    if title:
        label = f"{label}, title: {title}"
    return f"No active mappings found for external variant {variant_id} ({label})"


class MappingMatcher:
    """Resolves an external variant (plus properties) into internal components."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _variant_matches(self, variant_id: str) -> List[ComponentMatch]:
        result = await self.db.execute(
            select(
                VariantMapping.id,
                VariantMapping.product_variant_id,
                VariantMapping.quantity,
                ProductVariant.product_id,
                ProductVariant.sku,
                Product.name,
            )
            .join(ProductVariant, ProductVariant.id == VariantMapping.product_variant_id)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                VariantMapping.external_variant_id == variant_id,
                VariantMapping.status == MappingStatus.ACTIVE.value,
            )
            .order_by(VariantMapping.id)
        )
        return [
            ComponentMatch(
                internal_variant_id=row.product_variant_id,
                quantity_multiplier=Decimal(row.quantity),
                mapping_id=row.id,
                strategy=MatchStrategy.VARIANT,
                product_id=row.product_id,
                sku=row.sku or "",
                product_name=row.name or "",
            )
            for row in result.all()
        ]

    async def _property_matches(
        self, variant_id: str, properties: Sequence[Tuple[str, str]]
    ) -> List[ComponentMatch]:
        result = await self.db.execute(
            select(
                PropertyMapping.id,
                PropertyMapping.property_rules,
                PropertyMapping.product_variant_id,
                PropertyMapping.quantity,
                ProductVariant.product_id,
                ProductVariant.sku,
                Product.name,
            )
            .join(ProductVariant, ProductVariant.id == PropertyMapping.product_variant_id)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                PropertyMapping.external_variant_id == variant_id,
                PropertyMapping.status == MappingStatus.ACTIVE.value,
            )
            .order_by(PropertyMapping.id)
        )

        matches = []
        for row in result.all():
            if not rules_match(row.property_rules or {}, properties):
                continue
            logger.debug("Property rules %s matched variant %s", row.property_rules, row.product_variant_id)
            matches.append(
                ComponentMatch(
                    internal_variant_id=row.product_variant_id,
                    quantity_multiplier=Decimal(row.quantity),
                    mapping_id=row.id,
                    strategy=MatchStrategy.PROPERTY,
                    product_id=row.product_id,
                    sku=row.sku or "",
                    product_name=row.name or "",
                )
            )
        return matches

    async def match_line_item(
        self,
        resolved_variant_id: Optional[str],
        properties: Optional[Iterable] = None,
    ) -> List[ComponentMatch]:
        """
        Return the components to deduct for one line item.

        `properties` is an iterable of (name, value) pairs or of objects with
        `name`/`value` attributes. An empty list means the line is unmapped.
        """
        if not resolved_variant_id:
            return []

        matches = await self._variant_matches(resolved_variant_id)
        if matches:
            return matches

        pairs = _as_pairs(properties)
        if not pairs:
            return []

        logger.debug("No variant mappings for %s, checking property mappings", resolved_variant_id)
        return await self._property_matches(resolved_variant_id, pairs)


def _as_pairs(properties: Optional[Iterable]) -> List[Tuple[str, str]]:
    pairs = []
    for prop in properties or []:
        if isinstance(prop, tuple):
            name, value = prop
        elif isinstance(prop, Mapping):
            name, value = prop.get("name"), prop.get("value")
        else:
            name, value = getattr(prop, "name", None), getattr(prop, "value", None)
        if name and value:
            pairs.append((str(name), str(value)))
    return pairs
