# reconciler/services/consistency_auditor.py
"""
Mapping consistency audit.

Read-only cross-check of colour attributes. Mapping a red internal variant to
a blue external variant, or building a red product from a blue component, is
the most common data-entry mistake; this report surfaces it before orders
deduct the wrong stock.
"""

import json
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reconciler.core.config import get_settings
from reconciler.core.enums import AuditFamily, AuditStatus, MappingStatus
from reconciler.models.catalog import (
    Product,
    ProductVariant,
    ProductVariantSelection,
    ProductVariation,
    ProductVariationOption,
    VariantBillOfMaterials,
)
from reconciler.models.mapping import PropertyMapping, VariantMapping
from reconciler.schemas.results import AuditReport, AuditRow

logger = logging.getLogger(__name__)

NO_SELECTIONS = "(none)"

Selections = List[tuple]


def format_selections(selections: Optional[Selections]) -> str:
    if not selections:
        return NO_SELECTIONS
    return ", ".join(f"{name}={value}" for name, value in selections)


def extract_color(selections: Optional[Selections], color_names: Iterable[str]) -> Optional[str]:
    """Option value of the first colour variation, matched case-insensitively."""
    names = {name.lower() for name in color_names}
    for variation_name, option_value in selections or []:
        if variation_name.lower() in names:
            return option_value
    return None


class ConsistencyAuditor:
    """Builds the colour consistency report for mappings and BOM rows."""

    def __init__(self, db: AsyncSession, color_names: Optional[Sequence[str]] = None):
        self.db = db
        self.color_names = list(color_names or get_settings().COLOR_VARIATION_NAMES)

    async def _load_selections(self) -> Dict[int, Selections]:
        """variant id -> [(variation name, option value), ...]"""
        result = await self.db.execute(
            select(
                ProductVariantSelection.variant_id,
                ProductVariation.name,
                ProductVariationOption.value,
            )
            .join(ProductVariation, ProductVariation.id == ProductVariantSelection.variation_id)
            .join(ProductVariationOption, ProductVariationOption.id == ProductVariantSelection.option_id)
            .order_by(ProductVariantSelection.variant_id, ProductVariantSelection.id)
        )
        selections: Dict[int, Selections] = defaultdict(list)
        for variant_id, variation_name, option_value in result.all():
            selections[variant_id].append((variation_name, option_value))
        return selections

    def _color(self, selections: Optional[Selections]) -> Optional[str]:
        return extract_color(selections, self.color_names)

    async def _audit_variant_mappings(self, selections: Dict[int, Selections]) -> List[AuditRow]:
        result = await self.db.execute(
            select(VariantMapping, ProductVariant.sku, Product.name)
            .join(ProductVariant, ProductVariant.id == VariantMapping.product_variant_id)
            .join(Product, Product.id == ProductVariant.product_id)
            .order_by(VariantMapping.id)
        )

        rows = []
        for mapping, sku, product_name in result.all():
            internal = selections.get(mapping.product_variant_id)
            color = self._color(internal)
            title = mapping.external_variant_title or ""

            status, note = AuditStatus.OK, ""
            if color and title and color.lower() not in title.lower():
                status = AuditStatus.MISMATCH
                note = f'External variant "{title}" does not contain internal colour "{color}"'

            if mapping.status != MappingStatus.ACTIVE.value:
                status = AuditStatus.WARNING
                note = f"Mapping is {mapping.status}"

            rows.append(
                AuditRow(
                    family=AuditFamily.VARIANT_MAPPING,
                    row_id=mapping.id,
                    status=status,
                    note=note,
                    external_variant_id=mapping.external_variant_id,
                    external_product_title=mapping.external_product_title,
                    external_title=mapping.external_variant_title,
                    product_name=product_name or "",
                    sku=sku or "",
                    selections=format_selections(internal),
                    quantity=Decimal(mapping.quantity),
                )
            )
        return rows

    async def _audit_property_mappings(self, selections: Dict[int, Selections]) -> List[AuditRow]:
        result = await self.db.execute(
            select(PropertyMapping, ProductVariant.sku, Product.name)
            .join(ProductVariant, ProductVariant.id == PropertyMapping.product_variant_id)
            .join(Product, Product.id == ProductVariant.product_id)
            .order_by(PropertyMapping.id)
        )

        rows = []
        for mapping, sku, product_name in result.all():
            internal = selections.get(mapping.product_variant_id)
            color = self._color(internal)
            rules = mapping.property_rules or {}
            rules_text = json.dumps(rules, ensure_ascii=False, sort_keys=True)

            status, note = AuditStatus.OK, ""
            if color:
                color_lower = color.lower()
                values = [str(value).lower() for value in rules.values()]
                if not any(color_lower in value or value in color_lower for value in values if value):
                    status = AuditStatus.MISMATCH
                    note = f'Property rules {rules_text} do not match internal colour "{color}"'

            if mapping.status != MappingStatus.ACTIVE.value:
                status = AuditStatus.WARNING
                note = f"Mapping is {mapping.status}"

            rows.append(
                AuditRow(
                    family=AuditFamily.PROPERTY_MAPPING,
                    row_id=mapping.id,
                    status=status,
                    note=note,
                    external_variant_id=mapping.external_variant_id,
                    external_product_title=mapping.external_product_title,
                    external_title=f"Rules: {rules_text}",
                    product_name=product_name or "",
                    sku=sku or "",
                    selections=format_selections(internal),
                    quantity=Decimal(mapping.quantity),
                )
            )
        return rows

    async def _variant_info(self, variant_ids: Iterable[int]) -> Dict[int, tuple]:
        ids = list(set(variant_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(ProductVariant.id, Product.name, ProductVariant.sku)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(ProductVariant.id.in_(ids))
        )
        return {variant_id: (name, sku) for variant_id, name, sku in result.all()}

    async def _audit_bom(self, selections: Dict[int, Selections]) -> List[AuditRow]:
        result = await self.db.execute(select(VariantBillOfMaterials).order_by(VariantBillOfMaterials.id))
        entries = list(result.scalars().all())
        info = await self._variant_info(
            [e.product_variant_id for e in entries] + [e.component_variant_id for e in entries]
        )

        rows = []
        for entry in entries:
            product_sels = selections.get(entry.product_variant_id)
            component_sels = selections.get(entry.component_variant_id)
            product_color = self._color(product_sels)
            component_color = self._color(component_sels)
            product_name, product_sku = info.get(entry.product_variant_id, ("?", "?"))
            component_name, component_sku = info.get(entry.component_variant_id, ("?", "?"))

            status, note = AuditStatus.OK, ""
            if product_color and component_color:
                if product_color.lower() != component_color.lower():
                    status = AuditStatus.MISMATCH
                    note = f'Product colour "{product_color}" differs from component colour "{component_color}"'
            elif product_color and not component_color:
                # e.g. screws or glue carry no colour
                note = "Component has no colour (possibly correct)"

            if entry.product_variant_id == entry.component_variant_id:
                status = AuditStatus.MISMATCH
                note = "Self-reference: product variant is its own component"

            rows.append(
                AuditRow(
                    family=AuditFamily.BOM,
                    row_id=entry.id,
                    status=status,
                    note=note,
                    product_name=product_name,
                    sku=product_sku,
                    selections=format_selections(product_sels),
                    component_name=component_name,
                    component_sku=component_sku,
                    component_selections=format_selections(component_sels),
                    quantity=Decimal(entry.quantity_required),
                )
            )
        return rows

    async def audit_report(self) -> AuditReport:
        selections = await self._load_selections()
        report = AuditReport(
            variant_mappings=await self._audit_variant_mappings(selections),
            property_mappings=await self._audit_property_mappings(selections),
            bom_entries=await self._audit_bom(selections),
        )
        logger.info("Mapping audit finished: %s", report.status_counts())
        return report

    async def audit_mappings(self) -> List[AuditRow]:
        """All audit rows: variant mappings, then property mappings, then BOM rows."""
        return (await self.audit_report()).rows
