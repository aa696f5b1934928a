"""
Result schemas returned by the reconciliation services.
"""
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field

from reconciler.core.enums import AuditFamily, AuditStatus
from reconciler.schemas.base import BaseSchema


class ProcessOrderResult(BaseSchema):
    success: bool = True
    skipped: bool = False
    order_id: Optional[int] = None
    processed_item_count: int = 0
    unmapped_item_count: int = 0
    insufficient_stock_count: int = 0
    warnings: List[str] = Field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


class IdentityChangeResult(BaseSchema):
    updated_mappings: int = 0
    updated_property_mappings: int = 0
    skipped: bool = False
    skipped_reason: Optional[str] = None


class AuditRow(BaseSchema):
    family: AuditFamily
    row_id: int
    status: AuditStatus = AuditStatus.OK
    note: str = ""

    # Mapping rows
    external_variant_id: Optional[str] = None
    external_product_title: Optional[str] = None
    external_title: Optional[str] = None

    # Internal side (product variant for BOM rows)
    product_name: str = ""
    sku: str = ""
    selections: str = ""
    quantity: Decimal = Decimal("0")

    # BOM component side
    component_name: Optional[str] = None
    component_sku: Optional[str] = None
    component_selections: Optional[str] = None


class AuditReport(BaseSchema):
    variant_mappings: List[AuditRow] = Field(default_factory=list)
    property_mappings: List[AuditRow] = Field(default_factory=list)
    bom_entries: List[AuditRow] = Field(default_factory=list)

    @property
    def rows(self) -> List[AuditRow]:
        return [*self.variant_mappings, *self.property_mappings, *self.bom_entries]

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in AuditStatus}
        for row in self.rows:
            counts[row.status.value] += 1
        return counts


class ImportSummary(BaseSchema):
    total_orders: int = 0
    processed_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    errors: List[Dict[str, str]] = Field(default_factory=list)
