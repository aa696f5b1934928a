from .catalog import (
    Product,
    ProductVariant,
    ProductVariation,
    ProductVariationOption,
    ProductVariantSelection,
    VariantBillOfMaterials,
)
from .mapping import VariantMapping, PropertyMapping, VariantIdentityEdge
from .order import ExternalOrder, ExternalOrderLineItem
from .inventory import InventoryRecord, InventoryMovement
from .webhook import WebhookEvent

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'Product',
    'ProductVariant',
    'ProductVariation',
    'ProductVariationOption',
    'ProductVariantSelection',
    'VariantBillOfMaterials',
    'VariantMapping',
    'PropertyMapping',
    'VariantIdentityEdge',
    'ExternalOrder',
    'ExternalOrderLineItem',
    'InventoryRecord',
    'InventoryMovement',
    'WebhookEvent',
]
