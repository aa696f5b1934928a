"""
Shared enums and constants used across the application.
"""

from enum import Enum


class ProductType(str, Enum):
    RAW = "RAW"
    INTERMEDIATE = "INTERMEDIATE"
    FINAL = "FINAL"


class MappingStatus(str, Enum):
    """Status of a variant or property mapping row"""
    ACTIVE = "active"
    DISABLED = "disabled"
    ERROR = "error"


class LineItemMappingStatus(str, Enum):
    MAPPED = "mapped"
    UNMAPPED = "unmapped"


class MatchStrategy(str, Enum):
    """Which mapping strategy produced a component match"""
    VARIANT = "variant"
    PROPERTY = "property"


class WebhookStatus(str, Enum):
    RECEIVED = "received"
    PROCESSED = "processed"
    FAILED = "failed"


class InventoryAction(str, Enum):
    PURCHASE = "PURCHASE"
    OUTPUT = "OUTPUT"
    CONSUMPTION = "CONSUMPTION"
    ADJUSTMENT = "ADJUSTMENT"
    SALE = "SALE"


class AdjustmentDirection(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class AuditStatus(str, Enum):
    OK = "ok"
    MISMATCH = "mismatch"
    WARNING = "warning"


class AuditFamily(str, Enum):
    VARIANT_MAPPING = "variant_mapping"
    PROPERTY_MAPPING = "property_mapping"
    BOM = "bom"
