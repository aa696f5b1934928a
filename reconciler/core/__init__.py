"""
Core module exports.
"""
from .enums import (
    AuditStatus,
    InventoryAction,
    LineItemMappingStatus,
    MappingStatus,
    MatchStrategy,
    WebhookStatus,
)

from .exceptions import (
    BaseServiceError,
    ValidationError,
    NotFoundError,
    PersistenceError,
    MappingConflictError,
    ResolutionCycleError,
    ProcessingWarning,
    UnmappedItemWarning,
    InsufficientStockWarning,
)
