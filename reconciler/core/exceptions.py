from decimal import Decimal, InvalidOperation


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class ValidationError(BaseServiceError):
    """Raised when identifiers or payloads fail validation."""
    pass

class NotFoundError(BaseServiceError):
    """Raised when a referenced variant or order does not exist."""
    pass

class PersistenceError(BaseServiceError):
    """Raised when a database write or read fails."""
    pass

class MappingConflictError(BaseServiceError):
    """Raised when a target external variant already has active mappings."""

    def __init__(self, variant_id: str, active_count: int):
        self.variant_id = variant_id
        self.active_count = active_count
        super().__init__(
            f"Target variant {variant_id} already has {active_count} active mapping(s)"
        )

class ResolutionCycleError(BaseServiceError):
    """Raised when a variant identity chain loops back on itself."""

    def __init__(self, product_id: str, chain: list):
        self.product_id = product_id
        self.chain = list(chain)
        super().__init__(
            f"Identity chain for product {product_id} contains a cycle: {' -> '.join(self.chain)}"
        )


def format_quantity(value) -> str:
    """Render a quantity without trailing zeros (Decimal("8.0000") -> "8")."""
    try:
        text = format(Decimal(value).normalize(), "f")
    except (InvalidOperation, TypeError, ValueError):
        return str(value)
    return text


# Non-fatal per-item signals. These are collected into results, never raised.

class ProcessingWarning(UserWarning):
    """Base class for warnings attached to a processed order."""
    pass

class UnmappedItemWarning(ProcessingWarning):
    """A line item could not be mapped to any internal variant."""

    def __init__(self, sku: str, title: str, variant_id: str, reason: str):
        self.sku = sku
        self.title = title
        self.variant_id = variant_id
        self.reason = reason
        super().__init__(f"{title} ({sku}): {reason}")

class InsufficientStockWarning(ProcessingWarning):
    """On-hand quantity is lower than the aggregate an order deducts."""

    def __init__(self, variant_id: int, name: str, sku: str, required, on_hand):
        self.variant_id = variant_id
        self.name = name
        self.sku = sku
        self.required = required
        self.on_hand = on_hand
        super().__init__(
            f"{name} ({sku}) - need {format_quantity(required)}, have {format_quantity(on_hand)}"
        )
