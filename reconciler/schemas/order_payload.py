"""
Typed boundary for incoming order events.

The platform delivers untyped JSON; it is validated into these models before
any of it reaches the reconciliation services. Field names follow the
Shopify REST order resource.
"""
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_PAYLOAD_CONFIG = ConfigDict(
    extra="ignore",
    coerce_numbers_to_str=True,
    str_strip_whitespace=True,
)


class LineItemProperty(BaseModel):
    """Free-text name/value pair attached to a customizable line item."""
    model_config = _PAYLOAD_CONFIG

    name: str = ""
    value: str = ""

    @field_validator("name", "value", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> str:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)


class LineItemPayload(BaseModel):
    model_config = _PAYLOAD_CONFIG

    id: Optional[str] = None
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    sku: str = ""
    title: str = ""
    variant_title: str = ""
    quantity: int = Field(ge=0)
    price: Optional[Decimal] = None
    properties: List[LineItemProperty] = Field(default_factory=list)

    @field_validator("sku", "title", "variant_title", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("properties", mode="before")
    @classmethod
    def _default_properties(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("properties")
    @classmethod
    def _drop_blank_properties(cls, v: List[LineItemProperty]) -> List[LineItemProperty]:
        return [prop for prop in v if prop.name and prop.value]

    @field_validator("product_id", "variant_id", mode="after")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def property_pairs(self) -> List[tuple]:
        return [(prop.name, prop.value) for prop in self.properties]


class CustomerPayload(BaseModel):
    model_config = _PAYLOAD_CONFIG

    id: Optional[str] = None
    email: Optional[str] = None


class OrderPayload(BaseModel):
    model_config = _PAYLOAD_CONFIG

    id: str
    order_number: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    customer: Optional[CustomerPayload] = None
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    total_price: Optional[Decimal] = None
    currency: Optional[str] = None
    cancelled_at: Optional[str] = None
    line_items: List[LineItemPayload]

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("order id must not be empty")
        return v

    @property
    def customer_email(self) -> Optional[str]:
        return self.email or (self.customer.email if self.customer else None)

    @property
    def customer_id(self) -> Optional[str]:
        return self.customer.id if self.customer else None

    @property
    def display_number(self) -> str:
        return self.order_number or self.name or self.id
