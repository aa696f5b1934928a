from .order_payload import OrderPayload, LineItemPayload, LineItemProperty, CustomerPayload
from .results import (
    AuditReport,
    AuditRow,
    IdentityChangeResult,
    ImportSummary,
    ProcessOrderResult,
)
