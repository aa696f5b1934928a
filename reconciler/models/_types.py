# reconciler/models/_types.py
from sqlalchemy import JSON, Numeric
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Inventory and mapping quantities
Quantity = Numeric(18, 4, asdecimal=True)
