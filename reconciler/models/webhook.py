# reconciler/models/webhook.py
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func

from reconciler.database import Base
from reconciler.models._types import JSONType


class WebhookEvent(Base):
    """
    Receipt and outcome of one order event delivery.

    Observability only: the idempotency gate is ExternalOrder.processed_at.
    """
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True)
    topic = Column(String, nullable=False)
    external_order_id = Column(String, nullable=True, index=True)
    status = Column(String(20), nullable=False, default="received", index=True)  # received, processed, failed
    error_message = Column(Text, nullable=True)
    payload = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<WebhookEvent(id={self.id}, topic='{self.topic}', order='{self.external_order_id}', status='{self.status}')>"
