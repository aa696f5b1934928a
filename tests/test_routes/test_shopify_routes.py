# tests/test_routes/test_shopify_routes.py
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from reconciler.core.enums import AuditFamily, AuditStatus
from reconciler.core.exceptions import (
    MappingConflictError,
    NotFoundError,
    ResolutionCycleError,
    ValidationError,
)
from reconciler.dependencies import get_db, get_session_factory
from reconciler.main import app
from reconciler.schemas.orders import OrderLineItemRead, OrderRead, OrderStatusRead, WebhookEventRead
from reconciler.schemas.results import AuditReport, AuditRow, IdentityChangeResult, ProcessOrderResult


async def override_get_db():
    # Services are mocked per test; the session is never touched
    yield AsyncMock()


@pytest.fixture
def client():
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: MagicMock()
    yield TestClient(app)
    app.dependency_overrides.clear()


def _order_status(external_order_id="9001"):
    return OrderStatusRead(
        order=OrderRead(
            id=1,
            external_order_id=external_order_id,
            order_number="#9001",
            processed_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
        ),
        line_items=[
            OrderLineItemRead(
                id=1,
                external_variant_id="55",
                sku="GR-PK-004",
                quantity=Decimal("2"),
                product_variant_id=7,
                mapping_status="mapped",
                mapping_strategy="variant",
            )
        ],
        processed=True,
        has_errors=False,
    )


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_order_status(client, mocker):
    mocker.patch("reconciler.routes.shopify.get_order_status", AsyncMock(return_value=_order_status()))

    response = client.get("/shopify/orders/9001")

    assert response.status_code == 200
    data = response.json()
    assert data["processed"] is True
    assert data["order"]["external_order_id"] == "9001"
    assert data["line_items"][0]["mapping_status"] == "mapped"


def test_order_status_not_found(client, mocker):
    mocker.patch(
        "reconciler.routes.shopify.get_order_status",
        AsyncMock(side_effect=NotFoundError("Order 404 not found")),
    )

    response = client.get("/shopify/orders/404")

    assert response.status_code == 404
    assert response.json()["detail"] == "Order 404 not found"


def test_webhook_logs(client, mocker):
    list_logs = mocker.patch(
        "reconciler.routes.shopify.list_webhook_logs",
        AsyncMock(return_value=[
            WebhookEventRead(id=3, topic="orders/fulfilled", external_order_id="9001", status="processed"),
        ]),
    )

    response = client.get("/shopify/webhooks?limit=10")

    assert response.status_code == 200
    assert response.json()[0]["status"] == "processed"
    assert list_logs.await_args.args[1] == 10


def test_debug_process_order(client, mocker):
    processor = MagicMock()
    processor.webhook_log.record_receipt = AsyncMock(return_value=12)
    processor.process_order = AsyncMock(return_value=ProcessOrderResult(order_id=1, processed_item_count=1))
    mocker.patch("reconciler.routes.shopify.OrderProcessor", return_value=processor)
    mocker.patch("reconciler.routes.shopify.get_order_status", AsyncMock(return_value=_order_status()))

    payload = {"id": "9001", "line_items": [{"variant_id": "55", "quantity": 2}]}
    response = client.post("/shopify/debug/process-order", json={"payload": payload})

    assert response.status_code == 200
    data = response.json()
    assert data["webhook_log_id"] == 12
    assert data["result"]["processed_item_count"] == 1
    assert data["order"]["order"]["external_order_id"] == "9001"
    processor.process_order.assert_awaited_once_with(payload, 12)


def test_debug_process_order_invalid_payload(client, mocker):
    processor = MagicMock()
    processor.webhook_log.record_receipt = AsyncMock(return_value=13)
    processor.process_order = AsyncMock(side_effect=ValidationError("Invalid webhook payload structure"))
    mocker.patch("reconciler.routes.shopify.OrderProcessor", return_value=processor)

    response = client.post("/shopify/debug/process-order", json={"payload": {"foo": "bar"}})

    assert response.status_code == 400


@pytest.mark.parametrize("error,status_code", [
    (ValidationError("Old and new variant id are identical (A)"), 400),
    (ResolutionCycleError("P1", ["A", "B", "A"]), 409),
    (MappingConflictError("B", 2), 409),
])
def test_identity_change_errors(client, mocker, error, status_code):
    mocker.patch(
        "reconciler.routes.shopify.VariantResolver.record_identity_change",
        AsyncMock(side_effect=error),
    )

    response = client.post(
        "/shopify/variants/identity-changes",
        json={"external_product_id": "P1", "old_variant_id": "A", "new_variant_id": "B"},
    )

    assert response.status_code == status_code
    assert response.json()["detail"] == str(error)


def test_identity_change(client, mocker):
    record = mocker.patch(
        "reconciler.routes.shopify.VariantResolver.record_identity_change",
        AsyncMock(return_value=IdentityChangeResult(updated_mappings=2)),
    )

    response = client.post(
        "/shopify/variants/identity-changes",
        json={"external_product_id": "P1", "old_variant_id": "A", "new_variant_id": "B", "notes": "re-created"},
    )

    assert response.status_code == 200
    assert response.json()["updated_mappings"] == 2
    record.assert_awaited_once_with("P1", "A", "B", "re-created")


def test_audit_mappings(client, mocker):
    report = AuditReport(variant_mappings=[
        AuditRow(
            family=AuditFamily.VARIANT_MAPPING,
            row_id=1,
            status=AuditStatus.MISMATCH,
            note='External variant "Blue Edition" does not contain internal colour "Rot"',
            external_title="Blue Edition",
            selections="Farbe=Rot",
        )
    ])
    mocker.patch(
        "reconciler.routes.audit.ConsistencyAuditor.audit_report",
        AsyncMock(return_value=report),
    )

    response = client.get("/audit/mappings")

    assert response.status_code == 200
    row = response.json()["variant_mappings"][0]
    assert row["status"] == "mismatch"
    assert row["family"] == "variant_mapping"
