# tests/integration/test_order_import.py
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from reconciler.core.enums import WebhookStatus
from reconciler.models.webhook import WebhookEvent
from reconciler.services.order_import import MAX_REPORTED_ERRORS, OrderImporter
from reconciler.services.order_processor import OrderProcessor


async def _log_statuses(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(WebhookEvent.status).order_by(WebhookEvent.id))
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_import_counts_processed_skipped_and_errors(db_session, catalog, session_factory, on_hand, make_order):
    v1 = await catalog.variant("Grip pack", "GR-PK-004", on_hand=10)
    await catalog.variant_mapping("55", v1)
    await db_session.commit()

    orders = [
        make_order("1001", [{"variant_id": "55", "quantity": 1}]),
        make_order("1002", [{"variant_id": "55", "quantity": 2}]),
        make_order("1001", [{"variant_id": "55", "quantity": 1}]),
        {"id": "1003", "line_items": [{"variant_id": "55"}]},
    ]

    importer = OrderImporter(OrderProcessor(session_factory), delay_seconds=0)
    summary = await importer.import_orders(orders, topic="orders/import")

    assert summary.total_orders == 4
    assert summary.processed_count == 2
    assert summary.skipped_count == 1
    assert summary.error_count == 1
    assert summary.errors[0]["order_id"] == "1003"
    assert await on_hand(v1.id) == Decimal("7")

    assert await _log_statuses(session_factory) == [
        WebhookStatus.PROCESSED.value,
        WebhookStatus.PROCESSED.value,
        WebhookStatus.PROCESSED.value,
        WebhookStatus.FAILED.value,
    ]
    async with session_factory() as session:
        topics = (await session.execute(select(func.distinct(WebhookEvent.topic)))).scalars().all()
    assert topics == ["orders/import"]


@pytest.mark.asyncio
async def test_import_accepts_async_sources_and_paces(session_factory, make_order, mocker):
    sleep = mocker.patch("reconciler.services.order_import.asyncio.sleep", new=mocker.AsyncMock())

    async def pages():
        for order_id in ("2001", "2002", "2003"):
            yield make_order(order_id, [{"variant_id": "404", "quantity": 1}])

    summary = await OrderImporter(OrderProcessor(session_factory), delay_seconds=0.5).import_orders(pages())

    assert summary.total_orders == 3
    # Nothing mapped is still a processed (not skipped) attempt
    assert summary.processed_count == 3
    assert sleep.await_count == 2
    sleep.assert_awaited_with(0.5)


@pytest.mark.asyncio
async def test_import_keeps_only_the_first_errors(session_factory):
    orders = [{"id": str(3000 + i)} for i in range(MAX_REPORTED_ERRORS + 5)]

    summary = await OrderImporter(OrderProcessor(session_factory), delay_seconds=0).import_orders(orders)

    assert summary.error_count == MAX_REPORTED_ERRORS + 5
    assert len(summary.errors) == MAX_REPORTED_ERRORS
