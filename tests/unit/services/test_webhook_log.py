# tests/unit/services/test_webhook_log.py
import pytest

from reconciler.core.enums import WebhookStatus
from reconciler.models.webhook import WebhookEvent
from reconciler.services.order_queries import list_webhook_logs
from reconciler.services.webhook_log import WebhookLogRecorder


@pytest.mark.asyncio
async def test_receipt_and_status_updates(session_factory):
    recorder = WebhookLogRecorder(session_factory)

    first = await recorder.record_receipt({"id": 9001, "line_items": []})
    second = await recorder.record_receipt({"id": "9002"}, topic="orders/import")

    assert await recorder.mark_processed(first) is True
    assert await recorder.mark_failed(second, "Partially processed: 1 unmapped items") is True

    async with session_factory() as session:
        logs = await list_webhook_logs(session, limit=10)

    assert [log.id for log in logs] == [second, first]
    assert logs[0].topic == "orders/import"
    assert logs[0].status == WebhookStatus.FAILED.value
    assert logs[0].error_message == "Partially processed: 1 unmapped items"
    assert logs[1].external_order_id == "9001"
    assert logs[1].topic == "orders/fulfilled"
    assert logs[1].processed_at is not None


@pytest.mark.asyncio
async def test_status_update_without_log_id(session_factory):
    assert await WebhookLogRecorder(session_factory).mark_processed(None) is False


@pytest.mark.asyncio
async def test_status_update_failure_is_swallowed(mocker):
    factory = mocker.MagicMock(side_effect=RuntimeError("connection refused"))

    assert await WebhookLogRecorder(factory).mark_failed(1, "boom") is False


@pytest.mark.asyncio
async def test_list_webhook_logs_limit(session_factory):
    recorder = WebhookLogRecorder(session_factory)
    for order_id in range(5):
        await recorder.record_receipt({"id": order_id})

    async with session_factory() as session:
        logs = await list_webhook_logs(session, limit=2)
        assert len(logs) == 2
        assert await session.get(WebhookEvent, logs[-1].id) is not None
