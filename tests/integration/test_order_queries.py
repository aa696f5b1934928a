# tests/integration/test_order_queries.py
import pytest

from reconciler.core.exceptions import NotFoundError
from reconciler.services.order_processor import process_order
from reconciler.services.order_queries import get_order_status


@pytest.mark.asyncio
async def test_order_status_after_processing(db_session, catalog, session_factory, make_order):
    v1 = await catalog.variant("Grip pack", "GR-PK-004", on_hand=10)
    await catalog.variant_mapping("55", v1)
    await db_session.commit()

    await process_order(session_factory, make_order("9001", [
        {"variant_id": "55", "sku": "GR-PK-004", "quantity": 2},
        {"variant_id": "66", "sku": "MYSTERY-1", "quantity": 1},
    ]))

    async with session_factory() as session:
        status = await get_order_status(session, "9001")

    assert status.processed is True
    assert status.has_errors is True
    assert status.order.order_number == "#9001"
    assert [item.mapping_status for item in status.line_items] == ["mapped", "unmapped"]


@pytest.mark.asyncio
async def test_order_status_unknown_order(db_session):
    with pytest.raises(NotFoundError):
        await get_order_status(db_session, "nope")
