# reconciler/routes/shopify.py
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reconciler.core.exceptions import (
    MappingConflictError,
    NotFoundError,
    PersistenceError,
    ResolutionCycleError,
    ValidationError,
)
from reconciler.dependencies import get_db, get_session_factory
from reconciler.schemas.orders import OrderStatusRead, WebhookEventRead
from reconciler.schemas.results import IdentityChangeResult, ProcessOrderResult
from reconciler.services.order_processor import OrderProcessor
from reconciler.services.order_queries import get_order_status, list_webhook_logs
from reconciler.services.variant_resolver import VariantResolver

router = APIRouter(prefix="/shopify", tags=["shopify"])


class DebugProcessRequest(BaseModel):
    payload: Dict[str, Any]


class DebugProcessResponse(BaseModel):
    webhook_log_id: int
    result: ProcessOrderResult
    order: Optional[OrderStatusRead] = None


class IdentityChangeRequest(BaseModel):
    external_product_id: str
    old_variant_id: str
    new_variant_id: str
    notes: Optional[str] = None


@router.post("/debug/process-order", response_model=DebugProcessResponse)
async def debug_process_order(
    request: DebugProcessRequest,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Run an order payload through the full pipeline, as if the webhook had fired."""
    processor = OrderProcessor(session_factory)
    log_id = await processor.webhook_log.record_receipt(request.payload)

    try:
        result = await processor.process_order(request.payload, log_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    async with session_factory() as db:
        try:
            order = await get_order_status(db, str(request.payload.get("id")))
        except NotFoundError:
            order = None

    return DebugProcessResponse(webhook_log_id=log_id, result=result, order=order)


@router.get("/orders/{external_order_id}", response_model=OrderStatusRead)
async def order_status(external_order_id: str, db: AsyncSession = Depends(get_db)):
    try:
        return await get_order_status(db, external_order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/webhooks", response_model=List[WebhookEventRead])
async def webhook_logs(
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    return await list_webhook_logs(db, limit)


@router.post("/variants/identity-changes", response_model=IdentityChangeResult)
async def record_identity_change(request: IdentityChangeRequest, db: AsyncSession = Depends(get_db)):
    """Record that an external variant id was replaced by a new one."""
    resolver = VariantResolver(db)
    try:
        return await resolver.record_identity_change(
            request.external_product_id,
            request.old_variant_id,
            request.new_variant_id,
            request.notes,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (ResolutionCycleError, MappingConflictError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
