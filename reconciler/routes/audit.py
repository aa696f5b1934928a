# reconciler/routes/audit.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reconciler.dependencies import get_db
from reconciler.schemas.results import AuditReport
from reconciler.services.consistency_auditor import ConsistencyAuditor

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/mappings", response_model=AuditReport)
async def audit_mappings(db: AsyncSession = Depends(get_db)):
    """Colour consistency report for variant mappings, property mappings and BOM rows."""
    return await ConsistencyAuditor(db).audit_report()
