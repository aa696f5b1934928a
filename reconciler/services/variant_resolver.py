# reconciler/services/variant_resolver.py
"""
Variant identity resolution.

The platform occasionally reassigns variant ids (e.g. when a product is
re-created). Each reassignment is stored as an edge old -> new per product,
so historical orders that still carry the old id can be resolved to the
current one and mapped with today's mappings.
"""

import logging
from typing import List, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reconciler.core.enums import MappingStatus
from reconciler.core.exceptions import (
    MappingConflictError,
    PersistenceError,
    ResolutionCycleError,
    ValidationError,
)
from reconciler.database import dialect_insert
from reconciler.models.mapping import PropertyMapping, VariantIdentityEdge, VariantMapping
from reconciler.schemas.results import IdentityChangeResult

logger = logging.getLogger(__name__)

NO_OLD_MAPPINGS_REASON = "No active mappings for old variant id; identity edge recorded only"


class VariantResolver:
    """Walks and maintains the per-product variant identity graph."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _next_variant_id(self, product_id: str, variant_id: str) -> Optional[str]:
        return await self.db.scalar(
            select(VariantIdentityEdge.new_variant_id).where(
                VariantIdentityEdge.external_product_id == product_id,
                VariantIdentityEdge.old_variant_id == variant_id,
            )
        )

    async def chain(self, product_id: str, variant_id: str) -> List[str]:
        """
        Return the ids visited from `variant_id` to its current id, inclusive.

        Raises ResolutionCycleError if an id is visited twice.
        """
        product_id = str(product_id)
        current = str(variant_id)
        visited = [current]
        seen = {current}

        while True:
            next_id = await self._next_variant_id(product_id, current)
            if next_id is None:
                return visited
            visited.append(next_id)
            if next_id in seen:
                raise ResolutionCycleError(product_id, visited)
            seen.add(next_id)
            current = next_id

    async def resolve(self, product_id: str, variant_id: str) -> str:
        """Return the current external variant id for a possibly historical one."""
        visited = await self.chain(product_id, variant_id)
        final_id = visited[-1]
        if len(visited) > 1:
            logger.debug(
                "Resolved variant %s -> %s for product %s (%d hop(s))",
                variant_id, final_id, product_id, len(visited) - 1,
            )
        return final_id

    async def resolve_or_original(self, product_id: Optional[str], variant_id: str) -> str:
        """
        Resolve for order processing: any failure falls back to the id as given.
        """
        if not product_id:
            return variant_id
        try:
            return await self.resolve(product_id, variant_id)
        except ResolutionCycleError as e:
            logger.warning("Variant resolution failed, using original id %s: %s", variant_id, e)
            return variant_id

    async def _count_active_mappings(self, variant_id: str) -> tuple:
        variant_count = await self.db.scalar(
            select(func.count(VariantMapping.id)).where(
                VariantMapping.external_variant_id == variant_id,
                VariantMapping.status == MappingStatus.ACTIVE.value,
            )
        )
        property_count = await self.db.scalar(
            select(func.count(PropertyMapping.id)).where(
                PropertyMapping.external_variant_id == variant_id,
                PropertyMapping.status == MappingStatus.ACTIVE.value,
            )
        )
        return variant_count or 0, property_count or 0

    async def _ensure_unmapped(self, variant_id: str) -> None:
        variant_count, property_count = await self._count_active_mappings(variant_id)
        if variant_count or property_count:
            raise MappingConflictError(variant_id, variant_count + property_count)

    async def _record_edge(self, product_id: str, old_id: str, new_id: str, notes: Optional[str]) -> None:
        stmt = dialect_insert(self.db, VariantIdentityEdge).values(
            external_product_id=product_id,
            old_variant_id=old_id,
            new_variant_id=new_id,
            notes=notes,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["external_product_id", "old_variant_id"],
            set_={"new_variant_id": new_id, "notes": notes},
        )
        await self.db.execute(stmt)

    async def _rewrite_mappings(self, old_id: str, new_id: str) -> tuple:
        variant_result = await self.db.execute(
            update(VariantMapping)
            .where(and_(
                VariantMapping.external_variant_id == old_id,
                VariantMapping.status == MappingStatus.ACTIVE.value,
            ))
            .values(external_variant_id=new_id)
            .execution_options(synchronize_session=False)
        )
        property_result = await self.db.execute(
            update(PropertyMapping)
            .where(and_(
                PropertyMapping.external_variant_id == old_id,
                PropertyMapping.status == MappingStatus.ACTIVE.value,
            ))
            .values(external_variant_id=new_id)
            .execution_options(synchronize_session=False)
        )
        return variant_result.rowcount, property_result.rowcount

    async def record_identity_change(
        self,
        product_id: str,
        old_id: str,
        new_id: str,
        notes: Optional[str] = None,
    ) -> IdentityChangeResult:
        """
        Record that `old_id` was replaced by `new_id` for a product.

        Active mappings are moved to the new id when the new id is still
        unmapped. A conflict, or nothing to move, is reported as a skip
        reason; the edge is recorded either way.

        Raises:
            ValidationError: empty ids or old_id == new_id
            ResolutionCycleError: the new edge would close a cycle
            PersistenceError: the database rejected the change
        """
        product_id = (str(product_id) if product_id is not None else "").strip()
        old_id = (str(old_id) if old_id is not None else "").strip()
        new_id = (str(new_id) if new_id is not None else "").strip()

        if not product_id or not old_id or not new_id:
            raise ValidationError("Product id, old variant id and new variant id are required")
        if old_id == new_id:
            raise ValidationError(f"Old and new variant id are identical ({old_id})")

        # Dry run: the chain from the new id must neither loop nor lead back to old_id
        path = await self.chain(product_id, new_id)
        if old_id in path:
            raise ResolutionCycleError(product_id, [old_id, *path[: path.index(old_id) + 1]])

        result = IdentityChangeResult()
        try:
            try:
                await self._ensure_unmapped(new_id)
            except MappingConflictError as e:
                result.skipped = True
                result.skipped_reason = str(e)
                logger.warning("Identity change %s -> %s: %s", old_id, new_id, e)
            else:
                old_variant_count, old_property_count = await self._count_active_mappings(old_id)
                if old_variant_count or old_property_count:
                    (
                        result.updated_mappings,
                        result.updated_property_mappings,
                    ) = await self._rewrite_mappings(old_id, new_id)
                else:
                    result.skipped = True
                    result.skipped_reason = NO_OLD_MAPPINGS_REASON

            await self._record_edge(product_id, old_id, new_id, notes)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to record identity change %s -> %s: %s", old_id, new_id, e, exc_info=True)
            raise PersistenceError(f"Failed to record identity change: {e}") from e

        logger.info(
            "Recorded identity change %s -> %s for product %s (mappings=%d, property_mappings=%d, skipped=%s)",
            old_id, new_id, product_id,
            result.updated_mappings, result.updated_property_mappings, result.skipped,
        )
        return result


async def resolve_variant_id(db: AsyncSession, product_id: str, variant_id: str) -> str:
    """
    Convenience function to resolve a single variant id.
    """
    return await VariantResolver(db).resolve(product_id, variant_id)
