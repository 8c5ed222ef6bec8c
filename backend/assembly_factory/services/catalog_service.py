"""
Catalog Service
Flow: system_parts table → load_descriptors() → parts_catalog snapshot → list / find

Catalog administration writes through here and invalidates the shared
snapshot explicitly; readers never observe a half-updated catalog.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assembly_factory.core.database import transaction
from assembly_factory.core.exceptions import ConflictError, NotFoundError, ValidationError
from assembly_factory.core.logging import get_logger
from assembly_factory.core.parts_catalog import PartDescriptor, PartsCatalog, parts_catalog
from assembly_factory.models.part import PartStatus, PartType, SystemPart

UPDATABLE_FIELDS = {
    "name", "category", "functional_type", "description", "icon", "component_path", "status", "is_core",
}


class CatalogService:
    """Service for reading and administering the parts catalog"""

    def __init__(self, catalog: Optional[PartsCatalog] = None) -> None:
        self.catalog = catalog or parts_catalog
        self.logger = get_logger(__name__, component="catalog_service")

    async def load_descriptors(self, db: AsyncSession) -> List[PartDescriptor]:
        """Fetch the whole catalog in one query."""
        result = await db.execute(select(SystemPart))
        return [PartDescriptor.model_validate(part) for part in result.scalars().all()]

    async def ensure_catalog(self, db: AsyncSession) -> PartsCatalog:
        await self.catalog.ensure_loaded(lambda: self.load_descriptors(db))
        return self.catalog

    async def refresh_catalog(self, db: AsyncSession) -> List[PartDescriptor]:
        return await self.catalog.refresh(lambda: self.load_descriptors(db))

    async def list_parts(
        self,
        db: AsyncSession,
        query: Optional[str] = None,
        category: Optional[str] = None,
        functional_type: Optional[PartType] = None,
        status: Optional[PartStatus] = None,
    ) -> List[PartDescriptor]:
        """List parts, hiding deprecated ones unless asked for by status."""
        catalog = await self.ensure_catalog(db)
        parts = catalog.search(
            query=query,
            category=category,
            functional_type=functional_type,
            include_deprecated=status == PartStatus.DEPRECATED,
        )
        if status is not None:
            parts = [part for part in parts if part.status == status]
        return parts

    async def find_part(self, db: AsyncSession, code: str) -> PartDescriptor:
        catalog = await self.ensure_catalog(db)
        return catalog.find(code)

    async def _get_row(self, db: AsyncSession, code: str) -> SystemPart:
        result = await db.execute(select(SystemPart).where(SystemPart.code == code))
        part = result.scalar_one_or_none()
        if not part:
            raise NotFoundError(f"Part '{code}' not found", resource_type="part", resource_id=code)
        return part

    async def create_part(self, db: AsyncSession, data: Dict[str, Any]) -> PartDescriptor:
        """Register a new part in the catalog."""
        code = data["code"]
        async with transaction(db, "create_part"):
            existing = await db.execute(select(SystemPart.id).where(SystemPart.code == code))
            if existing.scalar_one_or_none():
                raise ConflictError(f"Part code '{code}' already exists", conflicting_resource=code)

            part = SystemPart(
                id=str(uuid.uuid4()),
                code=code,
                name=data["name"],
                description=data.get("description"),
                functional_type=PartType(data["functional_type"]),
                category=data["category"],
                icon=data.get("icon"),
                component_path=data.get("component_path"),
                status=PartStatus(data.get("status") or PartStatus.ACTIVE),
                is_core=bool(data.get("is_core", False)),
                created_at=datetime.now(timezone.utc),
                updated_at=datetime.now(timezone.utc),
            )
            db.add(part)

        self.catalog.invalidate()
        self.logger.info("Part created", code=code, functional_type=part.functional_type.value)
        return PartDescriptor.model_validate(part)

    async def update_part(self, db: AsyncSession, code: str, patch: Dict[str, Any]) -> PartDescriptor:
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields not updatable: {sorted(unknown)}", field=sorted(unknown)[0])

        async with transaction(db, "update_part"):
            part = await self._get_row(db, code)
            for key, value in patch.items():
                if value is None and key in {"name", "category", "functional_type", "status", "is_core"}:
                    continue
                setattr(part, key, value)
            part.updated_at = datetime.now(timezone.utc)

        self.catalog.invalidate()
        self.logger.info("Part updated", code=code, fields=sorted(patch))
        return PartDescriptor.model_validate(part)

    async def deprecate_part(self, db: AsyncSession, code: str) -> PartDescriptor:
        """Soft-delete: mark the part deprecated. Core parts cannot be removed."""
        async with transaction(db, "deprecate_part"):
            part = await self._get_row(db, code)
            if part.is_core:
                raise ValidationError("Cannot delete core parts", field="code", value=code)
            part.status = PartStatus.DEPRECATED
            part.updated_at = datetime.now(timezone.utc)

        self.catalog.invalidate()
        self.logger.info("Part deprecated", code=code)
        return PartDescriptor.model_validate(part)


# Global service instance
catalog_service = CatalogService()
