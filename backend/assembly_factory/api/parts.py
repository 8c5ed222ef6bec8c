"""
Parts catalog API endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from assembly_factory.api.assemblies import ELSEWHERE
from assembly_factory.core.database import get_db
from assembly_factory.core.props_schema import schema_registry
from assembly_factory.models.part import PartStatus, PartType
from assembly_factory.schemas.factory import (
    PartCreate, PartResponse, PartSchemaResponse, PartUpdate, SchemaFieldResponse
)
from assembly_factory.services.catalog_service import catalog_service

router = APIRouter(prefix="/api/factory/parts", tags=["parts"])


@router.get("", response_model=List[PartResponse])
async def list_parts(
    q: Optional[str] = Query(None, description="Case-insensitive name/code substring"),
    category: Optional[str] = Query(None),
    type: Optional[PartType] = Query(None, description="Functional type"),
    part_status: Optional[PartStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    """List catalog parts"""
    parts = await catalog_service.list_parts(
        db, query=q, category=category, functional_type=type, status=part_status
    )
    return [PartResponse.model_validate(part) for part in parts]


@router.post("", response_model=PartResponse, status_code=status.HTTP_201_CREATED, dependencies=ELSEWHERE)
async def create_part(request: PartCreate, db: AsyncSession = Depends(get_db)):
    """Register a new part"""
    part = await catalog_service.create_part(db, request.model_dump())
    return PartResponse.model_validate(part)


@router.get("/{code}", response_model=PartResponse)
async def get_part(code: str, db: AsyncSession = Depends(get_db)):
    part = await catalog_service.find_part(db, code)
    return PartResponse.model_validate(part)


@router.get("/{code}/schema", response_model=PartSchemaResponse)
async def get_part_schema(code: str):
    """Props schema of a part; unknown codes get the default schema"""
    schema = schema_registry.get_schema(code)
    return PartSchemaResponse(
        part_code=code,
        has_specific_schema=schema_registry.has_schema(code),
        fields=[SchemaFieldResponse.from_spec(name, spec) for name, spec in schema.items()],
        defaults=schema_registry.defaults(code),
    )


@router.put("/{code}", response_model=PartResponse, dependencies=ELSEWHERE)
async def update_part(code: str, request: PartUpdate, db: AsyncSession = Depends(get_db)):
    part = await catalog_service.update_part(db, code, request.model_dump(exclude_unset=True))
    return PartResponse.model_validate(part)


@router.delete("/{code}", response_model=PartResponse, dependencies=ELSEWHERE)
async def deprecate_part(code: str, db: AsyncSession = Depends(get_db)):
    """Soft delete: the part is marked DEPRECATED; core parts are refused"""
    part = await catalog_service.deprecate_part(db, code)
    return PartResponse.model_validate(part)
