"""
Staging API endpoints
Flow: create session → add / remove / reorder / select / configure → preview → commit

Rejected composer operations answer 200 with applied=false and the
unchanged state; they never raise.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from assembly_factory.core.config_editor import config_editor
from assembly_factory.core.database import get_db
from assembly_factory.core.delete_confirmation import DeleteConfirmation
from assembly_factory.core.exceptions import NotFoundError, ValidationError
from assembly_factory.core.lifecycle import ensure_membership_editable
from assembly_factory.core.renderer import BlockKind, renderer_resolver
from assembly_factory.core.staging import StagingComposer, StagingStore
from assembly_factory.schemas.factory import (
    AssemblyResponse,
    ReorderRequest,
    RenderResponse,
    StagingAddRequest,
    StagingCommitRequest,
    StagingConfigRequest,
    StagingEditorResponse,
    StagingMutationResponse,
    StagingSelectRequest,
    StagingSessionResponse,
)
from assembly_factory.services.assembly_service import assembly_service, to_staged_instances
from assembly_factory.services.catalog_service import catalog_service

router = APIRouter(prefix="/api/factory/staging", tags=["staging"])


def get_staging_store(request: Request) -> StagingStore:
    return request.app.state.staging_store


def disarm_pending_delete(request: Request) -> None:
    confirmation: DeleteConfirmation = request.app.state.delete_confirmation
    confirmation.disarm()


ELSEWHERE = [Depends(disarm_pending_delete)]


def _mutation(session_id: str, composer: StagingComposer, applied: bool) -> StagingMutationResponse:
    return StagingMutationResponse(session_id=session_id, applied=applied, state=composer.snapshot())


@router.post("", response_model=StagingSessionResponse, status_code=status.HTTP_201_CREATED, dependencies=ELSEWHERE)
async def create_session(store: StagingStore = Depends(get_staging_store)):
    session_id = store.create()
    return StagingSessionResponse(session_id=session_id, state=store.get(session_id).snapshot())


@router.get("/{session_id}", response_model=StagingSessionResponse)
async def get_session(session_id: str, store: StagingStore = Depends(get_staging_store)):
    return StagingSessionResponse(session_id=session_id, state=store.get(session_id).snapshot())


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=ELSEWHERE)
async def discard_session(session_id: str, store: StagingStore = Depends(get_staging_store)):
    if not store.discard(session_id):
        raise NotFoundError(
            f"Staging session '{session_id}' not found", resource_type="staging_session", resource_id=session_id
        )


@router.post("/{session_id}/parts", response_model=StagingMutationResponse, dependencies=ELSEWHERE)
async def add_part(
    session_id: str,
    request: StagingAddRequest,
    store: StagingStore = Depends(get_staging_store),
    db: AsyncSession = Depends(get_db),
):
    """Stage a catalog part; staging the same part twice is a no-op"""
    composer = store.get(session_id)
    descriptor = await catalog_service.find_part(db, request.part_code)
    return _mutation(session_id, composer, composer.add(descriptor) is not None)


@router.delete("/{session_id}/parts/{instance_id}", response_model=StagingMutationResponse, dependencies=ELSEWHERE)
async def remove_part(session_id: str, instance_id: str, store: StagingStore = Depends(get_staging_store)):
    composer = store.get(session_id)
    return _mutation(session_id, composer, composer.remove(instance_id))


@router.put("/{session_id}/order", response_model=StagingMutationResponse, dependencies=ELSEWHERE)
async def reorder_parts(session_id: str, request: ReorderRequest, store: StagingStore = Depends(get_staging_store)):
    composer = store.get(session_id)
    return _mutation(session_id, composer, composer.reorder(request.instance_ids))


@router.put("/{session_id}/selection", response_model=StagingMutationResponse, dependencies=ELSEWHERE)
async def select_part(
    session_id: str, request: StagingSelectRequest, store: StagingStore = Depends(get_staging_store)
):
    composer = store.get(session_id)
    return _mutation(session_id, composer, composer.select(request.instance_id))


@router.get("/{session_id}/editor", response_model=StagingEditorResponse)
async def get_editor(
    session_id: str,
    instance_id: Optional[str] = None,
    store: StagingStore = Depends(get_staging_store),
):
    """Edit surface for the given (or selected) instance"""
    composer = store.get(session_id)
    target = instance_id or composer.selected_id
    instance = composer.get(target) if target else None
    if instance is None:
        raise NotFoundError("No staged instance selected", resource_type="part_instance", resource_id=target)
    return StagingEditorResponse(session_id=session_id, surface=config_editor.describe(instance))


@router.patch("/{session_id}/parts/{instance_id}/config", response_model=StagingMutationResponse, dependencies=ELSEWHERE)
async def configure_part(
    session_id: str,
    instance_id: str,
    request: StagingConfigRequest,
    store: StagingStore = Depends(get_staging_store),
):
    composer = store.get(session_id)
    config_editor.apply(composer, instance_id, request.values)
    return _mutation(session_id, composer, True)


@router.post("/{session_id}/clear", response_model=StagingMutationResponse, dependencies=ELSEWHERE)
async def clear_session(session_id: str, store: StagingStore = Depends(get_staging_store)):
    composer = store.get(session_id)
    composer.clear()
    return _mutation(session_id, composer, True)


@router.get("/{session_id}/preview", response_model=RenderResponse)
async def preview_session(
    session_id: str,
    store: StagingStore = Depends(get_staging_store),
    db: AsyncSession = Depends(get_db),
):
    """Live preview of the staged composition"""
    composer = store.get(session_id)
    await catalog_service.ensure_catalog(db)
    blocks = renderer_resolver.render_composition(composer.instances)
    return RenderResponse(blocks=blocks, error_count=sum(1 for block in blocks if block.kind == BlockKind.ERROR))


@router.post("/{session_id}/load/{assembly_id}", response_model=StagingMutationResponse, dependencies=ELSEWHERE)
async def load_assembly(
    session_id: str,
    assembly_id: str,
    store: StagingStore = Depends(get_staging_store),
    db: AsyncSession = Depends(get_db),
):
    """Start editing an existing, non-deployed assembly's membership"""
    composer = store.get(session_id)
    assembly = await assembly_service.get_assembly(db, assembly_id)
    ensure_membership_editable(assembly.id, assembly.status, "load_into_staging")

    composer.load(to_staged_instances(assembly))
    return _mutation(session_id, composer, True)


@router.post("/{session_id}/commit", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def commit_session(
    session_id: str,
    request: StagingCommitRequest,
    store: StagingStore = Depends(get_staging_store),
    db: AsyncSession = Depends(get_db),
):
    """Create an assembly (or save into one); the session is discarded only on success"""
    composer = store.get(session_id)
    specs = composer.to_specs()

    if request.assembly_id:
        assembly = await assembly_service.update_assembly(db, request.assembly_id, {"parts": specs})
    else:
        if not request.name or not request.target_role:
            raise ValidationError("name and target_role are required to create an assembly", field="name")
        assembly = await assembly_service.create_assembly(
            db,
            name=request.name,
            target_role=request.target_role,
            parts=specs,
            code=request.code,
            description=request.description,
            target_page=request.target_page,
            route=request.route,
            created_by=request.created_by,
        )

    store.discard(session_id)
    return AssemblyResponse.from_model(assembly)
