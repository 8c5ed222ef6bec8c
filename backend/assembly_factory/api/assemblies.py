"""
Assembly API endpoints
Flow: request → assembly_service (one transaction) → AssemblyResponse

Factory errors propagate to the application exception handler.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from assembly_factory.core.database import get_db
from assembly_factory.core.delete_confirmation import DeleteConfirmation, DeleteOutcome
from assembly_factory.core.exceptions import NotFoundError
from assembly_factory.core.lifecycle import LifecycleAction
from assembly_factory.core.renderer import BlockKind
from assembly_factory.models.assembly import AssemblyStatus
from assembly_factory.schemas.factory import (
    AddInstanceRequest,
    AssemblyCreate,
    AssemblyResponse,
    AssemblyUpdate,
    ConfigPatch,
    DeleteRequestResponse,
    RenderResponse,
    ReorderRequest,
    TransitionRequest,
)
from assembly_factory.services.assembly_service import assembly_service

router = APIRouter(prefix="/api/factory/assemblies", tags=["assemblies"])


def get_delete_confirmation(request: Request) -> DeleteConfirmation:
    return request.app.state.delete_confirmation


def disarm_pending_delete(confirmation: DeleteConfirmation = Depends(get_delete_confirmation)) -> None:
    """Any other mutation cancels a pending delete confirmation."""
    confirmation.disarm()


ELSEWHERE = [Depends(disarm_pending_delete)]


@router.get("", response_model=List[AssemblyResponse])
async def list_assemblies(
    target_role: Optional[str] = None,
    assembly_status: Optional[AssemblyStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    """List assemblies, optionally by role and status"""
    assemblies = await assembly_service.list_assemblies(db, target_role=target_role, status=assembly_status)
    return [AssemblyResponse.from_model(assembly) for assembly in assemblies]


@router.post("", response_model=AssemblyResponse, status_code=status.HTTP_201_CREATED, dependencies=ELSEWHERE)
async def create_assembly(request: AssemblyCreate, db: AsyncSession = Depends(get_db)):
    """Create a DRAFT assembly from ordered part specs"""
    assembly = await assembly_service.create_assembly(
        db,
        name=request.name,
        target_role=request.target_role,
        parts=request.parts,
        code=request.code,
        description=request.description,
        target_page=request.target_page,
        route=request.route,
        test_notes=request.test_notes,
        created_by=request.created_by,
    )
    return AssemblyResponse.from_model(assembly)


@router.get("/{assembly_id}", response_model=AssemblyResponse)
async def get_assembly(assembly_id: str, db: AsyncSession = Depends(get_db)):
    assembly = await assembly_service.get_assembly(db, assembly_id)
    return AssemblyResponse.from_model(assembly)


@router.put("/{assembly_id}", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def update_assembly(assembly_id: str, request: AssemblyUpdate, db: AsyncSession = Depends(get_db)):
    """Patch metadata; `parts` replaces the membership"""
    patch = request.model_dump(exclude_unset=True)
    if request.parts is not None:
        patch["parts"] = request.parts
    assembly = await assembly_service.update_assembly(db, assembly_id, patch)
    return AssemblyResponse.from_model(assembly)


@router.delete("/{assembly_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=ELSEWHERE)
async def delete_assembly(assembly_id: str, db: AsyncSession = Depends(get_db)):
    """Destructive delete without confirmation"""
    await assembly_service.delete_assembly(db, assembly_id)


@router.post("/{assembly_id}/delete", response_model=DeleteRequestResponse)
async def request_delete(
    assembly_id: str,
    db: AsyncSession = Depends(get_db),
    confirmation: DeleteConfirmation = Depends(get_delete_confirmation),
):
    """Two-phase delete: the first call arms, a second call within the window deletes"""
    # an unknown id is never armed, but still cancels any pending target
    try:
        await assembly_service.get_assembly(db, assembly_id)
    except NotFoundError:
        confirmation.disarm()
        raise

    outcome = confirmation.request(assembly_id)
    deleted = False
    if outcome == DeleteOutcome.CONFIRMED:
        await assembly_service.delete_assembly(db, assembly_id)
        deleted = True

    return DeleteRequestResponse(
        assembly_id=assembly_id,
        outcome=outcome,
        deleted=deleted,
        window_seconds=confirmation.window_seconds,
    )


# ─────────────────────────────────────────────────────────────
# Membership
# ─────────────────────────────────────────────────────────────
@router.post("/{assembly_id}/parts", response_model=AssemblyResponse, status_code=status.HTTP_201_CREATED, dependencies=ELSEWHERE)
async def add_instance(assembly_id: str, request: AddInstanceRequest, db: AsyncSession = Depends(get_db)):
    assembly = await assembly_service.add_instance(
        db, assembly_id, request.part_code, config=request.config, section=request.section
    )
    return AssemblyResponse.from_model(assembly)


@router.delete("/{assembly_id}/parts/{instance_id}", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def remove_instance(assembly_id: str, instance_id: str, db: AsyncSession = Depends(get_db)):
    assembly = await assembly_service.remove_instance(db, assembly_id, instance_id)
    return AssemblyResponse.from_model(assembly)


@router.put("/{assembly_id}/order", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def reorder_instances(assembly_id: str, request: ReorderRequest, db: AsyncSession = Depends(get_db)):
    assembly = await assembly_service.reorder(db, assembly_id, request.instance_ids)
    return AssemblyResponse.from_model(assembly)


@router.patch("/{assembly_id}/parts/{instance_id}/config", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def update_instance_config(
    assembly_id: str,
    instance_id: str,
    request: ConfigPatch,
    db: AsyncSession = Depends(get_db),
):
    assembly = await assembly_service.update_instance_config(
        db, assembly_id, instance_id, request.values, reset=request.reset
    )
    return AssemblyResponse.from_model(assembly)


# ─────────────────────────────────────────────────────────────
# Lifecycle
# ─────────────────────────────────────────────────────────────
async def _transition(
    assembly_id: str,
    action: LifecycleAction,
    request: Optional[TransitionRequest],
    db: AsyncSession,
) -> AssemblyResponse:
    request = request or TransitionRequest()
    assembly = await assembly_service.transition(
        db, assembly_id, action, actor=request.actor, test_notes=request.test_notes
    )
    return AssemblyResponse.from_model(assembly)


@router.post("/{assembly_id}/test", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def start_testing(
    assembly_id: str, request: Optional[TransitionRequest] = None, db: AsyncSession = Depends(get_db)
):
    """DRAFT → TESTING"""
    return await _transition(assembly_id, LifecycleAction.START_TESTING, request, db)


@router.post("/{assembly_id}/approve", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def approve_assembly(
    assembly_id: str, request: Optional[TransitionRequest] = None, db: AsyncSession = Depends(get_db)
):
    """DRAFT / TESTING → APPROVED"""
    return await _transition(assembly_id, LifecycleAction.APPROVE, request, db)


@router.post("/{assembly_id}/deploy", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def deploy_assembly(
    assembly_id: str, request: Optional[TransitionRequest] = None, db: AsyncSession = Depends(get_db)
):
    """APPROVED → DEPLOYED"""
    return await _transition(assembly_id, LifecycleAction.DEPLOY, request, db)


@router.post("/{assembly_id}/rollback", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def rollback_assembly(
    assembly_id: str, request: Optional[TransitionRequest] = None, db: AsyncSession = Depends(get_db)
):
    """DEPLOYED → APPROVED"""
    return await _transition(assembly_id, LifecycleAction.ROLLBACK, request, db)


@router.post("/{assembly_id}/revert", response_model=AssemblyResponse, dependencies=ELSEWHERE)
async def revert_assembly(
    assembly_id: str, request: Optional[TransitionRequest] = None, db: AsyncSession = Depends(get_db)
):
    """Any non-deployed status → DRAFT (version + 1)"""
    return await _transition(assembly_id, LifecycleAction.REVERT, request, db)


@router.get("/{assembly_id}/render", response_model=RenderResponse)
async def render_assembly(assembly_id: str, db: AsyncSession = Depends(get_db)):
    """Render every instance; malformed configs become error blocks"""
    blocks = await assembly_service.render_assembly(db, assembly_id)
    return RenderResponse(
        assembly_id=assembly_id,
        blocks=blocks,
        error_count=sum(1 for block in blocks if block.kind == BlockKind.ERROR),
    )
