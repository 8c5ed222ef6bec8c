"""
Assembly Factory Schemas
Request/response models for parts, assemblies and staging sessions
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from assembly_factory.core.config_editor import EditSurface
from assembly_factory.core.delete_confirmation import DeleteOutcome
from assembly_factory.core.lifecycle import LifecycleAction, available_actions
from assembly_factory.core.props_schema import FieldKind, FieldOption, FieldSpec
from assembly_factory.core.renderer import ConfigParseError, RenderedBlock, parse_config
from assembly_factory.core.staging import StagingState
from assembly_factory.models.assembly import AssemblyStatus, FeatureAssembly, FeaturePart
from assembly_factory.models.part import PartStatus, PartType


# ─────────────────────────────────────────────────────────────
# Parts
# ─────────────────────────────────────────────────────────────
class PartBase(BaseModel):
    """Part base schema"""
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    category: str = Field(..., min_length=1, max_length=50, description="Catalog category")
    functional_type: PartType = Field(..., description="FULLSTACK, WIDGET or FORM_INPUT")
    description: Optional[str] = Field(None, description="What the part does")
    icon: Optional[str] = Field(None, max_length=100)
    component_path: Optional[str] = Field(None, max_length=255)
    is_core: bool = Field(False, description="Advisory mandatory flag")


class PartCreate(PartBase):
    """Part creation request"""
    code: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")


class PartUpdate(BaseModel):
    """Part update request"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    functional_type: Optional[PartType] = None
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=100)
    component_path: Optional[str] = Field(None, max_length=255)
    status: Optional[PartStatus] = None
    is_core: Optional[bool] = None


class PartResponse(PartBase):
    """Part response"""
    code: str
    status: PartStatus

    model_config = {"from_attributes": True}


class SchemaFieldResponse(BaseModel):
    name: str
    kind: FieldKind
    label: str
    description: Optional[str] = None
    default_value: Any = None
    options: Optional[List[FieldOption]] = None
    placeholder: Optional[str] = None

    @classmethod
    def from_spec(cls, name: str, spec: FieldSpec) -> "SchemaFieldResponse":
        return cls(name=name, **spec.model_dump())


class PartSchemaResponse(BaseModel):
    """Resolved props schema of a part (specific or default, plus common fields)"""
    part_code: str
    has_specific_schema: bool
    fields: List[SchemaFieldResponse]
    defaults: Dict[str, Any]


# ─────────────────────────────────────────────────────────────
# Assemblies
# ─────────────────────────────────────────────────────────────
class InstanceSpec(BaseModel):
    """One part placement in a create/update request"""
    part_code: str = Field(..., description="Catalog code")
    sort_order: Optional[int] = Field(None, ge=0, description="Requested position; renumbered densely")
    section: str = Field("main", max_length=50)
    config: Optional[Dict[str, Any]] = Field(None, description="Partial config; missing fields use defaults")


class AssemblyCreate(BaseModel):
    """Assembly creation request"""
    name: str = Field(..., max_length=255, description="Assembly name")
    target_role: str = Field(..., max_length=50, description="Role the assembly is built for")
    parts: List[InstanceSpec] = Field(default_factory=list)
    code: Optional[str] = Field(None, max_length=150, description="Slug; derived from name when omitted")
    description: Optional[str] = None
    target_page: Optional[str] = Field(None, max_length=255)
    route: Optional[str] = Field(None, max_length=255)
    test_notes: Optional[str] = None
    created_by: Optional[str] = Field(None, max_length=36)


class AssemblyUpdate(BaseModel):
    """Assembly patch; status changes go through the lifecycle endpoints"""
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    target_role: Optional[str] = Field(None, max_length=50)
    target_page: Optional[str] = Field(None, max_length=255)
    route: Optional[str] = Field(None, max_length=255)
    test_notes: Optional[str] = None
    parts: Optional[List[InstanceSpec]] = Field(None, description="Full replacement of the membership")
    status: Optional[AssemblyStatus] = Field(None, description="Rejected; use the lifecycle endpoints")


class AddInstanceRequest(BaseModel):
    part_code: str
    section: str = Field("main", max_length=50)
    config: Optional[Dict[str, Any]] = None


class ReorderRequest(BaseModel):
    """Full permutation of the current instance ids"""
    instance_ids: List[str]


class ConfigPatch(BaseModel):
    """Field values to write into one instance's config"""
    values: Dict[str, Any] = Field(default_factory=dict)
    reset: bool = Field(False, description="Start from schema defaults instead of the current config")


class TransitionRequest(BaseModel):
    actor: Optional[str] = Field(None, max_length=36, description="Recorded as approved_by on approve")
    test_notes: Optional[str] = None


class FeaturePartResponse(BaseModel):
    id: str
    part_code: str
    section: str
    sort_order: int
    config: Optional[Dict[str, Any]] = None
    config_error: Optional[str] = Field(None, description="Set when the stored document cannot be parsed")

    @classmethod
    def from_model(cls, part: FeaturePart) -> "FeaturePartResponse":
        config: Optional[Dict[str, Any]] = None
        config_error: Optional[str] = None
        try:
            config = parse_config(part.config)
        except ConfigParseError as e:
            config_error = str(e)
        return cls(
            id=part.id,
            part_code=part.part_code,
            section=part.section,
            sort_order=part.sort_order,
            config=config,
            config_error=config_error,
        )


class AssemblyResponse(BaseModel):
    """Assembly response"""
    id: str
    code: str
    name: str
    description: Optional[str]
    target_role: str
    target_page: Optional[str]
    route: Optional[str]
    status: AssemblyStatus
    version: int
    test_notes: Optional[str]
    created_by: Optional[str]
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    deployed_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    parts: List[FeaturePartResponse]
    available_actions: List[LifecycleAction]

    @classmethod
    def from_model(cls, assembly: FeatureAssembly) -> "AssemblyResponse":
        return cls(
            id=assembly.id,
            code=assembly.code,
            name=assembly.name,
            description=assembly.description,
            target_role=assembly.target_role,
            target_page=assembly.target_page,
            route=assembly.route,
            status=assembly.status,
            version=assembly.version,
            test_notes=assembly.test_notes,
            created_by=assembly.created_by,
            approved_by=assembly.approved_by,
            approved_at=assembly.approved_at,
            deployed_at=assembly.deployed_at,
            created_at=assembly.created_at,
            updated_at=assembly.updated_at,
            parts=[FeaturePartResponse.from_model(part) for part in assembly.parts],
            available_actions=available_actions(assembly.status),
        )


class RenderResponse(BaseModel):
    assembly_id: Optional[str] = None
    blocks: List[RenderedBlock]
    error_count: int = 0


class DeleteRequestResponse(BaseModel):
    """Result of one step of the two-phase delete"""
    assembly_id: str
    outcome: DeleteOutcome
    deleted: bool
    window_seconds: float


# ─────────────────────────────────────────────────────────────
# Staging
# ─────────────────────────────────────────────────────────────
class StagingSessionResponse(BaseModel):
    session_id: str
    state: StagingState


class StagingMutationResponse(BaseModel):
    """applied is False when the composer rejected the operation"""
    session_id: str
    applied: bool
    state: StagingState


class StagingAddRequest(BaseModel):
    part_code: str


class StagingSelectRequest(BaseModel):
    instance_id: Optional[str] = None


class StagingConfigRequest(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)


class StagingEditorResponse(BaseModel):
    session_id: str
    surface: EditSurface


class StagingCommitRequest(BaseModel):
    """Create a new assembly from the staged set, or replace an existing one's membership"""
    assembly_id: Optional[str] = Field(None, description="Save into this assembly instead of creating one")
    name: Optional[str] = Field(None, max_length=255)
    target_role: Optional[str] = Field(None, max_length=50)
    code: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = None
    target_page: Optional[str] = Field(None, max_length=255)
    route: Optional[str] = Field(None, max_length=255)
    created_by: Optional[str] = Field(None, max_length=36)
