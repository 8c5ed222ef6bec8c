"""
Assembly Service
Flow: staging specs → create_assembly (DRAFT) → membership edits → lifecycle transitions → render

Every public call is a single transaction: it either commits completely or
rolls back and raises, leaving the stored assembly as it was. Lifecycle and
membership rules are checked before anything is written.
"""

import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from assembly_factory.core.config_editor import ConfigurationEditor, config_editor
from assembly_factory.core.database import transaction
from assembly_factory.core.exceptions import ConflictError, NotFoundError, ValidationError
from assembly_factory.core.lifecycle import LifecycleAction, ensure_membership_editable, target_status
from assembly_factory.core.logging import get_logger
from assembly_factory.core.ordering import apply_permutation, densify, is_permutation
from assembly_factory.core.part_instance import PartInstance
from assembly_factory.core.parts_catalog import PartsCatalog
from assembly_factory.core.renderer import ConfigParseError, RenderedBlock, RendererResolver, parse_config, renderer_resolver
from assembly_factory.models.assembly import AssemblyStatus, FeatureAssembly, FeaturePart
from assembly_factory.models.part import PartStatus
from assembly_factory.schemas.factory import InstanceSpec
from assembly_factory.services.catalog_service import CatalogService, catalog_service

SpecLike = Union[InstanceSpec, Mapping[str, Any]]

PATCHABLE_FIELDS = {"name", "description", "target_role", "target_page", "route", "test_notes", "parts"}


def slugify(name: str) -> str:
    """'Athlete View' → 'athlete_view_v1'"""
    return re.sub(r"\s+", "_", name.strip().lower()) + "_v1"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dump_config(config: Optional[Mapping[str, Any]]) -> str:
    return json.dumps(dict(config or {}))


def to_instances(assembly: FeatureAssembly) -> List[PartInstance]:
    """Persisted rows as composition instances; config stays raw text."""
    return [
        PartInstance(
            instance_id=part.id,
            part_code=part.part_code,
            sort_order=part.sort_order,
            section=part.section or "main",
            config=part.config,
        )
        for part in assembly.parts
    ]


def to_staged_instances(assembly: FeatureAssembly) -> List[PartInstance]:
    """Persisted membership as staging input; unparseable configs become None."""
    instances = []
    for instance in to_instances(assembly):
        try:
            config: Optional[Dict[str, Any]] = parse_config(instance.config)
        except ConfigParseError:
            # StagingComposer.load restarts non-dict configs from defaults
            config = None
        instances.append(instance.model_copy(update={"config": config}))
    return instances


class AssemblyService:
    """
    Persisted assemblies and their lifecycle.

    Core Process:
    1. create_assembly() → validated, densely ordered DRAFT assembly
    2. add_instance / remove_instance / reorder / update_instance_config → guarded while DEPLOYED
    3. start_testing / approve / deploy / rollback / revert → transition table
    4. render_assembly() → one block per instance, malformed configs isolated
    """

    def __init__(
        self,
        catalog_service: CatalogService = catalog_service,
        editor: Optional[ConfigurationEditor] = None,
        resolver: Optional[RendererResolver] = None,
    ) -> None:
        self.catalog_service = catalog_service
        self.editor = editor or config_editor
        self.resolver = resolver or renderer_resolver
        self.logger = get_logger(__name__, component="assembly_service")

    # ─────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────
    async def _load(self, db: AsyncSession, assembly_id: str) -> FeatureAssembly:
        result = await db.execute(
            select(FeatureAssembly)
            .where(FeatureAssembly.id == assembly_id)
            .execution_options(populate_existing=True)
        )
        assembly = result.scalar_one_or_none()
        if not assembly:
            raise NotFoundError(
                f"Assembly with id {assembly_id} not found",
                resource_type="assembly",
                resource_id=assembly_id,
            )
        return assembly

    async def get_assembly(self, db: AsyncSession, assembly_id: str) -> FeatureAssembly:
        async with transaction(db, "get_assembly"):
            return await self._load(db, assembly_id)

    async def list_assemblies(
        self,
        db: AsyncSession,
        target_role: Optional[str] = None,
        status: Optional[AssemblyStatus] = None,
    ) -> List[FeatureAssembly]:
        """List assemblies, most recently touched first."""
        query = select(FeatureAssembly).execution_options(populate_existing=True)
        if target_role:
            query = query.where(FeatureAssembly.target_role == target_role)
        if status:
            query = query.where(FeatureAssembly.status == status)
        query = query.order_by(desc(FeatureAssembly.updated_at), FeatureAssembly.name)

        async with transaction(db, "list_assemblies"):
            result = await db.execute(query)
            return list(result.scalars().all())

    # ─────────────────────────────────────────────────────────────
    # Validation helpers
    # ─────────────────────────────────────────────────────────────
    async def _catalog(self, db: AsyncSession) -> PartsCatalog:
        return await self.catalog_service.ensure_catalog(db)

    def _check_part_code(self, catalog: PartsCatalog, part_code: str) -> None:
        descriptor = catalog.get(part_code)
        if descriptor is None:
            raise ValidationError(f"Unknown part code '{part_code}'", field="part_code", value=part_code)
        if descriptor.status == PartStatus.DEPRECATED:
            raise ValidationError(f"Part '{part_code}' is deprecated", field="part_code", value=part_code)

    async def _normalize_specs(self, db: AsyncSession, specs: Iterable[SpecLike]) -> List[InstanceSpec]:
        """Validate codes, reject duplicates, validate configs and order by requested sort_order."""
        catalog = await self._catalog(db)
        normalized: List[InstanceSpec] = []
        seen = set()
        for spec in specs:
            spec = spec if isinstance(spec, InstanceSpec) else InstanceSpec.model_validate(spec)
            self._check_part_code(catalog, spec.part_code)
            if spec.part_code in seen:
                raise ConflictError("Part already exists", conflicting_resource=spec.part_code)
            seen.add(spec.part_code)
            config = self.editor.validate_config(spec.part_code, spec.config)
            normalized.append(spec.model_copy(update={"config": config}))

        # stable: unspecified orders keep their list position
        positioned = list(enumerate(normalized))
        positioned.sort(key=lambda item: (item[1].sort_order if item[1].sort_order is not None else item[0], item[0]))
        return [spec for _, spec in positioned]

    def _new_part(self, assembly_id: str, spec: InstanceSpec) -> FeaturePart:
        config = {**self.editor.reset(spec.part_code), **(spec.config or {})}
        return FeaturePart(
            id=str(uuid.uuid4()),
            assembly_id=assembly_id,
            part_code=spec.part_code,
            section=spec.section,
            sort_order=0,
            config=_dump_config(config),
            created_at=_utcnow(),
        )

    def _touch(self, assembly: FeatureAssembly) -> None:
        assembly.updated_at = _utcnow()

    # ─────────────────────────────────────────────────────────────
    # Create / update / delete
    # ─────────────────────────────────────────────────────────────
    async def create_assembly(
        self,
        db: AsyncSession,
        name: str,
        target_role: str,
        parts: Iterable[SpecLike],
        code: Optional[str] = None,
        description: Optional[str] = None,
        target_page: Optional[str] = None,
        route: Optional[str] = None,
        test_notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> FeatureAssembly:
        """Create a DRAFT assembly from an ordered list of instance specs."""
        name = (name or "").strip()
        target_role = (target_role or "").strip()
        if not name:
            raise ValidationError("Assembly name is required", field="name")
        if not target_role:
            raise ValidationError("Target role is required", field="target_role")
        parts = list(parts)
        if not parts:
            raise ValidationError("An assembly needs at least one part", field="parts")

        code = (code or slugify(name)).strip()
        assembly_id = str(uuid.uuid4())

        async with transaction(db, "create_assembly"):
            specs = await self._normalize_specs(db, parts)

            existing = await db.execute(select(FeatureAssembly.id).where(FeatureAssembly.code == code))
            if existing.scalar_one_or_none():
                raise ConflictError(f"Assembly code '{code}' already exists", conflicting_resource=code)

            now = _utcnow()
            assembly = FeatureAssembly(
                id=assembly_id,
                code=code,
                name=name,
                description=description,
                target_role=target_role,
                target_page=target_page,
                route=route,
                status=AssemblyStatus.DRAFT,
                version=1,
                test_notes=test_notes,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            assembly.parts = densify([self._new_part(assembly_id, spec) for spec in specs])
            db.add(assembly)

        self.logger.info(
            "Assembly created",
            assembly_id=assembly_id,
            code=code,
            target_role=target_role,
            parts=[spec.part_code for spec in specs],
        )
        return await self.get_assembly(db, assembly_id)

    async def update_assembly(self, db: AsyncSession, assembly_id: str, patch: Mapping[str, Any]) -> FeatureAssembly:
        """Patch metadata; a `parts` key replaces the membership (guarded while deployed)."""
        if patch.get("status") is not None:
            raise ValidationError(
                "Status cannot be patched; use the lifecycle actions", field="status", value=patch["status"]
            )
        patch = {key: value for key, value in patch.items() if key != "status"}
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields not patchable: {sorted(unknown)}", field=sorted(unknown)[0])
        for required in ("name", "target_role"):
            if required in patch and not (patch[required] or "").strip():
                raise ValidationError(f"{required} cannot be empty", field=required)

        async with transaction(db, "update_assembly"):
            assembly = await self._load(db, assembly_id)

            if patch.get("parts") is not None:
                ensure_membership_editable(assembly.id, assembly.status, "update_assembly")
                specs = await self._normalize_specs(db, patch["parts"])
                if not specs:
                    raise ValidationError("An assembly needs at least one part", field="parts")
                self._replace_membership(assembly, specs)

            for key, value in patch.items():
                if key == "parts":
                    continue
                setattr(assembly, key, value.strip() if key in ("name", "target_role") else value)
            self._touch(assembly)

        self.logger.info("Assembly updated", assembly_id=assembly_id, fields=sorted(patch))
        return await self.get_assembly(db, assembly_id)

    def _replace_membership(self, assembly: FeatureAssembly, specs: List[InstanceSpec]) -> None:
        # rows are matched by part code so the (assembly, part) unique key never collides mid-flush
        existing = {part.part_code: part for part in assembly.parts}
        replacement: List[FeaturePart] = []
        for spec in specs:
            row = existing.get(spec.part_code)
            if row is None:
                row = self._new_part(assembly.id, spec)
            else:
                row.section = spec.section
                row.config = _dump_config({**self.editor.reset(spec.part_code), **(spec.config or {})})
            replacement.append(row)
        assembly.parts = densify(replacement)

    async def delete_assembly(self, db: AsyncSession, assembly_id: str) -> None:
        """Destructive delete; the two-phase protocol lives in DeleteConfirmation."""
        async with transaction(db, "delete_assembly"):
            assembly = await self._load(db, assembly_id)
            await db.delete(assembly)
        self.logger.info("Assembly deleted", assembly_id=assembly_id)

    # ─────────────────────────────────────────────────────────────
    # Membership
    # ─────────────────────────────────────────────────────────────
    async def add_instance(
        self,
        db: AsyncSession,
        assembly_id: str,
        part_code: str,
        config: Optional[Mapping[str, Any]] = None,
        section: str = "main",
    ) -> FeatureAssembly:
        async with transaction(db, "add_instance"):
            assembly = await self._load(db, assembly_id)
            ensure_membership_editable(assembly.id, assembly.status, "add_instance")
            self._check_part_code(await self._catalog(db), part_code)
            if any(part.part_code == part_code for part in assembly.parts):
                raise ConflictError("Part already exists", conflicting_resource=part_code)

            spec = InstanceSpec(
                part_code=part_code,
                section=section,
                config=self.editor.validate_config(part_code, config),
            )
            assembly.parts = densify([*assembly.parts, self._new_part(assembly.id, spec)])
            self._touch(assembly)

        self.logger.info("Part added to assembly", assembly_id=assembly_id, part_code=part_code)
        return await self.get_assembly(db, assembly_id)

    def _member(self, assembly: FeatureAssembly, instance_id: str) -> FeaturePart:
        for part in assembly.parts:
            if part.id == instance_id:
                return part
        raise NotFoundError(
            f"Instance {instance_id} is not part of assembly {assembly.id}",
            resource_type="feature_part",
            resource_id=instance_id,
        )

    async def remove_instance(self, db: AsyncSession, assembly_id: str, instance_id: str) -> FeatureAssembly:
        async with transaction(db, "remove_instance"):
            assembly = await self._load(db, assembly_id)
            ensure_membership_editable(assembly.id, assembly.status, "remove_instance")
            removed = self._member(assembly, instance_id)
            assembly.parts = densify([part for part in assembly.parts if part.id != removed.id])
            self._touch(assembly)

        self.logger.info("Part removed from assembly", assembly_id=assembly_id, part_code=removed.part_code)
        return await self.get_assembly(db, assembly_id)

    async def reorder(self, db: AsyncSession, assembly_id: str, instance_ids: List[str]) -> FeatureAssembly:
        """Apply a full permutation of the assembly's instance ids."""
        async with transaction(db, "reorder"):
            assembly = await self._load(db, assembly_id)
            ensure_membership_editable(assembly.id, assembly.status, "reorder")
            current = [part.id for part in assembly.parts]
            if not is_permutation(current, instance_ids):
                raise ValidationError(
                    "Order must be a permutation of the current instance ids",
                    field="instance_ids",
                    value=instance_ids,
                )
            assembly.parts = densify(apply_permutation(list(assembly.parts), instance_ids, key=lambda p: p.id))
            self._touch(assembly)

        self.logger.info("Assembly reordered", assembly_id=assembly_id, order=instance_ids)
        return await self.get_assembly(db, assembly_id)

    async def update_instance_config(
        self,
        db: AsyncSession,
        assembly_id: str,
        instance_id: str,
        values: Mapping[str, Any],
        reset: bool = False,
    ) -> FeatureAssembly:
        """Write validated field values into one instance's config."""
        async with transaction(db, "update_instance_config"):
            assembly = await self._load(db, assembly_id)
            ensure_membership_editable(assembly.id, assembly.status, "update_config")
            part = self._member(assembly, instance_id)

            if reset:
                current: Dict[str, Any] = self.editor.reset(part.part_code)
            else:
                try:
                    current = parse_config(part.config)
                except ConfigParseError:
                    # a broken legacy document is replaced, starting from defaults
                    current = self.editor.reset(part.part_code)
            part.config = _dump_config(self.editor.merge(part.part_code, current, values))
            self._touch(assembly)

        self.logger.info("Instance config updated", assembly_id=assembly_id, instance_id=instance_id, fields=list(values))
        return await self.get_assembly(db, assembly_id)

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────
    async def _transition(
        self,
        db: AsyncSession,
        assembly_id: str,
        action: LifecycleAction,
        actor: Optional[str] = None,
        test_notes: Optional[str] = None,
    ) -> FeatureAssembly:
        async with transaction(db, action.value):
            assembly = await self._load(db, assembly_id)
            previous = assembly.status
            assembly.status = target_status(action, assembly.status, assembly_id=assembly.id)

            now = _utcnow()
            if action == LifecycleAction.START_TESTING and test_notes is not None:
                assembly.test_notes = test_notes
            elif action == LifecycleAction.APPROVE:
                assembly.approved_by = actor
                assembly.approved_at = now
            elif action == LifecycleAction.DEPLOY:
                assembly.deployed_at = now
            elif action == LifecycleAction.ROLLBACK:
                assembly.deployed_at = None
            elif action == LifecycleAction.REVERT:
                assembly.approved_by = None
                assembly.approved_at = None
                assembly.version = (assembly.version or 1) + 1
            assembly.updated_at = now

        self.logger.info(
            "Assembly transitioned",
            assembly_id=assembly_id,
            action=action.value,
            from_status=AssemblyStatus(previous).value,
            to_status=AssemblyStatus(assembly.status).value,
        )
        return await self.get_assembly(db, assembly_id)

    async def start_testing(self, db: AsyncSession, assembly_id: str, test_notes: Optional[str] = None) -> FeatureAssembly:
        return await self._transition(db, assembly_id, LifecycleAction.START_TESTING, test_notes=test_notes)

    async def approve(self, db: AsyncSession, assembly_id: str, approved_by: Optional[str] = None) -> FeatureAssembly:
        return await self._transition(db, assembly_id, LifecycleAction.APPROVE, actor=approved_by)

    async def deploy(self, db: AsyncSession, assembly_id: str) -> FeatureAssembly:
        return await self._transition(db, assembly_id, LifecycleAction.DEPLOY)

    async def rollback(self, db: AsyncSession, assembly_id: str) -> FeatureAssembly:
        return await self._transition(db, assembly_id, LifecycleAction.ROLLBACK)

    async def revert_to_draft(self, db: AsyncSession, assembly_id: str) -> FeatureAssembly:
        return await self._transition(db, assembly_id, LifecycleAction.REVERT)

    async def transition(
        self,
        db: AsyncSession,
        assembly_id: str,
        action: LifecycleAction,
        actor: Optional[str] = None,
        test_notes: Optional[str] = None,
    ) -> FeatureAssembly:
        return await self._transition(db, assembly_id, action, actor=actor, test_notes=test_notes)

    # ─────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────
    async def render_assembly(self, db: AsyncSession, assembly_id: str) -> List[RenderedBlock]:
        assembly = await self.get_assembly(db, assembly_id)
        await self._catalog(db)
        return self.resolver.render_composition(to_instances(assembly))


# Global service instance
assembly_service = AssemblyService()
