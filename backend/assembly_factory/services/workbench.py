"""
Factory Workbench - the single administrator's working session
Flow: load() → stage parts → configure → commit → lifecycle → two-phase delete

Holds the in-memory pieces of the factory screen (staging set, selection,
loaded assembly list, pending delete) and routes every persisted change
through the assembly service. A failed store call leaves local state as it
was before the call.
"""

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from assembly_factory.config.settings import get_settings
from assembly_factory.core.config_editor import ConfigurationEditor, EditSurface, config_editor
from assembly_factory.core.delete_confirmation import DeleteConfirmation, DeleteOutcome
from assembly_factory.core.exceptions import NotFoundError
from assembly_factory.core.lifecycle import LifecycleAction, ensure_membership_editable
from assembly_factory.core.logging import get_logger
from assembly_factory.core.part_instance import PartInstance
from assembly_factory.core.parts_catalog import PartDescriptor
from assembly_factory.core.renderer import RenderedBlock, RendererResolver, renderer_resolver
from assembly_factory.core.staging import StagingComposer
from assembly_factory.models.assembly import AssemblyStatus, FeatureAssembly
from assembly_factory.models.part import PartType
from assembly_factory.services.assembly_service import AssemblyService, assembly_service, to_staged_instances
from assembly_factory.services.catalog_service import CatalogService, catalog_service


class FactoryWorkbench:
    """
    Single-admin façade over staging, editing, lifecycle and delete confirmation.

    Every action other than a delete request counts as "acting elsewhere"
    and disarms a pending delete.
    """

    def __init__(
        self,
        assemblies: AssemblyService = assembly_service,
        catalog: CatalogService = catalog_service,
        editor: Optional[ConfigurationEditor] = None,
        resolver: Optional[RendererResolver] = None,
        confirmation: Optional[DeleteConfirmation] = None,
    ) -> None:
        self.assemblies = assemblies
        self.catalog = catalog
        self.editor = editor or config_editor
        self.resolver = resolver or renderer_resolver
        self.confirmation = confirmation or DeleteConfirmation(get_settings().DELETE_CONFIRM_WINDOW_SECONDS)
        self.staging = StagingComposer(registry=self.editor.registry)
        self.editing_assembly_id: Optional[str] = None
        self.selected_assembly_id: Optional[str] = None
        self._assemblies: Dict[str, FeatureAssembly] = {}
        self.logger = get_logger(__name__, component="workbench")

    # ─────────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────────
    async def load(self, db: AsyncSession, target_role: Optional[str] = None) -> List[FeatureAssembly]:
        """Fetch catalog and assemblies; StoreError propagates and nothing local changes."""
        await self.catalog.refresh_catalog(db)
        assemblies = await self.assemblies.list_assemblies(db, target_role=target_role)
        self._assemblies = {assembly.id: assembly for assembly in assemblies}
        return assemblies

    @property
    def assembly_list(self) -> List[FeatureAssembly]:
        return list(self._assemblies.values())

    def parts(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        functional_type: Optional[PartType] = None,
    ) -> List[PartDescriptor]:
        return self.catalog.catalog.search(query=query, category=category, functional_type=functional_type)

    def touch_elsewhere(self) -> None:
        self.confirmation.disarm()

    # ─────────────────────────────────────────────────────────────
    # Staging
    # ─────────────────────────────────────────────────────────────
    def stage(self, part_code: str) -> Optional[PartInstance]:
        self.touch_elsewhere()
        return self.staging.add(self.catalog.catalog.find(part_code))

    def unstage(self, instance_id: str) -> bool:
        self.touch_elsewhere()
        return self.staging.remove(instance_id)

    def reorder_staging(self, instance_ids: List[str]) -> bool:
        self.touch_elsewhere()
        return self.staging.reorder(instance_ids)

    def select_instance(self, instance_id: Optional[str]) -> bool:
        self.touch_elsewhere()
        return self.staging.select(instance_id)

    def edit_surface(self) -> Optional[EditSurface]:
        selected = self.staging.selected
        if selected is None:
            return None
        return self.editor.describe(selected)

    def configure(self, values: Mapping[str, Any], instance_id: Optional[str] = None) -> PartInstance:
        """Edit the given instance, or the selected one."""
        self.touch_elsewhere()
        target = instance_id or self.staging.selected_id
        if target is None:
            raise NotFoundError("No staged instance selected", resource_type="part_instance")
        return self.editor.apply(self.staging, target, values)

    def clear_staging(self) -> None:
        self.touch_elsewhere()
        self.staging.clear()
        self.editing_assembly_id = None

    def preview(self) -> List[RenderedBlock]:
        return self.resolver.render_composition(self.staging.instances)

    # ─────────────────────────────────────────────────────────────
    # Commit / edit existing
    # ─────────────────────────────────────────────────────────────
    async def commit(
        self,
        db: AsyncSession,
        name: str,
        target_role: str,
        **fields: Any,
    ) -> FeatureAssembly:
        """Create an assembly from the staging set; staging is cleared only on success."""
        self.touch_elsewhere()
        assembly = await self.assemblies.create_assembly(
            db, name=name, target_role=target_role, parts=self.staging.to_specs(), **fields
        )
        self._assemblies[assembly.id] = assembly
        self.staging.clear()
        return assembly

    async def open_assembly(self, db: AsyncSession, assembly_id: str) -> FeatureAssembly:
        """Load a non-deployed assembly's membership into staging."""
        self.touch_elsewhere()
        assembly = await self.assemblies.get_assembly(db, assembly_id)
        ensure_membership_editable(assembly.id, assembly.status, "open_assembly")
        self.staging.load(to_staged_instances(assembly))
        self.editing_assembly_id = assembly.id
        self.selected_assembly_id = assembly.id
        return assembly

    async def save(self, db: AsyncSession) -> FeatureAssembly:
        """Write the staging set back as the opened assembly's membership."""
        self.touch_elsewhere()
        if self.editing_assembly_id is None:
            raise NotFoundError("No assembly opened for editing", resource_type="assembly")
        assembly = await self.assemblies.update_assembly(
            db, self.editing_assembly_id, {"parts": self.staging.to_specs()}
        )
        self._assemblies[assembly.id] = assembly
        return assembly

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────
    async def transition(
        self,
        db: AsyncSession,
        assembly_id: str,
        action: LifecycleAction,
        actor: Optional[str] = None,
    ) -> FeatureAssembly:
        self.touch_elsewhere()
        assembly = await self.assemblies.transition(db, assembly_id, action, actor=actor)
        self._assemblies[assembly.id] = assembly
        if self.editing_assembly_id == assembly.id and assembly.status == AssemblyStatus.DEPLOYED:
            self.editing_assembly_id = None
        return assembly

    async def approve(self, db: AsyncSession, assembly_id: str, actor: Optional[str] = None) -> FeatureAssembly:
        return await self.transition(db, assembly_id, LifecycleAction.APPROVE, actor=actor)

    async def deploy(self, db: AsyncSession, assembly_id: str) -> FeatureAssembly:
        return await self.transition(db, assembly_id, LifecycleAction.DEPLOY)

    async def rollback(self, db: AsyncSession, assembly_id: str) -> FeatureAssembly:
        return await self.transition(db, assembly_id, LifecycleAction.ROLLBACK)

    async def revert_to_draft(self, db: AsyncSession, assembly_id: str) -> FeatureAssembly:
        return await self.transition(db, assembly_id, LifecycleAction.REVERT)

    # ─────────────────────────────────────────────────────────────
    # Two-phase delete
    # ─────────────────────────────────────────────────────────────
    async def request_delete(self, db: AsyncSession, assembly_id: str) -> DeleteOutcome:
        """First call arms, a second call on the same id within the window deletes."""
        outcome = self.confirmation.request(assembly_id)
        if outcome == DeleteOutcome.CONFIRMED:
            await self.assemblies.delete_assembly(db, assembly_id)
            self._assemblies.pop(assembly_id, None)
            if self.selected_assembly_id == assembly_id:
                self.selected_assembly_id = None
            if self.editing_assembly_id == assembly_id:
                self.editing_assembly_id = None
                self.staging.clear()
        return outcome

    @property
    def pending_delete_id(self) -> Optional[str]:
        return self.confirmation.armed_id
