"""
Staging Composer - uncommitted working set of part instances
Flow: add / remove / reorder / select / update_config → _reindex() → to_specs() → commit

┌──────────────────────────────────────────────────────────┐
│  arena (ordered list)  ──_reindex()──▶  index {id: pos}  │
│  invariant: sort_order == position, ids unique           │
└──────────────────────────────────────────────────────────┘

Rejected operations are no-ops: they return False/None, log at debug level
and leave the set exactly as it was.
"""

import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from assembly_factory.core.exceptions import NotFoundError
from assembly_factory.core.logging import get_logger
from assembly_factory.core.ordering import apply_permutation, densify, is_permutation
from assembly_factory.core.part_instance import PartInstance
from assembly_factory.core.parts_catalog import PartDescriptor
from assembly_factory.core.props_schema import PropsSchemaRegistry, schema_registry

logger = get_logger(__name__)


def new_staging_id() -> str:
    return f"temp-{uuid.uuid4().hex}"


class StagingState(BaseModel):
    """Read model of a staging set."""
    instances: List[PartInstance] = Field(default_factory=list)
    selected_instance_id: Optional[str] = None


class StagingComposer:
    """
    In-memory composition being arranged before it becomes an assembly.

    Core Process:
    1. add() → append one instance per part code with schema defaults
    2. remove() / reorder() → structural change, then _reindex()
    3. select() → pick the configuration target
    4. to_specs() → ordered copies handed to the assembly store
    """

    def __init__(
        self,
        registry: Optional[PropsSchemaRegistry] = None,
        id_factory: Callable[[], str] = new_staging_id,
    ) -> None:
        self._registry = registry or schema_registry
        self._id_factory = id_factory
        self._instances: List[PartInstance] = []
        self._index: Dict[str, int] = {}
        self._selected_id: Optional[str] = None
        self.logger = get_logger(__name__, component="staging_composer")

    # ─────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────
    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, instance_id: str) -> bool:
        return instance_id in self._index

    @property
    def instances(self) -> List[PartInstance]:
        """Ordered copies of the staged instances."""
        return [instance.model_copy(deep=True) for instance in self._instances]

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def selected(self) -> Optional[PartInstance]:
        if self._selected_id is None:
            return None
        return self.get(self._selected_id)

    def get(self, instance_id: str) -> Optional[PartInstance]:
        position = self._index.get(instance_id)
        if position is None:
            return None
        return self._instances[position].model_copy(deep=True)

    def find_by_part(self, part_code: str) -> Optional[PartInstance]:
        for instance in self._instances:
            if instance.part_code == part_code:
                return instance.model_copy(deep=True)
        return None

    def snapshot(self) -> StagingState:
        return StagingState(instances=self.instances, selected_instance_id=self._selected_id)

    def to_specs(self) -> List[Dict[str, Any]]:
        """Ordered instance specs for create_assembly / update_assembly."""
        return [
            {
                "part_code": instance.part_code,
                "sort_order": instance.sort_order,
                "section": instance.section,
                "config": dict(instance.config_dict() or {}),
            }
            for instance in self._instances
        ]

    # ─────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────
    def add(self, descriptor: PartDescriptor) -> Optional[PartInstance]:
        """Append an instance of the part; None when the part is already staged."""
        if any(instance.part_code == descriptor.code for instance in self._instances):
            self.logger.debug("Part already staged", part_code=descriptor.code)
            return None

        instance = PartInstance(
            instance_id=self._id_factory(),
            part_code=descriptor.code,
            sort_order=len(self._instances),
            config=self._registry.defaults(descriptor.code),
        )
        self._instances.append(instance)
        self._reindex()
        self.logger.info("Part staged", part_code=descriptor.code, instance_id=instance.instance_id)
        return instance.model_copy(deep=True)

    def remove(self, instance_id: str) -> bool:
        position = self._index.get(instance_id)
        if position is None:
            self.logger.debug("Remove ignored, unknown instance", instance_id=instance_id)
            return False

        removed = self._instances.pop(position)
        if self._selected_id == instance_id:
            self._selected_id = None
        self._reindex()
        self.logger.info("Part unstaged", part_code=removed.part_code, instance_id=instance_id)
        return True

    def reorder(self, ordered_ids: Iterable[str]) -> bool:
        """Apply a full permutation of the current ids; anything else is ignored."""
        requested = list(ordered_ids)
        current = [instance.instance_id for instance in self._instances]
        if not is_permutation(current, requested):
            self.logger.debug("Reorder ignored, not a permutation", requested=requested)
            return False

        self._instances = apply_permutation(self._instances, requested, key=lambda i: i.instance_id)
        self._reindex()
        return True

    def select(self, instance_id: Optional[str]) -> bool:
        if instance_id is None:
            self._selected_id = None
            return True
        if instance_id not in self._index:
            self.logger.debug("Select ignored, unknown instance", instance_id=instance_id)
            return False
        self._selected_id = instance_id
        return True

    def update_config(self, instance_id: str, config: Dict[str, Any]) -> bool:
        """Replace one instance's config; siblings are untouched."""
        position = self._index.get(instance_id)
        if position is None:
            return False
        self._instances[position].config = dict(config)
        return True

    def load(self, instances: Iterable[PartInstance]) -> None:
        """Start from an existing composition (e.g. a non-deployed assembly)."""
        ordered = sorted(instances, key=lambda i: i.sort_order)
        seen_ids = set()
        seen_codes = set()
        loaded: List[PartInstance] = []
        for instance in ordered:
            if instance.instance_id in seen_ids or instance.part_code in seen_codes:
                continue
            seen_ids.add(instance.instance_id)
            seen_codes.add(instance.part_code)
            copy = instance.model_copy(deep=True)
            if not isinstance(copy.config, dict):
                # unparseable documents restart from defaults
                copy.config = self._registry.defaults(copy.part_code)
            loaded.append(copy)
        self._instances = loaded
        self._selected_id = None
        self._reindex()

    def clear(self) -> None:
        self._instances = []
        self._selected_id = None
        self._reindex()

    def _reindex(self) -> None:
        """Single choke point: densify sort orders and rebuild the id index."""
        densify(self._instances)
        self._index = {instance.instance_id: position for position, instance in enumerate(self._instances)}


class StagingStore:
    """Keeps one composer per staging session."""

    def __init__(self, registry: Optional[PropsSchemaRegistry] = None) -> None:
        self._registry = registry
        self._sessions: Dict[str, StagingComposer] = {}

    def create(self) -> str:
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = StagingComposer(registry=self._registry)
        logger.info("Staging session opened", session_id=session_id)
        return session_id

    def get(self, session_id: str) -> StagingComposer:
        composer = self._sessions.get(session_id)
        if composer is None:
            raise NotFoundError(
                f"Staging session '{session_id}' not found",
                resource_type="staging_session",
                resource_id=session_id,
            )
        return composer

    def discard(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
