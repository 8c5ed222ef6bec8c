"""
Parts Catalog - process-wide, read-mostly index of part descriptors
Flow: Store fetch → Atomic replace → list / find / search → Staging
"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from assembly_factory.core.exceptions import AssemblyFactoryException, NotFoundError, StoreError
from assembly_factory.core.logging import get_logger
from assembly_factory.models.part import PartStatus, PartType


class PartDescriptor(BaseModel):
    """Catalog entry for a reusable part."""
    code: str = Field(..., min_length=1, description="Stable identifier")
    name: str = Field(..., description="Display name")
    category: str = Field(..., description="Catalog category, e.g. SPORT")
    functional_type: PartType = Field(..., description="FULLSTACK, WIDGET or FORM_INPUT")
    is_core: bool = Field(default=False, description="Advisory mandatory flag")
    description: Optional[str] = Field(default=None)
    icon: Optional[str] = Field(default=None)
    component_path: Optional[str] = Field(default=None)
    status: PartStatus = Field(default=PartStatus.ACTIVE)

    model_config = {"from_attributes": True, "frozen": True}


CatalogLoader = Callable[[], Awaitable[Iterable[PartDescriptor]]]


def _sort_key(part: PartDescriptor):
    return (part.category, part.functional_type.value, part.name)


class PartsCatalog:
    """
    Read-only catalog cache shared by every staging session.

    Catalog Process:
    1. refresh() → Fetch the full catalog through a loader and swap it in
    2. list() / find() / search() → Serve reads from the current snapshot
    3. invalidate() → Drop the snapshot after catalog administration

    A failed fetch leaves the previous snapshot untouched.
    """

    def __init__(self) -> None:
        self._parts: Dict[str, PartDescriptor] = {}
        self._loaded = False
        self._last_refresh: Optional[datetime] = None
        self.logger = get_logger(__name__, component="parts_catalog")

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def last_refresh(self) -> Optional[datetime]:
        return self._last_refresh

    def replace(self, parts: Iterable[PartDescriptor]) -> None:
        """Swap in a complete catalog snapshot."""
        snapshot: Dict[str, PartDescriptor] = {}
        for part in sorted(parts, key=_sort_key):
            snapshot[part.code] = part
        self._parts = snapshot
        self._loaded = True
        self._last_refresh = datetime.now(timezone.utc)
        self.logger.info("Catalog snapshot replaced", total_parts=len(snapshot))

    async def refresh(self, loader: CatalogLoader) -> List[PartDescriptor]:
        """
        Fetch the full catalog and replace the snapshot atomically.

        Raises:
            StoreError: when the loader fails; the old snapshot is kept.
        """
        try:
            parts = list(await loader())
        except AssemblyFactoryException:
            raise
        except Exception as e:
            self.logger.error("Catalog fetch failed", error=str(e))
            raise StoreError("Could not load the parts catalog, retry", operation="list_parts") from e
        self.replace(parts)
        return self.list()

    async def ensure_loaded(self, loader: CatalogLoader) -> None:
        """Load lazily on first use."""
        if not self._loaded:
            await self.refresh(loader)

    def invalidate(self) -> None:
        """Forget the snapshot so the next read refetches."""
        self._parts = {}
        self._loaded = False
        self.logger.info("Catalog invalidated")

    def list(self) -> List[PartDescriptor]:
        return list(self._parts.values())

    def get(self, code: str) -> Optional[PartDescriptor]:
        return self._parts.get(code)

    def find(self, code: str) -> PartDescriptor:
        """Get a descriptor by code or raise NotFoundError."""
        part = self._parts.get(code)
        if part is None:
            raise NotFoundError(f"Part '{code}' not found", resource_type="part", resource_id=code)
        return part

    def search(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        functional_type: Optional[PartType] = None,
        include_deprecated: bool = False,
    ) -> List[PartDescriptor]:
        """Filter by name/code substring (case-insensitive), category and type."""
        return filter_parts(
            self._parts.values(),
            query=query,
            category=category,
            functional_type=functional_type,
            include_deprecated=include_deprecated,
        )


def filter_parts(
    parts: Iterable[PartDescriptor],
    query: Optional[str] = None,
    category: Optional[str] = None,
    functional_type: Optional[PartType] = None,
    include_deprecated: bool = False,
) -> List[PartDescriptor]:
    needle = (query or "").strip().lower()
    results = []
    for part in parts:
        if not include_deprecated and part.status == PartStatus.DEPRECATED:
            continue
        if needle and needle not in part.name.lower() and needle not in part.code.lower():
            continue
        if category and category != "all" and part.category != category:
            continue
        if functional_type and part.functional_type != functional_type:
            continue
        results.append(part)
    return results


# Process-wide catalog instance
parts_catalog = PartsCatalog()
