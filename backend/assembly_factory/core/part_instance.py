"""
Part instance value object shared by staging, editing and rendering
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

# Staged instances always hold a dict; persisted ones may hold raw JSON text.
ConfigBlob = Union[Dict[str, Any], str, None]


class PartInstance(BaseModel):
    """A part placed inside a composition (staging set or persisted assembly)."""
    instance_id: str = Field(..., description="Unique within the owning composition")
    part_code: str = Field(..., description="Catalog code of the placed part")
    sort_order: int = Field(..., ge=0, description="Dense zero-based position")
    section: str = Field(default="main", description="Layout slot")
    config: ConfigBlob = Field(default_factory=dict, description="Configuration document")

    def config_dict(self) -> Optional[Dict[str, Any]]:
        """Return the config when it is already structured, else None."""
        return self.config if isinstance(self.config, dict) else None
