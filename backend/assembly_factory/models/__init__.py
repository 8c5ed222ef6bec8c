"""
Database models package
"""

from assembly_factory.core.database import Base
from .part import SystemPart, PartType, PartStatus
from .assembly import FeatureAssembly, FeaturePart, AssemblyStatus

__all__ = [
    "Base",
    "SystemPart",
    "PartType",
    "PartStatus",
    "FeatureAssembly",
    "FeaturePart",
    "AssemblyStatus",
]
