"""
SystemPart model
Flow: Catalog administration -> SystemPart -> Parts Catalog cache -> Staging
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import String, DateTime, Text, Boolean, func, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from assembly_factory.core.database import Base


class PartType(str, Enum):
    """Functional type of a part; drives the fallback renderer."""
    FULLSTACK = "FULLSTACK"
    WIDGET = "WIDGET"
    FORM_INPUT = "FORM_INPUT"


class PartStatus(str, Enum):
    """Catalog status of a part."""
    ACTIVE = "ACTIVE"
    DEPRECATED = "DEPRECATED"
    DRAFT = "DRAFT"


class SystemPart(Base):
    """SystemPart model - a reusable functional unit in the parts warehouse."""

    __tablename__ = "system_parts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    functional_type: Mapped[PartType] = mapped_column(SQLEnum(PartType), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    icon: Mapped[str | None] = mapped_column(String(100))
    component_path: Mapped[str | None] = mapped_column(String(255))

    status: Mapped[PartStatus] = mapped_column(SQLEnum(PartStatus), default=PartStatus.ACTIVE)
    is_core: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<SystemPart(code={self.code}, type={self.functional_type}, status={self.status})>"
