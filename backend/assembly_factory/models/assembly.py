"""
FeatureAssembly and FeaturePart models
Flow: Staging commit -> FeatureAssembly (DRAFT) -> lifecycle transitions -> DEPLOYED
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    String, DateTime, Text, Integer, ForeignKey, UniqueConstraint, func, Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assembly_factory.core.database import Base


class AssemblyStatus(str, Enum):
    """Assembly release lifecycle status."""
    DRAFT = "DRAFT"
    TESTING = "TESTING"
    APPROVED = "APPROVED"
    DEPLOYED = "DEPLOYED"


class FeatureAssembly(Base):
    """FeatureAssembly model - a named, versioned composition of parts for a role."""

    __tablename__ = "feature_assemblies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    code: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    # Target
    target_role: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    target_page: Mapped[str | None] = mapped_column(String(255))
    route: Mapped[str | None] = mapped_column(String(255))

    # Lifecycle
    status: Mapped[AssemblyStatus] = mapped_column(
        SQLEnum(AssemblyStatus),
        default=AssemblyStatus.DRAFT,
        index=True
    )
    version: Mapped[int] = mapped_column(Integer, default=1)
    test_notes: Mapped[str | None] = mapped_column(Text)

    # Audit
    created_by: Mapped[str | None] = mapped_column(String(36))
    approved_by: Mapped[str | None] = mapped_column(String(36))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deployed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

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

    # Relationships
    parts: Mapped[list["FeaturePart"]] = relationship(
        "FeaturePart",
        back_populates="assembly",
        cascade="all, delete-orphan",
        order_by="FeaturePart.sort_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<FeatureAssembly(id={self.id}, code={self.code}, status={self.status})>"


class FeaturePart(Base):
    """FeaturePart model - one part instance placed inside an assembly."""

    __tablename__ = "feature_parts"
    __table_args__ = (
        UniqueConstraint("assembly_id", "part_code", name="uq_feature_parts_assembly_part"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    assembly_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("feature_assemblies.id", ondelete="CASCADE"),
        nullable=False
    )

    # Referenced by code so catalog edits never break stored configs
    part_code: Mapped[str] = mapped_column(String(100), nullable=False)
    section: Mapped[str] = mapped_column(String(50), default="main")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # JSON document; may be malformed for legacy rows
    config: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    assembly: Mapped["FeatureAssembly"] = relationship("FeatureAssembly", back_populates="parts")

    def __repr__(self) -> str:
        return f"<FeaturePart(id={self.id}, part_code={self.part_code}, sort_order={self.sort_order})>"
