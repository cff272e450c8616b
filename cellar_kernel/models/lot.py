"""
Module: cellar_kernel.models.lot
Responsibility: ORM persistence for lots (the lineage entity for a quantity
    of liquid under fermentation) and the LotBatch join recording which
    batches contributed to a lot and in what share.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - lot_code is unique per tenant (uq_lot_tenant_code).
    - A lot with is_blend_result=True carries a BLEND-YYYY-NNNN code, and
      that code is assigned at most once (enforced by LotCodeService).
    - Lots are never deleted by the allocation engine.
    - For a fully composed lot, batch_percentage over its LotBatch rows sums
      to 100 (enforced by the split and blend workflows).

Failure modes:
    - IntegrityError on duplicate (tenant_id, lot_code).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from cellar_kernel.db.base import Base, TrackedBase, UUIDString


class LotPhase(str, Enum):
    """Production phase a lot is in."""

    FERMENTATION = "FERMENTATION"
    CONDITIONING = "CONDITIONING"
    BRIGHT = "BRIGHT"
    PACKAGING = "PACKAGING"


class LotStatus(str, Enum):
    """Lifecycle status of a lot."""

    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Lot(TrackedBase):
    """
    A quantity of liquid tracked independently of batch and vessel.

    Contract:
        Split parents span the full batch volume and hold no vessel
        assignment of their own.  Split children point at their parent via
        parent_lot_id.  Blend targets may be reused across several blend
        operations; each one adds LotBatch rows and volume.

    Guarantees:
        - (tenant_id, lot_code) is unique.
        - blended_at is set whenever a blend lands in this lot.

    Non-goals:
        - This model does NOT know which vessel it is in; that is the
          TankAssignment table.
    """

    __tablename__ = "lots"

    __table_args__ = (
        UniqueConstraint("tenant_id", "lot_code", name="uq_lot_tenant_code"),
        Index("idx_lot_parent", "parent_lot_id"),
        Index("idx_lot_tenant_status", "tenant_id", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    lot_code: Mapped[str] = mapped_column(String(64), nullable=False)

    phase: Mapped[LotPhase] = mapped_column(
        String(20),
        default=LotPhase.FERMENTATION,
        nullable=False,
    )

    status: Mapped[LotStatus] = mapped_column(
        String(20),
        default=LotStatus.ACTIVE,
        nullable=False,
    )

    planned_volume: Mapped[Decimal] = mapped_column(
        Numeric(18, 3),
        default=Decimal("0"),
        nullable=False,
    )

    # Split children only
    parent_lot_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("lots.id"),
        nullable=True,
    )

    is_blend_result: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_blend_target: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    blended_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Lot {self.lot_code}: {self.status} volume={self.planned_volume}>"


class LotBatch(Base):
    """
    A batch's contribution to a lot.

    volume_contribution is in the lot's volume unit; batch_percentage is the
    share of the lot (0-100) at the time the row was written.
    """

    __tablename__ = "lot_batches"

    __table_args__ = (
        Index("idx_lot_batch_lot", "lot_id"),
        Index("idx_lot_batch_batch", "batch_id"),
    )

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("lots.id"),
        nullable=False,
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("batches.id"),
        nullable=False,
    )

    volume_contribution: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)

    batch_percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<LotBatch lot={self.lot_id} batch={self.batch_id} "
            f"{self.volume_contribution} ({self.batch_percentage}%)>"
        )
