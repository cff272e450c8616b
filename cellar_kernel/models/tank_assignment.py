"""
Module: cellar_kernel.models.tank_assignment
Responsibility: ORM persistence for a lot's occupancy of a vessel over a
    planned time window.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one ACTIVE assignment per vessel in any overlapping window.
      This is NOT a database constraint: the availability checker and the
      occupancy check enforce it while the vessel row is locked.
    - One row per (tank, lot) pairing.  The only in-place update the
      allocation engine performs is adding blended volume to
      planned_volume.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from cellar_kernel.db.base import TrackedBase, UUIDString
from cellar_kernel.models.lot import LotPhase


class AssignmentStatus(str, Enum):
    """Lifecycle status of a tank assignment."""

    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TankAssignment(TrackedBase):
    """
    Binding of a lot to a vessel over [planned_start, planned_end).

    Guarantees:
        - planned_start < planned_end (validated before creation).
        - current volume on the vessel is actual_volume when recorded,
          otherwise planned_volume.
    """

    __tablename__ = "tank_assignments"

    __table_args__ = (
        Index("idx_assignment_tank_status", "tank_id", "status"),
        Index("idx_assignment_lot_status", "lot_id", "status"),
        Index("idx_assignment_tank_window", "tank_id", "planned_start", "planned_end"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    tank_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tanks.id"),
        nullable=False,
    )

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("lots.id"),
        nullable=False,
    )

    planned_start: Mapped[datetime] = mapped_column(nullable=False)

    planned_end: Mapped[datetime] = mapped_column(nullable=False)

    planned_volume: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)

    actual_volume: Mapped[Decimal | None] = mapped_column(Numeric(18, 3), nullable=True)

    phase: Mapped[LotPhase] = mapped_column(
        String(20),
        default=LotPhase.FERMENTATION,
        nullable=False,
    )

    status: Mapped[AssignmentStatus] = mapped_column(
        String(20),
        default=AssignmentStatus.ACTIVE,
        nullable=False,
    )

    @property
    def occupied_volume(self) -> Decimal:
        """Volume this assignment holds on its vessel."""
        return self.actual_volume if self.actual_volume is not None else self.planned_volume

    def __repr__(self) -> str:
        return (
            f"<TankAssignment tank={self.tank_id} lot={self.lot_id} "
            f"{self.status} volume={self.planned_volume}>"
        )
