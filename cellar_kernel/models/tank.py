"""
Module: cellar_kernel.models.tank
Responsibility: ORM persistence for vessels (tanks), the exclusive physical
    resources that lots are assigned to.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Tank name is unique per tenant (uq_tank_tenant_name).
    - capacity may be NULL; the capacity validator treats NULL as 0 so any
      positive addition to such a vessel is rejected.
    - current_batch_id / current_batch_number are denormalized display
      bookkeeping.  They are written after the allocation commit and are
      never read by any allocation check.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cellar_kernel.db.base import Base, UUIDString


class TankStatus(str, Enum):
    """Equipment status of a vessel."""

    OPERATIONAL = "OPERATIONAL"
    IN_USE = "IN_USE"
    NEEDS_CIP = "NEEDS_CIP"
    CIP = "CIP"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


class Tank(Base):
    """
    A fermentation / conditioning vessel.

    Contract:
        Owned by the facility.  Assignments reference tanks, they never own
        them.  The allocation engine only changes status and the display
        fields, and only after its own transaction has committed.

    Non-goals:
        - This model does NOT store current volume; that is derived from
          ACTIVE TankAssignment rows by the capacity validator.
    """

    __tablename__ = "tanks"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_tank_tenant_name"),
        Index("idx_tank_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    capacity: Mapped[Decimal | None] = mapped_column(Numeric(18, 3), nullable=True)

    status: Mapped[TankStatus] = mapped_column(
        String(20),
        default=TankStatus.OPERATIONAL,
        nullable=False,
    )

    # Display bookkeeping, written post-commit by TankDisplayService
    current_batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    current_batch_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    @property
    def effective_capacity(self) -> Decimal:
        """Capacity with NULL treated as zero."""
        return self.capacity if self.capacity is not None else Decimal("0")

    def __repr__(self) -> str:
        return f"<Tank {self.name}: capacity={self.capacity} status={self.status}>"
