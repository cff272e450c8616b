"""
Module: cellar_kernel.models.transfer
Responsibility: ORM persistence for volume movements between vessels/lots
    recorded by the split and blend workflows.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: a transfer is never updated after it is written.
    - transfer_code is unique per tenant.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cellar_kernel.db.base import TrackedBase, UUIDString


class TransferType(str, Enum):
    SPLIT = "SPLIT"
    BLEND = "BLEND"


class TransferStatus(str, Enum):
    PLANNED = "PLANNED"
    COMPLETED = "COMPLETED"


class Transfer(TrackedBase):
    """
    Audit record of a volume movement.

    created_by_id is the actor who performed the transfer.  For blends the
    source lot and vessel are unset: the volume comes from a batch, which
    is recorded in ``source_batch_id``.
    """

    __tablename__ = "transfers"

    __table_args__ = (
        UniqueConstraint("tenant_id", "transfer_code", name="uq_transfer_tenant_code"),
        Index("idx_transfer_dest_lot", "dest_lot_id"),
        Index("idx_transfer_source_lot", "source_lot_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    transfer_code: Mapped[str] = mapped_column(String(64), nullable=False)

    transfer_type: Mapped[TransferType] = mapped_column(String(20), nullable=False)

    source_tank_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("tanks.id"), nullable=True
    )

    dest_tank_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tanks.id"), nullable=False
    )

    source_lot_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("lots.id"), nullable=True
    )

    dest_lot_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("lots.id"), nullable=False
    )

    source_batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("batches.id"), nullable=True
    )

    volume: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)

    planned_at: Mapped[datetime] = mapped_column(nullable=False)

    executed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    status: Mapped[TransferStatus] = mapped_column(
        String(20),
        default=TransferStatus.COMPLETED,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return f"<Transfer {self.transfer_code}: {self.transfer_type} {self.volume}>"
