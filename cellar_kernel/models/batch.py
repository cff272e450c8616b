"""
Module: cellar_kernel.models.batch
Responsibility: ORM persistence for production batches and the two
    append-only records the allocation engine attaches to them: gravity
    readings and timeline events.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Batches are created upstream.  The allocation engine only moves a
      batch to FERMENTING.
    - GravityReading and BatchTimelineEvent rows are append-only.  Nothing
      in this package updates or deletes them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cellar_kernel.db.base import Base, UUIDString


class BatchStatus(str, Enum):
    """Lifecycle status of a production batch."""

    PLANNED = "PLANNED"
    BREWING = "BREWING"
    FERMENTING = "FERMENTING"
    CONDITIONING = "CONDITIONING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TimelineEventType(str, Enum):
    """Kinds of batch timeline entries written by the allocation engine."""

    FERMENTATION_STARTED = "FERMENTATION_STARTED"
    NOTE = "NOTE"


class Batch(Base):
    """
    An in-process production unit.

    recipe_name, style and yeast_strain are the recipe attributes the blend
    compatibility policy compares.  Recipe management itself lives upstream.
    """

    __tablename__ = "batches"

    __table_args__ = (
        UniqueConstraint("tenant_id", "batch_number", name="uq_batch_tenant_number"),
        Index("idx_batch_tenant_status", "tenant_id", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    batch_number: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[BatchStatus] = mapped_column(
        String(20),
        default=BatchStatus.PLANNED,
        nullable=False,
    )

    recipe_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    style: Mapped[str | None] = mapped_column(String(100), nullable=True)

    yeast_strain: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Batch {self.batch_number}: {self.status}>"


class GravityReading(Base):
    """Specific gravity measurement attached to a batch.  Append-only."""

    __tablename__ = "gravity_readings"

    __table_args__ = (
        Index("idx_gravity_batch_recorded", "batch_id", "recorded_at"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("batches.id"),
        nullable=False,
    )

    gravity: Mapped[Decimal] = mapped_column(Numeric(8, 4), nullable=False)

    # Degrees Celsius
    temperature: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)

    recorded_at: Mapped[datetime] = mapped_column(nullable=False)

    recorded_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)


class BatchTimelineEvent(Base):
    """
    Audit / timeline entry on a batch.  Append-only.

    ``data`` holds the structured payload (lot id, vessel ids, volumes) that
    reporting layers render.
    """

    __tablename__ = "batch_timeline_events"

    __table_args__ = (
        Index("idx_timeline_batch_created", "batch_id", "created_at"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("batches.id"),
        nullable=False,
    )

    event_type: Mapped[TimelineEventType] = mapped_column(String(40), nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
