"""ORM models for the cellar kernel."""

from cellar_kernel.models.batch import (
    Batch,
    BatchStatus,
    BatchTimelineEvent,
    GravityReading,
    TimelineEventType,
)
from cellar_kernel.models.lot import Lot, LotBatch, LotPhase, LotStatus
from cellar_kernel.models.sequence_counter import SequenceCounter
from cellar_kernel.models.tank import Tank, TankStatus
from cellar_kernel.models.tank_assignment import AssignmentStatus, TankAssignment
from cellar_kernel.models.transfer import Transfer, TransferStatus, TransferType

__all__ = [
    "Tank",
    "TankStatus",
    "Batch",
    "BatchStatus",
    "GravityReading",
    "BatchTimelineEvent",
    "TimelineEventType",
    "Lot",
    "LotBatch",
    "LotPhase",
    "LotStatus",
    "TankAssignment",
    "AssignmentStatus",
    "Transfer",
    "TransferType",
    "TransferStatus",
    "SequenceCounter",
]
