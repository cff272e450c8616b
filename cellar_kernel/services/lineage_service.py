"""
LineageService -- write side of the lineage store.

Responsibility:
    Creates lots, batch links, vessel assignments, transfers, gravity
    readings and timeline events, and performs the few in-place updates the
    allocation workflows are allowed: batch -> FERMENTING, blend markers on
    a lot, and adding blended volume to a lot and its assignment.

Architecture position:
    Kernel > Services.  Called only by the allocation workflows, inside the
    orchestrator's transaction.

Invariants enforced:
    - Every write is flushed immediately so rows reach the database in
      dependency order (lot before its children, links and transfers).
    - Transfers, gravity readings and timeline events are only ever
      inserted.
    - Lots are never deleted.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from cellar_config import AllocationConfig, get_active_config
from cellar_kernel.domain.clock import Clock, SystemClock
from cellar_kernel.logging_config import get_logger
from cellar_kernel.models.batch import (
    Batch,
    BatchStatus,
    BatchTimelineEvent,
    GravityReading,
    TimelineEventType,
)
from cellar_kernel.models.lot import Lot, LotBatch, LotPhase, LotStatus
from cellar_kernel.models.tank_assignment import AssignmentStatus, TankAssignment
from cellar_kernel.models.transfer import Transfer, TransferStatus, TransferType
from cellar_kernel.services.base import BaseService

logger = get_logger("services.lineage")


class LineageService(BaseService):
    """Flush-only writes for lots and everything hanging off them."""

    def __init__(
        self,
        session: Session,
        actor_id: UUID,
        clock: Clock | None = None,
        config: AllocationConfig | None = None,
    ):
        super().__init__(session)
        self._actor_id = actor_id
        self._clock = clock or SystemClock()
        self._config = config if config is not None else get_active_config()

    def _add(self, entity):
        self.session.add(entity)
        self.session.flush()
        return entity

    # -- lots -----------------------------------------------------------

    def create_lot(
        self,
        tenant_id: UUID,
        lot_code: str,
        planned_volume: Decimal,
        notes: str | None = None,
        parent_lot_id: UUID | None = None,
        is_blend_result: bool = False,
        is_blend_target: bool = False,
        phase: LotPhase = LotPhase.FERMENTATION,
    ) -> Lot:
        lot = self._add(
            Lot(
                tenant_id=tenant_id,
                lot_code=lot_code,
                phase=phase,
                status=LotStatus.ACTIVE,
                planned_volume=planned_volume,
                parent_lot_id=parent_lot_id,
                is_blend_result=is_blend_result,
                is_blend_target=is_blend_target,
                notes=notes,
                created_by_id=self._actor_id,
            )
        )
        logger.info(
            "lot_created",
            extra={
                "lot_id": str(lot.id),
                "lot_code": lot_code,
                "planned_volume": planned_volume,
                "parent_lot_id": str(parent_lot_id) if parent_lot_id else None,
                "is_blend_result": is_blend_result,
            },
        )
        return lot

    def link_batch(
        self,
        lot: Lot,
        batch: Batch,
        volume_contribution: Decimal,
        batch_percentage: Decimal,
    ) -> LotBatch:
        return self._add(
            LotBatch(
                lot_id=lot.id,
                batch_id=batch.id,
                volume_contribution=volume_contribution,
                batch_percentage=batch_percentage,
            )
        )

    def mark_blended(self, lot: Lot) -> None:
        lot.is_blend_result = True
        lot.blended_at = self._clock.now()
        lot.updated_by_id = self._actor_id
        self.session.flush()

    # -- assignments ----------------------------------------------------

    def create_assignment(
        self,
        tenant_id: UUID,
        tank_id: UUID,
        lot: Lot,
        planned_start: datetime,
        planned_end: datetime,
        planned_volume: Decimal,
    ) -> TankAssignment:
        assignment = self._add(
            TankAssignment(
                tenant_id=tenant_id,
                tank_id=tank_id,
                lot_id=lot.id,
                planned_start=planned_start,
                planned_end=planned_end,
                planned_volume=planned_volume,
                phase=lot.phase,
                status=AssignmentStatus.ACTIVE,
                created_by_id=self._actor_id,
            )
        )
        logger.info(
            "tank_assignment_created",
            extra={
                "assignment_id": str(assignment.id),
                "tank_id": str(tank_id),
                "lot_id": str(lot.id),
                "planned_volume": planned_volume,
            },
        )
        return assignment

    def add_volume(self, lot: Lot, assignment: TankAssignment, volume: Decimal) -> None:
        """
        Add blended volume to the target lot and its assignment.

        A recorded actual volume grows with the planned one, so the vessel's
        current volume reflects the blend.
        """
        assignment.planned_volume = assignment.planned_volume + volume
        if assignment.actual_volume is not None:
            assignment.actual_volume = assignment.actual_volume + volume
        assignment.updated_by_id = self._actor_id
        lot.planned_volume = lot.planned_volume + volume
        lot.updated_by_id = self._actor_id
        self.session.flush()
        logger.info(
            "tank_assignment_volume_incremented",
            extra={
                "assignment_id": str(assignment.id),
                "lot_id": str(lot.id),
                "added_volume": volume,
                "planned_volume": assignment.planned_volume,
                "actual_volume": assignment.actual_volume,
            },
        )

    # -- transfers ------------------------------------------------------

    def record_transfer(
        self,
        tenant_id: UUID,
        transfer_code: str,
        transfer_type: TransferType,
        dest_tank_id: UUID,
        dest_lot_id: UUID,
        volume: Decimal,
        source_tank_id: UUID | None = None,
        source_lot_id: UUID | None = None,
        source_batch_id: UUID | None = None,
        notes: str | None = None,
    ) -> Transfer:
        now = self._clock.now()
        return self._add(
            Transfer(
                tenant_id=tenant_id,
                transfer_code=transfer_code,
                transfer_type=transfer_type,
                source_tank_id=source_tank_id,
                dest_tank_id=dest_tank_id,
                source_lot_id=source_lot_id,
                dest_lot_id=dest_lot_id,
                source_batch_id=source_batch_id,
                volume=volume,
                planned_at=now,
                executed_at=now,
                status=TransferStatus.COMPLETED,
                notes=notes,
                created_by_id=self._actor_id,
            )
        )

    # -- batches --------------------------------------------------------

    def start_fermenting(self, batch: Batch) -> None:
        batch.status = BatchStatus.FERMENTING
        self.session.flush()

    def append_timeline(
        self,
        batch: Batch,
        event_type: TimelineEventType,
        title: str,
        description: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> BatchTimelineEvent:
        return self._add(
            BatchTimelineEvent(
                batch_id=batch.id,
                event_type=event_type,
                title=title,
                description=description,
                data=data,
                created_at=self._clock.now(),
                created_by_id=self._actor_id,
            )
        )

    def record_gravity(
        self,
        batch: Batch,
        gravity: Decimal,
        temperature: Decimal | None = None,
        notes: str | None = None,
    ) -> GravityReading:
        if temperature is None:
            temperature = self._config.default_gravity_temperature
        return self._add(
            GravityReading(
                batch_id=batch.id,
                gravity=gravity,
                temperature=temperature,
                recorded_at=self._clock.now(),
                recorded_by_id=self._actor_id,
                notes=notes,
            )
        )
