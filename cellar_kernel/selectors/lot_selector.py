"""
Module: cellar_kernel.selectors.lot_selector
Responsibility: Read side of the lineage store.  Tenant-scoped lot lookup,
    the live (PLANNED/ACTIVE) vessel assignment of a lot, and the full
    lineage view of a lot for reporting consumers.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, select

from cellar_kernel.db.types import enum_value
from cellar_kernel.domain.results import AssignmentSummary, LotSummary
from cellar_kernel.models.batch import Batch
from cellar_kernel.models.lot import Lot, LotBatch
from cellar_kernel.models.tank import Tank
from cellar_kernel.models.tank_assignment import AssignmentStatus, TankAssignment
from cellar_kernel.models.transfer import Transfer
from cellar_kernel.selectors.base import BaseSelector

LIVE_ASSIGNMENT_STATUSES = (AssignmentStatus.ACTIVE.value, AssignmentStatus.PLANNED.value)


@dataclass(frozen=True)
class BatchContribution:
    batch_id: UUID
    batch_number: str
    volume_contribution: Decimal
    batch_percentage: Decimal


@dataclass(frozen=True)
class TransferSummary:
    id: UUID
    transfer_code: str
    transfer_type: str
    source_tank_id: UUID | None
    dest_tank_id: UUID
    source_lot_id: UUID | None
    dest_lot_id: UUID
    source_batch_id: UUID | None
    volume: Decimal
    status: str
    executed_at: datetime | None


@dataclass(frozen=True)
class LotLineage:
    """A lot with its parent, children, batch makeup, vessels and transfers."""

    lot: LotSummary
    parent: LotSummary | None
    children: tuple[LotSummary, ...]
    contributions: tuple[BatchContribution, ...]
    assignments: tuple[AssignmentSummary, ...]
    transfers: tuple[TransferSummary, ...]

    @property
    def total_percentage(self) -> Decimal:
        return sum((c.batch_percentage for c in self.contributions), Decimal("0"))

    @property
    def total_contribution(self) -> Decimal:
        return sum((c.volume_contribution for c in self.contributions), Decimal("0"))


class LotSelector(BaseSelector):
    """Lineage store queries."""

    def get_lot(self, tenant_id: UUID, lot_id: UUID) -> Lot | None:
        return self.session.execute(
            select(Lot).where(Lot.id == lot_id, Lot.tenant_id == tenant_id)
        ).scalar_one_or_none()

    def get_live_assignment(self, lot_id: UUID, lock: bool = False) -> TankAssignment | None:
        """
        The lot's current PLANNED/ACTIVE vessel assignment.

        ACTIVE wins over PLANNED; among equals the latest planned start wins.
        With ``lock=True`` the row is locked FOR UPDATE.
        """
        stmt = (
            select(TankAssignment)
            .where(
                TankAssignment.lot_id == lot_id,
                TankAssignment.status.in_(LIVE_ASSIGNMENT_STATUSES),
            )
            .order_by(
                case((TankAssignment.status == AssignmentStatus.ACTIVE.value, 0), else_=1),
                TankAssignment.planned_start.desc(),
            )
            .limit(1)
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_children(self, tenant_id: UUID, lot_id: UUID) -> list[Lot]:
        return list(
            self.session.execute(
                select(Lot)
                .where(Lot.parent_lot_id == lot_id, Lot.tenant_id == tenant_id)
                .order_by(Lot.lot_code)
            ).scalars()
        )

    def get_contributions(self, lot_id: UUID) -> list[BatchContribution]:
        rows = self.session.execute(
            select(LotBatch, Batch.batch_number)
            .join(Batch, Batch.id == LotBatch.batch_id)
            .where(LotBatch.lot_id == lot_id)
            .order_by(Batch.batch_number)
        ).all()
        return [
            BatchContribution(
                batch_id=link.batch_id,
                batch_number=batch_number,
                volume_contribution=link.volume_contribution,
                batch_percentage=link.batch_percentage,
            )
            for link, batch_number in rows
        ]

    def get_lineage(self, tenant_id: UUID, lot_id: UUID) -> LotLineage | None:
        lot = self.get_lot(tenant_id, lot_id)
        if lot is None:
            return None

        parent = None
        if lot.parent_lot_id is not None:
            parent_lot = self.get_lot(tenant_id, lot.parent_lot_id)
            parent = LotSummary.from_model(parent_lot) if parent_lot else None

        assignment_rows = self.session.execute(
            select(TankAssignment, Tank.name)
            .join(Tank, Tank.id == TankAssignment.tank_id)
            .where(TankAssignment.lot_id == lot_id)
            .order_by(TankAssignment.planned_start)
        ).all()

        transfers = self.session.execute(
            select(Transfer)
            .where(
                Transfer.tenant_id == tenant_id,
                (Transfer.dest_lot_id == lot_id) | (Transfer.source_lot_id == lot_id),
            )
            .order_by(Transfer.transfer_code)
        ).scalars()

        return LotLineage(
            lot=LotSummary.from_model(lot),
            parent=parent,
            children=tuple(
                LotSummary.from_model(c) for c in self.get_children(tenant_id, lot_id)
            ),
            contributions=tuple(self.get_contributions(lot_id)),
            assignments=tuple(
                AssignmentSummary.from_model(a, tank_name) for a, tank_name in assignment_rows
            ),
            transfers=tuple(
                TransferSummary(
                    id=t.id,
                    transfer_code=t.transfer_code,
                    transfer_type=enum_value(t.transfer_type),
                    source_tank_id=t.source_tank_id,
                    dest_tank_id=t.dest_tank_id,
                    source_lot_id=t.source_lot_id,
                    dest_lot_id=t.dest_lot_id,
                    source_batch_id=t.source_batch_id,
                    volume=t.volume,
                    status=enum_value(t.status),
                    executed_at=t.executed_at,
                )
                for t in transfers
            ),
        )
