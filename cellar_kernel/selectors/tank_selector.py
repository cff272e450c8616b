"""
Module: cellar_kernel.selectors.tank_selector
Responsibility: Resource registry.  Vessel lookups by id within a tenant,
    vessel row locking for the allocation path, and the occupancy view
    (capacity, volume held by ACTIVE assignments, free volume).
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every lookup is tenant-scoped: a vessel of another tenant is "not found".
    - lock_tanks() locks rows in ascending id order so two requests touching
      overlapping vessel sets cannot deadlock.
    - Current volume is derived from ACTIVE assignments (actual volume,
      falling back to planned).  There is no stored running total.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from cellar_kernel.db.types import enum_value
from cellar_kernel.models.lot import Lot
from cellar_kernel.models.tank import Tank
from cellar_kernel.models.tank_assignment import AssignmentStatus, TankAssignment
from cellar_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class OccupyingAssignment:
    assignment_id: UUID
    lot_id: UUID
    lot_code: str
    phase: str
    volume: Decimal
    planned_start: datetime
    planned_end: datetime


@dataclass(frozen=True)
class TankOccupancy:
    """Point-in-time occupancy of one vessel."""

    tank_id: UUID
    tank_name: str
    status: str
    capacity: Decimal
    current_volume: Decimal
    active_assignments: tuple[OccupyingAssignment, ...]

    @property
    def free_volume(self) -> Decimal:
        return max(self.capacity - self.current_volume, Decimal("0"))

    @property
    def is_occupied(self) -> bool:
        return bool(self.active_assignments)


class TankSelector(BaseSelector):
    """Vessel registry queries."""

    def get_tank(self, tenant_id: UUID, tank_id: UUID) -> Tank | None:
        return self.session.execute(
            select(Tank).where(Tank.id == tank_id, Tank.tenant_id == tenant_id)
        ).scalar_one_or_none()

    def get_tanks(self, tenant_id: UUID, tank_ids: Iterable[UUID]) -> dict[UUID, Tank]:
        ids = set(tank_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(Tank).where(Tank.id.in_(ids), Tank.tenant_id == tenant_id)
        ).scalars()
        return {tank.id: tank for tank in rows}

    def lock_tanks(self, tenant_id: UUID, tank_ids: Iterable[UUID]) -> dict[UUID, Tank]:
        """
        Load and row-lock the tenant's vessels among ``tank_ids``.

        Missing ids are simply absent from the result.  The lock is held
        until the caller's transaction ends.
        """
        ids = sorted(set(tank_ids), key=str)
        if not ids:
            return {}
        rows = self.session.execute(
            select(Tank)
            .where(Tank.id.in_(ids), Tank.tenant_id == tenant_id)
            .order_by(Tank.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars()
        return {tank.id: tank for tank in rows}

    def active_assignments(self, tank_id: UUID) -> list[TankAssignment]:
        return list(
            self.session.execute(
                select(TankAssignment)
                .where(
                    TankAssignment.tank_id == tank_id,
                    TankAssignment.status == AssignmentStatus.ACTIVE.value,
                )
                .order_by(TankAssignment.planned_start)
            ).scalars()
        )

    def current_volume(self, tank_id: UUID) -> Decimal:
        """Volume held by ACTIVE assignments (actual, else planned)."""
        return sum(
            (a.occupied_volume for a in self.active_assignments(tank_id)),
            Decimal("0"),
        )

    def overlapping_assignments(
        self,
        tank_id: UUID,
        planned_start: datetime,
        planned_end: datetime,
        statuses: Iterable[str],
    ) -> list[tuple[TankAssignment, str]]:
        """
        Assignments on the vessel whose window overlaps [start, end).

        Half-open overlap: start < existing_end AND end > existing_start.
        Returns (assignment, lot_code) pairs, earliest first.
        """
        rows = self.session.execute(
            select(TankAssignment, Lot.lot_code)
            .join(Lot, Lot.id == TankAssignment.lot_id)
            .where(
                TankAssignment.tank_id == tank_id,
                TankAssignment.status.in_([enum_value(s) for s in statuses]),
                TankAssignment.planned_start < planned_end,
                TankAssignment.planned_end > planned_start,
            )
            .order_by(TankAssignment.planned_start)
        ).all()
        return [(assignment, lot_code) for assignment, lot_code in rows]

    def get_occupancy(self, tenant_id: UUID, tank_id: UUID) -> TankOccupancy | None:
        tank = self.get_tank(tenant_id, tank_id)
        if tank is None:
            return None
        rows = self.session.execute(
            select(TankAssignment, Lot.lot_code)
            .join(Lot, Lot.id == TankAssignment.lot_id)
            .where(
                TankAssignment.tank_id == tank_id,
                TankAssignment.status == AssignmentStatus.ACTIVE.value,
            )
            .order_by(TankAssignment.planned_start)
        ).all()
        active = tuple(
            OccupyingAssignment(
                assignment_id=a.id,
                lot_id=a.lot_id,
                lot_code=lot_code,
                phase=enum_value(a.phase),
                volume=a.occupied_volume,
                planned_start=a.planned_start,
                planned_end=a.planned_end,
            )
            for a, lot_code in rows
        )
        return TankOccupancy(
            tank_id=tank.id,
            tank_name=tank.name,
            status=enum_value(tank.status),
            capacity=tank.effective_capacity,
            current_volume=sum((o.volume for o in active), Decimal("0")),
            active_assignments=active,
        )
