"""
AvailabilityChecker -- is each requested vessel free in the planned window?

Per vessel, in order:
    1. vessel missing for the tenant         -> unavailable, status NOT_FOUND
    2. vessel status in the unavailable set  -> unavailable, that status
    3. an assignment with a blocking status overlaps [start, end)
                                             -> unavailable, conflict detail

Read-only.  Conflicts are reported as data, never raised.  The orchestrator
skips this check for a blend into an existing lot, where the target lot's
own occupancy of the vessel is expected.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from cellar_config import AllocationConfig, get_active_config
from cellar_kernel.db.types import enum_value
from cellar_kernel.domain.requests import TankAllocation
from cellar_kernel.domain.results import (
    AvailabilityReport,
    ConflictingAssignment,
    TankAvailability,
)
from cellar_kernel.logging_config import get_logger
from cellar_kernel.models.tank import Tank
from cellar_kernel.selectors.tank_selector import TankSelector

logger = get_logger("services.availability")

NOT_FOUND = "NOT_FOUND"


class AvailabilityChecker:
    """Vessel window-conflict checks."""

    def __init__(self, session: Session, config: AllocationConfig | None = None):
        self._config = config if config is not None else get_active_config()
        self._tanks = TankSelector(session)

    def check_tank(
        self,
        tank_id: UUID,
        tank: Tank | None,
        planned_start: datetime,
        planned_end: datetime,
    ) -> TankAvailability:
        if tank is None:
            return TankAvailability(
                tank_id=tank_id,
                available=False,
                conflicting_assignment=ConflictingAssignment(
                    assignment_id=None,
                    lot_id=None,
                    lot_code=None,
                    phase=None,
                    planned_start=planned_start,
                    planned_end=planned_end,
                    status=NOT_FOUND,
                ),
            )

        status = enum_value(tank.status)
        if status in self._config.unavailable_tank_statuses:
            return TankAvailability(
                tank_id=tank_id,
                available=False,
                tank_name=tank.name,
                conflicting_assignment=ConflictingAssignment(
                    assignment_id=None,
                    lot_id=None,
                    lot_code=None,
                    phase=None,
                    planned_start=planned_start,
                    planned_end=planned_end,
                    status=status,
                ),
            )

        overlapping = self._tanks.overlapping_assignments(
            tank_id,
            planned_start,
            planned_end,
            self._config.blocking_assignment_statuses,
        )
        if overlapping:
            existing, lot_code = overlapping[0]
            return TankAvailability(
                tank_id=tank_id,
                available=False,
                tank_name=tank.name,
                conflicting_assignment=ConflictingAssignment(
                    assignment_id=existing.id,
                    lot_id=existing.lot_id,
                    lot_code=lot_code,
                    phase=enum_value(existing.phase),
                    planned_start=existing.planned_start,
                    planned_end=existing.planned_end,
                    status=enum_value(existing.status),
                ),
            )

        return TankAvailability(tank_id=tank_id, available=True, tank_name=tank.name)

    def check_availability(
        self,
        tenant_id: UUID,
        allocations: Iterable[TankAllocation],
        planned_start: datetime,
        planned_end: datetime,
        tanks: Mapping[UUID, Tank] | None = None,
    ) -> AvailabilityReport:
        """
        Check every requested vessel.

        ``tanks`` may carry vessels the caller already loaded (and locked);
        anything not in it is looked up for the tenant.
        """
        tank_ids = [a.tank_id for a in allocations]
        known = dict(tanks) if tanks is not None else {}
        missing = [t for t in tank_ids if t not in known]
        if missing:
            known.update(self._tanks.get_tanks(tenant_id, missing))

        per_tank = {
            tank_id: self.check_tank(tank_id, known.get(tank_id), planned_start, planned_end)
            for tank_id in tank_ids
        }
        report = AvailabilityReport(
            all_available=all(a.available for a in per_tank.values()),
            per_tank=per_tank,
        )
        logger.info(
            "tank_availability_checked",
            extra={
                "tank_count": len(per_tank),
                "all_available": report.all_available,
                "unavailable_tank_ids": [str(a.tank_id) for a in report.unavailable()],
            },
        )
        return report
