"""
CapacityValidator -- would adding volume overflow a vessel?

current volume = sum over the vessel's ACTIVE assignments of actual volume,
falling back to planned volume.  total_after = current + added.  The check
fails when total_after > capacity.  A vessel with no recorded capacity has
capacity 0, so any positive addition fails.

``validate_assignment_capacity`` is the blend re-check: it measures the
target assignment's own volume plus the blended volume against the vessel.
The assignment's volume is the larger of its planned and actual volume, so
the field a blend increments is always the field that is checked.
"""

from decimal import Decimal

from sqlalchemy.orm import Session

from cellar_kernel.domain.results import CapacityCheck
from cellar_kernel.logging_config import get_logger
from cellar_kernel.models.tank import Tank
from cellar_kernel.models.tank_assignment import TankAssignment
from cellar_kernel.selectors.tank_selector import TankSelector

logger = get_logger("services.capacity")


class CapacityValidator:
    """Vessel capacity checks.  Read-only."""

    def __init__(self, session: Session):
        self._tanks = TankSelector(session)

    def _check(self, tank: Tank, current: Decimal, added: Decimal) -> CapacityCheck:
        capacity = tank.effective_capacity
        total_after = current + added
        check = CapacityCheck(
            ok=total_after <= capacity,
            tank_id=tank.id,
            tank_name=tank.name,
            capacity=capacity,
            current_volume=current,
            added_volume=added,
            total_after=total_after,
        )
        logger.info(
            "tank_capacity_checked",
            extra={
                "tank_id": str(tank.id),
                "tank_name": tank.name,
                "capacity": capacity,
                "current_volume": current,
                "added_volume": added,
                "total_after": total_after,
                "ok": check.ok,
            },
        )
        return check

    def validate_capacity(self, tank: Tank, proposed_added_volume: Decimal) -> CapacityCheck:
        current = self._tanks.current_volume(tank.id)
        return self._check(tank, current, proposed_added_volume)

    def validate_assignment_capacity(
        self,
        assignment: TankAssignment,
        tank: Tank,
        proposed_added_volume: Decimal,
    ) -> CapacityCheck:
        current = max(assignment.planned_volume, assignment.occupied_volume)
        return self._check(tank, current, proposed_added_volume)
