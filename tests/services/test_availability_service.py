"""
Vessel availability over a half-open planned window.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from cellar_config.schema import AllocationConfig
from cellar_kernel.domain.requests import TankAllocation
from cellar_kernel.models.tank import TankStatus
from cellar_kernel.models.tank_assignment import AssignmentStatus
from cellar_kernel.services.availability_service import NOT_FOUND, AvailabilityChecker


@pytest.fixture
def checker(session, allocation_config):
    return AvailabilityChecker(session, allocation_config)


def _alloc(tank, volume="100"):
    return TankAllocation(tank_id=tank.id if hasattr(tank, "id") else tank, volume=Decimal(volume))


class TestAvailability:

    def test_free_tank_available(self, checker, make_tank, tenant_id, requested):
        tank = make_tank()
        report = checker.check_availability(tenant_id, [_alloc(tank)], *requested)
        assert report.all_available
        assert report.per_tank[tank.id].tank_name == tank.name
        assert report.unavailable() == []

    def test_overlapping_active_assignment_conflicts(
        self, checker, make_tank, make_lot_in_tank, tenant_id, requested, window
    ):
        tank = make_tank()
        start, end = window(-3, 3)
        lot, assignment = make_lot_in_tank(tank, Decimal("200"), planned_start=start, planned_end=end)

        report = checker.check_availability(tenant_id, [_alloc(tank)], *requested)

        assert not report.all_available
        conflict = report.per_tank[tank.id].conflicting_assignment
        assert conflict.assignment_id == assignment.id
        assert conflict.lot_id == lot.id
        assert conflict.lot_code == lot.lot_code
        assert conflict.status == "ACTIVE"
        assert conflict.phase == "FERMENTATION"

    def test_planned_assignment_blocks(
        self, checker, make_tank, make_lot_in_tank, tenant_id, requested
    ):
        tank = make_tank()
        make_lot_in_tank(tank, Decimal("200"), status=AssignmentStatus.PLANNED)
        report = checker.check_availability(tenant_id, [_alloc(tank)], *requested)
        assert not report.all_available

    @pytest.mark.parametrize("status", [AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED])
    def test_finished_assignment_does_not_block(
        self, checker, make_tank, make_lot_in_tank, tenant_id, requested, status
    ):
        tank = make_tank()
        make_lot_in_tank(tank, Decimal("200"), status=status)
        report = checker.check_availability(tenant_id, [_alloc(tank)], *requested)
        assert report.all_available

    def test_adjacent_windows_do_not_overlap(
        self, checker, make_tank, make_lot_in_tank, tenant_id, requested, window
    ):
        tank = make_tank()
        start, end = requested
        before_start, _ = window(-10, 0)
        make_lot_in_tank(tank, Decimal("200"), planned_start=before_start, planned_end=start)
        _, after_end = window(14, 20)
        make_lot_in_tank(tank, Decimal("200"), planned_start=end, planned_end=after_end)

        report = checker.check_availability(tenant_id, [_alloc(tank)], start, end)

        assert report.all_available

    def test_contained_window_conflicts(
        self, checker, make_tank, make_lot_in_tank, tenant_id, requested, window
    ):
        tank = make_tank()
        start, end = window(2, 4)
        make_lot_in_tank(tank, Decimal("200"), planned_start=start, planned_end=end)
        report = checker.check_availability(tenant_id, [_alloc(tank)], *requested)
        assert not report.all_available

    @pytest.mark.parametrize(
        "status",
        [TankStatus.MAINTENANCE, TankStatus.CIP, TankStatus.NEEDS_CIP, TankStatus.OUT_OF_SERVICE],
    )
    def test_unavailable_tank_status(self, checker, make_tank, tenant_id, requested, status):
        tank = make_tank(status=status)
        report = checker.check_availability(tenant_id, [_alloc(tank)], *requested)
        availability = report.per_tank[tank.id]
        assert not availability.available
        assert availability.conflicting_assignment.status == status.value
        assert availability.conflicting_assignment.assignment_id is None

    def test_status_set_is_configurable(self, session, make_tank, tenant_id, requested):
        config = AllocationConfig(unavailable_tank_statuses=("OUT_OF_SERVICE",))
        tank = make_tank(status=TankStatus.NEEDS_CIP)
        report = AvailabilityChecker(session, config).check_availability(
            tenant_id, [_alloc(tank)], *requested
        )
        assert report.all_available

    def test_unknown_tank_not_found(self, checker, tenant_id, requested):
        missing = uuid4()
        report = checker.check_availability(tenant_id, [_alloc(missing)], *requested)
        assert report.per_tank[missing].conflicting_assignment.status == NOT_FOUND

    def test_other_tenants_tank_not_found(
        self, checker, make_tank, other_tenant_id, tenant_id, requested
    ):
        tank = make_tank(tenant=other_tenant_id)
        report = checker.check_availability(tenant_id, [_alloc(tank)], *requested)
        assert report.per_tank[tank.id].conflicting_assignment.status == NOT_FOUND

    def test_report_covers_every_tank(
        self, checker, make_tank, make_lot_in_tank, tenant_id, requested
    ):
        free = make_tank()
        busy = make_tank()
        make_lot_in_tank(busy, Decimal("100"))

        report = checker.check_availability(
            tenant_id, [_alloc(free), _alloc(busy)], *requested
        )

        assert set(report.per_tank) == {free.id, busy.id}
        assert [a.tank_id for a in report.unavailable()] == [busy.id]

    def test_preloaded_tanks_used(self, checker, make_tank, tenant_id, requested):
        tank = make_tank()
        report = checker.check_availability(
            tenant_id, [_alloc(tank)], *requested, tanks={tank.id: tank}
        )
        assert report.all_available
