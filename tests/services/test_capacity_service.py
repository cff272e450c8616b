"""
Vessel capacity checks.

current volume = sum of ACTIVE assignments (actual, else planned);
the check fails only when current + added exceeds capacity.
"""

from decimal import Decimal

import pytest

from cellar_kernel.models.tank_assignment import AssignmentStatus
from cellar_kernel.services.capacity_service import CapacityValidator


@pytest.fixture
def validator(session):
    return CapacityValidator(session)


class TestValidateCapacity:

    def test_empty_tank_fits(self, validator, make_tank):
        check = validator.validate_capacity(make_tank(capacity=Decimal("500")), Decimal("400"))
        assert check.ok
        assert check.current_volume == 0
        assert check.total_after == Decimal("400")
        assert check.free_volume == Decimal("500")

    def test_exactly_full_fits(self, validator, make_tank):
        assert validator.validate_capacity(make_tank(capacity=Decimal("500")), Decimal("500")).ok

    def test_over_by_smallest_unit_fails(self, validator, make_tank):
        check = validator.validate_capacity(make_tank(capacity=Decimal("500")), Decimal("500.001"))
        assert not check.ok

    def test_existing_active_volume_counted(self, validator, make_tank, make_lot_in_tank):
        tank = make_tank(capacity=Decimal("500"))
        make_lot_in_tank(tank, Decimal("200"))

        check = validator.validate_capacity(tank, Decimal("400"))

        assert not check.ok
        assert check.current_volume == Decimal("200")
        assert check.total_after == Decimal("600")
        assert check.capacity == Decimal("500")

    @pytest.mark.parametrize(
        "status",
        [AssignmentStatus.PLANNED, AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED],
    )
    def test_non_active_assignments_ignored(self, validator, make_tank, make_lot_in_tank, status):
        tank = make_tank(capacity=Decimal("500"))
        make_lot_in_tank(tank, Decimal("400"), status=status)
        assert validator.validate_capacity(tank, Decimal("500")).ok

    def test_actual_volume_preferred(self, validator, session, make_tank, make_lot_in_tank):
        tank = make_tank(capacity=Decimal("500"))
        _, assignment = make_lot_in_tank(tank, Decimal("450"))
        assignment.actual_volume = Decimal("100")
        session.commit()

        check = validator.validate_capacity(tank, Decimal("400"))

        assert check.ok
        assert check.current_volume == Decimal("100")

    @pytest.mark.parametrize("capacity", [None, Decimal("0")])
    def test_missing_capacity_rejects_any_volume(self, validator, make_tank, capacity):
        check = validator.validate_capacity(make_tank(capacity=capacity), Decimal("0.001"))
        assert not check.ok
        assert check.capacity == 0


class TestValidateAssignmentCapacity:

    def test_measures_target_assignment(self, validator, make_tank, make_lot_in_tank):
        tank = make_tank(capacity=Decimal("1000"))
        _, assignment = make_lot_in_tank(tank, Decimal("600"))

        assert validator.validate_assignment_capacity(assignment, tank, Decimal("400")).ok

        check = validator.validate_assignment_capacity(assignment, tank, Decimal("401"))
        assert not check.ok
        assert check.current_volume == Decimal("600")
        assert check.total_after == Decimal("1001")

    def test_planned_volume_counted_when_above_actual(
        self, validator, session, make_tank, make_lot_in_tank
    ):
        tank = make_tank(capacity=Decimal("500"))
        _, assignment = make_lot_in_tank(tank, Decimal("300"))
        assignment.actual_volume = Decimal("100")
        session.commit()

        check = validator.validate_assignment_capacity(assignment, tank, Decimal("250"))

        assert not check.ok
        assert check.current_volume == Decimal("300")
        assert check.total_after == Decimal("550")

    def test_actual_volume_counted_when_above_planned(
        self, validator, session, make_tank, make_lot_in_tank
    ):
        tank = make_tank(capacity=Decimal("500"))
        _, assignment = make_lot_in_tank(tank, Decimal("200"))
        assignment.actual_volume = Decimal("300")
        session.commit()

        check = validator.validate_assignment_capacity(assignment, tank, Decimal("250"))

        assert not check.ok
        assert check.current_volume == Decimal("300")
