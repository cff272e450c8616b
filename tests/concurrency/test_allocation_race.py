"""
Concurrent fermentation starts against the same vessels.

Each thread gets its own session and orchestrator.  Vessel rows are locked
FOR UPDATE (BEGIN IMMEDIATE on SQLite) before any check runs, so requests
touching the same vessel serialize and the later one sees the earlier one's
assignment.

The main test session only sets up rows and reads results after every
thread has joined; querying from it while threads run would hold the
SQLite write lock.

Run with:
    pytest tests/concurrency/test_allocation_race.py -v
    DATABASE_URL=postgresql://... pytest tests/concurrency/test_allocation_race.py -v
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest
from sqlalchemy import func, select

from cellar_config.schema import AllocationConfig
from cellar_kernel.domain.clock import DeterministicClock
from cellar_kernel.models.lot import Lot
from cellar_kernel.models.tank_assignment import TankAssignment
from cellar_kernel.services.allocation_orchestrator import AllocationOrchestrator

pytestmark = [pytest.mark.slow_locks]


def race(session_factory, requests, tenant_id, actor_id):
    """Submit every request from its own thread, released together."""
    barrier = Barrier(len(requests), timeout=30)

    def submit(request):
        session = session_factory()
        orchestrator = AllocationOrchestrator(session, DeterministicClock(), AllocationConfig())
        barrier.wait()
        return orchestrator.start_fermentation(request, tenant_id, actor_id)

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(submit, requests))


class TestSameTankRace:

    def test_exactly_one_start_wins(
        self, session, session_factory, make_tank, make_batch, make_request,
        tenant_id, test_actor_id,
    ):
        num_threads = 6
        tank = make_tank(capacity=Decimal("1000"))
        requests = [make_request([make_batch()], [(tank, 400)]) for _ in range(num_threads)]

        results = race(session_factory, requests, tenant_id, test_actor_id)

        winners = [r for r in results if r.is_success]
        losers = [r for r in results if not r.is_success]
        assert len(winners) == 1
        assert {r.error.code for r in losers} == {"TANKS_UNAVAILABLE"}

        assert session.scalar(select(func.count()).select_from(Lot)) == 1
        assignments = session.execute(select(TankAssignment)).scalars().all()
        assert len(assignments) == 1
        assert assignments[0].lot_id == winners[0].lot.id

    def test_overlapping_splits_do_not_deadlock(
        self, session, session_factory, make_tank, make_batch, make_request,
        tenant_id, test_actor_id,
    ):
        tank_a, tank_b = make_tank(), make_tank()
        # Opposite allocation order; locks are still taken in id order
        requests = [
            make_request([make_batch()], [(tank_a, 300), (tank_b, 200)]),
            make_request([make_batch()], [(tank_b, 300), (tank_a, 200)]),
        ]

        results = race(session_factory, requests, tenant_id, test_actor_id)

        assert sorted(r.is_success for r in results) == [False, True]
        loser = next(r for r in results if not r.is_success)
        assert loser.error.code == "TANKS_UNAVAILABLE"
        assert session.scalar(select(func.count()).select_from(TankAssignment)) == 2


class TestConcurrentCodeAllocation:

    def test_lot_codes_unique_across_threads(
        self, session, session_factory, make_tank, make_batch, make_request,
        tenant_id, test_actor_id,
    ):
        num_threads = 5
        requests = [
            make_request([make_batch()], [(make_tank(), 100)]) for _ in range(num_threads)
        ]

        results = race(session_factory, requests, tenant_id, test_actor_id)

        assert all(r.is_success for r in results)
        codes = sorted(r.lot.lot_code for r in results)
        assert codes == [f"FERM-20260115-{n:04d}" for n in range(1, num_threads + 1)]
