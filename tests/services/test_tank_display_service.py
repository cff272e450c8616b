"""
Post-commit vessel display fields.
"""

from uuid import uuid4

import pytest

from cellar_kernel.models.tank import Tank, TankStatus
from cellar_kernel.services.tank_display_service import TankDisplayService


class TestTankDisplaySync:

    def test_points_tank_at_batch(self, session, make_tank, make_batch, tenant_id):
        tank = make_tank(status=TankStatus.NEEDS_CIP)
        batch = make_batch()

        updated = TankDisplayService(session).sync(
            tenant_id, [(tank.id, batch.id, batch.batch_number)]
        )

        assert updated == 1
        session.expire_all()
        synced = session.get(Tank, tank.id)
        assert synced.current_batch_id == batch.id
        assert synced.current_batch_number == batch.batch_number
        assert synced.status == TankStatus.OPERATIONAL

    def test_unknown_and_foreign_tanks_skipped(
        self, session, make_tank, make_batch, tenant_id, other_tenant_id
    ):
        foreign = make_tank(tenant=other_tenant_id)
        batch = make_batch()

        updated = TankDisplayService(session).sync(
            tenant_id,
            [
                (uuid4(), batch.id, batch.batch_number),
                (foreign.id, batch.id, batch.batch_number),
            ],
        )

        assert updated == 0
        session.expire_all()
        assert session.get(Tank, foreign.id).current_batch_id is None

    def test_nothing_to_sync(self, session, tenant_id):
        assert TankDisplayService(session).sync(tenant_id, []) == 0

    def test_failure_rolls_back_and_reraises(
        self, session, monkeypatch, make_tank, make_batch, tenant_id
    ):
        tank = make_tank()
        batch = make_batch()

        def _broken_commit():
            raise RuntimeError("commit refused")

        monkeypatch.setattr(session, "commit", _broken_commit)

        with pytest.raises(RuntimeError, match="commit refused"):
            TankDisplayService(session).sync(
                tenant_id, [(tank.id, batch.id, batch.batch_number)]
            )

        monkeypatch.undo()
        session.expire_all()
        assert session.get(Tank, tank.id).current_batch_id is None

    def test_sync_logged(self, session, captured_logs, make_tank, make_batch, tenant_id):
        tank = make_tank()
        batch = make_batch()

        TankDisplayService(session).sync(tenant_id, [(tank.id, batch.id, batch.batch_number)])

        synced = [r for r in captured_logs() if r["message"] == "tank_display_synced"]
        assert synced[0]["tank_count"] == 1
