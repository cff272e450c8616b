"""
Engine lifecycle, session scope and backend connection settings.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from cellar_kernel.db.engine import (
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from cellar_kernel.models.lot import LotBatch
from cellar_kernel.models.tank import Tank


def tank_names(tenant_id) -> list[str]:
    with session_scope() as s:
        return list(s.scalars(select(Tank.name).where(Tank.tenant_id == tenant_id)))


class TestSessionScope:

    def test_commits_on_exit(self, db_engine, tenant_id):
        with session_scope() as s:
            s.add(Tank(tenant_id=tenant_id, name="FV-10", capacity=Decimal("500")))

        assert tank_names(tenant_id) == ["FV-10"]

    def test_rolls_back_and_reraises(self, db_engine, tenant_id, captured_logs):
        with pytest.raises(ValueError, match="abort"):
            with session_scope() as s:
                s.add(Tank(tenant_id=tenant_id, name="FV-11", capacity=Decimal("500")))
                s.flush()
                raise ValueError("abort")

        assert tank_names(tenant_id) == []
        (record,) = [r for r in captured_logs() if r["message"] == "session_scope_rolled_back"]
        assert record["exc_type"] == "ValueError"

    def test_objects_readable_after_commit(self, db_engine, tenant_id):
        with session_scope() as s:
            tank = Tank(tenant_id=tenant_id, name="FV-12", capacity=Decimal("500"))
            s.add(tank)

        assert tank.name == "FV-12"
        assert get_session_factory().kw["expire_on_commit"] is False


class TestConnectionSettings:

    def test_foreign_keys_enforced(self, db_engine):
        s = get_session()
        try:
            s.add(
                LotBatch(
                    lot_id=uuid4(),
                    batch_id=uuid4(),
                    volume_contribution=Decimal("100"),
                    batch_percentage=Decimal("100"),
                )
            )
            with pytest.raises(IntegrityError):
                s.commit()
        finally:
            s.rollback()
            s.close()

    def test_sqlite_backend_logged(self, tmp_path, captured_logs):
        try:
            engine = init_engine_from_url(f"sqlite:///{tmp_path / 'scratch.db'}")
            assert get_engine() is engine
        finally:
            reset_engine()

        (record,) = [r for r in captured_logs() if r["message"] == "engine_initialized"]
        assert record["backend"] == "sqlite"
        assert record["pool_size"] is None


class TestUninitialized:

    @pytest.mark.parametrize("accessor", [get_engine, get_session, get_session_factory])
    def test_accessors_raise(self, accessor):
        reset_engine()
        with pytest.raises(RuntimeError, match="init_engine_from_url"):
            accessor()

    def test_reset_is_repeatable(self):
        reset_engine()
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
