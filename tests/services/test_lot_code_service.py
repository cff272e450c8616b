"""
Lot, blend and transfer code allocation on top of locked sequence counters.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from cellar_config.schema import AllocationConfig
from cellar_kernel.models.lot import LotPhase
from cellar_kernel.models.transfer import TransferType
from cellar_kernel.services.lot_code_service import LotCodeService
from cellar_kernel.services.sequence_service import SequenceService


@pytest.fixture
def codes(session, deterministic_clock, allocation_config):
    return LotCodeService(session, deterministic_clock, allocation_config)


class TestSequenceService:

    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("test:seq") == 1

    def test_values_increase(self, session):
        sequences = SequenceService(session)
        values = [sequences.next_value("test:seq") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_sequences_are_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value("test:a")
        sequences.next_value("test:a")
        assert sequences.next_value("test:b") == 1

    def test_current_value(self, session):
        sequences = SequenceService(session)
        assert sequences.current_value("test:seq") is None
        sequences.next_value("test:seq")
        assert sequences.current_value("test:seq") == 1

    def test_rolled_back_value_is_reissued(self, session):
        sequences = SequenceService(session)
        sequences.next_value("test:seq")
        session.commit()
        sequences.next_value("test:seq")
        session.rollback()
        assert sequences.next_value("test:seq") == 2


class TestLotCodes:

    def test_daily_lot_codes(self, codes, tenant_id):
        assert codes.next_lot_code(tenant_id) == "FERM-20260115-0001"
        assert codes.next_lot_code(tenant_id) == "FERM-20260115-0002"

    def test_counter_restarts_each_day(self, codes, tenant_id, deterministic_clock):
        codes.next_lot_code(tenant_id)
        deterministic_clock.advance(days=1)
        assert codes.next_lot_code(tenant_id) == "FERM-20260116-0001"

    def test_counter_per_tenant(self, codes, tenant_id, other_tenant_id):
        codes.next_lot_code(tenant_id)
        assert codes.next_lot_code(other_tenant_id) == "FERM-20260115-0001"

    def test_phase_prefix(self, codes, tenant_id):
        assert codes.next_lot_code(tenant_id, LotPhase.CONDITIONING) == "COND-20260115-0001"

    def test_configured_prefix(self, session, deterministic_clock, tenant_id):
        config = AllocationConfig(
            lot_code_prefixes={
                "FERMENTATION": "FV",
                "CONDITIONING": "COND",
                "BRIGHT": "BRT",
                "PACKAGING": "PKG",
            }
        )
        codes = LotCodeService(session, deterministic_clock, config)
        assert codes.next_lot_code(tenant_id) == "FV-20260115-0001"

    def test_child_codes(self, codes):
        assert codes.child_lot_code("FERM-20260115-0001", 0) == "FERM-20260115-0001-A"
        assert codes.child_lot_code("FERM-20260115-0001", 2) == "FERM-20260115-0001-C"


class TestBlendAndTransferCodes:

    def test_blend_codes_per_year(self, codes, tenant_id, deterministic_clock):
        assert codes.next_blend_code(tenant_id) == "BLEND-2026-0001"
        assert codes.next_blend_code(tenant_id) == "BLEND-2026-0002"
        deterministic_clock.set_time(datetime(2027, 1, 2, tzinfo=timezone.utc))
        assert codes.next_blend_code(tenant_id) == "BLEND-2027-0001"

    def test_transfer_codes_per_type(self, codes, tenant_id):
        assert codes.next_transfer_code(tenant_id, TransferType.SPLIT) == "SPLIT-20260115-0001"
        assert codes.next_transfer_code(tenant_id, TransferType.SPLIT) == "SPLIT-20260115-0002"
        assert codes.next_transfer_code(tenant_id, TransferType.BLEND) == "BLEND-20260115-0001"

    def test_transfer_and_blend_counters_do_not_collide(self, codes, tenant_id):
        codes.next_blend_code(tenant_id)
        assert codes.next_transfer_code(tenant_id, TransferType.BLEND) == "BLEND-20260115-0001"


class TestEnsureBlendCode:

    def test_assigns_code_once(self, codes, make_tank, make_lot_in_tank, session):
        lot, _ = make_lot_in_tank(make_tank(), 100, lot_code="FERM-20260101-0042")

        assert codes.ensure_blend_code(lot) is True
        assert lot.lot_code == "BLEND-2026-0001"

        assert codes.ensure_blend_code(lot) is False
        assert lot.lot_code == "BLEND-2026-0001"

    def test_existing_blend_code_kept(self, codes, make_tank, make_lot_in_tank, tenant_id):
        lot, _ = make_lot_in_tank(make_tank(), 100, lot_code="BLEND-2025-0099")

        assert codes.is_blend_coded(lot)
        assert codes.ensure_blend_code(lot) is False
        assert lot.lot_code == "BLEND-2025-0099"
        # No blend sequence value was consumed
        assert codes.next_blend_code(tenant_id) == "BLEND-2026-0001"

    def test_unrelated_lot_code_not_blend_coded(self, codes, make_tank, make_lot_in_tank):
        lot, _ = make_lot_in_tank(make_tank(), 100, lot_code=f"X-{uuid4().hex[:8]}")
        assert not codes.is_blend_coded(lot)
