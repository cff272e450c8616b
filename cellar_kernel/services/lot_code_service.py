"""
LotCodeService -- human-readable codes for lots and transfers.

Responsibility:
    Allocates FERM-YYYYMMDD-NNNN lot codes (per tenant, per day, prefix by
    phase), BLEND-YYYY-NNNN blend codes (per tenant, per year) and
    SPLIT/BLEND transfer codes, backed by SequenceService counters.

Invariants enforced:
    - A lot whose code already has the blend format never receives a
      second blend code (``ensure_blend_code`` is idempotent).
    - Dates in codes come from the injected Clock, in UTC.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from cellar_config import AllocationConfig, get_active_config
from cellar_kernel.db.types import enum_value
from cellar_kernel.domain.clock import Clock, SystemClock
from cellar_kernel.domain.lot_codes import (
    child_lot_code,
    format_blend_code,
    format_lot_code,
    format_transfer_code,
    is_blend_code,
)
from cellar_kernel.logging_config import get_logger
from cellar_kernel.models.lot import Lot, LotPhase
from cellar_kernel.models.transfer import TransferType
from cellar_kernel.services.base import BaseService
from cellar_kernel.services.sequence_service import SequenceService

logger = get_logger("services.lot_codes")


class LotCodeService(BaseService):
    """Code allocation on top of named sequences."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: AllocationConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._config = config if config is not None else get_active_config()
        self._sequences = SequenceService(session)

    def next_lot_code(self, tenant_id: UUID, phase: LotPhase = LotPhase.FERMENTATION) -> str:
        prefix = self._config.lot_code_prefix(enum_value(phase))
        day = self._clock.now().date()
        seq = self._sequences.next_value(f"lot:{prefix}:{tenant_id}:{day:%Y%m%d}")
        return format_lot_code(prefix, day, seq)

    def child_lot_code(self, parent_code: str, index: int) -> str:
        return child_lot_code(parent_code, index)

    def next_blend_code(self, tenant_id: UUID) -> str:
        prefix = self._config.blend_code_prefix
        year = self._clock.now().year
        seq = self._sequences.next_value(f"lot:{prefix}:{tenant_id}:{year:04d}")
        return format_blend_code(prefix, year, seq)

    def next_transfer_code(self, tenant_id: UUID, transfer_type: TransferType) -> str:
        prefix = self._config.transfer_code_prefix(enum_value(transfer_type))
        day = self._clock.now().date()
        seq = self._sequences.next_value(f"transfer:{prefix}:{tenant_id}:{day:%Y%m%d}")
        return format_transfer_code(prefix, day, seq)

    def is_blend_coded(self, lot: Lot) -> bool:
        return is_blend_code(lot.lot_code, self._config.blend_code_prefix)

    def ensure_blend_code(self, lot: Lot) -> bool:
        """
        Give ``lot`` a blend code unless it already has one.

        Returns True when a new code was assigned.
        """
        if self.is_blend_coded(lot):
            logger.debug(
                "blend_code_already_assigned",
                extra={"lot_id": str(lot.id), "lot_code": lot.lot_code},
            )
            return False

        previous = lot.lot_code
        lot.lot_code = self.next_blend_code(lot.tenant_id)
        self.session.flush()
        logger.info(
            "blend_code_assigned",
            extra={
                "lot_id": str(lot.id),
                "previous_lot_code": previous,
                "lot_code": lot.lot_code,
            },
        )
        return True
