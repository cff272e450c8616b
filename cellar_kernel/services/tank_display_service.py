"""
TankDisplayService -- denormalized "what is in this vessel" fields.

Updates ``Tank.current_batch_id`` / ``current_batch_number`` after a
fermentation start has committed.  These fields are display bookkeeping
only: availability, capacity and occupancy are always derived from
assignments, never from them.

The orchestrator calls ``sync`` in a fresh transaction after the
authoritative commit.  This service commits that short transaction itself
and rolls it back on failure before re-raising, so a failed sync never
touches committed lineage.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from cellar_kernel.logging_config import get_logger
from cellar_kernel.models.tank import TankStatus
from cellar_kernel.selectors.tank_selector import TankSelector

logger = get_logger("services.tank_display")


class TankDisplayService:
    """Post-commit vessel display sync."""

    def __init__(self, session: Session):
        self._session = session
        self._tanks = TankSelector(session)

    def sync(
        self,
        tenant_id: UUID,
        occupied: Iterable[tuple[UUID, UUID, str]],
    ) -> int:
        """
        Point each vessel at the batch now fermenting in it.

        Args:
            tenant_id: Owning tenant.
            occupied: (tank_id, batch_id, batch_number) triples.

        Returns:
            Number of vessels updated.
        """
        updated = 0
        try:
            for tank_id, batch_id, batch_number in occupied:
                tank = self._tanks.get_tank(tenant_id, tank_id)
                if tank is None:
                    continue
                tank.current_batch_id = batch_id
                tank.current_batch_number = batch_number
                tank.status = TankStatus.OPERATIONAL
                updated += 1
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("tank_display_synced", extra={"tank_count": updated})
        return updated
