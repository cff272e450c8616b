"""
CompatibilityValidator -- may these batches be blended?

Loads the batches' recipe attributes for the tenant and applies the blend
policy in ``cellar_kernel.domain.compatibility``.  ``compatible == False``
aborts a blend before any write; warnings travel to the response.

Only the incoming batches are compared with each other.  When blending into
an existing lot, the batches already linked to that lot are not consulted,
so a single incoming batch is always compatible.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from cellar_config import AllocationConfig, get_active_config
from cellar_kernel.domain.compatibility import BlendCandidate, evaluate_blend
from cellar_kernel.domain.results import CompatibilityResult
from cellar_kernel.logging_config import get_logger
from cellar_kernel.models.batch import Batch

logger = get_logger("services.compatibility")


class CompatibilityValidator:

    def __init__(self, session: Session, config: AllocationConfig | None = None):
        self._session = session
        self._config = config if config is not None else get_active_config()

    def validate_blend_compatibility(
        self, tenant_id: UUID, batch_ids: Iterable[UUID]
    ) -> CompatibilityResult:
        ids = list(dict.fromkeys(batch_ids))
        batches = self._session.execute(
            select(Batch)
            .where(Batch.id.in_(ids), Batch.tenant_id == tenant_id)
            .order_by(Batch.batch_number)
        ).scalars()
        result = evaluate_blend(
            (
                BlendCandidate(
                    batch_number=b.batch_number,
                    recipe_name=b.recipe_name,
                    style=b.style,
                    yeast_strain=b.yeast_strain,
                )
                for b in batches
            ),
            require_matching_yeast=self._config.require_matching_yeast,
        )
        logger.info(
            "blend_compatibility_checked",
            extra={
                "batch_count": len(ids),
                "compatible": result.compatible,
                "error_count": len(result.errors),
                "warning_count": len(result.warnings),
            },
        )
        return result
