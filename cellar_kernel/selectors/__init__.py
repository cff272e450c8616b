"""Read-only query selectors."""

from cellar_kernel.selectors.base import BaseSelector
from cellar_kernel.selectors.lot_selector import (
    BatchContribution,
    LotLineage,
    LotSelector,
    TransferSummary,
)
from cellar_kernel.selectors.tank_selector import (
    OccupyingAssignment,
    TankOccupancy,
    TankSelector,
)

__all__ = [
    "BaseSelector",
    "TankSelector",
    "TankOccupancy",
    "OccupyingAssignment",
    "LotSelector",
    "LotLineage",
    "BatchContribution",
    "TransferSummary",
]
