"""Services for the cellar kernel (write side and validators)."""

from cellar_kernel.services.allocation_orchestrator import (
    AllocationOrchestrator,
    build_allocation_orchestrator,
    validate_shape,
)
from cellar_kernel.services.allocation_workflows import (
    BlendWorkflow,
    SimpleWorkflow,
    SplitWorkflow,
    WorkflowContext,
    workflow_for,
)
from cellar_kernel.services.availability_service import AvailabilityChecker
from cellar_kernel.services.capacity_service import CapacityValidator
from cellar_kernel.services.compatibility_service import CompatibilityValidator
from cellar_kernel.services.lineage_service import LineageService
from cellar_kernel.services.lot_code_service import LotCodeService
from cellar_kernel.services.sequence_service import SequenceService
from cellar_kernel.services.tank_display_service import TankDisplayService

__all__ = [
    "AllocationOrchestrator",
    "AvailabilityChecker",
    "BlendWorkflow",
    "CapacityValidator",
    "CompatibilityValidator",
    "LineageService",
    "LotCodeService",
    "SequenceService",
    "SimpleWorkflow",
    "SplitWorkflow",
    "TankDisplayService",
    "WorkflowContext",
    "build_allocation_orchestrator",
    "validate_shape",
    "workflow_for",
]
