"""Pure domain layer: classification, request/plan types, policies, results."""

from cellar_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from cellar_kernel.domain.requests import (
    AllocationPlan,
    BlendPlan,
    SimplePlan,
    SplitPlan,
    StartFermentationRequest,
    TankAllocation,
    build_plan,
)
from cellar_kernel.domain.results import (
    AllocationError,
    AllocationResult,
    AllocationStatus,
    AvailabilityReport,
    CapacityCheck,
    CompatibilityResult,
    ConflictingAssignment,
    TankAvailability,
)
from cellar_kernel.domain.scenario import Scenario, classify

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Scenario",
    "classify",
    "StartFermentationRequest",
    "TankAllocation",
    "SimplePlan",
    "SplitPlan",
    "BlendPlan",
    "AllocationPlan",
    "build_plan",
    "AllocationError",
    "AllocationResult",
    "AllocationStatus",
    "AvailabilityReport",
    "TankAvailability",
    "ConflictingAssignment",
    "CapacityCheck",
    "CompatibilityResult",
]
