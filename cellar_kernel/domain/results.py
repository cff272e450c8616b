"""
Result value objects returned by the validators and the orchestrator.

All types are frozen dataclasses.  Validators return data, not exceptions:
``AvailabilityReport``, ``CapacityCheck`` and ``CompatibilityResult`` say
whether a check passed and carry the detail needed to build the error.
``AllocationResult`` is the single outbound shape of a fermentation start.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from cellar_kernel.db.types import enum_value
from cellar_kernel.domain.scenario import Scenario
from cellar_kernel.exceptions import CellarKernelError


@dataclass(frozen=True)
class ConflictingAssignment:
    """An existing assignment (or tank state) that blocks a vessel."""

    assignment_id: UUID | None
    lot_id: UUID | None
    lot_code: str | None
    phase: str | None
    planned_start: datetime | None
    planned_end: datetime | None
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "assignment_id": self.assignment_id,
            "lot_id": self.lot_id,
            "lot_code": self.lot_code,
            "phase": self.phase,
            "planned_start": self.planned_start,
            "planned_end": self.planned_end,
            "status": self.status,
        }


@dataclass(frozen=True)
class TankAvailability:
    tank_id: UUID
    available: bool
    tank_name: str | None = None
    conflicting_assignment: ConflictingAssignment | None = None


@dataclass(frozen=True)
class AvailabilityReport:
    all_available: bool
    per_tank: dict[UUID, TankAvailability]

    def unavailable(self) -> list[TankAvailability]:
        return [a for a in self.per_tank.values() if not a.available]


@dataclass(frozen=True)
class CapacityCheck:
    """Outcome of adding volume to one vessel."""

    ok: bool
    tank_id: UUID
    tank_name: str
    capacity: Decimal
    current_volume: Decimal
    added_volume: Decimal
    total_after: Decimal

    @property
    def free_volume(self) -> Decimal:
        return self.capacity - self.current_volume


@dataclass(frozen=True)
class CompatibilityResult:
    compatible: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class AllocationError:
    """Structured, API-safe error carried by a failed AllocationResult."""

    code: str
    message: str
    http_status: int
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: CellarKernelError) -> "AllocationError":
        return cls(
            code=exc.code,
            message=str(exc),
            http_status=exc.http_status,
            details=exc.details(),
        )


@dataclass(frozen=True)
class LotSummary:
    id: UUID
    lot_code: str
    phase: str
    status: str
    planned_volume: Decimal
    parent_lot_id: UUID | None = None
    is_blend_result: bool = False
    is_blend_target: bool = False
    blended_at: datetime | None = None

    @classmethod
    def from_model(cls, lot) -> "LotSummary":
        return cls(
            id=lot.id,
            lot_code=lot.lot_code,
            phase=enum_value(lot.phase),
            status=enum_value(lot.status),
            planned_volume=lot.planned_volume,
            parent_lot_id=lot.parent_lot_id,
            is_blend_result=lot.is_blend_result,
            is_blend_target=lot.is_blend_target,
            blended_at=lot.blended_at,
        )


@dataclass(frozen=True)
class AssignmentSummary:
    id: UUID
    tank_id: UUID
    tank_name: str
    lot_id: UUID
    planned_volume: Decimal
    planned_start: datetime
    planned_end: datetime
    status: str

    @classmethod
    def from_model(cls, assignment, tank_name: str) -> "AssignmentSummary":
        return cls(
            id=assignment.id,
            tank_id=assignment.tank_id,
            tank_name=tank_name,
            lot_id=assignment.lot_id,
            planned_volume=assignment.planned_volume,
            planned_start=assignment.planned_start,
            planned_end=assignment.planned_end,
            status=enum_value(assignment.status),
        )


@dataclass(frozen=True)
class WorkflowOutcome:
    """What a workflow wrote, before the orchestrator wraps it."""

    lot: LotSummary
    assignments: tuple[AssignmentSummary, ...]
    message: str
    child_lots: tuple[LotSummary, ...] = ()
    batch_count: int = 1
    tank_name: str | None = None
    # (tank_id, batch_id, batch_number) pairs for post-commit display sync
    occupied_tanks: tuple[tuple[UUID, UUID, str], ...] = ()


class AllocationStatus(str, Enum):
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class AllocationResult:
    """
    Result of a fermentation start.

    Either COMMITTED with the written lineage, or ABORTED with an
    AllocationError and nothing persisted.
    """

    status: AllocationStatus
    scenario: Scenario | None = None
    lot: LotSummary | None = None
    child_lots: tuple[LotSummary, ...] = ()
    assignments: tuple[AssignmentSummary, ...] = ()
    batch_count: int = 0
    tank_name: str | None = None
    message: str | None = None
    warnings: tuple[str, ...] = ()
    error: AllocationError | None = None
    display_synced: bool | None = None
    correlation_id: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == AllocationStatus.COMMITTED

    @property
    def http_status(self) -> int:
        if self.error is not None:
            return self.error.http_status
        return 200

    @classmethod
    def committed(
        cls,
        scenario: Scenario,
        outcome: WorkflowOutcome,
        warnings: tuple[str, ...] = (),
        correlation_id: str | None = None,
    ) -> "AllocationResult":
        return cls(
            status=AllocationStatus.COMMITTED,
            scenario=scenario,
            lot=outcome.lot,
            child_lots=outcome.child_lots,
            assignments=outcome.assignments,
            batch_count=outcome.batch_count,
            tank_name=outcome.tank_name,
            message=outcome.message,
            warnings=warnings,
            correlation_id=correlation_id,
        )

    @classmethod
    def aborted(
        cls,
        error: AllocationError,
        scenario: Scenario | None = None,
        correlation_id: str | None = None,
    ) -> "AllocationResult":
        return cls(
            status=AllocationStatus.ABORTED,
            scenario=scenario,
            error=error,
            correlation_id=correlation_id,
        )

    def to_response(self) -> dict[str, Any]:
        """JSON-ready response body."""
        if self.error is not None:
            return _jsonable({
                "success": False,
                "code": self.error.code,
                "error": self.error.message,
                "details": self.error.details,
            })
        return _jsonable({
            "success": True,
            "scenario": self.scenario.value if self.scenario else None,
            "lot": vars(self.lot) if self.lot else None,
            "child_lots": [vars(c) for c in self.child_lots],
            "assignments": [vars(a) for a in self.assignments],
            "batch_count": self.batch_count,
            "tank_name": self.tank_name,
            "message": self.message,
            "warnings": list(self.warnings),
        })


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, ConflictingAssignment):
        return _jsonable(value.to_dict())
    return value
