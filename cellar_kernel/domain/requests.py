"""
Inbound request types and per-scenario allocation plans.

Responsibility:
    ``StartFermentationRequest`` is the typed form of the single inbound
    operation.  ``from_dict`` is the boundary parser for loosely typed
    payloads (JSON bodies): it rejects missing or ill-typed fields with
    ``RequestValidationError`` so nothing downstream ever inspects a dict.

    Once a request is classified it becomes exactly one of ``SimplePlan``,
    ``SplitPlan`` or ``BlendPlan``.  The orchestrator dispatches on the plan
    type, never on a scenario string.

Architecture position:
    Kernel > Domain.  Pure, no I/O.

Normalization:
    - Datetimes are converted to UTC.  Naive datetimes are taken as UTC.
    - Volumes, gravity and temperature are Decimal (floats via str()).
    - Missing ``batch_ids`` / ``allocations`` parse as empty so that the
      orchestrator can report MISSING_BATCHES / MISSING_ALLOCATIONS.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Union
from uuid import UUID

from cellar_kernel.db.types import to_decimal
from cellar_kernel.domain.scenario import Scenario
from cellar_kernel.exceptions import RequestValidationError


@dataclass(frozen=True)
class TankAllocation:
    """Volume requested in one vessel."""

    tank_id: UUID
    volume: Decimal


@dataclass(frozen=True)
class StartFermentationRequest:
    """Typed fermentation start request."""

    batch_ids: tuple[UUID, ...]
    allocations: tuple[TankAllocation, ...]
    planned_start: datetime
    planned_end: datetime
    enable_blending: bool = False
    target_lot_id: UUID | None = None
    notes: str | None = None
    actual_og: Decimal | None = None
    temperature: Decimal | None = None

    @property
    def batch_count(self) -> int:
        return len(self.batch_ids)

    @property
    def allocation_count(self) -> int:
        return len(self.allocations)

    @property
    def total_volume(self) -> Decimal:
        return sum((a.volume for a in self.allocations), Decimal("0"))

    @property
    def tank_ids(self) -> tuple[UUID, ...]:
        return tuple(a.tank_id for a in self.allocations)

    @property
    def is_blend_into_existing(self) -> bool:
        """Blend into a lot that already occupies a vessel."""
        return self.enable_blending and self.target_lot_id is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StartFermentationRequest":
        """
        Parse a loosely typed payload.

        Accepts snake_case keys and the camelCase keys used by the web API
        (``batchIds``, ``tankId``, ``plannedStart``, ``enableBlending``,
        ``targetLotId``, ``actualOG``).

        Raises:
            RequestValidationError: missing or ill-typed field.
        """
        if not isinstance(data, Mapping):
            raise RequestValidationError("body", "expected an object")

        raw_batches = _get(data, "batch_ids", "batchIds")
        if raw_batches is None:
            raw_batches = []
        if not isinstance(raw_batches, (list, tuple)):
            raise RequestValidationError("batch_ids", "expected a list")
        batch_ids = tuple(
            _parse_uuid(b, f"batch_ids[{i}]") for i, b in enumerate(raw_batches)
        )

        raw_allocations = _get(data, "allocations")
        if raw_allocations is None:
            raw_allocations = []
        if not isinstance(raw_allocations, (list, tuple)):
            raise RequestValidationError("allocations", "expected a list")
        allocations = tuple(
            _parse_allocation(a, i) for i, a in enumerate(raw_allocations)
        )

        planned_start = _parse_datetime(
            _get(data, "planned_start", "plannedStart"), "planned_start"
        )
        planned_end = _parse_datetime(
            _get(data, "planned_end", "plannedEnd"), "planned_end"
        )

        enable_blending = _get(data, "enable_blending", "enableBlending")
        if enable_blending is None:
            enable_blending = False
        if not isinstance(enable_blending, bool):
            raise RequestValidationError("enable_blending", "expected a boolean")

        target_lot_id = _get(data, "target_lot_id", "targetLotId")
        if target_lot_id is not None:
            target_lot_id = _parse_uuid(target_lot_id, "target_lot_id")

        notes = _get(data, "notes")
        if notes is not None and not isinstance(notes, str):
            raise RequestValidationError("notes", "expected a string")

        return cls(
            batch_ids=batch_ids,
            allocations=allocations,
            planned_start=planned_start,
            planned_end=planned_end,
            enable_blending=enable_blending,
            target_lot_id=target_lot_id,
            notes=notes or None,
            actual_og=_parse_optional_decimal(
                _get(data, "actual_og", "actualOG", "actualOg"), "actual_og"
            ),
            temperature=_parse_optional_decimal(
                _get(data, "temperature"), "temperature"
            ),
        )


def _get(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _parse_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        raise RequestValidationError(field, "expected a UUID string")
    try:
        return UUID(value)
    except ValueError as exc:
        raise RequestValidationError(field, f"not a valid UUID: {value!r}") from exc


def _parse_allocation(value: Any, index: int) -> TankAllocation:
    field = f"allocations[{index}]"
    if not isinstance(value, Mapping):
        raise RequestValidationError(field, "expected an object")
    tank_id = _get(value, "tank_id", "tankId")
    if tank_id is None:
        raise RequestValidationError(f"{field}.tank_id", "required")
    volume = _get(value, "volume")
    if volume is None:
        raise RequestValidationError(f"{field}.volume", "required")
    try:
        parsed_volume = to_decimal(volume)
    except ValueError as exc:
        raise RequestValidationError(f"{field}.volume", str(exc)) from exc
    return TankAllocation(
        tank_id=_parse_uuid(tank_id, f"{field}.tank_id"),
        volume=parsed_volume,
    )


def _parse_datetime(value: Any, field: str) -> datetime:
    if value is None:
        raise RequestValidationError(field, "required")
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise RequestValidationError(field, f"not an ISO-8601 datetime: {value!r}") from exc
    else:
        raise RequestValidationError(field, "expected an ISO-8601 datetime")
    return to_utc(parsed)


def _parse_optional_decimal(value: Any, field: str) -> Decimal | None:
    if value is None:
        return None
    try:
        return to_decimal(value)
    except ValueError as exc:
        raise RequestValidationError(field, str(exc)) from exc


def to_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SimplePlan:
    """One batch into one vessel."""

    request: StartFermentationRequest
    batch_id: UUID
    allocation: TankAllocation


@dataclass(frozen=True)
class SplitPlan:
    """One batch fanned out to several vessels."""

    request: StartFermentationRequest
    batch_id: UUID
    allocations: tuple[TankAllocation, ...]

    @property
    def total_volume(self) -> Decimal:
        return sum((a.volume for a in self.allocations), Decimal("0"))


@dataclass(frozen=True)
class BlendPlan:
    """Several batches (or one batch into an existing lot) in one vessel."""

    request: StartFermentationRequest
    batch_ids: tuple[UUID, ...]
    allocation: TankAllocation
    target_lot_id: UUID | None = None

    @property
    def into_existing(self) -> bool:
        return self.target_lot_id is not None


AllocationPlan = Union[SimplePlan, SplitPlan, BlendPlan]


def build_plan(request: StartFermentationRequest, scenario: Scenario) -> AllocationPlan:
    """
    Build the plan variant for a classified request.

    Preconditions: the request passed shape validation, so SIMPLE and BLEND
        have exactly one allocation and SIMPLE/SPLIT exactly one batch.
    """
    if scenario is Scenario.SIMPLE:
        return SimplePlan(
            request=request,
            batch_id=request.batch_ids[0],
            allocation=request.allocations[0],
        )
    if scenario is Scenario.SPLIT:
        return SplitPlan(
            request=request,
            batch_id=request.batch_ids[0],
            allocations=request.allocations,
        )
    if scenario is Scenario.BLEND:
        return BlendPlan(
            request=request,
            batch_ids=request.batch_ids,
            allocation=request.allocations[0],
            target_lot_id=request.target_lot_id if request.enable_blending else None,
        )
    raise ValueError(f"Unknown scenario: {scenario!r}")
