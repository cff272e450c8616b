"""
Typed Exception Hierarchy for the Cellar Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Allocation failures are returned to API callers, logged, and asserted in
tests.  Parsing message strings for any of those is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Every exception has an HTTP_STATUS class attribute (400 / 404 / 500)
  4. Exceptions carry structured DATA (not just a message string)

Validators in this package report failures as data.  The orchestrator turns
a failed check into one of these exceptions and converts it straight into an
``AllocationError`` result without raising, so requests rejected during
validation never unwind a transaction.  The only errors raised inside an
open transaction are the blend capacity re-check (``TankOverflowError``) and
unexpected persistence failures (``AllocationFailedError``).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CellarKernelError (base, 500)
    |
    +-- RequestError (400)
    |   +-- RequestValidationError
    |   +-- MissingBatchesError
    |   +-- MissingAllocationsError
    |   +-- InvalidVolumeError
    |   +-- InvalidDateRangeError
    |   +-- InvalidCombinationError
    |   +-- InvalidBlendConfigError
    |
    +-- ResourceConflictError (400)
    |   +-- TanksUnavailableError
    |   +-- TankOccupiedError
    |   +-- TankOverflowError
    |   +-- TargetLotNotInTankError
    |
    +-- ReferenceNotFoundError (404)
    |   +-- TankNotFoundError
    |   +-- BatchesNotFoundError
    |   +-- TargetLotNotFoundError
    |
    +-- CompatibilityError (400)
    |   +-- BlendIncompatibleError
    |
    +-- PersistenceError (500)
        +-- AllocationFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                    | When Raised
--------------|-------------------------|--------------------------------------
Request       | INVALID_REQUEST         | Missing / ill-typed request field
              | MISSING_BATCHES         | No batch ids supplied
              | MISSING_ALLOCATIONS     | No vessel allocations supplied
              | INVALID_VOLUME          | Total (or any) volume not positive
              | INVALID_DATES           | planned_start >= planned_end
              | INVALID_COMBINATION     | Several batches AND several vessels
              | INVALID_BLEND_CONFIG    | target_lot_id without blend flag
--------------|-------------------------|--------------------------------------
Resource      | TANKS_UNAVAILABLE       | Vessel window conflict / bad status
              | TANK_OCCUPIED           | Vessel already holds an ACTIVE lot
              | TANK_OVERFLOW           | Volume would exceed vessel capacity
              | TARGET_LOT_NOT_IN_TANK  | Blend target has no live assignment
--------------|-------------------------|--------------------------------------
Reference     | TANK_NOT_FOUND          | Vessel id unknown for tenant
              | BATCHES_NOT_FOUND       | Batch id unknown for tenant
              | TARGET_LOT_NOT_FOUND    | Blend target lot unknown for tenant
--------------|-------------------------|--------------------------------------
Compatibility | BLEND_INCOMPATIBLE      | Blend policy rejected the batch set
--------------|-------------------------|--------------------------------------
Persistence   | ALLOCATION_FAILED       | Unexpected failure, full rollback
"""

from decimal import Decimal
from typing import Any


class CellarKernelError(Exception):
    """
    Base exception for all cellar kernel errors.

    All subclasses define a ``code`` and an ``http_status`` class attribute.
    """

    code: str = "CELLAR_KERNEL_ERROR"
    http_status: int = 500

    def details(self) -> dict[str, Any]:
        """Structured context carried by this error."""
        return {k: v for k, v in vars(self).items() if not k.startswith("_")}


# Request-shape errors


class RequestError(CellarKernelError):
    """Base exception for malformed allocation requests."""

    code: str = "INVALID_REQUEST"
    http_status: int = 400


class RequestValidationError(RequestError):
    """A request field is missing or has the wrong type."""

    code: str = "INVALID_REQUEST"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid request field '{field}': {reason}")


class MissingBatchesError(RequestError):
    """At least one batch is required."""

    code: str = "MISSING_BATCHES"

    def __init__(self):
        super().__init__("At least one batch is required")


class MissingAllocationsError(RequestError):
    """At least one vessel allocation is required."""

    code: str = "MISSING_ALLOCATIONS"

    def __init__(self):
        super().__init__("At least one tank allocation is required")


class InvalidVolumeError(RequestError):
    """Requested volume must be positive."""

    code: str = "INVALID_VOLUME"

    def __init__(self, total_volume: Decimal):
        self.total_volume = total_volume
        super().__init__(f"Volume must be positive (got {total_volume})")


class InvalidDateRangeError(RequestError):
    """Planned start must precede planned end."""

    code: str = "INVALID_DATES"

    def __init__(self, planned_start: Any, planned_end: Any):
        self.planned_start = planned_start
        self.planned_end = planned_end
        super().__init__(
            f"Planned start {planned_start} must be before planned end {planned_end}"
        )


class InvalidCombinationError(RequestError):
    """Split and blend cannot be requested at the same time."""

    code: str = "INVALID_COMBINATION"

    def __init__(self, batch_count: int, allocation_count: int):
        self.batch_count = batch_count
        self.allocation_count = allocation_count
        super().__init__(
            f"Cannot split and blend simultaneously: {batch_count} batches "
            f"into {allocation_count} tanks"
        )


class InvalidBlendConfigError(RequestError):
    """A target lot was supplied without enabling blending."""

    code: str = "INVALID_BLEND_CONFIG"

    def __init__(self, target_lot_id: Any):
        self.target_lot_id = target_lot_id
        super().__init__(
            f"enable_blending must be true when target_lot_id is given ({target_lot_id})"
        )


# Resource conflicts


class ResourceConflictError(CellarKernelError):
    """Base exception for vessel conflicts detected before any write."""

    code: str = "RESOURCE_CONFLICT"
    http_status: int = 400


class TanksUnavailableError(ResourceConflictError):
    """One or more vessels are busy in the requested window."""

    code: str = "TANKS_UNAVAILABLE"

    def __init__(self, unavailable_tanks: list[dict[str, Any]]):
        self.unavailable_tanks = unavailable_tanks
        super().__init__(
            f"{len(unavailable_tanks)} tank(s) unavailable in the selected period"
        )


class TankOccupiedError(ResourceConflictError):
    """Vessel already holds an ACTIVE assignment."""

    code: str = "TANK_OCCUPIED"

    def __init__(
        self,
        tank_id: Any,
        tank_name: str,
        occupying_lot_id: Any,
        occupying_lot_code: str | None,
        phase: str | None = None,
    ):
        self.tank_id = tank_id
        self.tank_name = tank_name
        self.occupying_lot_id = occupying_lot_id
        self.occupying_lot_code = occupying_lot_code
        self.phase = phase
        super().__init__(
            f"Tank '{tank_name}' is already occupied by lot "
            f"{occupying_lot_code or occupying_lot_id}"
        )


class TankOverflowError(ResourceConflictError):
    """Vessel capacity would be exceeded."""

    code: str = "TANK_OVERFLOW"

    def __init__(
        self,
        tank_id: Any,
        tank_name: str,
        capacity: Decimal,
        current_volume: Decimal,
        added_volume: Decimal,
        total_after: Decimal,
    ):
        self.tank_id = tank_id
        self.tank_name = tank_name
        self.capacity = capacity
        self.current_volume = current_volume
        self.added_volume = added_volume
        self.total_after = total_after
        super().__init__(
            f"Tank '{tank_name}' would overflow: capacity {capacity}, "
            f"requested {total_after} ({current_volume} present + {added_volume} new)"
        )


class TargetLotNotInTankError(ResourceConflictError):
    """
    Blend target lot has no PLANNED/ACTIVE assignment in the requested vessel.

    A blend is never redirected to the vessel the target lot actually
    occupies.  Naming any other vessel is rejected, and ``tank_id`` /
    ``tank_name`` then identify the requested vessel.  When the lot has no
    live assignment at all, both are None.
    """

    code: str = "TARGET_LOT_NOT_IN_TANK"

    def __init__(self, lot_id: Any, lot_code: str, tank_id: Any = None, tank_name: str | None = None):
        self.lot_id = lot_id
        self.lot_code = lot_code
        self.tank_id = tank_id
        self.tank_name = tank_name
        if tank_id is None:
            message = f"Target lot {lot_code} is not assigned to any tank"
        else:
            message = f"Target lot {lot_code} is not in tank '{tank_name or tank_id}'"
        super().__init__(message)


# Referential errors


class ReferenceNotFoundError(CellarKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class TankNotFoundError(ReferenceNotFoundError):
    """Vessel id does not exist for the tenant."""

    code: str = "TANK_NOT_FOUND"

    def __init__(self, tank_id: Any):
        self.tank_id = tank_id
        super().__init__(f"Tank not found: {tank_id}")


class BatchesNotFoundError(ReferenceNotFoundError):
    """Some batch ids do not exist for the tenant."""

    code: str = "BATCHES_NOT_FOUND"

    def __init__(self, missing_batch_ids: list[Any]):
        self.missing_batch_ids = missing_batch_ids
        super().__init__(f"Batches not found: {', '.join(str(b) for b in missing_batch_ids)}")


class TargetLotNotFoundError(ReferenceNotFoundError):
    """Blend target lot does not exist for the tenant."""

    code: str = "TARGET_LOT_NOT_FOUND"

    def __init__(self, lot_id: Any):
        self.lot_id = lot_id
        super().__init__(f"Target lot not found: {lot_id}")


# Compatibility


class CompatibilityError(CellarKernelError):
    """Base exception for blend compatibility failures."""

    code: str = "COMPATIBILITY_ERROR"
    http_status: int = 400


class BlendIncompatibleError(CompatibilityError):
    """The blend policy rejected the batch set."""

    code: str = "BLEND_INCOMPATIBLE"

    def __init__(self, errors: list[str], warnings: list[str]):
        self.errors = errors
        self.warnings = warnings
        super().__init__("; ".join(errors))


# Persistence


class PersistenceError(CellarKernelError):
    """Base exception for unexpected store failures."""

    code: str = "PERSISTENCE_ERROR"
    http_status: int = 500


class AllocationFailedError(PersistenceError):
    """An unexpected failure aborted the allocation transaction."""

    code: str = "ALLOCATION_FAILED"

    def __init__(self, reason: str, exc_type: str | None = None):
        self.reason = reason
        self.exc_type = exc_type
        super().__init__(f"Fermentation start failed: {reason}")
