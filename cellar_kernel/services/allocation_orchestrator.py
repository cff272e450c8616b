"""
AllocationOrchestrator -- the single entry point for starting fermentation.

Responsibility:
    Validates a StartFermentationRequest, classifies it, and drives the
    matching allocation workflow inside one transaction.  Returns an
    AllocationResult that is either COMMITTED (all lineage written) or
    ABORTED (structured error, nothing written).

Architecture position:
    Kernel > Services -- imperative shell, owns the transaction boundary.
    Pure checks live in domain/, reads in selectors/, writes in
    LineageService and the workflows, none of which commit.

Flow:
    start_fermentation(request, tenant_id, actor_id)
      1. Shape checks (pure, no transaction):
         MISSING_BATCHES, MISSING_ALLOCATIONS, INVALID_VOLUME,
         INVALID_DATES, INVALID_COMBINATION, INVALID_BLEND_CONFIG,
         duplicate ids (INVALID_REQUEST)
      2. Classify (pure)
      3. Lock requested vessels FOR UPDATE, sorted by id
      4. TANK_NOT_FOUND
      5. Availability -> TANKS_UNAVAILABLE   (skipped for blend into existing)
      6. Capacity per vessel -> TANK_OVERFLOW
      7. Occupancy -> TANK_OCCUPIED          (skipped for blend into existing)
      8. Batches exist for tenant -> BATCHES_NOT_FOUND
      9. Blend target -> TARGET_LOT_NOT_FOUND / TARGET_LOT_NOT_IN_TANK
     10. Compatibility (BLEND) -> BLEND_INCOMPATIBLE
     11. Workflow writes, commit
     12. Optional post-commit vessel display sync

Failure modes:
    - Steps 1-10 return an ABORTED result; the transaction (if open) is
      rolled back having written nothing.
    - A CellarKernelError raised by a workflow (the blend capacity
      re-check) rolls back and returns that error's code.
    - Any other exception rolls back and returns ALLOCATION_FAILED (500),
      logged with traceback.
    - A failed display sync is logged at WARNING and reported as
      ``display_synced=False``; the committed lineage stands.
"""

import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from cellar_config import AllocationConfig, get_active_config
from cellar_kernel.db.types import enum_value
from cellar_kernel.domain.clock import Clock, SystemClock
from cellar_kernel.domain.requests import StartFermentationRequest, build_plan
from cellar_kernel.domain.results import AllocationError, AllocationResult
from cellar_kernel.domain.scenario import Scenario, classify, is_split_and_blend
from cellar_kernel.exceptions import (
    AllocationFailedError,
    BatchesNotFoundError,
    BlendIncompatibleError,
    CellarKernelError,
    InvalidBlendConfigError,
    InvalidCombinationError,
    InvalidDateRangeError,
    InvalidVolumeError,
    MissingAllocationsError,
    MissingBatchesError,
    RequestValidationError,
    TankNotFoundError,
    TankOccupiedError,
    TankOverflowError,
    TanksUnavailableError,
    TargetLotNotFoundError,
    TargetLotNotInTankError,
)
from cellar_kernel.logging_config import LogContext, get_logger
from cellar_kernel.models.batch import Batch
from cellar_kernel.models.lot import Lot
from cellar_kernel.models.tank import Tank
from cellar_kernel.models.tank_assignment import TankAssignment
from cellar_kernel.selectors.lot_selector import LotSelector
from cellar_kernel.selectors.tank_selector import TankSelector
from cellar_kernel.services.allocation_workflows import WorkflowContext, workflow_for
from cellar_kernel.services.availability_service import AvailabilityChecker
from cellar_kernel.services.capacity_service import CapacityValidator
from cellar_kernel.services.compatibility_service import CompatibilityValidator
from cellar_kernel.services.lineage_service import LineageService
from cellar_kernel.services.lot_code_service import LotCodeService
from cellar_kernel.services.tank_display_service import TankDisplayService

logger = get_logger("services.allocation")


@dataclass
class _Resolved:
    """Rows loaded (and locked) during pre-validation."""

    tanks: dict[UUID, Tank]
    batches: dict[UUID, Batch] = field(default_factory=dict)
    target_lot: Lot | None = None
    target_assignment: TankAssignment | None = None
    warnings: tuple[str, ...] = ()


def validate_shape(request: StartFermentationRequest) -> CellarKernelError | None:
    """
    Request-shape checks, in order.  Pure.

    Returns the first failure as an (unraised) error, or None.
    """
    if not request.batch_ids:
        return MissingBatchesError()
    if not request.allocations:
        return MissingAllocationsError()
    total = request.total_volume
    if total <= 0 or any(a.volume <= 0 for a in request.allocations):
        return InvalidVolumeError(total)
    if request.planned_start >= request.planned_end:
        return InvalidDateRangeError(request.planned_start, request.planned_end)
    if is_split_and_blend(
        request.batch_count, request.allocation_count, request.enable_blending
    ):
        return InvalidCombinationError(request.batch_count, request.allocation_count)
    if request.target_lot_id is not None and not request.enable_blending:
        return InvalidBlendConfigError(request.target_lot_id)
    if len(set(request.tank_ids)) != len(request.tank_ids):
        return RequestValidationError("allocations", "each tank may appear only once")
    if len(set(request.batch_ids)) != len(request.batch_ids):
        return RequestValidationError("batch_ids", "each batch may appear only once")
    return None


class AllocationOrchestrator:
    """
    Starts fermentation for one request, atomically.

    Contract:
        ``start_fermentation`` never raises for request, resource,
        reference, compatibility or persistence failures; they come back
        as an ABORTED AllocationResult.  The session is committed on
        success and rolled back on every failure.

    Non-goals:
        - Does NOT retry.  Resubmitting after a conflict is the caller's
          decision.
        - Does NOT resolve tenants or actors; both are opaque ids.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: AllocationConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config if config is not None else get_active_config()
        self._tanks = TankSelector(session)
        self._lots = LotSelector(session)
        self._availability = AvailabilityChecker(session, self._config)
        self._capacity = CapacityValidator(session)
        self._compatibility = CompatibilityValidator(session, self._config)
        self._codes = LotCodeService(session, self._clock, self._config)

    def start_fermentation(
        self,
        request: StartFermentationRequest,
        tenant_id: UUID,
        actor_id: UUID,
    ) -> AllocationResult:
        """
        Validate, classify and execute a fermentation start.

        Postconditions:
            - COMMITTED: every Lot, LotBatch, TankAssignment, Transfer,
              gravity reading and timeline event of the request is persisted.
            - ABORTED: none of them is.
        """
        correlation_id = str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            tenant_id=tenant_id,
            actor_id=actor_id,
        ):
            logger.info(
                "allocation_started",
                extra={
                    "batch_count": request.batch_count,
                    "allocation_count": request.allocation_count,
                    "total_volume": request.total_volume,
                    "enable_blending": request.enable_blending,
                    "target_lot_id": str(request.target_lot_id) if request.target_lot_id else None,
                },
            )
            t0 = time.monotonic()

            error = validate_shape(request)
            if error is not None:
                return self._reject(error, None, correlation_id, t0, rollback=False)

            scenario = classify(
                request.batch_count, request.allocation_count, request.enable_blending
            )
            with LogContext.bind(scenario=scenario):
                result, occupied = self._execute(
                    request, scenario, tenant_id, actor_id, correlation_id, t0
                )
                if result.is_success and occupied and self._config.sync_tank_display:
                    result = self._sync_display(result, tenant_id, occupied)
                return result

    # -- transaction ------------------------------------------------------

    def _execute(
        self,
        request: StartFermentationRequest,
        scenario: Scenario,
        tenant_id: UUID,
        actor_id: UUID,
        correlation_id: str,
        t0: float,
    ) -> tuple[AllocationResult, tuple[tuple[UUID, UUID, str], ...]]:
        try:
            resolved = self._prevalidate(request, scenario, tenant_id)
            if isinstance(resolved, CellarKernelError):
                return self._reject(resolved, scenario, correlation_id, t0), ()

            ctx = WorkflowContext(
                tenant_id=tenant_id,
                lineage=LineageService(self._session, actor_id, self._clock, self._config),
                codes=self._codes,
                capacity=self._capacity,
                config=self._config,
                tanks=resolved.tanks,
                batches=resolved.batches,
                target_lot=resolved.target_lot,
                target_assignment=resolved.target_assignment,
            )
            plan = build_plan(request, scenario)
            outcome = workflow_for(plan, ctx).execute(plan)
            self._session.commit()
        except CellarKernelError as exc:
            return self._reject(exc, scenario, correlation_id, t0), ()
        except Exception as exc:
            self._session.rollback()
            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.error(
                "allocation_failed",
                extra={"duration_ms": duration_ms, "exc_type": type(exc).__name__},
                exc_info=True,
            )
            failure = AllocationFailedError(str(exc), type(exc).__name__)
            result = AllocationResult.aborted(
                AllocationError.from_exception(failure),
                scenario=scenario,
                correlation_id=correlation_id,
            )
            return result, ()

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        with LogContext.bind(lot_id=outcome.lot.id):
            logger.info(
                "allocation_committed",
                extra={
                    "lot_code": outcome.lot.lot_code,
                    "child_lot_count": len(outcome.child_lots),
                    "assignment_count": len(outcome.assignments),
                    "warning_count": len(resolved.warnings),
                    "duration_ms": duration_ms,
                },
            )
        result = AllocationResult.committed(
            scenario,
            outcome,
            warnings=resolved.warnings,
            correlation_id=correlation_id,
        )
        return result, outcome.occupied_tanks

    def _reject(
        self,
        error: CellarKernelError,
        scenario: Scenario | None,
        correlation_id: str,
        t0: float,
        rollback: bool = True,
    ) -> AllocationResult:
        if rollback:
            self._session.rollback()
        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.warning(
            "allocation_rejected",
            extra={
                "code": error.code,
                "reason": str(error),
                "duration_ms": duration_ms,
            },
        )
        return AllocationResult.aborted(
            AllocationError.from_exception(error),
            scenario=scenario,
            correlation_id=correlation_id,
        )

    # -- pre-validation -----------------------------------------------------

    def _prevalidate(
        self,
        request: StartFermentationRequest,
        scenario: Scenario,
        tenant_id: UUID,
    ) -> _Resolved | CellarKernelError:
        """
        Resource, reference and compatibility checks.  Writes nothing.

        Returns the loaded rows, or the first failed check as an unraised
        error.
        """
        into_existing = request.is_blend_into_existing

        tanks = self._tanks.lock_tanks(tenant_id, request.tank_ids)
        for tank_id in request.tank_ids:
            if tank_id not in tanks:
                return TankNotFoundError(tank_id)
        resolved = _Resolved(tanks=tanks)

        if not into_existing:
            report = self._availability.check_availability(
                tenant_id,
                request.allocations,
                request.planned_start,
                request.planned_end,
                tanks=tanks,
            )
            if not report.all_available:
                return TanksUnavailableError([
                    {
                        "tank_id": a.tank_id,
                        "tank_name": a.tank_name,
                        "conflict": a.conflicting_assignment,
                    }
                    for a in report.unavailable()
                ])

        for allocation in request.allocations:
            check = self._capacity.validate_capacity(tanks[allocation.tank_id], allocation.volume)
            if not check.ok:
                return TankOverflowError(
                    tank_id=check.tank_id,
                    tank_name=check.tank_name,
                    capacity=check.capacity,
                    current_volume=check.current_volume,
                    added_volume=check.added_volume,
                    total_after=check.total_after,
                )

        if not into_existing:
            for allocation in request.allocations:
                occupancy = self._tanks.get_occupancy(tenant_id, allocation.tank_id)
                if occupancy is not None and occupancy.is_occupied:
                    occupant = occupancy.active_assignments[0]
                    return TankOccupiedError(
                        tank_id=occupancy.tank_id,
                        tank_name=occupancy.tank_name,
                        occupying_lot_id=occupant.lot_id,
                        occupying_lot_code=occupant.lot_code,
                        phase=occupant.phase,
                    )

        batches = {
            b.id: b
            for b in self._session.execute(
                select(Batch).where(
                    Batch.id.in_(request.batch_ids), Batch.tenant_id == tenant_id
                )
            ).scalars()
        }
        missing = [b for b in request.batch_ids if b not in batches]
        if missing:
            return BatchesNotFoundError(missing)
        resolved.batches = batches

        if into_existing:
            target = self._resolve_target(request, tenant_id, tanks)
            if isinstance(target, CellarKernelError):
                return target
            resolved.target_lot, resolved.target_assignment = target

        if scenario is Scenario.BLEND:
            compat = self._compatibility.validate_blend_compatibility(
                tenant_id, request.batch_ids
            )
            if not compat.compatible:
                return BlendIncompatibleError(list(compat.errors), list(compat.warnings))
            resolved.warnings = compat.warnings

        return resolved

    def _resolve_target(
        self,
        request: StartFermentationRequest,
        tenant_id: UUID,
        tanks: dict[UUID, Tank],
    ) -> tuple[Lot, TankAssignment] | CellarKernelError:
        """The blend target lot and its live assignment in the requested vessel."""
        lot = self._lots.get_lot(tenant_id, request.target_lot_id)
        if lot is None:
            return TargetLotNotFoundError(request.target_lot_id)

        assignment = self._lots.get_live_assignment(lot.id, lock=True)
        if assignment is None:
            return TargetLotNotInTankError(lot.id, lot.lot_code)

        requested_tank = tanks[request.allocations[0].tank_id]
        if assignment.tank_id != requested_tank.id:
            return TargetLotNotInTankError(
                lot.id,
                lot.lot_code,
                tank_id=requested_tank.id,
                tank_name=requested_tank.name,
            )
        logger.info(
            "blend_target_resolved",
            extra={
                "target_lot_id": str(lot.id),
                "target_lot_code": lot.lot_code,
                "assignment_id": str(assignment.id),
                "assignment_status": enum_value(assignment.status),
            },
        )
        return lot, assignment

    # -- post-commit --------------------------------------------------------

    def _sync_display(
        self,
        result: AllocationResult,
        tenant_id: UUID,
        occupied: tuple[tuple[UUID, UUID, str], ...],
    ) -> AllocationResult:
        try:
            TankDisplayService(self._session).sync(tenant_id, occupied)
        except Exception:
            logger.warning(
                "tank_display_sync_failed",
                extra={"tank_ids": [str(tank_id) for tank_id, _, _ in occupied]},
                exc_info=True,
            )
            return replace(result, display_synced=False)
        return replace(result, display_synced=True)


def build_allocation_orchestrator(
    session: Session,
    config_path: Path | str | None = None,
    clock: Clock | None = None,
) -> AllocationOrchestrator:
    """
    Build an orchestrator from the active configuration file.

    This is the production entry point.  The file is ``config_path`` when
    given, else ``CELLAR_CONFIG_PATH``, else the shipped default set.
    """
    return AllocationOrchestrator(
        session=session,
        clock=clock or SystemClock(),
        config=get_active_config(config_path),
    )
