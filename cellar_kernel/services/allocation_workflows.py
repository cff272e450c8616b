"""
Allocation workflows -- the write phase of a fermentation start.

Responsibility:
    One class per plan variant:

        SimplePlan -> SimpleWorkflow   one batch, one vessel
        SplitPlan  -> SplitWorkflow    one batch, N vessels (parent + children)
        BlendPlan  -> BlendWorkflow    M batches into one vessel/lot

    ``workflow_for(plan)`` is the only dispatch point.  It looks the plan's
    type up in ``WORKFLOWS`` and raises ``TypeError`` for anything else.

Architecture position:
    Kernel > Services.  Invoked by AllocationOrchestrator after every
    pre-validation check has passed, inside its transaction.  Workflows
    flush but never commit.

Invariants enforced:
    - SPLIT child percentages sum to exactly 100; child volumes sum to the
      requested total.
    - BLEND contributions sum to exactly the blended volume and their
      percentages to exactly 100.
    - BLEND re-checks capacity against the target assignment after the
      batches are linked and raises TankOverflowError on failure, which
      aborts the whole transaction.
    - A blend-coded lot is never re-coded.

Failure modes:
    - TankOverflowError from the BLEND capacity re-check.
    - Any database error propagates to the orchestrator, which rolls back.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Any, ClassVar
from uuid import UUID

from cellar_config.schema import AllocationConfig
from cellar_kernel.db.types import round_percentage, round_volume
from cellar_kernel.domain.requests import AllocationPlan, BlendPlan, SimplePlan, SplitPlan
from cellar_kernel.domain.results import AssignmentSummary, LotSummary, WorkflowOutcome
from cellar_kernel.domain.scenario import Scenario
from cellar_kernel.exceptions import TankOverflowError
from cellar_kernel.logging_config import get_logger
from cellar_kernel.models.batch import Batch, TimelineEventType
from cellar_kernel.models.lot import Lot
from cellar_kernel.models.tank import Tank
from cellar_kernel.models.tank_assignment import TankAssignment
from cellar_kernel.models.transfer import TransferType
from cellar_kernel.services.capacity_service import CapacityValidator
from cellar_kernel.services.lineage_service import LineageService
from cellar_kernel.services.lot_code_service import LotCodeService

logger = get_logger("services.workflows")

HUNDRED = Decimal("100")


# ---------------------------------------------------------------------------
# Share arithmetic
# ---------------------------------------------------------------------------


def split_percentages(volumes: Sequence[Decimal], places: int = 4) -> list[Decimal]:
    """
    Whole-number share of each volume, the last absorbing the remainder.

    Each share but the last is round(volume / total * 100) half-up.  If
    rounding pushes those past 100 the shares are taken from the running
    total instead, so no share is ever negative.
    """
    if not volumes:
        return []
    total = sum(volumes, Decimal("0"))
    if total <= 0:
        raise ValueError("split_percentages() needs a positive total volume")

    def whole(value: Decimal) -> Decimal:
        return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)

    shares = [whole(v / total * HUNDRED) for v in volumes[:-1]]
    if sum(shares, Decimal("0")) > HUNDRED:
        shares = []
        running = Decimal("0")
        previous = Decimal("0")
        for v in volumes[:-1]:
            running += v
            cumulative = whole(running / total * HUNDRED)
            shares.append(cumulative - previous)
            previous = cumulative
    shares.append(HUNDRED - sum(shares, Decimal("0")))
    return [round_percentage(s, places) for s in shares]


def even_shares(total: Decimal, count: int, places: int) -> list[Decimal]:
    """
    ``count`` equal parts of ``total`` at ``places``, the last absorbing the remainder.

    Parts are truncated, so the last part is never smaller than the others.
    """
    if count < 1:
        raise ValueError("even_shares() needs at least one part")
    part = (total / count).quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)
    return [part] * (count - 1) + [total - part * (count - 1)]


def _json_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """Timeline payloads are stored as JSON: stringify ids and decimals."""
    out: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, (UUID, Decimal)):
            out[key] = str(value)
        elif isinstance(value, list):
            out[key] = [_json_data(v) if isinstance(v, Mapping) else str(v) for v in value]
        else:
            out[key] = value
    return out


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


@dataclass
class WorkflowContext:
    """Everything pre-validation resolved, handed to the write phase."""

    tenant_id: UUID
    lineage: LineageService
    codes: LotCodeService
    capacity: CapacityValidator
    config: AllocationConfig
    tanks: Mapping[UUID, Tank]
    batches: Mapping[UUID, Batch]
    target_lot: Lot | None = None
    target_assignment: TankAssignment | None = None


class AllocationWorkflow(ABC):
    """Base for the three scenario workflows."""

    scenario: ClassVar[Scenario]

    def __init__(self, ctx: WorkflowContext):
        self.ctx = ctx

    def _volume(self, value: Decimal) -> Decimal:
        return round_volume(value, self.ctx.config.volume_places)

    def _percentage(self, value: Decimal) -> Decimal:
        return round_percentage(value, self.ctx.config.percentage_places)

    @abstractmethod
    def execute(self, plan: AllocationPlan) -> WorkflowOutcome:
        ...


class SimpleWorkflow(AllocationWorkflow):
    """One batch into one vessel."""

    scenario = Scenario.SIMPLE

    def execute(self, plan: SimplePlan) -> WorkflowOutcome:
        ctx = self.ctx
        request = plan.request
        batch = ctx.batches[plan.batch_id]
        tank = ctx.tanks[plan.allocation.tank_id]
        volume = self._volume(plan.allocation.volume)

        lot = ctx.lineage.create_lot(
            tenant_id=ctx.tenant_id,
            lot_code=ctx.codes.next_lot_code(ctx.tenant_id),
            planned_volume=volume,
            notes=request.notes,
        )
        ctx.lineage.link_batch(lot, batch, volume, self._percentage(HUNDRED))
        assignment = ctx.lineage.create_assignment(
            ctx.tenant_id, tank.id, lot, request.planned_start, request.planned_end, volume
        )
        ctx.lineage.start_fermenting(batch)
        ctx.lineage.append_timeline(
            batch,
            TimelineEventType.FERMENTATION_STARTED,
            title="Fermentation started",
            description=f"Tank: {tank.name}, volume: {volume}",
            data=_json_data({
                "lot_id": lot.id,
                "tank_id": tank.id,
                "tank_name": tank.name,
                "volume": volume,
                "actual_og": request.actual_og,
                "temperature": request.temperature,
            }),
        )
        if request.actual_og is not None:
            ctx.lineage.record_gravity(
                batch,
                request.actual_og,
                request.temperature,
                notes="Fermentation start - original gravity (OG)",
            )

        return WorkflowOutcome(
            lot=LotSummary.from_model(lot),
            assignments=(AssignmentSummary.from_model(assignment, tank.name),),
            message=f"Fermentation started in {tank.name}",
            tank_name=tank.name,
            occupied_tanks=((tank.id, batch.id, batch.batch_number),),
        )


class SplitWorkflow(AllocationWorkflow):
    """One batch into several vessels: a parent lot plus one child per vessel."""

    scenario = Scenario.SPLIT

    def execute(self, plan: SplitPlan) -> WorkflowOutcome:
        ctx = self.ctx
        request = plan.request
        batch = ctx.batches[plan.batch_id]
        volumes = [self._volume(a.volume) for a in plan.allocations]
        total = sum(volumes, Decimal("0"))
        percentages = split_percentages(volumes, ctx.config.percentage_places)
        source_tank_id = plan.allocations[0].tank_id

        parent_notes = f"Split into {len(plan.allocations)} tanks."
        if request.notes:
            parent_notes = f"{parent_notes} {request.notes}"
        parent = ctx.lineage.create_lot(
            tenant_id=ctx.tenant_id,
            lot_code=ctx.codes.next_lot_code(ctx.tenant_id),
            planned_volume=total,
            notes=parent_notes,
        )
        ctx.lineage.link_batch(parent, batch, total, self._percentage(HUNDRED))

        children: list[LotSummary] = []
        assignments: list[AssignmentSummary] = []
        occupied: list[tuple[UUID, UUID, str]] = []
        for index, (allocation, volume, percentage) in enumerate(
            zip(plan.allocations, volumes, percentages)
        ):
            tank = ctx.tanks[allocation.tank_id]
            child = ctx.lineage.create_lot(
                tenant_id=ctx.tenant_id,
                lot_code=ctx.codes.child_lot_code(parent.lot_code, index),
                planned_volume=volume,
                parent_lot_id=parent.id,
            )
            ctx.lineage.link_batch(child, batch, volume, percentage)
            assignment = ctx.lineage.create_assignment(
                ctx.tenant_id, tank.id, child, request.planned_start, request.planned_end, volume
            )
            ctx.lineage.record_transfer(
                tenant_id=ctx.tenant_id,
                transfer_code=ctx.codes.next_transfer_code(ctx.tenant_id, TransferType.SPLIT),
                transfer_type=TransferType.SPLIT,
                source_tank_id=source_tank_id,
                dest_tank_id=tank.id,
                source_lot_id=parent.id,
                dest_lot_id=child.id,
                volume=volume,
            )
            children.append(LotSummary.from_model(child))
            assignments.append(AssignmentSummary.from_model(assignment, tank.name))
            occupied.append((tank.id, batch.id, batch.batch_number))

        ctx.lineage.start_fermenting(batch)
        tank_names = [ctx.tanks[a.tank_id].name for a in plan.allocations]
        ctx.lineage.append_timeline(
            batch,
            TimelineEventType.FERMENTATION_STARTED,
            title="Fermentation started (split)",
            description=f"Split into {len(tank_names)} tanks: {', '.join(tank_names)}",
            data=_json_data({
                "lot_id": parent.id,
                "child_lot_ids": [c.id for c in children],
                "tanks": [
                    {"tank_id": a.tank_id, "tank_name": a.tank_name, "volume": a.planned_volume}
                    for a in assignments
                ],
                "total_volume": total,
                "actual_og": request.actual_og,
                "temperature": request.temperature,
            }),
        )
        if request.actual_og is not None:
            ctx.lineage.record_gravity(
                batch,
                request.actual_og,
                request.temperature,
                notes="Fermentation start (split) - original gravity (OG)",
            )

        logger.info(
            "split_completed",
            extra={
                "parent_lot_id": str(parent.id),
                "child_count": len(children),
                "total_volume": total,
            },
        )
        return WorkflowOutcome(
            lot=LotSummary.from_model(parent),
            child_lots=tuple(children),
            assignments=tuple(assignments),
            message=f"Split into {len(children)} tanks",
            occupied_tanks=tuple(occupied),
        )


class BlendWorkflow(AllocationWorkflow):
    """Several batches into one vessel, into a new blend lot or an existing lot."""

    scenario = Scenario.BLEND

    def _new_target(self, plan: BlendPlan, tank: Tank) -> tuple[Lot, TankAssignment]:
        ctx = self.ctx
        request = plan.request
        lot = ctx.lineage.create_lot(
            tenant_id=ctx.tenant_id,
            lot_code=ctx.codes.next_blend_code(ctx.tenant_id),
            planned_volume=Decimal("0"),
            notes=request.notes or f"Blend of {len(plan.batch_ids)} batches",
            is_blend_result=True,
            is_blend_target=True,
        )
        # Created empty; the volume is added after the capacity re-check
        assignment = ctx.lineage.create_assignment(
            ctx.tenant_id,
            tank.id,
            lot,
            request.planned_start,
            request.planned_end,
            Decimal("0"),
        )
        return lot, assignment

    def execute(self, plan: BlendPlan) -> WorkflowOutcome:
        ctx = self.ctx
        request = plan.request
        added = self._volume(plan.allocation.volume)
        batch_count = len(plan.batch_ids)

        if plan.into_existing:
            lot = ctx.target_lot
            assignment = ctx.target_assignment
            tank = ctx.tanks[assignment.tank_id]
        else:
            tank = ctx.tanks[plan.allocation.tank_id]
            lot, assignment = self._new_target(plan, tank)

        contributions = even_shares(added, batch_count, ctx.config.volume_places)
        percentages = even_shares(HUNDRED, batch_count, ctx.config.percentage_places)

        for batch_id, contribution, percentage in zip(plan.batch_ids, contributions, percentages):
            batch = ctx.batches[batch_id]
            ctx.lineage.link_batch(lot, batch, contribution, percentage)
            ctx.lineage.start_fermenting(batch)
            ctx.lineage.append_timeline(
                batch,
                TimelineEventType.NOTE,
                title="Batch blended",
                description=f"Blended into lot {lot.lot_code}, tank: {tank.name}",
                data=_json_data({
                    "lot_id": lot.id,
                    "tank_id": tank.id,
                    "volume": contribution,
                }),
            )
            if request.actual_og is not None:
                ctx.lineage.record_gravity(
                    batch,
                    request.actual_og,
                    request.temperature,
                    notes="Blend - original gravity (OG)",
                )
            ctx.lineage.record_transfer(
                tenant_id=ctx.tenant_id,
                transfer_code=ctx.codes.next_transfer_code(ctx.tenant_id, TransferType.BLEND),
                transfer_type=TransferType.BLEND,
                dest_tank_id=tank.id,
                dest_lot_id=lot.id,
                source_batch_id=batch.id,
                volume=contribution,
            )

        ctx.lineage.mark_blended(lot)
        ctx.codes.ensure_blend_code(lot)

        check = ctx.capacity.validate_assignment_capacity(assignment, tank, added)
        if not check.ok:
            raise TankOverflowError(
                tank_id=tank.id,
                tank_name=tank.name,
                capacity=check.capacity,
                current_volume=check.current_volume,
                added_volume=added,
                total_after=check.total_after,
            )
        ctx.lineage.add_volume(lot, assignment, added)

        logger.info(
            "blend_completed",
            extra={
                "lot_id": str(lot.id),
                "lot_code": lot.lot_code,
                "batch_count": batch_count,
                "added_volume": added,
                "into_existing": plan.into_existing,
            },
        )
        return WorkflowOutcome(
            lot=LotSummary.from_model(lot),
            assignments=(AssignmentSummary.from_model(assignment, tank.name),),
            message=f"{batch_count} batches blended into {tank.name}",
            batch_count=batch_count,
            tank_name=tank.name,
        )


WORKFLOWS: dict[type, type[AllocationWorkflow]] = {
    SimplePlan: SimpleWorkflow,
    SplitPlan: SplitWorkflow,
    BlendPlan: BlendWorkflow,
}


def workflow_for(plan: AllocationPlan, ctx: WorkflowContext) -> AllocationWorkflow:
    """Instantiate the workflow registered for ``type(plan)``."""
    try:
        workflow_cls = WORKFLOWS[type(plan)]
    except KeyError:
        raise TypeError(f"No workflow registered for plan type {type(plan).__name__}") from None
    return workflow_cls(ctx)
