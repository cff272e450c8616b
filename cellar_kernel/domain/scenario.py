"""
Scenario classification for fermentation start requests.

Pure function over (batch count, allocation count, blend flag).  The blend
flag wins over structure; otherwise one batch into one vessel is SIMPLE,
one batch into several vessels is SPLIT, several batches into one vessel
is BLEND.  Several batches into several vessels is ambiguous and rejected.
"""

from enum import Enum

from cellar_kernel.exceptions import InvalidCombinationError


class Scenario(str, Enum):
    """Allocation scenario chosen for a request."""

    SIMPLE = "SIMPLE"
    SPLIT = "SPLIT"
    BLEND = "BLEND"


def is_split_and_blend(
    batch_count: int, allocation_count: int, blend_requested: bool = False
) -> bool:
    """
    True when the request asks to split and blend at once.

    An explicit blend into more than one vessel counts as well: a blend
    always lands in a single vessel.
    """
    if allocation_count <= 1:
        return False
    return batch_count > 1 or blend_requested


def classify(batch_count: int, allocation_count: int, blend_requested: bool) -> Scenario:
    """
    Map request shape to a Scenario.

    Raises:
        ValueError: if either count is below 1.
        InvalidCombinationError: several batches AND several vessels without
            an explicit blend flag.  The orchestrator rejects this shape
            before classification, so it is unreachable from there.
    """
    if batch_count < 1 or allocation_count < 1:
        raise ValueError(
            f"classify() needs at least one batch and one allocation "
            f"(got {batch_count} batches, {allocation_count} allocations)"
        )

    if blend_requested:
        return Scenario.BLEND
    if batch_count == 1 and allocation_count == 1:
        return Scenario.SIMPLE
    if batch_count == 1:
        return Scenario.SPLIT
    if allocation_count == 1:
        return Scenario.BLEND
    raise InvalidCombinationError(batch_count, allocation_count)
