"""
Configuration schema (``cellar_config.schema``).

Responsibility
--------------
Typed, frozen settings consumed by the allocation engine.  A leaf module:
it imports nothing from ``cellar_kernel``, so kernel services may take an
``AllocationConfig`` without pulling in the YAML loader.

Invariants enforced
-------------------
* Every status name is one the engine knows.
* Precision settings are non-negative and fit the stored column scale.
* The default gravity temperature is a plausible wort temperature.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Self

_logger = logging.getLogger("cellar_kernel.config")

VALID_TANK_STATUSES = frozenset({
    "OPERATIONAL", "IN_USE", "NEEDS_CIP", "CIP", "MAINTENANCE", "OUT_OF_SERVICE",
})
VALID_ASSIGNMENT_STATUSES = frozenset({"PLANNED", "ACTIVE", "COMPLETED", "CANCELLED"})
VALID_PHASES = frozenset({"FERMENTATION", "CONDITIONING", "BRIGHT", "PACKAGING"})
VALID_TRANSFER_TYPES = frozenset({"SPLIT", "BLEND"})

# Stored column scale: Numeric(18, 3) volumes, Numeric(9, 4) percentages
MAX_VOLUME_PLACES = 3
MAX_PERCENTAGE_PLACES = 4

_DEFAULT_LOT_CODE_PREFIXES = {
    "FERMENTATION": "FERM",
    "CONDITIONING": "COND",
    "BRIGHT": "BRT",
    "PACKAGING": "PKG",
}

_DEFAULT_TRANSFER_CODE_PREFIXES = {
    "SPLIT": "SPLIT",
    "BLEND": "BLEND",
}


def _frozen_mapping(data: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(data))


@dataclass(frozen=True)
class AllocationConfig:
    """
    Settings for the fermentation allocation engine.

    Override individual fields for a site:

        config = AllocationConfig(require_matching_yeast=False)
    """

    # Gravity readings recorded without a temperature get this value (Celsius)
    default_gravity_temperature: Decimal = Decimal("20")

    # Lot codes
    lot_code_prefixes: Mapping[str, str] = field(
        default_factory=lambda: _frozen_mapping(_DEFAULT_LOT_CODE_PREFIXES)
    )
    blend_code_prefix: str = "BLEND"
    transfer_code_prefixes: Mapping[str, str] = field(
        default_factory=lambda: _frozen_mapping(_DEFAULT_TRANSFER_CODE_PREFIXES)
    )

    # Availability
    unavailable_tank_statuses: tuple[str, ...] = (
        "IN_USE", "NEEDS_CIP", "CIP", "MAINTENANCE", "OUT_OF_SERVICE",
    )
    blocking_assignment_statuses: tuple[str, ...] = ("PLANNED", "ACTIVE")

    # Rounding
    volume_places: int = 3
    percentage_places: int = 4

    # Blend policy
    require_matching_yeast: bool = True

    # Post-commit vessel display update
    sync_tank_display: bool = True

    def __post_init__(self) -> None:
        # Normalize container types so YAML lists and plain dicts are accepted
        object.__setattr__(self, "default_gravity_temperature",
                           Decimal(str(self.default_gravity_temperature)))
        object.__setattr__(self, "lot_code_prefixes",
                           _frozen_mapping(self.lot_code_prefixes))
        object.__setattr__(self, "transfer_code_prefixes",
                           _frozen_mapping(self.transfer_code_prefixes))
        object.__setattr__(self, "unavailable_tank_statuses",
                           tuple(s.upper() for s in self.unavailable_tank_statuses))
        object.__setattr__(self, "blocking_assignment_statuses",
                           tuple(s.upper() for s in self.blocking_assignment_statuses))

        unknown = set(self.unavailable_tank_statuses) - VALID_TANK_STATUSES
        if unknown:
            raise ValueError(f"unavailable_tank_statuses has unknown values: {sorted(unknown)}")
        if "OPERATIONAL" in self.unavailable_tank_statuses:
            raise ValueError("OPERATIONAL tanks cannot be configured as unavailable")

        unknown = set(self.blocking_assignment_statuses) - VALID_ASSIGNMENT_STATUSES
        if unknown:
            raise ValueError(
                f"blocking_assignment_statuses has unknown values: {sorted(unknown)}"
            )
        if "ACTIVE" not in self.blocking_assignment_statuses:
            raise ValueError("blocking_assignment_statuses must include ACTIVE")

        missing = VALID_PHASES - set(self.lot_code_prefixes)
        if missing:
            raise ValueError(f"lot_code_prefixes missing phases: {sorted(missing)}")
        missing = VALID_TRANSFER_TYPES - set(self.transfer_code_prefixes)
        if missing:
            raise ValueError(f"transfer_code_prefixes missing types: {sorted(missing)}")
        for prefix in (
            *self.lot_code_prefixes.values(),
            *self.transfer_code_prefixes.values(),
            self.blend_code_prefix,
        ):
            if not prefix or not prefix.isalnum():
                raise ValueError(f"code prefix must be non-empty alphanumeric, got '{prefix}'")

        if not 0 <= self.volume_places <= MAX_VOLUME_PLACES:
            raise ValueError(f"volume_places must be between 0 and {MAX_VOLUME_PLACES}")
        if not 0 <= self.percentage_places <= MAX_PERCENTAGE_PLACES:
            raise ValueError(
                f"percentage_places must be between 0 and {MAX_PERCENTAGE_PLACES}"
            )

        if not Decimal("-5") <= self.default_gravity_temperature <= Decimal("40"):
            raise ValueError("default_gravity_temperature must be between -5 and 40 C")

    def lot_code_prefix(self, phase: str) -> str:
        return self.lot_code_prefixes[phase]

    def transfer_code_prefix(self, transfer_type: str) -> str:
        return self.transfer_code_prefixes[transfer_type]

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """
        Build from a plain mapping (parsed YAML).

        Raises:
            ValueError: unknown keys or invalid values.
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown allocation config keys: {sorted(unknown)}")
        _logger.debug(
            "allocation_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_gravity_temperature": str(self.default_gravity_temperature),
            "lot_code_prefixes": dict(self.lot_code_prefixes),
            "blend_code_prefix": self.blend_code_prefix,
            "transfer_code_prefixes": dict(self.transfer_code_prefixes),
            "unavailable_tank_statuses": list(self.unavailable_tank_statuses),
            "blocking_assignment_statuses": list(self.blocking_assignment_statuses),
            "volume_places": self.volume_places,
            "percentage_places": self.percentage_places,
            "require_matching_yeast": self.require_matching_yeast,
            "sync_tank_display": self.sync_tank_display,
        }
