"""
Configuration loader (``cellar_config.loader``).

Responsibility
--------------
Reads a YAML configuration file and parses it into an ``AllocationConfig``.
Runtime callers go through ``cellar_config.get_active_config()``.

File layout
-----------
::

    config_id: default
    version: 1
    allocation:
      default_gravity_temperature: 20
      require_matching_yeast: true
      ...

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``allocation`` section or unknown keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from cellar_config.schema import AllocationConfig


@dataclass(frozen=True)
class LoadedConfig:
    """An ``AllocationConfig`` plus the identity of the file it came from."""

    config_id: str
    version: int
    checksum: str
    source: Path
    allocation: AllocationConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the parsed configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any], source: Path) -> LoadedConfig:
    """Parse a loaded YAML document into a ``LoadedConfig``."""
    if "allocation" not in data:
        raise ValueError(f"{source}: missing 'allocation' section")
    section = data["allocation"] or {}
    if not isinstance(section, dict):
        raise ValueError(f"{source}: 'allocation' must be a mapping")
    return LoadedConfig(
        config_id=str(data.get("config_id", source.stem)),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        source=source,
        allocation=AllocationConfig.from_dict(section),
    )


def load_config(path: Path | str) -> LoadedConfig:
    """Load and parse one configuration file."""
    path = Path(path)
    return parse_config(load_yaml_file(path), path)
