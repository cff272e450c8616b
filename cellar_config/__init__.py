"""
cellar_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` is the one way runtime code obtains an
    ``AllocationConfig``.  The file is chosen in this order: the explicit
    ``path`` argument, the ``CELLAR_CONFIG_PATH`` environment variable, the
    shipped ``sets/default.yaml``.

Audit relevance:
    Every successful call emits a ``cellar_config_loaded`` log entry with
    the config id, version, checksum and source path.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from cellar_config.loader import LoadedConfig, load_config
from cellar_config.schema import AllocationConfig

_logger = logging.getLogger("cellar_kernel.config")

CONFIG_PATH_ENV = "CELLAR_CONFIG_PATH"
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def resolve_config_path(path: Path | str | None = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return _DEFAULT_CONFIG_PATH


def get_active_config(path: Path | str | None = None) -> AllocationConfig:
    """
    Load the active allocation configuration.

    Raises:
        FileNotFoundError: configured file does not exist.
        ValueError: file fails schema validation.
    """
    loaded = load_config(resolve_config_path(path))
    _logger.info(
        "cellar_config_loaded",
        extra={
            "config_id": loaded.config_id,
            "config_version": loaded.version,
            "config_checksum": loaded.checksum,
            "config_source": str(loaded.source),
        },
    )
    return loaded.allocation


__all__ = [
    "AllocationConfig",
    "LoadedConfig",
    "CONFIG_PATH_ENV",
    "get_active_config",
    "load_config",
    "resolve_config_path",
]
