"""
Fleet Configuration

Defaults for process discovery, affinity policy, and confirmation gating.
Supports loading from YAML config files.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from simfleet.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_PROCESS_NAME = "Siemens.Simatic.Simulation.Runtime.Instance.x64"

DEFAULT_CONFIRM_OPERATIONS = [
    "power_off_all",
    "stop_all",
    "toggle_run_stop",
    "remove_instance",
]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class FleetConfig:
    """Fleet controller configuration."""

    # Worker process discovery
    process_name: str = DEFAULT_PROCESS_NAME

    # Affinity
    core_count: Optional[int] = None  # None = ask the OS
    default_mask: Optional[List[int]] = None  # None = every core
    correlate_by_pid: bool = True

    # Entry points that must pass the confirmation gate
    confirm_operations: List[str] = field(
        default_factory=lambda: list(DEFAULT_CONFIRM_OPERATIONS)
    )

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        if not isinstance(self.process_name, str) or not self.process_name:
            raise ConfigError(f"process_name must be a non-empty string, got {self.process_name!r}")

        if self.core_count is not None:
            if not _is_int(self.core_count) or self.core_count < 1:
                raise ConfigError(f"core_count must be an integer >= 1, got {self.core_count!r}")

        if self.default_mask is not None:
            if (
                not isinstance(self.default_mask, list)
                or not self.default_mask
                or not all(_is_int(c) and c >= 0 for c in self.default_mask)
            ):
                raise ConfigError(f"default_mask must list core indices, got {self.default_mask!r}")

        if not isinstance(self.correlate_by_pid, bool):
            raise ConfigError(f"correlate_by_pid must be true or false, got {self.correlate_by_pid!r}")

        if not isinstance(self.confirm_operations, list) or not all(
            isinstance(op, str) for op in self.confirm_operations
        ):
            raise ConfigError(
                f"confirm_operations must be a list of operation names, got {self.confirm_operations!r}"
            )

        if not isinstance(self.log_level, str):
            raise ConfigError(f"log_level must be a string, got {self.log_level!r}")

    def requires_confirmation(self, operation: str) -> bool:
        return operation in self.confirm_operations

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FleetConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown fleet config keys: {', '.join(unknown)}")
        return cls(**data)


def load_config(config_path: Optional[Union[str, Path]] = None) -> FleetConfig:
    """
    Load fleet configuration from a YAML file.

    The file holds a top-level ``fleet`` mapping. A missing path yields
    the defaults.
    """
    if config_path is None:
        return FleetConfig()

    path = Path(config_path)
    if not path.exists():
        logger.warning(f"Fleet config not found: {config_path}")
        return FleetConfig()

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Fleet config must be a mapping: {config_path}")

    section = raw.get("fleet", {}) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'fleet' section must be a mapping: {config_path}")

    config = FleetConfig.from_dict(section)
    logger.info(f"Loaded fleet config from {config_path}")
    return config
