"""
Loopback Simulation Runtime

In-memory stand-in for a vendor simulation runtime. Models only the
Off/Stop/Run lifecycle of each instance, with optional fault injection.
The instance manifest can be loaded from and saved to YAML so the CLI
keeps runtime state between invocations.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

import yaml

from simfleet.core.exceptions import CapabilityError, ConfigError, RuntimeUnavailableError
from simfleet.core.schema import OperatingState
from simfleet.runtime.base import InstanceSource, SimulationInstance

logger = logging.getLogger(__name__)

OPERATIONS = ("power_on", "power_off", "run", "stop")


class LoopbackInstance(SimulationInstance):
    """A simulated controller whose state lives in this process."""

    def __init__(
        self,
        name: str,
        state: OperatingState = OperatingState.OFF,
        process_id: Optional[int] = None,
        fail_on: Optional[Iterable[str]] = None,
    ):
        if not name:
            raise ValueError("Instance name must not be empty")
        self._name = name
        self._state = state
        self._process_id = process_id
        self.fail_on: Set[str] = set(fail_on or [])
        unknown = self.fail_on - set(OPERATIONS)
        if unknown:
            raise ValueError(f"Unknown operations in fail_on: {sorted(unknown)}")
        self.calls: List[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def operating_state(self) -> OperatingState:
        return self._state

    @property
    def process_id(self) -> Optional[int]:
        return self._process_id

    def power_on(self) -> None:
        self._enter("power_on")
        if self._state != OperatingState.OFF:
            raise CapabilityError(f"{self._name} is already powered on", self._name, "power_on")
        self._state = OperatingState.STOP

    def power_off(self) -> None:
        self._enter("power_off")
        if self._state == OperatingState.OFF:
            raise CapabilityError(f"{self._name} is already powered off", self._name, "power_off")
        self._state = OperatingState.OFF

    def run(self) -> None:
        self._enter("run")
        if self._state == OperatingState.OFF:
            raise CapabilityError(f"{self._name} is powered off", self._name, "run")
        self._state = OperatingState.RUN

    def stop(self) -> None:
        self._enter("stop")
        if self._state == OperatingState.OFF:
            raise CapabilityError(f"{self._name} is powered off", self._name, "stop")
        self._state = OperatingState.STOP

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        logger.debug(f"{self._name}: {operation} (state={self._state.value})")
        if operation in self.fail_on:
            raise CapabilityError(f"Injected fault on {operation}", self._name, operation)

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"name": self._name, "state": self._state.value}
        if self._process_id is not None:
            entry["process_id"] = self._process_id
        if self.fail_on:
            entry["fail_on"] = sorted(self.fail_on)
        return entry


class LoopbackRuntime(InstanceSource):
    """
    Registry of loopback instances acting as the upstream source of truth.

    Set ``available`` to False to simulate a runtime that cannot be reached.
    """

    def __init__(self, instances: Optional[Iterable[LoopbackInstance]] = None):
        self._instances: Dict[str, LoopbackInstance] = {}
        self.available = True
        for instance in instances or []:
            self._add(instance)

    def _add(self, instance: LoopbackInstance) -> None:
        if instance.name in self._instances:
            raise ValueError(f"Duplicate instance name: {instance.name}")
        self._instances[instance.name] = instance

    def register_instance(
        self,
        name: str,
        state: OperatingState = OperatingState.OFF,
        process_id: Optional[int] = None,
    ) -> LoopbackInstance:
        """Create a new instance upstream."""
        instance = LoopbackInstance(name, state=state, process_id=process_id)
        self._add(instance)
        logger.info(f"Registered loopback instance: {name}")
        return instance

    def list_instances(self) -> List[SimulationInstance]:
        if not self.available:
            raise RuntimeUnavailableError("Loopback runtime is unavailable", operation="list_instances")
        return list(self._instances.values())

    def unregister(self, name: str) -> None:
        if not self.available:
            raise RuntimeUnavailableError("Loopback runtime is unavailable", name, "unregister")
        if name not in self._instances:
            raise CapabilityError(f"No such instance: {name}", name, "unregister")
        del self._instances[name]
        logger.info(f"Unregistered loopback instance: {name}")

    def get(self, name: str) -> Optional[LoopbackInstance]:
        return self._instances.get(name)

    # =========================================================================
    # Manifest I/O
    # =========================================================================

    @classmethod
    def from_manifest(cls, manifest_path: Union[str, Path]) -> "LoopbackRuntime":
        """Load instances from a YAML manifest. A missing file yields an empty runtime."""
        path = Path(manifest_path)
        if not path.exists():
            logger.warning(f"Manifest not found, starting empty: {manifest_path}")
            return cls()

        try:
            with open(path, "r") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {manifest_path}: {e}") from e

        entries = raw.get("instances", []) if isinstance(raw, dict) else None
        if not isinstance(entries, list):
            raise ConfigError(f"Manifest 'instances' must be a list: {manifest_path}")

        instances = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("name"):
                raise ConfigError(f"Manifest entry without a name: {entry!r}")
            try:
                instances.append(
                    LoopbackInstance(
                        name=str(entry["name"]),
                        state=OperatingState.parse(entry.get("state", "off")),
                        process_id=entry.get("process_id"),
                        fail_on=entry.get("fail_on"),
                    )
                )
            except ValueError as e:
                raise ConfigError(f"Bad manifest entry {entry['name']}: {e}") from e

        try:
            runtime = cls(instances)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        logger.debug(f"Loaded {len(instances)} instances from {manifest_path}")
        return runtime

    def save_manifest(self, manifest_path: Union[str, Path]) -> None:
        """Write the current instances and states back to a YAML manifest."""
        path = Path(manifest_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {"instances": [i.to_dict() for i in self._instances.values()]}
        with open(path, "w") as f:
            yaml.safe_dump(data, f, sort_keys=False)
