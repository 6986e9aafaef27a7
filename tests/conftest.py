"""
SimFleet Test Configuration and Fixtures
========================================
Shared fixtures and test doubles for all tests.
"""

import pytest
from pathlib import Path
from typing import Iterable, List, Optional

from simfleet.affinity.processes import ProcessHandle, ProcessInspector
from simfleet.core.config import FleetConfig
from simfleet.core.notifier import StateChangeNotifier
from simfleet.core.schema import InstanceChanged, Issue, OperatingState
from simfleet.runtime.base import InstanceSource, SimulationInstance


# =============================================================================
# Test Doubles
# =============================================================================

class FakeInstance(SimulationInstance):
    """Records capability calls; state changes only when told to."""

    def __init__(
        self,
        name: str,
        state: OperatingState = OperatingState.OFF,
        fail_on: Iterable[str] = (),
        process_id: Optional[int] = None,
        follow_transitions: bool = False,
    ):
        self._name = name
        self.state = state
        self.fail_on = set(fail_on)
        self._process_id = process_id
        self.follow_transitions = follow_transitions
        self.calls: List[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def operating_state(self) -> OperatingState:
        return self.state

    @property
    def process_id(self) -> Optional[int]:
        return self._process_id

    def _call(self, operation: str, new_state: OperatingState) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise RuntimeError(f"{operation} rejected by runtime")
        if self.follow_transitions:
            self.state = new_state

    def power_on(self) -> None:
        self._call("power_on", OperatingState.STOP)

    def power_off(self) -> None:
        self._call("power_off", OperatingState.OFF)

    def run(self) -> None:
        self._call("run", OperatingState.RUN)

    def stop(self) -> None:
        self._call("stop", OperatingState.STOP)


class FakeSource(InstanceSource):
    """Instance listing that can be switched to unavailable."""

    def __init__(self, instances: Iterable[SimulationInstance] = ()):
        self.instances = list(instances)
        self.available = True
        self.unregistered: List[str] = []
        self.fail_unregister = False

    def list_instances(self) -> List[SimulationInstance]:
        if not self.available:
            raise ConnectionError("runtime not reachable")
        return list(self.instances)

    def unregister(self, name: str) -> None:
        if self.fail_unregister:
            raise RuntimeError("instance is locked")
        self.unregistered.append(name)
        self.instances = [i for i in self.instances if i.name != name]


class FakeProcess(ProcessHandle):
    """Process handle that remembers every mask applied to it."""

    def __init__(self, pid: int, name: str = "worker", fail: bool = False):
        self.pid = pid
        self.name = name
        self.fail = fail
        self.masks: List[List[int]] = []

    def set_affinity(self, cores: List[int]) -> None:
        if self.fail:
            raise PermissionError("access denied")
        self.masks.append(list(cores))

    @property
    def mask(self) -> Optional[List[int]]:
        return self.masks[-1] if self.masks else None


class FakeInspector(ProcessInspector):
    """Fixed process list and core count."""

    def __init__(self, processes: Iterable[FakeProcess] = (), cores: int = 4):
        self.processes = list(processes)
        self.cores = cores
        self.queried: List[str] = []

    def list_processes(self, name: str) -> List[ProcessHandle]:
        self.queried.append(name)
        return list(self.processes)

    def cpu_count(self) -> int:
        return self.cores


class EventRecorder:
    """Subscriber that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def changes(self) -> List[InstanceChanged]:
        return [e for e in self.events if isinstance(e, InstanceChanged)]

    @property
    def issues(self) -> List[Issue]:
        return [e for e in self.events if isinstance(e, Issue)]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def notifier() -> StateChangeNotifier:
    """Fresh notifier."""
    return StateChangeNotifier()


@pytest.fixture
def recorder(notifier) -> EventRecorder:
    """Recorder subscribed to the notifier fixture."""
    rec = EventRecorder()
    notifier.subscribe(rec)
    return rec


@pytest.fixture
def mixed_instances() -> List[FakeInstance]:
    """One instance in each state plus a second stopped one."""
    return [
        FakeInstance("plc-off", OperatingState.OFF),
        FakeInstance("plc-stop-1", OperatingState.STOP),
        FakeInstance("plc-run", OperatingState.RUN),
        FakeInstance("plc-stop-2", OperatingState.STOP),
    ]


@pytest.fixture
def fleet_config() -> FleetConfig:
    """Config with no confirmation gating and a fixed core count."""
    return FleetConfig(core_count=4, confirm_operations=[])


@pytest.fixture
def manifest_path(tmp_path) -> Path:
    """Loopback manifest with three instances."""
    path = tmp_path / "fleet.yaml"
    path.write_text(
        "instances:\n"
        "  - name: plc-1\n"
        "    state: run\n"
        "  - name: plc-2\n"
        "    state: stop\n"
        "  - name: plc-3\n"
        "    state: off\n"
    )
    return path


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: marks integration tests")
