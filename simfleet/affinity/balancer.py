"""
CPU Affinity Balancer

Pins the worker processes behind running simulation instances to CPU
cores, round-robin from core 1 so core 0 stays free for the host.

Worker processes are discovered by executable name. When instances
expose the PID of their worker, each instance is paired with its own
process. Otherwise the i-th discovered process is paired with the i-th
running instance, which assumes the OS enumerates workers in the same
order the registry holds instances. The OS does not guarantee that.
"""

import logging
from typing import Dict, List, Optional, Tuple

from simfleet.core.config import FleetConfig
from simfleet.core.exceptions import AffinityAssignmentFailure, AffinityAssignmentSkipped
from simfleet.core.notifier import StateChangeNotifier
from simfleet.core.schema import (
    AffinityMode,
    AffinityReport,
    ChangeKind,
    InstanceChanged,
    Issue,
    OperatingState,
)
from simfleet.fleet.registry import InstanceRegistry
from simfleet.runtime.base import SimulationInstance
from .processes import ProcessHandle, ProcessInspector

logger = logging.getLogger(__name__)


class CpuAffinityAssignment:
    """Instance name -> assigned core. Ephemeral, rebuilt on every balancing pass."""

    def __init__(self):
        self._cores: Dict[str, int] = {}

    def assign(self, name: str, core: int) -> None:
        self._cores[name] = core

    def discard(self, name: str) -> None:
        self._cores.pop(name, None)

    def clear(self) -> None:
        self._cores.clear()

    def get(self, name: str) -> Optional[int]:
        return self._cores.get(name)

    def as_dict(self) -> Dict[str, int]:
        return dict(self._cores)

    def __contains__(self, name: object) -> bool:
        return name in self._cores

    def __len__(self) -> int:
        return len(self._cores)


class AffinityBalancer:
    """
    Round-robin CPU pinning for running instances.

    Policy:
    1. No running instances or no worker processes: do nothing.
    2. More processes than cores: give every process the default mask.
    3. Otherwise pin pair i to core (i + 1) mod core_count.
    """

    def __init__(
        self,
        registry: InstanceRegistry,
        inspector: ProcessInspector,
        notifier: StateChangeNotifier,
        config: Optional[FleetConfig] = None,
    ):
        self.registry = registry
        self.inspector = inspector
        self.notifier = notifier
        self.config = config or FleetConfig()
        self.assignment = CpuAffinityAssignment()

        # Any registry change invalidates the placement
        self.notifier.subscribe(self._on_instance_changed, InstanceChanged)

    def _on_instance_changed(self, event: InstanceChanged) -> None:
        if event.kind in (ChangeKind.ADDED, ChangeKind.REMOVED) and len(self.assignment):
            logger.debug(f"Registry changed ({event.subject}), clearing affinity assignment")
            self.assignment.clear()

    def core_count(self) -> int:
        if self.config.core_count is not None:
            return self.config.core_count
        return self.inspector.cpu_count()

    def default_mask(self, core_count: int) -> List[int]:
        if self.config.default_mask is not None:
            return list(self.config.default_mask)
        return list(range(core_count))

    def running_instances(self) -> List[SimulationInstance]:
        running = []
        for instance in self.registry.enumerate():
            try:
                if instance.operating_state == OperatingState.RUN:
                    running.append(instance)
            except Exception as e:
                logger.warning(f"Skipping {instance.name}: could not read state ({e})")
        return running

    def assign(self) -> AffinityReport:
        """Run one balancing pass over the registry and the discovered workers."""
        running = self.running_instances()
        if not running:
            return self._skipped("No running instances")

        try:
            processes = self.inspector.list_processes(self.config.process_name)
        except Exception as e:
            error = AffinityAssignmentFailure(f"Process enumeration failed: {e}", cause=e)
            self.notifier.emit(Issue(error))
            return AffinityReport(mode=AffinityMode.SKIPPED, issues=[error], reason=str(error))

        if not processes:
            return self._skipped(f"No {self.config.process_name} processes found")

        core_count = self.core_count()
        self.assignment.clear()

        if len(processes) > core_count:
            return self._unrestrict(processes, core_count)
        return self._pin(self._pair(running, processes), len(processes), core_count)

    def _skipped(self, reason: str) -> AffinityReport:
        logger.debug(f"Affinity assignment skipped: {reason}")
        return AffinityReport(
            mode=AffinityMode.SKIPPED,
            reason=str(AffinityAssignmentSkipped(reason)),
        )

    def _pair(
        self,
        running: List[SimulationInstance],
        processes: List[ProcessHandle],
    ) -> List[Tuple[SimulationInstance, ProcessHandle]]:
        if self.config.correlate_by_pid:
            by_pid = {p.pid: p for p in processes}
            pids = [getattr(i, "process_id", None) for i in running]
            if all(isinstance(pid, int) and pid in by_pid for pid in pids):
                return [(instance, by_pid[pid]) for instance, pid in zip(running, pids)]
            logger.debug("Not every running instance exposes a known PID, pairing by position")

        if len(processes) != len(running):
            logger.warning(
                f"{len(running)} running instances but {len(processes)} worker processes, "
                f"pairing the first {min(len(running), len(processes))} by position"
            )
        return list(zip(running, processes))

    def _pin(
        self,
        pairs: List[Tuple[SimulationInstance, ProcessHandle]],
        process_count: int,
        core_count: int,
    ) -> AffinityReport:
        report = AffinityReport(
            mode=AffinityMode.PINNED,
            process_count=process_count,
            core_count=core_count,
        )

        for index, (instance, process) in enumerate(pairs):
            core = (index + 1) % core_count
            try:
                process.set_affinity([core])
            except Exception as e:
                error = AffinityAssignmentFailure(
                    f"Failed to pin {instance.name} (PID {process.pid}) to CPU {core}: {e}",
                    subject=instance.name,
                    cause=e,
                )
                report.issues.append(error)
                self.notifier.emit(Issue(error))
                continue
            self.assignment.assign(instance.name, core)
            report.assignments[instance.name] = core

        if report.assignments:
            placement = ", ".join(f"{n}->CPU{c}" for n, c in report.assignments.items())
            self.notifier.emit(
                InstanceChanged(
                    "",
                    f"Assigned CPU affinity to {len(report.assignments)} instances: {placement}",
                    ChangeKind.AFFINITY_ASSIGNED,
                )
            )
        return report

    def _unrestrict(self, processes: List[ProcessHandle], core_count: int) -> AffinityReport:
        mask = self.default_mask(core_count)
        report = AffinityReport(
            mode=AffinityMode.UNRESTRICTED,
            process_count=len(processes),
            core_count=core_count,
            reason=f"{len(processes)} worker processes exceed {core_count} cores",
        )
        logger.warning(f"{report.reason}, applying default mask {mask}")

        for process in processes:
            try:
                process.set_affinity(mask)
            except Exception as e:
                error = AffinityAssignmentFailure(
                    f"Failed to reset affinity of PID {process.pid}: {e}",
                    cause=e,
                )
                report.issues.append(error)
                self.notifier.emit(Issue(error))

        reset = len(processes) - len(report.issues)
        if reset:
            self.notifier.emit(
                InstanceChanged(
                    "",
                    f"Too many worker processes for {core_count} cores, "
                    f"restored default affinity on {reset} processes",
                    ChangeKind.AFFINITY_RESET,
                )
            )
        return report
