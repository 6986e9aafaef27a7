"""
SimFleet Fleet Controller

Entry points for the presentation layer. Wires the registry, the bulk
operation executor, and the affinity balancer to one notifier, and puts
destructive actions behind the confirmation gate.

All entry points run to completion on the calling thread. The registry
and the affinity map are only mutated from here, so no locking is done.
"""

import logging
from typing import Dict, List, Optional

from simfleet.affinity import AffinityBalancer, ProcessInspector, PsutilProcessInspector
from simfleet.core.config import FleetConfig
from simfleet.core.exceptions import InstanceOperationFailure
from simfleet.core.notifier import StateChangeNotifier
from simfleet.core.schema import (
    AffinityMode,
    AffinityReport,
    BulkReport,
    FleetSummary,
    Issue,
    RefreshResult,
)
from simfleet.fleet import (
    AutoConfirm,
    BulkOperation,
    BulkOperationExecutor,
    ConfirmationGate,
    Decision,
    InstanceRegistry,
    POWER_OFF_ALL,
    POWER_ON_ALL,
    RUN_ALL,
    STOP_ALL,
)
from simfleet.runtime.base import InstanceSource, SimulationInstance

logger = logging.getLogger(__name__)


class FleetController:
    """
    Manages a fleet of simulated controller instances.

    Responsibilities:
    - Registry reconciliation and instance removal
    - Bulk lifecycle operations with per-instance failure isolation
    - CPU affinity balancing of worker processes
    - Change and issue notification
    """

    def __init__(
        self,
        source: Optional[InstanceSource] = None,
        inspector: Optional[ProcessInspector] = None,
        config: Optional[FleetConfig] = None,
        notifier: Optional[StateChangeNotifier] = None,
        gate: Optional[ConfirmationGate] = None,
    ):
        self.config = config or FleetConfig()
        self.notifier = notifier if notifier is not None else StateChangeNotifier()
        self.gate = gate or AutoConfirm()
        self.registry = InstanceRegistry(source=source, notifier=self.notifier)
        self.executor = BulkOperationExecutor(self.registry, self.notifier)
        self.balancer = AffinityBalancer(
            self.registry,
            inspector or PsutilProcessInspector(),
            self.notifier,
            config=self.config,
        )

    # =========================================================================
    # Confirmation
    # =========================================================================

    def _confirmed(self, operation: str, message: str) -> bool:
        if not self.config.requires_confirmation(operation):
            return True
        decision = self.gate.request_confirmation(message)
        if decision != Decision.CONFIRMED:
            logger.info(f"{operation} cancelled")
            return False
        return True

    def _run_bulk(self, operation: BulkOperation, message: str) -> BulkReport:
        if not self._confirmed(operation.name, message):
            return BulkReport(operation=operation.name, cancelled=True)
        return self.executor.execute(operation)

    # =========================================================================
    # Bulk lifecycle
    # =========================================================================

    def power_on_all(self) -> BulkReport:
        return self._run_bulk(POWER_ON_ALL, f"Power on all {len(self.registry)} instances?")

    def power_off_all(self) -> BulkReport:
        return self._run_bulk(POWER_OFF_ALL, f"Power off all {len(self.registry)} instances?")

    def run_all(self) -> BulkReport:
        return self._run_bulk(RUN_ALL, "Run all stopped instances?")

    def stop_all(self) -> BulkReport:
        return self._run_bulk(STOP_ALL, "Stop all running instances?")

    def toggle_run_stop(self) -> BulkReport:
        """Stop everything if anything runs, otherwise run everything stopped."""
        # Decided before the prompt; the confirmed action is the one that runs
        operation = self.executor.toggle_operation()
        verb = "Stop all running" if operation is STOP_ALL else "Run all stopped"
        if not self._confirmed("toggle_run_stop", f"{verb} instances?"):
            return BulkReport(operation="toggle_run_stop", cancelled=True)
        return self.executor.toggle_run_stop(operation)

    # =========================================================================
    # Affinity
    # =========================================================================

    def assign_affinity(self) -> AffinityReport:
        if not self._confirmed("assign_affinity", "Assign CPU affinity to running instances?"):
            return AffinityReport(mode=AffinityMode.SKIPPED, reason="Cancelled")
        return self.balancer.assign()

    @property
    def affinity(self) -> Dict[str, int]:
        """Current instance -> core assignment."""
        return self.balancer.assignment.as_dict()

    # =========================================================================
    # Registry
    # =========================================================================

    def refresh(self) -> RefreshResult:
        return self.registry.refresh()

    def remove_instance(self, name: str) -> bool:
        """
        Delete an instance upstream and stop tracking it.

        Returns:
            True if the instance was removed
        """
        if name not in self.registry:
            self.notifier.emit(
                Issue(InstanceOperationFailure(name, "remove_instance", f"Unknown instance {name}"))
            )
            return False

        if not self._confirmed("remove_instance", f"Delete instance {name}?"):
            return False

        if self.registry.source is not None:
            try:
                self.registry.source.unregister(name)
            except Exception as e:
                message = f"Failed to delete {name}: {e}"
                self.notifier.emit(
                    Issue(InstanceOperationFailure(name, "remove_instance", message, cause=e))
                )
                return False

        self.registry.remove(name)
        return True

    def instances(self) -> List[SimulationInstance]:
        return self.registry.enumerate()

    def summary(self) -> FleetSummary:
        return self.registry.summary()
