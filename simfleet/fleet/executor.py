"""
Bulk Operation Executor

Applies a state-filtered capability call to registry members in order.
One member failing never stops the batch: the failure is reported as an
Issue and the executor moves on to the next member.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from simfleet.core.exceptions import InstanceOperationFailure
from simfleet.core.notifier import StateChangeNotifier
from simfleet.core.schema import BulkReport, Issue, OperatingState, OperationOutcome
from simfleet.fleet.registry import InstanceRegistry
from simfleet.runtime.base import SimulationInstance

logger = logging.getLogger(__name__)

StatePredicate = Callable[[OperatingState], bool]
InstanceAction = Callable[[SimulationInstance], None]


@dataclass(frozen=True)
class BulkOperation:
    """A named fleet-wide action and the states it applies to."""

    name: str
    predicate: StatePredicate
    action: InstanceAction
    error_prefix: str = "Failed"


POWER_ON_ALL = BulkOperation(
    name="power_on_all",
    predicate=lambda state: True,
    action=lambda i: i.power_on(),
    error_prefix="Failed to power on",
)

POWER_OFF_ALL = BulkOperation(
    name="power_off_all",
    predicate=lambda state: True,
    action=lambda i: i.power_off(),
    error_prefix="Failed to power off",
)

RUN_ALL = BulkOperation(
    name="run_all",
    predicate=lambda state: state == OperatingState.STOP,
    action=lambda i: i.run(),
    error_prefix="Failed to run",
)

STOP_ALL = BulkOperation(
    name="stop_all",
    predicate=lambda state: state == OperatingState.RUN,
    action=lambda i: i.stop(),
    error_prefix="Failed to stop",
)

BULK_OPERATIONS: Dict[str, BulkOperation] = {
    op.name: op for op in (POWER_ON_ALL, POWER_OFF_ALL, RUN_ALL, STOP_ALL)
}


class BulkOperationExecutor:
    """Runs bulk operations over an InstanceRegistry, strictly sequentially."""

    def __init__(self, registry: InstanceRegistry, notifier: StateChangeNotifier):
        self.registry = registry
        self.notifier = notifier

    def execute(self, operation: BulkOperation) -> BulkReport:
        """
        Invoke the operation's action on every qualifying instance.

        Targets are selected before the first action runs, so state or
        registry changes caused mid-batch do not alter batch membership.

        Returns:
            BulkReport with one outcome per attempted instance
        """
        report = BulkReport(operation=operation.name)

        for instance in self._select(operation, report):
            name = instance.name
            try:
                logger.debug(f"{operation.name}: {name}")
                operation.action(instance)
            except Exception as e:
                self._fail(report, operation, name, e)
            else:
                report.outcomes.append(OperationOutcome(name, operation.name, True))

        logger.info(
            f"{operation.name}: {len(report.succeeded)}/{len(report.attempted)} succeeded"
        )
        return report

    def _select(self, operation: BulkOperation, report: BulkReport) -> List[SimulationInstance]:
        targets = []
        for instance in self.registry.enumerate():
            try:
                selected = operation.predicate(instance.operating_state)
            except Exception as e:
                self._fail(report, operation, instance.name, e)
                continue
            if selected:
                targets.append(instance)
        return targets

    def _fail(
        self,
        report: BulkReport,
        operation: BulkOperation,
        name: str,
        error: Exception,
    ) -> None:
        message = f"{operation.error_prefix} {name}: {error}"
        report.outcomes.append(OperationOutcome(name, operation.name, False, message))
        self.notifier.emit(Issue(InstanceOperationFailure(name, operation.name, message, cause=error)))

    def any_running(self) -> bool:
        """True if any tracked instance currently reports RUN."""
        return self.registry.summary().any_running

    def toggle_operation(self) -> BulkOperation:
        """STOP_ALL if anything is running, otherwise RUN_ALL."""
        return STOP_ALL if self.any_running() else RUN_ALL

    def toggle_run_stop(self, operation: Optional[BulkOperation] = None) -> BulkReport:
        """
        Fleet-wide run/stop toggle.

        The decision is taken once: if anything is running, stop every
        running instance; otherwise run every stopped instance. Powered
        off instances are never touched.

        Args:
            operation: A decision already taken by the caller (STOP_ALL or
                RUN_ALL). Taken here when omitted.
        """
        if operation is None:
            operation = self.toggle_operation()
        elif operation not in (STOP_ALL, RUN_ALL):
            raise ValueError(f"Toggle cannot run {operation.name}")
        report = self.execute(operation)
        report.operation = "toggle_run_stop"
        return report
