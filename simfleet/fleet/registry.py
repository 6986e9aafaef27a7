"""
Instance Registry

Insertion-ordered set of simulation instances keyed by name, reconciled
against an external instance source.
"""

import logging
from typing import Dict, Iterator, List, Optional

from simfleet.core.exceptions import RegistrySyncFailure
from simfleet.core.notifier import StateChangeNotifier
from simfleet.core.schema import (
    ChangeKind,
    FleetSummary,
    InstanceChanged,
    Issue,
    OperatingState,
    RefreshResult,
)
from simfleet.runtime.base import InstanceSource, SimulationInstance

logger = logging.getLogger(__name__)


class InstanceRegistry:
    """
    Known instances in stable insertion order.

    Invariant: no two entries share a name. Every structural change emits
    an InstanceChanged event on the notifier.
    """

    def __init__(
        self,
        source: Optional[InstanceSource] = None,
        notifier: Optional[StateChangeNotifier] = None,
    ):
        self.source = source
        self.notifier = notifier if notifier is not None else StateChangeNotifier()
        self._instances: Dict[str, SimulationInstance] = {}

    def add(self, instance: SimulationInstance) -> bool:
        """
        Track an instance.

        Returns:
            False if an instance with the same name is already tracked
        """
        name = instance.name
        if name in self._instances:
            return False

        self._instances[name] = instance
        self.notifier.emit(InstanceChanged(name, f"Instance {name} added", ChangeKind.ADDED))
        return True

    def remove(self, name: str) -> Optional[SimulationInstance]:
        """Stop tracking an instance. Returns the removed handle, or None."""
        instance = self._instances.pop(name, None)
        if instance is not None:
            self.notifier.emit(InstanceChanged(name, f"Instance {name} removed", ChangeKind.REMOVED))
        return instance

    def get(self, name: str) -> Optional[SimulationInstance]:
        return self._instances.get(name)

    def enumerate(self) -> List[SimulationInstance]:
        """Snapshot of tracked instances in insertion order."""
        return list(self._instances.values())

    def names(self) -> List[str]:
        return list(self._instances.keys())

    def refresh(self) -> RefreshResult:
        """
        Reconcile with the instance source.

        Already tracked names are left alone, new names are appended in
        listing order, and names missing upstream are pruned. If the
        listing cannot be read the registry keeps its last known-good
        contents and an Issue is emitted.
        """
        if self.source is None:
            return RefreshResult()

        try:
            listing = self._read_listing()
        except RegistrySyncFailure as e:
            self.notifier.emit(Issue(e))
            return RefreshResult(failed=True)

        upstream = set(listing)
        result = RefreshResult(
            added=[n for n in listing if n not in self._instances],
            removed=[n for n in self._instances if n not in upstream],
        )

        for name in result.removed:
            self.remove(name)
        for name in result.added:
            self.add(listing[name])

        if result.changed:
            logger.info(f"Refresh: +{len(result.added)} -{len(result.removed)} instances")
        return result

    def _read_listing(self) -> Dict[str, SimulationInstance]:
        """Read and validate the full upstream listing before anything is applied."""
        try:
            instances = list(self.source.list_instances())
        except Exception as e:
            raise RegistrySyncFailure(f"Instance listing unavailable: {e}", cause=e) from e

        listing: Dict[str, SimulationInstance] = {}
        for instance in instances:
            try:
                name = instance.name
            except Exception as e:
                raise RegistrySyncFailure(f"Unreadable instance in listing: {e}", cause=e) from e
            if not isinstance(name, str) or not name:
                raise RegistrySyncFailure(f"Instance listing contains an entry without a name: {instance!r}")
            if name in listing:
                logger.warning(f"Duplicate instance {name} in listing, keeping first")
                continue
            listing[name] = instance
        return listing

    def summary(self) -> FleetSummary:
        """Count instances by operating state. Unreadable states are not counted."""
        summary = FleetSummary(total=len(self._instances))
        for instance in self._instances.values():
            try:
                state = instance.operating_state
            except Exception as e:
                logger.debug(f"Could not read state of {instance.name}: {e}")
                continue
            if state == OperatingState.OFF:
                summary.powered_off += 1
            else:
                summary.powered_on += 1
            if state == OperatingState.RUN:
                summary.running += 1
        return summary

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, name: object) -> bool:
        return name in self._instances

    def __iter__(self) -> Iterator[SimulationInstance]:
        return iter(self.enumerate())
