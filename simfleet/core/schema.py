"""
SimFleet Data Schemas

Operating states, notification events, and the result records returned
by controller entry points.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from simfleet.core.exceptions import SimFleetError


class OperatingState(Enum):
    """Lifecycle state of a simulated controller instance."""

    OFF = "off"
    STOP = "stop"
    RUN = "run"

    @classmethod
    def parse(cls, value: str) -> "OperatingState":
        # YAML 1.1 loads an unquoted `off` as False
        if value is False:
            return cls.OFF
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown operating state '{value}' "
                f"(expected one of: {', '.join(s.value for s in cls)})"
            ) from None


class ChangeKind(Enum):
    """What an InstanceChanged event reports."""

    ADDED = auto()
    REMOVED = auto()
    AFFINITY_ASSIGNED = auto()
    AFFINITY_RESET = auto()


class AffinityMode(Enum):
    """Outcome of one affinity balancing pass."""

    SKIPPED = auto()  # No running instances or no worker processes
    PINNED = auto()  # Round-robin core pinning applied
    UNRESTRICTED = auto()  # More processes than cores, default mask applied


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class InstanceChanged:
    """Informational event: the fleet changed shape or placement."""

    subject: str
    message: str
    kind: ChangeKind


@dataclass(frozen=True)
class Issue:
    """Non-fatal failure scoped to one operation and, optionally, one instance."""

    error: SimFleetError

    @property
    def subject(self) -> str:
        return self.error.subject

    @property
    def operation(self) -> str:
        return self.error.operation

    @property
    def message(self) -> str:
        return self.error.message


# =============================================================================
# Results
# =============================================================================


@dataclass
class OperationOutcome:
    """Result of invoking one capability on one instance."""

    subject: str
    operation: str
    success: bool
    message: str = ""


@dataclass
class BulkReport:
    """Outcomes of one bulk operation, in registry order."""

    operation: str
    outcomes: List[OperationOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def attempted(self) -> List[str]:
        return [o.subject for o in self.outcomes]

    @property
    def succeeded(self) -> List[str]:
        return [o.subject for o in self.outcomes if o.success]

    @property
    def failed(self) -> List[str]:
        return [o.subject for o in self.outcomes if not o.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "cancelled": self.cancelled,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


@dataclass
class RefreshResult:
    """Structural changes applied by one registry reconciliation."""

    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failed: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


@dataclass
class AffinityReport:
    """Result of one affinity balancing pass."""

    mode: AffinityMode
    assignments: Dict[str, int] = field(default_factory=dict)
    process_count: int = 0
    core_count: int = 0
    issues: List[SimFleetError] = field(default_factory=list)
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.name,
            "assignments": dict(self.assignments),
            "process_count": self.process_count,
            "core_count": self.core_count,
            "issues": [str(e) for e in self.issues],
            "reason": self.reason,
        }


@dataclass
class FleetSummary:
    """Counts by operating state across the registry."""

    total: int = 0
    powered_off: int = 0
    powered_on: int = 0
    running: int = 0

    @property
    def any_registered(self) -> bool:
        return self.total > 0

    @property
    def any_powered_off(self) -> bool:
        return self.powered_off > 0

    @property
    def any_powered_on(self) -> bool:
        return self.powered_on > 0

    @property
    def any_running(self) -> bool:
        return self.running > 0
