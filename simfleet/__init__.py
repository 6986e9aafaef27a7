"""
SimFleet - Instance Fleet Controller

Bulk lifecycle control, change notification, and CPU affinity balancing
for fleets of externally running PLC simulation instances.

Licensed under the MIT License.
"""

__version__ = "0.3.0"

from simfleet.core.config import FleetConfig, load_config
from simfleet.core.notifier import StateChangeNotifier
from simfleet.core.schema import (
    AffinityMode,
    AffinityReport,
    BulkReport,
    ChangeKind,
    FleetSummary,
    InstanceChanged,
    Issue,
    OperatingState,
    OperationOutcome,
    RefreshResult,
)
from simfleet.core.exceptions import (
    SimFleetError,
    InstanceOperationFailure,
    RegistrySyncFailure,
    AffinityAssignmentSkipped,
    AffinityAssignmentFailure,
)
from simfleet.fleet import (
    InstanceRegistry,
    BulkOperationExecutor,
    ConfirmationGate,
    Decision,
)
from simfleet.affinity import AffinityBalancer, CpuAffinityAssignment
from simfleet.runtime import InstanceSource, SimulationInstance
from simfleet.controller import FleetController

__all__ = [
    # Controller
    "FleetController",
    # Components
    "InstanceRegistry",
    "StateChangeNotifier",
    "BulkOperationExecutor",
    "AffinityBalancer",
    "CpuAffinityAssignment",
    "ConfirmationGate",
    "Decision",
    # Runtime contracts
    "InstanceSource",
    "SimulationInstance",
    # Schema
    "OperatingState",
    "ChangeKind",
    "AffinityMode",
    "InstanceChanged",
    "Issue",
    "OperationOutcome",
    "BulkReport",
    "RefreshResult",
    "AffinityReport",
    "FleetSummary",
    # Errors
    "SimFleetError",
    "InstanceOperationFailure",
    "RegistrySyncFailure",
    "AffinityAssignmentSkipped",
    "AffinityAssignmentFailure",
    # Config
    "FleetConfig",
    "load_config",
    # Version
    "__version__",
]
