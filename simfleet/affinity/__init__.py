"""
SimFleet Affinity - CPU pinning for simulation worker processes.
"""

from .processes import (
    ProcessHandle,
    ProcessInspector,
    PsutilProcess,
    PsutilProcessInspector,
)
from .balancer import AffinityBalancer, CpuAffinityAssignment

__all__ = [
    "ProcessHandle",
    "ProcessInspector",
    "PsutilProcess",
    "PsutilProcessInspector",
    "AffinityBalancer",
    "CpuAffinityAssignment",
]
