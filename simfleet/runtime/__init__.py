"""
SimFleet Runtime - Simulation capability contracts and the loopback runtime.
"""

from .base import InstanceSource, SimulationInstance
from .loopback import LoopbackInstance, LoopbackRuntime

__all__ = [
    "InstanceSource",
    "SimulationInstance",
    "LoopbackInstance",
    "LoopbackRuntime",
]
