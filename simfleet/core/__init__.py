"""
SimFleet Core Module - Schemas, events, errors, and configuration.
"""

from simfleet.core.config import FleetConfig, load_config
from simfleet.core.notifier import StateChangeNotifier
from simfleet.core.schema import *
from simfleet.core.exceptions import *

__all__ = ["FleetConfig", "load_config", "StateChangeNotifier"]
