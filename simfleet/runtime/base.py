"""
Simulation Runtime Contracts

The capability surface the fleet controller consumes from the
simulation engine. Implementations talk to a vendor runtime; the
controller only ever requests transitions through these methods.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from simfleet.core.schema import OperatingState


class SimulationInstance(ABC):
    """Capability handle for one simulated controller instance."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique, immutable identity."""

    @property
    @abstractmethod
    def operating_state(self) -> OperatingState:
        """Last state reported by the runtime."""

    @property
    def process_id(self) -> Optional[int]:
        """PID of the backing worker process, if the runtime exposes it."""
        return None

    @abstractmethod
    def power_on(self) -> None:
        pass

    @abstractmethod
    def power_off(self) -> None:
        pass

    @abstractmethod
    def run(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class InstanceSource(ABC):
    """External source of truth for which instances exist."""

    @abstractmethod
    def list_instances(self) -> List[SimulationInstance]:
        """
        Return every instance currently registered upstream.

        Raises:
            RuntimeUnavailableError: if the listing cannot be read
        """

    @abstractmethod
    def unregister(self, name: str) -> None:
        """Delete an instance upstream."""
