"""
OS Process Inspection

Discovers simulation worker processes by name and applies CPU affinity
masks through psutil.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import psutil

logger = logging.getLogger(__name__)


class ProcessHandle(ABC):
    """A discovered OS process that accepts an affinity mask."""

    pid: int
    name: str

    @abstractmethod
    def set_affinity(self, cores: List[int]) -> None:
        """Restrict the process to the given logical cores."""


class ProcessInspector(ABC):
    """Enumerates processes and reports the processor count."""

    @abstractmethod
    def list_processes(self, name: str) -> List[ProcessHandle]:
        """Processes whose executable name matches, in OS enumeration order."""

    @abstractmethod
    def cpu_count(self) -> int:
        pass


@dataclass
class PsutilProcess(ProcessHandle):
    """ProcessHandle backed by psutil.Process."""

    pid: int
    name: str

    def set_affinity(self, cores: List[int]) -> None:
        psutil.Process(self.pid).cpu_affinity(list(cores))
        logger.debug(f"PID {self.pid} ({self.name}) affinity -> {cores}")


def _matches(process_name: Optional[str], wanted: str) -> bool:
    if not process_name:
        return False
    process_name = process_name.lower()
    wanted = wanted.lower()
    return process_name == wanted or process_name == f"{wanted}.exe"


class PsutilProcessInspector(ProcessInspector):
    """Process inspection through psutil."""

    def list_processes(self, name: str) -> List[ProcessHandle]:
        found: List[ProcessHandle] = []
        for proc in psutil.process_iter(["pid", "name"]):
            try:
                info = proc.info
                if _matches(info.get("name"), name):
                    found.append(PsutilProcess(pid=info["pid"], name=info["name"]))
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        logger.debug(f"Found {len(found)} processes named {name}")
        return found

    def cpu_count(self) -> int:
        return psutil.cpu_count(logical=True) or 1
