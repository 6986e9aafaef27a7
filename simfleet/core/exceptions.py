"""
SimFleet Error Taxonomy

Every failure inside the fleet controller degrades to one of these types.
They are carried on Issue events rather than propagated to callers.
"""

from typing import Optional


class SimFleetError(Exception):
    """Base error scoped to one operation and, optionally, one instance."""

    def __init__(self, message: str, subject: str = "", operation: str = ""):
        super().__init__(message)
        self.message = message
        self.subject = subject
        self.operation = operation

    def __str__(self) -> str:
        return self.message


class InstanceOperationFailure(SimFleetError):
    """A single instance's capability call failed."""

    def __init__(
        self,
        subject: str,
        operation: str,
        message: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, subject=subject, operation=operation)
        self.cause = cause


class RegistrySyncFailure(SimFleetError):
    """Reconciliation with the external instance listing failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, operation="refresh")
        self.cause = cause


class AffinityAssignmentSkipped(SimFleetError):
    """
    Precondition for affinity balancing was not met.

    Never raised or emitted; it names the reason on a skipped report.
    """

    def __init__(self, message: str = "No running instances or worker processes"):
        super().__init__(message, operation="assign_affinity")


class AffinityAssignmentFailure(SimFleetError):
    """Process enumeration or mask application failed."""

    def __init__(self, message: str, subject: str = "", cause: Optional[BaseException] = None):
        super().__init__(message, subject=subject, operation="assign_affinity")
        self.cause = cause


class RuntimeUnavailableError(SimFleetError):
    """The simulation runtime could not produce an instance listing."""


class CapabilityError(SimFleetError):
    """A simulation capability rejected a requested transition."""


class ConfigError(SimFleetError):
    """Invalid fleet configuration."""
