"""
Confirmation Gate

Two-phase contract for destructive fleet actions: ask first, act only
when the answer is CONFIRMED.
"""

from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Callable, List


class Decision(Enum):
    """Answer from a confirmation request."""

    CONFIRMED = auto()
    CANCELLED = auto()


class ConfirmationGate(ABC):
    """Asks the operator before a gated action runs."""

    @abstractmethod
    def request_confirmation(self, message: str) -> Decision:
        pass


class AutoConfirm(ConfirmationGate):
    """Confirms everything. Used when no operator is in the loop."""

    def request_confirmation(self, message: str) -> Decision:
        return Decision.CONFIRMED


class CallbackGate(ConfirmationGate):
    """
    Adapts a yes/no callable (for example ``click.confirm``) to the gate.

    Every prompt is kept in ``prompts`` in the order it was asked.
    """

    def __init__(self, ask: Callable[[str], bool]):
        self._ask = ask
        self.prompts: List[str] = []

    def request_confirmation(self, message: str) -> Decision:
        self.prompts.append(message)
        return Decision.CONFIRMED if self._ask(message) else Decision.CANCELLED
