"""
State Change Notifier

In-process publish/subscribe hub for InstanceChanged and Issue events.
Delivery is synchronous, in subscription order, on the emitting thread.
Emission from more than one thread needs external serialization.
"""

import logging
from typing import Callable, List, Optional, Tuple, Type, Union

from simfleet.core.schema import InstanceChanged, Issue

logger = logging.getLogger(__name__)

Event = Union[InstanceChanged, Issue]
Subscriber = Callable[[Event], None]


class StateChangeNotifier:
    """Multi-subscriber event bus."""

    def __init__(self):
        self._subscribers: List[Tuple[Subscriber, Optional[Type]]] = []

    def subscribe(self, callback: Subscriber, event_type: Optional[Type] = None) -> None:
        """
        Register an observer.

        Args:
            callback: Called with each delivered event
            event_type: InstanceChanged or Issue to filter delivery, None for all
        """
        if any(cb == callback for cb, _ in self._subscribers):
            return
        self._subscribers.append((callback, event_type))

    def unsubscribe(self, callback: Subscriber) -> bool:
        """Remove an observer. Returns False if it was not subscribed."""
        for index, (cb, _) in enumerate(self._subscribers):
            if cb == callback:
                del self._subscribers[index]
                return True
        return False

    def emit(self, event: Event) -> None:
        """Deliver an event to every current subscriber."""
        if isinstance(event, Issue):
            logger.warning(f"Issue [{event.operation}] {event.message}")
        else:
            logger.info(event.message)

        # Copy so observers may unsubscribe during delivery
        for callback, event_type in list(self._subscribers):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed handling {type(event).__name__}")

    def __len__(self) -> int:
        return len(self._subscribers)
