"""
In-process publish/subscribe for transfer lifecycle events.
"""
import logging
import threading
from typing import Callable, List, Optional

from .models import TransferEvent

logger = logging.getLogger(__name__)

EventListener = Callable[[TransferEvent], None]


class EventBus:
    """
    Synchronous fan-out of TransferEvents to registered listeners.

    Each orchestrator owns its own bus, so independent clients in one process
    never see each other's events. Listeners may subscribe or unsubscribe
    from any thread, including from inside a listener: ``publish`` works on a
    snapshot of the listener list taken when it starts.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._listeners: List[EventListener] = []
        self._lock = threading.RLock()
        self.logger = logger or logging.getLogger(__name__)

    def subscribe(self, listener: EventListener) -> None:
        if not callable(listener):
            raise TypeError(f"Event listener must be callable, got {type(listener).__name__}")
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> bool:
        """
        Remove a listener. Returns False if it was not registered.
        """
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return False
        return True

    def publish(self, event: TransferEvent) -> None:
        """
        Deliver an event to every listener in registration order.

        A listener that raises is logged and skipped; it never stops the
        remaining listeners or reaches the publisher.
        """
        with self._lock:
            listeners = tuple(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                self.logger.exception(
                    f"Error in event listener {getattr(listener, '__name__', repr(listener))} "
                    f"while handling '{event.type.value}' event"
                )

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()
