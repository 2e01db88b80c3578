"""
Callback registry shared by the transport, the loop controller and the session.

Components declare the events they emit; observers register with
`on(event, callback)` and must call `off(event, callback)` (or let the
owner call `clear()`) when they are torn down.
"""

import logging
from typing import Callable, Dict, List, Sequence

logger = logging.getLogger("Tikr.Events")


class EventEmitter:
    """
    Minimal observer registry.

    Subclasses list their event names in EVENTS. Registering for an unknown
    event logs a warning and is ignored, so typos show up in the log rather
    than silently never firing.
    """

    EVENTS: Sequence[str] = ()

    def __init__(self):
        self._callbacks: Dict[str, List[Callable]] = {name: [] for name in self.EVENTS}

    def on(self, event: str, callback: Callable) -> None:
        """
        Register a callback for an event.

        Args:
            event: Event name (see EVENTS)
            callback: Function to call when the event occurs
        """
        if event in self._callbacks:
            self._callbacks[event].append(callback)
        else:
            logger.warning(f"Unknown event: {event}. Available: {list(self._callbacks.keys())}")

    def off(self, event: str, callback: Callable) -> None:
        """Unregister a callback for an event."""
        if event in self._callbacks and callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)

    def clear(self) -> None:
        """Drop every registered callback."""
        for callbacks in self._callbacks.values():
            callbacks.clear()

    def listener_count(self, event: str) -> int:
        return len(self._callbacks.get(event, []))

    def _emit(self, event: str, *args) -> None:
        """Emit an event to all registered callbacks."""
        # Copy so a callback may unsubscribe itself mid-emit
        for callback in list(self._callbacks.get(event, [])):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Error in callback for {event}: {e}")
