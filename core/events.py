"""
Event publishing for spotiwidget.

Components publish to the interactive surface through named events instead of
calling it directly. Listeners are plain callables invoked synchronously on the
emitting thread.
"""

import threading
from typing import Any, Callable, Dict, List

from spotiwidget.utils.logger import get_logger

NOW_PLAYING_UPDATE = "now_playing_update"
AUTH_LOST = "auth_lost"

Listener = Callable[[Any], None]


class EventBus:
    """Minimal publish/subscribe hub."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for an event.

        Args:
            event: Event name
            listener: Callable receiving the event payload (None for events without one)

        Returns:
            A function that removes the listener again
        """
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(event, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, payload: Any = None) -> None:
        """
        Deliver an event to every listener.

        A failing listener is logged and does not stop delivery to the others.
        """
        with self._lock:
            listeners = list(self._listeners.get(event, []))

        self.logger.debug(f"Emitting {event} to {len(listeners)} listener(s)")
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                self.logger.exception(f"Listener for {event} failed")
