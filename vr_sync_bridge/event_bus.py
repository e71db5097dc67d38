"""In-process publish/subscribe between the bridge components.

Delivery is synchronous, on the caller's thread, in subscription order.
Payloads are dicts; the bus adds a ``__topic`` key before delivery.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, Dict, List, Optional, Tuple

_LOGGER = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]


class EventBus:
    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, topic: str, listener: Listener) -> None:
        self._listeners[topic].append(listener)

    def unsubscribe(self, topic: str, listener: Listener) -> None:
        listeners = self._listeners.get(topic)
        if not listeners or listener not in listeners:
            return
        listeners.remove(listener)
        if not listeners:
            del self._listeners[topic]

    def listener_count(self, topic: str) -> int:
        return len(self._listeners.get(topic, ()))

    def publish(self, topic: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Deliver `data` to every listener of `topic`.

        A failing listener is logged and skipped; the others still run.
        """
        payload = {} if data is None else data
        payload["__topic"] = topic

        # Listeners may unsubscribe while we deliver
        for listener in tuple(self._listeners.get(topic, ())):
            try:
                listener(payload)
            except Exception:
                _LOGGER.exception("Error in event listener for topic %s", topic)


def subscribe(func: Callable) -> Callable:
    """Mark a method as the listener for the topic with the same name."""
    func._event_bus_subscribe = True
    return func


class EventHandler:
    """Base for components that listen on the bus through @subscribe methods."""

    def __init__(self, event_bus: EventBus) -> None:
        self.event_bus = event_bus
        self._subscriptions: List[Tuple[str, Listener]] = []

        for topic in dir(type(self)):
            if not getattr(getattr(type(self), topic, None), "_event_bus_subscribe", False):
                continue
            listener = getattr(self, topic)
            event_bus.subscribe(topic, listener)
            self._subscriptions.append((topic, listener))
            _LOGGER.debug("%s listening on '%s'", type(self).__name__, topic)

    def detach(self) -> None:
        """Stop receiving events; safe to call more than once."""
        for topic, listener in self._subscriptions:
            self.event_bus.unsubscribe(topic, listener)
        self._subscriptions.clear()
