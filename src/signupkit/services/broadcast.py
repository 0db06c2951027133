"""Injectable publish/subscribe state holder.

A ``StateHolder`` keeps the latest value and pushes every new one to its
subscribers. New subscribers receive the current value immediately. Holders
are passed by reference to whatever needs them; there are no module-level
instances.
"""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]


class StateHolder(Generic[T]):
    """Latest-value broadcast with explicit subscription handles."""

    def __init__(self, initial: T):
        self._value = initial
        self._listeners: dict[int, Listener] = {}
        self._next_id = 0

    @property
    def value(self) -> T:
        return self._value

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener, *, replay: bool = True) -> Unsubscribe:
        """Register a listener and return the callable that removes it.

        With ``replay`` the listener is called with the current value first.
        """
        listener_id = self._next_id
        self._next_id += 1
        self._listeners[listener_id] = listener

        if replay:
            self._deliver(listener, self._value)

        def unsubscribe() -> None:
            self._listeners.pop(listener_id, None)

        return unsubscribe

    def publish(self, value: T) -> None:
        """Store ``value`` and deliver it to every subscriber in order."""
        self._value = value
        for listener in list(self._listeners.values()):
            self._deliver(listener, value)

    def _deliver(self, listener: Listener, value: T) -> None:
        # Listeners are fire-and-forget; one failure must not starve the rest
        try:
            listener(value)
        except Exception as e:
            logger.error("State listener %r failed: %s", listener, e)
