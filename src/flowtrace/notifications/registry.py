"""Listener registration contract of the host runtime."""

from __future__ import annotations
import logging
from threading import Lock
from typing import Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationListener(Protocol):
    """Receives every notification the host publishes."""

    def on_notification(self, notification: object) -> None:
        """Handle ``notification``."""


@runtime_checkable
class NotificationListenerRegistry(Protocol):
    """Host-side registry the agent registers its listeners with."""

    def register_listener(self, listener: NotificationListener) -> None:
        """Subscribe ``listener`` to host notifications."""


class InMemoryListenerRegistry:
    """Thread-safe registry that fans notifications out to its listeners.

    Hosts without their own notification bus can publish through this class;
    it shields the publisher from listener failures.
    """

    def __init__(self) -> None:
        """Initialise an empty registry."""
        self._listeners: list[NotificationListener] = []
        self._lock = Lock()

    def register_listener(self, listener: NotificationListener) -> None:
        """Subscribe ``listener``."""
        with self._lock:
            self._listeners.append(listener)

    def unregister_listener(self, listener: NotificationListener) -> None:
        """Remove ``listener`` if it is registered."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    @property
    def listeners(self) -> list[NotificationListener]:
        """Return a snapshot of the registered listeners."""
        with self._lock:
            return list(self._listeners)

    def publish(self, notification: object) -> None:
        """Deliver ``notification`` to every registered listener."""
        for listener in self.listeners:
            try:
                listener.on_notification(notification)
            except Exception:
                logger.exception(
                    "Notification listener %r failed; continuing.", listener
                )


__all__ = [
    "InMemoryListenerRegistry",
    "NotificationListener",
    "NotificationListenerRegistry",
]
