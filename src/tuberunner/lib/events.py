"""Lifecycle event listeners."""

from collections.abc import Callable
from typing import Any

from .logger import Logger
from .logger import logger as default_logger

Listener = Callable[..., Any]


class EventEmitter:
    """Synchronous observer registry.

    Listeners run in registration order, in the emitting task, so events of
    a single emitter are observed in the order they happen. Listener errors
    are logged and never reach the emitter.
    """

    def __init__(self, logger: Logger | None = None) -> None:
        """Initialize empty listener map."""
        self._listeners: dict[str, list[Listener]] = {}
        self._emitter_logger = logger or default_logger

    def on(self, event: str, listener: Listener) -> Listener:
        """Register a listener for an event."""
        self._listeners.setdefault(event, []).append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove a listener, if registered."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        """Count listeners registered for an event."""
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        """Call every listener of an event with the given arguments."""
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception as e:
                self._emitter_logger.error(
                    "Event listener failed", {"event": event, "error": str(e)}
                )
