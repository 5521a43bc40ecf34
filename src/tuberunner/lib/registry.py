"""Handler factory registry."""

from collections.abc import Callable
from typing import Any

from ..errors import HandlerNotFound
from .handler import Handler
from .logger import Logger

HandlerFactory = Callable[[dict[str, Any], Logger], Handler]


class HandlerRegistry:
    """Registry mapping configured handler paths to handler factories.

    Populated once at process startup; workers resolve the ``path`` of each
    configured handler entry here.
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._factories: dict[str, HandlerFactory] = {}

    def register(self, path: str, factory: HandlerFactory) -> None:
        """
        Register a handler factory under a path.

        Args:
            path: Key used by ``handlers[].path`` in the runner configuration
            factory: Callable building the handler from its configuration and a logger
        """
        if path in self._factories:
            raise ValueError(f"Handler already registered for path: {path}")

        self._factories[path] = factory

    def handler(self, path: str) -> Callable[[type[Handler]], type[Handler]]:
        """Decorator to register a handler class.

        Usage:
            @registry.handler("thumbnails")
            class ThumbnailHandler(Handler):
                ...
        """

        def decorator(handler_class: type[Handler]) -> type[Handler]:
            self.register(path, handler_class)
            return handler_class

        return decorator

    def resolve(self, path: str) -> HandlerFactory:
        """Get the factory registered under a path.

        Raises:
            HandlerNotFound: If nothing is registered under ``path``
        """
        factory = self._factories.get(path)
        if factory is None:
            raise HandlerNotFound(path)
        return factory

    def has(self, path: str) -> bool:
        """Check if a path is registered."""
        return path in self._factories

    def list_paths(self) -> list[str]:
        """List all registered paths."""
        return list(self._factories.keys())
