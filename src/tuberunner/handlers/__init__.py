"""Built-in handler registration."""

from ..lib.registry import HandlerRegistry
from .noop import NoopHandler


def register_handlers(registry: HandlerRegistry) -> None:
    """Register all built-in handlers."""
    registry.register("noop", NoopHandler)
