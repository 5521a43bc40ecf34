"""Noop handler: acknowledges every job it receives."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..lib.handler import WILDCARD, Action, Handler, Verdict
from ..lib.logger import Logger


class NoopConfig(BaseModel):
    """Noop handler options."""

    model_config = ConfigDict(extra="forbid")

    type: str = Field(default=WILDCARD, min_length=1)
    action: Action = Action.DELETE


class NoopHandler(Handler):
    """Logs each job at debug level, then applies the configured action.

    Configured as ``{"path": "noop"}``; handles every unmatched type unless
    a ``type`` option is given.
    """

    def __init__(self, configuration: dict[str, Any], logger: Logger) -> None:
        """Initialize noop handler."""
        super().__init__(
            configuration.get("type", WILDCARD),
            configuration,
            NoopConfig,
            None,
            logger,
        )

    async def process(self, payload: Any, id: int | str, type: str) -> Verdict:
        """Log the job and return the configured action."""
        self.logger.debug(f"Job #{id} - {type}", {"payload": payload})
        return self.validated_configuration.action
