"""Job handler contract and post-processing verdicts."""

from collections.abc import Sequence
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ConfigurationInvalid, InvalidVerdict
from .logger import Logger
from .transport import DEFAULT_PRIORITY
from .validation import ValidationResult, validate

WILDCARD = "*"
MAX_PRIORITY = 2**32 - 1


class Action(str, Enum):
    """Post-processing action applied to a reserved job."""

    DELETE = "delete"
    RELEASE = "release"
    BURY = "bury"


# Action | "delete" | [action] | [action, options] | None
Verdict = Action | str | Sequence[Any] | None


class ReleaseOptions(BaseModel):
    """Options of a release verdict; other keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    delay: int = Field(default=0, ge=0)
    priority: int = Field(default=DEFAULT_PRIORITY, ge=0, le=MAX_PRIORITY)


def resolve_verdict(verdict: Verdict) -> tuple[Action, dict[str, Any]]:
    """
    Resolve a handler verdict to an action and its options.

    Release options are coerced to the integers the queue expects; only the
    ``delay`` and ``priority`` given by the handler are kept.

    Args:
        verdict: Value returned by ``Handler.process``

    Returns:
        The action and its options; anything empty or unknown buries

    Raises:
        InvalidVerdict: If release options can't be coerced
    """
    options: dict[str, Any] = {}

    if isinstance(verdict, (list, tuple)):
        if not verdict:
            return Action.BURY, options
        if len(verdict) > 1 and isinstance(verdict[1], dict):
            options = dict(verdict[1])
        verdict = verdict[0]

    if not isinstance(verdict, str):
        return Action.BURY, {}

    try:
        action = Action(verdict)
    except ValueError:
        return Action.BURY, {}

    if action is Action.RELEASE:
        result = validate(options, ReleaseOptions)
        if not result.valid:
            raise InvalidVerdict(result.errors)
        options = result.value.model_dump(exclude_unset=True)

    return action, options


class Handler:
    """Base class for job handlers.

    A handler reacts to jobs of one ``type`` (or every unmatched type when
    ``type`` is ``"*"``). Subclasses are built by the registry as
    ``factory(configuration, logger)`` and usually call::

        super().__init__("thumbnail", configuration, ThumbnailConfig, ThumbnailPayload, logger)

    The configuration is validated here, so a misconfigured handler never
    reaches a worker's dispatch loop.
    """

    def __init__(
        self,
        type: str,
        configuration: dict[str, Any],
        configuration_schema: Any | None,
        payload_schema: Any | None,
        logger: Logger,
    ) -> None:
        """
        Initialize handler.

        Args:
            type: Job type to handle, or ``"*"`` for every unmatched type
            configuration: Handler options from the runner configuration
            configuration_schema: Schema for ``configuration``, if any
            payload_schema: Schema for job payloads, if any
            logger: Logger

        Raises:
            ConfigurationInvalid: If the configuration fails its schema
        """
        self.type = type
        self.configuration = configuration
        self.configuration_schema = configuration_schema
        self.payload_schema = payload_schema
        self.logger = logger
        self.validated_configuration: Any = None

        if configuration_schema is not None:
            result = validate(configuration, configuration_schema)
            if not result.valid:
                raise ConfigurationInvalid("Handler configuration is invalid.", result.errors)
            self.validated_configuration = result.value

    @property
    def name(self) -> str:
        """Handler name (defaults to class name)."""
        return self.__class__.__name__

    async def initialize(self) -> None:
        """Set up dependencies needing I/O (connections, clients, ...)."""

    def validate_payload(self, payload: Any) -> ValidationResult:
        """Validate a job payload against ``payload_schema``."""
        if self.payload_schema is None:
            return ValidationResult(valid=True, value=payload)
        return validate(payload, self.payload_schema)

    async def process(self, payload: Any, id: int | str, type: str) -> Verdict:
        """
        Process a job.

        Args:
            payload: The job's payload (``None`` when the job has none)
            id: The job's id
            type: The job's type

        Returns:
            The post-processing verdict
        """
        return Action.BURY
