"""Runner configuration validation and normalization."""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationInvalid
from .lib.logger import LogLevel

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 11300
DEFAULT_TUBE = "default"
DEFAULT_RESERVE_TIMEOUT_S = 10

# beanstalkd tube names: no leading hyphen, no whitespace, at most 200 bytes
TUBE_NAME_PATTERN = r"^[A-Za-z0-9+/;.$_()][A-Za-z0-9\-+/;.$_()]*$"
TUBE_NAME_MAX_BYTES = 200

TubeName = Annotated[str, Field(min_length=1, pattern=TUBE_NAME_PATTERN)]


class ConnectionConfig(BaseModel):
    """Queue server connection parameters."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(default=DEFAULT_HOST, min_length=1)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, strict=True)

    def inherit(self, parent: "ConnectionConfig") -> "ConnectionConfig":
        """Fill the fields not explicitly set from ``parent``."""
        return ConnectionConfig(
            host=self.host if "host" in self.model_fields_set else parent.host,
            port=self.port if "port" in self.model_fields_set else parent.port,
        )


class HandlerSpec(BaseModel):
    """A configured handler: registry ``path`` plus the handler's own options."""

    model_config = ConfigDict(extra="allow")

    path: str = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def expand_bare_path(cls, data: Any) -> Any:
        """Normalize a bare path string to ``{"path": ...}``."""
        if isinstance(data, str):
            return {"path": data}
        return data

    @property
    def options(self) -> dict[str, Any]:
        """Everything but ``path``: the handler's own configuration."""
        return dict(self.model_extra or {})


class WorkerSpec(BaseModel):
    """One worker: its connection, watched tubes and handlers."""

    model_config = ConfigDict(extra="forbid")

    connection: ConnectionConfig | None = None
    tubes: list[TubeName] = Field(min_length=1)
    handlers: list[HandlerSpec] = Field(min_length=1)

    @field_validator("tubes")
    @classmethod
    def validate_tube_length(cls, v: list[str]) -> list[str]:
        """Enforce the beanstalkd tube name size limit."""
        for tube in v:
            if len(tube.encode()) > TUBE_NAME_MAX_BYTES:
                raise ValueError(f"Tube name exceeds {TUBE_NAME_MAX_BYTES} bytes: {tube[:20]}...")
        return v

    @property
    def resolved_connection(self) -> ConnectionConfig:
        """Connection with defaults applied (always set once normalized)."""
        return self.connection or ConnectionConfig()

    @property
    def watches_default(self) -> bool:
        """Whether the ``default`` tube was explicitly requested."""
        return DEFAULT_TUBE in self.tubes


class RunnerConfig(BaseModel):
    """Full runner configuration.

    Unset worker connection fields inherit from the top-level connection,
    which itself falls back to ``DEFAULT_HOST``/``DEFAULT_PORT``.
    """

    model_config = ConfigDict(extra="forbid")

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    workers: list[WorkerSpec]

    @model_validator(mode="after")
    def inherit_connections(self) -> "RunnerConfig":
        """Resolve every worker's connection against the top-level one."""
        for worker in self.workers:
            worker.connection = (worker.connection or ConnectionConfig()).inherit(
                self.connection
            )
        return self


def normalize_configuration(data: Mapping[str, Any] | RunnerConfig) -> RunnerConfig:
    """
    Validate a runner configuration and apply its defaults.

    Normalizing an already normalized configuration (or its dump) yields an
    equal configuration.

    Args:
        data: Raw configuration tree, or a ``RunnerConfig``

    Returns:
        Normalized configuration

    Raises:
        ConfigurationInvalid: With every schema violation found
    """
    if isinstance(data, RunnerConfig):
        data = data.model_dump()

    try:
        return RunnerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationInvalid("Configuration is invalid.", e.errors(include_url=False)) from e


def load_configuration_file(path: Path) -> RunnerConfig:
    """Load and normalize a JSON configuration file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationInvalid(
            f"Configuration file can't be read: {path}",
            [{"type": type(e).__name__, "loc": (), "msg": str(e)}],
        ) from e

    return normalize_configuration(data)


class RunnerSettings(BaseSettings):
    """Process settings read from ``TUBERUNNER_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TUBERUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    config_file: Path = Field(
        default=Path("tuberunner.json"),
        description="JSON runner configuration",
    )

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Minimum level of emitted log entries",
    )

    reserve_timeout_s: int = Field(
        default=DEFAULT_RESERVE_TIMEOUT_S,
        ge=1,
        le=3600,
        description="Seconds a reservation waits for a job before looping",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v: Any) -> LogLevel:
        """Accept level names (``"warning"``) as well as numbers."""
        return LogLevel.parse(v)
