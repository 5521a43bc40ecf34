"""Error taxonomy for workers, handlers and configuration."""

from typing import Any


class TubeRunnerError(Exception):
    """Base exception for tuberunner errors.

    Attributes:
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """String representation of error."""
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ConfigurationInvalid(TubeRunnerError):
    """Runner or handler configuration failed schema validation.

    ``errors`` always holds the complete list of violations.
    """

    def __init__(self, message: str, errors: list[dict[str, Any]]) -> None:
        """Initialize configuration error."""
        super().__init__(message, details={"error_count": len(errors)})
        self.errors = errors


class HandlerNotFound(TubeRunnerError):
    """No handler factory is registered under the configured path."""

    def __init__(self, path: str) -> None:
        """Initialize handler lookup error."""
        super().__init__(f"No handler registered for path: {path}", details={"path": path})
        self.path = path


class StartFailure(TubeRunnerError):
    """A worker could not build its handlers, connect or watch its tubes."""

    def __init__(self, worker_id: str, cause: BaseException) -> None:
        """Initialize start failure."""
        super().__init__(
            f"Worker {worker_id} couldn't start: {cause}",
            details={"worker_id": worker_id, "type": type(cause).__name__},
        )
        self.worker_id = worker_id
        self.cause = cause


class StopFailure(TubeRunnerError):
    """A worker failed to disconnect while stopping (logged, never raised)."""

    def __init__(self, worker_id: str, cause: BaseException) -> None:
        """Initialize stop failure."""
        super().__init__(
            f"Worker {worker_id} couldn't stop cleanly: {cause}",
            details={"worker_id": worker_id, "type": type(cause).__name__},
        )
        self.worker_id = worker_id
        self.cause = cause


class ReserveTimedOut(TubeRunnerError):
    """Reservation waited for its whole timeout without a job (idle case)."""

    def __init__(self, timeout_s: float) -> None:
        """Initialize timeout."""
        super().__init__(
            f"No job reserved within {timeout_s}s",
            details={"timeout_s": timeout_s},
        )


class JobRejected(TubeRunnerError):
    """A reserved job can't be dispatched and must be buried.

    Raised for undecodable bodies, ill-shaped envelopes, unmatched types and
    payloads failing the handler's schema.
    """

    def __init__(
        self,
        job_id: int | str,
        reason: str,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize rejection."""
        details: dict[str, Any] = {"job_id": job_id}
        if errors:
            details["errors"] = errors
        super().__init__(f"Job #{job_id} rejected: {reason}", details=details)
        self.job_id = job_id
        self.reason = reason
        self.errors = errors or []


class InvalidVerdict(TubeRunnerError):
    """A handler verdict carries options the queue can't apply."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        """Initialize verdict error."""
        super().__init__("Verdict options are invalid.", details={"error_count": len(errors)})
        self.errors = errors
