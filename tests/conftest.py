"""Shared fixtures: in-memory transport, test handlers and log capture."""

import asyncio
import json
from collections import deque
from collections.abc import Callable
from typing import Any

import pytest
from pydantic import BaseModel

from tuberunner.config import WorkerSpec
from tuberunner.errors import ReserveTimedOut
from tuberunner.lib.handler import Handler, Verdict
from tuberunner.lib.logger import Logger, LogLevel
from tuberunner.lib.registry import HandlerRegistry
from tuberunner.lib.transport import DEFAULT_PRIORITY, ReservedJob
from tuberunner.lib.worker import Worker


class FakeTransport:
    """In-memory queue transport recording every call but reservations."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.jobs: deque[ReservedJob] = deque()
        self.failures: dict[str, Exception] = {}
        self._next_id = 1

    def push(self, body: Any) -> int:
        """Queue a job; non-bytes bodies are JSON encoded."""
        if not isinstance(body, bytes):
            body = json.dumps(body).encode()
        job_id = self._next_id
        self._next_id += 1
        self.jobs.append(ReservedJob(id=job_id, body=body))
        return job_id

    def named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    async def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    async def connect(self, host: str, port: int) -> None:
        await self._record("connect", host, port)

    async def watch(self, tube: str) -> None:
        await self._record("watch", tube)

    async def ignore(self, tube: str) -> None:
        await self._record("ignore", tube)

    async def reserve_with_timeout(self, timeout_s: int) -> ReservedJob:
        if "reserve" in self.failures:
            await asyncio.sleep(0)
            raise self.failures["reserve"]
        if self.jobs:
            return self.jobs.popleft()
        await asyncio.sleep(0.01)
        raise ReserveTimedOut(timeout_s)

    async def delete(self, job_id: int) -> None:
        await self._record("delete", job_id)

    async def release(
        self, job_id: int, *, delay: int = 0, priority: int = DEFAULT_PRIORITY
    ) -> None:
        await self._record("release", job_id, delay, priority)

    async def bury(self, job_id: int) -> None:
        await self._record("bury", job_id)

    async def disconnect(self) -> None:
        await self._record("disconnect")


class RecordingHandler(Handler):
    """Handles ``type`` (default ``"thing"``) and returns the configured verdict."""

    def __init__(self, configuration: dict[str, Any], logger: Logger) -> None:
        super().__init__(configuration.get("type", "thing"), configuration, None, None, logger)
        self.verdict: Verdict = configuration.get("verdict", "delete")
        self.processed: list[tuple[Any, Any, str]] = []
        self.initialized = False

    async def initialize(self) -> None:
        self.initialized = True

    async def process(self, payload: Any, id: int | str, type: str) -> Verdict:
        self.processed.append((payload, id, type))
        return self.verdict


class BookPayload(BaseModel):
    isbn: str


class BookHandler(RecordingHandler):
    """Handles ``book`` jobs whose payload carries an ``isbn``."""

    def __init__(self, configuration: dict[str, Any], logger: Logger) -> None:
        Handler.__init__(self, "book", configuration, None, BookPayload, logger)
        self.verdict = "delete"
        self.processed = []
        self.initialized = False


class FailingHandler(RecordingHandler):
    """``process`` always raises."""

    async def process(self, payload: Any, id: int | str, type: str) -> Verdict:
        self.processed.append((payload, id, type))
        raise RuntimeError("handler exploded")


class BrokenInitHandler(RecordingHandler):
    """``initialize`` always raises."""

    async def initialize(self) -> None:
        raise ConnectionError("auxiliary service unreachable")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def logger() -> Logger:
    return Logger(level=LogLevel.DEBUG)


@pytest.fixture
def registry() -> HandlerRegistry:
    registry = HandlerRegistry()
    registry.register("recording", RecordingHandler)
    registry.register("book", BookHandler)
    registry.register("failing", FailingHandler)
    registry.register("broken-init", BrokenInitHandler)
    return registry


@pytest.fixture
def make_worker(
    transport: FakeTransport, registry: HandlerRegistry, logger: Logger
) -> Callable[..., Worker]:
    """Build a worker on the shared fake transport."""

    def _make(tubes: list[str] | None = None, handlers: list[Any] | None = None) -> Worker:
        spec = WorkerSpec.model_validate(
            {
                "tubes": tubes or ["jobs"],
                "handlers": handlers or ["recording"],
            }
        )
        return Worker(
            "0",
            spec,
            registry,
            logger,
            transport_factory=lambda: transport,
            reserve_timeout_s=1,
        )

    return _make


def read_log_entries(capsys: pytest.CaptureFixture[str]) -> list[dict[str, Any]]:
    """Parse every JSON log line written so far to stdout and stderr."""
    captured = capsys.readouterr()
    lines = captured.out.splitlines() + captured.err.splitlines()
    return [json.loads(line) for line in lines if line.startswith("{")]
