"""Runner: starts and stops a fleet of workers."""

import asyncio
from collections.abc import Mapping
from typing import Any

from ..config import DEFAULT_RESERVE_TIMEOUT_S, RunnerConfig, normalize_configuration
from ..errors import StartFailure
from .events import EventEmitter
from .logger import Logger
from .registry import HandlerRegistry
from .transport import GreenstalkTransport, TransportFactory
from .worker import Worker


class Runner(EventEmitter):
    """Runs one worker per configured worker block.

    Starting is all-or-nothing: if any worker fails to start, every worker
    is stopped again and the start fails. Stopping is best-effort: every
    worker is asked to stop whatever happens to the others.

    Events: ``starting``, ``started``, ``start_error``, ``stopping``,
    ``stopped``.
    """

    def __init__(
        self,
        configuration: Mapping[str, Any] | RunnerConfig,
        registry: HandlerRegistry,
        logger: Logger,
        *,
        transport_factory: TransportFactory = GreenstalkTransport,
        reserve_timeout_s: int = DEFAULT_RESERVE_TIMEOUT_S,
    ) -> None:
        """
        Initialize runner.

        Args:
            configuration: Raw or normalized runner configuration
            registry: Handler factories shared by every worker
            logger: Logger
            transport_factory: Builds one queue transport per worker
            reserve_timeout_s: Seconds each reservation waits for a job

        Raises:
            ConfigurationInvalid: If the configuration is invalid
        """
        super().__init__(logger)
        self.configuration = normalize_configuration(configuration)
        self.registry = registry
        self.logger = logger
        self.transport_factory = transport_factory
        self.reserve_timeout_s = reserve_timeout_s
        self.workers: list[Worker] = []
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        """
        Start every worker concurrently.

        Raises:
            StartFailure: For the first worker (in configuration order) that failed
        """
        self.emit("starting")
        self._stopped.clear()

        self.workers = [
            Worker(
                str(index),
                spec,
                self.registry,
                self.logger,
                transport_factory=self.transport_factory,
                reserve_timeout_s=self.reserve_timeout_s,
            )
            for index, spec in enumerate(self.configuration.workers)
        ]

        results = await asyncio.gather(
            *(worker.start() for worker in self.workers), return_exceptions=True
        )
        failures = [result for result in results if isinstance(result, BaseException)]

        if failures:
            failure = failures[0]
            if not isinstance(failure, StartFailure):
                raise failure

            self.logger.error(
                f"Worker {failure.worker_id} couldn't start, stopping the runner",
                {"error": str(failure.cause), "failed_workers": len(failures)},
            )
            self.emit("start_error", failure)
            await self._stop_workers()
            self._stopped.set()
            raise failure

        self.logger.info("Runner started", {"workers": len(self.workers)})
        self.emit("started")

    async def stop(self) -> dict[str, bool]:
        """
        Stop every worker concurrently.

        Returns:
            Per-worker outcome: True when the worker stopped cleanly
        """
        self.emit("stopping")
        outcomes = await self._stop_workers()
        self.logger.info("Runner stopped", {"outcomes": outcomes})
        self.emit("stopped", outcomes)
        self._stopped.set()
        return outcomes

    async def _stop_workers(self) -> dict[str, bool]:
        results = await asyncio.gather(
            *(worker.stop() for worker in self.workers), return_exceptions=True
        )

        outcomes: dict[str, bool] = {}
        for worker, result in zip(self.workers, results, strict=True):
            if isinstance(result, BaseException):
                self.logger.error(
                    f"Worker {worker.id} couldn't stop",
                    {"error": str(result), "type": type(result).__name__},
                )
                outcomes[worker.id] = False
            else:
                outcomes[worker.id] = result
        return outcomes

    async def run_until_stopped(self) -> None:
        """Wait until ``stop()`` has completed."""
        await self._stopped.wait()
