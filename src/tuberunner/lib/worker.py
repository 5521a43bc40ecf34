"""Tube worker: reserve, dispatch and act on jobs."""

import asyncio
import json
from enum import Enum
from typing import Any

from ..config import DEFAULT_RESERVE_TIMEOUT_S, DEFAULT_TUBE, HandlerSpec, WorkerSpec
from ..errors import InvalidVerdict, JobRejected, ReserveTimedOut, StartFailure, StopFailure
from .events import EventEmitter
from .handler import WILDCARD, Action, Handler, resolve_verdict
from .logger import Logger
from .registry import HandlerRegistry
from .transport import GreenstalkTransport, ReservedJob, TransportFactory


class WorkerState(str, Enum):
    """Worker lifecycle states."""

    CREATED = "created"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    WATCHING = "watching"
    READY = "ready"
    RESERVING = "reserving"
    PROCESSING = "processing"
    STOPPING = "stopping"
    STOPPED = "stopped"
    START_ERROR = "start_error"


class Worker(EventEmitter):
    """Worker owning one queue connection, its tubes and its handlers.

    Jobs are processed strictly one at a time. Lifecycle events:
    ``initializing``, ``initialized``, ``connecting``, ``connected``,
    ``watching``, ``ignoring``, ``ready``, ``start_error``, ``stopping``,
    ``stopped``, ``stop_error`` and the ``job.*`` events of each cycle.
    """

    def __init__(
        self,
        id: str,
        spec: WorkerSpec,
        registry: HandlerRegistry,
        logger: Logger,
        *,
        transport_factory: TransportFactory = GreenstalkTransport,
        reserve_timeout_s: int = DEFAULT_RESERVE_TIMEOUT_S,
    ) -> None:
        """
        Initialize worker.

        Args:
            id: Worker identifier, unique within a runner
            spec: Normalized worker configuration
            registry: Handler factories, keyed by configured path
            logger: Logger
            transport_factory: Builds the worker's queue transport
            reserve_timeout_s: Seconds each reservation waits for a job
        """
        self.id = id
        self.spec = spec
        self.registry = registry
        self.logger = logger.child({"worker_id": id})
        super().__init__(self.logger)

        self.transport = transport_factory()
        self.reserve_timeout_s = reserve_timeout_s
        self.handlers: dict[str, Handler] = {}
        self.state = WorkerState.CREATED

        self._task: asyncio.Task[None] | None = None
        self._stopping = False
        self._in_flight = False

    @property
    def running(self) -> bool:
        """Whether the job loop is active."""
        return self._task is not None and not self._task.done()

    def _transition(self, state: WorkerState, *args: Any) -> None:
        self.state = state
        self.emit(state.value, *args)

    async def start(self) -> None:
        """
        Build handlers, connect, watch tubes and start the job loop.

        Raises:
            StartFailure: If any handler, the connection or a watch fails
        """
        if not self.spec.handlers:
            self.logger.info("Worker has no handlers, not starting")
            return

        connected = False
        try:
            self._transition(WorkerState.INITIALIZING)
            handlers = await asyncio.gather(
                *(self._build_handler(handler_spec) for handler_spec in self.spec.handlers)
            )
            self._register_handlers(handlers)
            self._transition(WorkerState.INITIALIZED)

            connection = self.spec.resolved_connection
            self._transition(WorkerState.CONNECTING, connection)
            await self.transport.connect(connection.host, connection.port)
            connected = True
            self._transition(WorkerState.CONNECTED, connection)

            for tube in self.spec.tubes:
                await self.transport.watch(tube)
                self._transition(WorkerState.WATCHING, tube)

            # The broker watches "default" on every new connection.
            if not self.spec.watches_default:
                await self.transport.ignore(DEFAULT_TUBE)
                self.emit("ignoring", DEFAULT_TUBE)

        except Exception as e:
            self.state = WorkerState.START_ERROR
            self.logger.error("Worker couldn't start", {"error": str(e), "type": type(e).__name__})
            if connected:
                await self._close_after_failed_start()
            self.emit("start_error", e)
            raise StartFailure(self.id, e) from e

        self._transition(WorkerState.READY)
        self.logger.info(
            "Worker ready",
            {"tubes": self.spec.tubes, "handlers": sorted(self.handlers)},
        )
        self._task = asyncio.create_task(self.run(), name=f"tuberunner-worker-{self.id}")

    async def _close_after_failed_start(self) -> None:
        """Close a connection opened by a start that failed afterwards."""
        try:
            await self.transport.disconnect()
        except Exception as e:
            self.logger.warning(
                "Connection couldn't be closed after a failed start",
                {"error": str(e), "type": type(e).__name__},
            )

    async def _build_handler(self, handler_spec: HandlerSpec) -> Handler:
        factory = self.registry.resolve(handler_spec.path)
        handler = factory(handler_spec.options, self.logger.child({"handler": handler_spec.path}))
        await handler.initialize()
        return handler

    def _register_handlers(self, handlers: list[Handler]) -> None:
        """Register handlers by type; a later handler replaces an earlier one."""
        for handler in handlers:
            previous = self.handlers.get(handler.type)
            if previous is not None:
                self.logger.warning(
                    "Handler type registered twice, keeping the last one",
                    {"type": handler.type, "replaced": previous.name, "handler": handler.name},
                )
            self.handlers[handler.type] = handler

    async def run(self) -> None:
        """Process jobs until ``stop()`` is called."""
        while not self._stopping:
            await self.process_next()

    async def process_next(self) -> None:
        """Reserve one job and finish it with exactly one delete, release or bury.

        Never raises: idle timeouts are expected, rejected jobs are buried
        and any other error is logged before returning.
        """
        job_id: int | None = None
        try:
            self.state = WorkerState.RESERVING
            self.emit("job.reserving")
            job = await self.transport.reserve_with_timeout(self.reserve_timeout_s)

            job_id = job.id
            self._in_flight = True
            self.state = WorkerState.PROCESSING
            self.emit("job.reserved", job.id)

            try:
                action, options = await self._dispatch(job)
            except JobRejected as e:
                self.logger.warning(
                    e.message,
                    {"job_id": job.id, "reason": e.reason, "errors": e.errors},
                )
                action, options = Action.BURY, {}

            await self._act(job.id, action, options)

        except ReserveTimedOut:
            self.logger.debug("No job reserved", {"timeout_s": self.reserve_timeout_s})

        except Exception as e:
            self.logger.error(
                "Job handling error",
                {"job_id": job_id, "error": str(e), "type": type(e).__name__},
            )

        finally:
            self._in_flight = False

    def _decode(self, job: ReservedJob) -> tuple[str, Any, Handler]:
        """Decode a job body and select its handler."""
        try:
            data = json.loads(job.body)
        except ValueError as e:
            raise JobRejected(job.id, f"body can't be decoded ({e})") from e

        if not isinstance(data, dict):
            raise JobRejected(job.id, "body is not an object")

        job_type = data.get("type")
        if not isinstance(job_type, str):
            raise JobRejected(job.id, "body has no type")

        handler = self.handlers.get(job_type, self.handlers.get(WILDCARD))
        if handler is None:
            raise JobRejected(job.id, f"no handler for type {job_type}")

        return job_type, data.get("payload"), handler

    async def _dispatch(self, job: ReservedJob) -> tuple[Action, dict[str, Any]]:
        """Validate a job's payload and run its handler."""
        job_type, payload, handler = self._decode(job)

        if handler.payload_schema is not None:
            self.emit("job.validating", job.id)
            result = handler.validate_payload(payload)
            if not result.valid:
                self.emit("job.invalid", job.id, result.errors)
                raise JobRejected(job.id, "payload is invalid", result.errors)
            self.emit("job.valid", job.id)

        self.emit("job.handling", job.id)
        verdict = await handler.process(payload, job.id, job_type)
        self.emit("job.handled", job.id)

        try:
            return resolve_verdict(verdict)
        except InvalidVerdict as e:
            raise JobRejected(job.id, "verdict options are invalid", e.errors) from e

    async def _act(self, job_id: int, action: Action, options: dict[str, Any]) -> None:
        if action is Action.DELETE:
            self.emit("job.deleting", job_id)
            await self.transport.delete(job_id)
            self.emit("job.deleted", job_id)
        elif action is Action.RELEASE:
            self.emit("job.releasing", job_id)
            await self.transport.release(job_id, **options)
            self.emit("job.released", job_id)
        else:
            self.emit("job.burying", job_id)
            await self.transport.bury(job_id)
            self.emit("job.buried", job_id)

    async def stop(self) -> bool:
        """
        Stop the job loop and disconnect.

        An idle reservation is cancelled; a job already reserved is finished
        first. Disconnect failures are logged, never raised.

        Returns:
            False if the connection couldn't be closed cleanly
        """
        self._transition(WorkerState.STOPPING)
        self._stopping = True

        task = self._task
        if task is not None and not task.done():
            if not self._in_flight:
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        try:
            await self.transport.disconnect()
        except Exception as e:
            failure = StopFailure(self.id, e)
            self.logger.error(failure.message, {"error": str(e)})
            self.state = WorkerState.STOPPED
            self.emit("stop_error", failure)
            return False

        self._transition(WorkerState.STOPPED)
        return True
