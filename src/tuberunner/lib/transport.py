"""Queue transport interface and the beanstalkd adapter."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import greenstalk

from ..errors import ReserveTimedOut

DEFAULT_PRIORITY = greenstalk.DEFAULT_PRIORITY


@dataclass(frozen=True, slots=True)
class ReservedJob:
    """A job claimed by ``reserve_with_timeout``."""

    id: int
    body: bytes


class QueueTransport(Protocol):
    """Tube-based queue operations used by a worker."""

    async def connect(self, host: str, port: int) -> None: ...

    async def watch(self, tube: str) -> None: ...

    async def ignore(self, tube: str) -> None: ...

    async def reserve_with_timeout(self, timeout_s: int) -> ReservedJob:
        """Reserve the next job, raising ``ReserveTimedOut`` when idle."""
        ...

    async def delete(self, job_id: int) -> None: ...

    async def release(
        self, job_id: int, *, delay: int = 0, priority: int = DEFAULT_PRIORITY
    ) -> None: ...

    async def bury(self, job_id: int) -> None: ...

    async def disconnect(self) -> None: ...


TransportFactory = Callable[[], QueueTransport]


class GreenstalkTransport:
    """beanstalkd transport backed by the blocking ``greenstalk`` client.

    Every call runs in a worker thread so the event loop never blocks. A
    cancelled reservation keeps its thread until the server answers;
    ``disconnect()`` waits for it before closing the socket.
    """

    def __init__(self, *, connect_timeout_s: float | None = None) -> None:
        """Initialize a disconnected transport."""
        self.connect_timeout_s = connect_timeout_s
        self._client: greenstalk.Client | None = None
        self._pending_reserve: asyncio.Future[greenstalk.Job] | None = None

    @property
    def client(self) -> greenstalk.Client:
        """Connected greenstalk client."""
        if self._client is None:
            raise RuntimeError("Transport is not connected")
        return self._client

    async def connect(self, host: str, port: int) -> None:
        """Open the connection; the broker starts out watching ``default``."""

        def _connect() -> greenstalk.Client:
            # Raw bytes; decoding belongs to the worker.
            return greenstalk.Client((host, port), encoding=None)

        if self.connect_timeout_s is None:
            self._client = await asyncio.to_thread(_connect)
        else:
            self._client = await asyncio.wait_for(
                asyncio.to_thread(_connect), timeout=self.connect_timeout_s
            )

    async def watch(self, tube: str) -> None:
        """Add a tube to the watch list."""
        await asyncio.to_thread(self.client.watch, tube)

    async def ignore(self, tube: str) -> None:
        """Remove a tube from the watch list."""
        await asyncio.to_thread(self.client.ignore, tube)

    async def reserve_with_timeout(self, timeout_s: int) -> ReservedJob:
        """Reserve a job from any watched tube."""
        pending = asyncio.ensure_future(asyncio.to_thread(self.client.reserve, timeout_s))
        self._pending_reserve = pending
        try:
            job = await asyncio.shield(pending)
        except greenstalk.TimedOutError as e:
            raise ReserveTimedOut(timeout_s) from e
        finally:
            if pending.done():
                self._pending_reserve = None

        body = job.body if isinstance(job.body, bytes) else str(job.body).encode()
        return ReservedJob(id=job.id, body=body)

    async def delete(self, job_id: int) -> None:
        """Delete a reserved job."""
        await asyncio.to_thread(self.client.delete, job_id)

    async def release(
        self, job_id: int, *, delay: int = 0, priority: int = DEFAULT_PRIORITY
    ) -> None:
        """Put a reserved job back in the ready queue, optionally delayed."""
        await asyncio.to_thread(self.client.release, _job_ref(job_id), priority, delay)

    async def bury(self, job_id: int) -> None:
        """Bury a reserved job for manual inspection."""
        await asyncio.to_thread(self.client.bury, _job_ref(job_id))

    async def disconnect(self) -> None:
        """Close the connection once any abandoned reservation has settled.

        A job reserved by an abandoned reservation goes back to the ready
        queue when the server sees the connection close.
        """
        client, self._client = self._client, None
        pending, self._pending_reserve = self._pending_reserve, None
        if pending is not None:
            await asyncio.gather(pending, return_exceptions=True)
        if client is not None:
            await asyncio.to_thread(client.close)


def _job_ref(job_id: int) -> greenstalk.Job:
    # release and bury read only ``job.id``
    return greenstalk.Job(job_id, b"")
