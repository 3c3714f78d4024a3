from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class RealtimeEvent(StrEnum):
    RIDERS_NEARBY = "riders-nearby"
    RIDER_LOCATION_UPDATE = "rider-location-update"
    RIDER_OFFLINE = "rider-offline"
    EMERGENCY_ALERT = "emergency-alert"
    EMERGENCY_RESPONSE = "emergency-response"
    EMERGENCY_UPDATE = "emergency-update"


@dataclass(frozen=True)
class OutboundEvent:
    connection_id: str
    event: RealtimeEvent
    payload: Any


class EventSink(Protocol):
    def publish(self, event: OutboundEvent) -> None: ...


class EventTransport(Protocol):
    async def emit(self, event: str, payload: Any, to: str) -> None: ...


class SocketIOTransport(EventTransport):
    def __init__(self, server: Any) -> None:
        self._server = server

    async def emit(self, event: str, payload: Any, to: str) -> None:
        await self._server.emit(event, payload, to=to)


class EventDispatcher(EventSink):
    """Per-connection outbound queues, each drained by its own task.

    ``publish`` never blocks the caller. A full queue drops its oldest pending event.
    """

    def __init__(self, transport: EventTransport, max_pending: int = 100) -> None:
        if max_pending <= 0:
            raise ValueError("max_pending must be > 0")
        self._transport = transport
        self._max_pending = max_pending
        self._queues: dict[str, asyncio.Queue[OutboundEvent]] = {}
        self._workers: dict[str, asyncio.Task[None]] = {}
        self._dropped = 0

    @property
    def dropped_count(self) -> int:
        return self._dropped

    def pending_count(self) -> int:
        return sum(queue.qsize() for queue in self._queues.values())

    def publish(self, event: OutboundEvent) -> None:
        queue = self._queues.get(event.connection_id)
        if queue is None:
            queue = self._open(event.connection_id)
        if queue.full():
            stale = queue.get_nowait()
            queue.task_done()
            self._dropped += 1
            logger.warning(
                "outbound_event_dropped",
                extra={
                    "component": "rider_service",
                    "connection_id": event.connection_id,
                    "event": stale.event.value,
                },
            )
        queue.put_nowait(event)

    async def flush(self) -> None:
        await asyncio.gather(*(queue.join() for queue in list(self._queues.values())))

    async def close_connection(self, connection_id: str) -> None:
        self._queues.pop(connection_id, None)
        worker = self._workers.pop(connection_id, None)
        if worker is None:
            return
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker

    async def close(self) -> None:
        for connection_id in list(self._workers):
            await self.close_connection(connection_id)

    def _open(self, connection_id: str) -> asyncio.Queue[OutboundEvent]:
        queue: asyncio.Queue[OutboundEvent] = asyncio.Queue(maxsize=self._max_pending)
        self._queues[connection_id] = queue
        self._workers[connection_id] = asyncio.get_running_loop().create_task(
            self._drain(connection_id, queue),
            name=f"outbound:{connection_id}",
        )
        return queue

    async def _drain(self, connection_id: str, queue: asyncio.Queue[OutboundEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self._transport.emit(event.event.value, event.payload, to=connection_id)
            except Exception:
                logger.exception(
                    "outbound_event_failed",
                    extra={
                        "component": "rider_service",
                        "connection_id": connection_id,
                        "event": event.event.value,
                    },
                )
            finally:
                queue.task_done()
