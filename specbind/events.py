"""Sync progress events and the ordered channel that carries them."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union


class Step(str, Enum):
    """Pipeline steps reported through status events."""

    RESOLVING_CONFIG = "RESOLVING_CONFIG"
    FETCHING_SPEC = "FETCHING_SPEC"
    BUILDING_DESCRIPTORS = "BUILDING_DESCRIPTORS"
    RESOLVING_CONFLICTS = "RESOLVING_CONFLICTS"
    GENERATING = "GENERATING"


SOURCE_STEPS = (
    Step.FETCHING_SPEC,
    Step.BUILDING_DESCRIPTORS,
    Step.RESOLVING_CONFLICTS,
    Step.GENERATING,
)


class Status(str, Enum):
    STARTED = "started"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class StatusEvent:
    """Progress of one step. ``source_id`` is empty for project-level steps."""

    status: Status
    source_id: str
    step: Step
    error: Optional[str] = None
    info: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": "status",
            "sourceId": self.source_id,
            "step": self.step.value,
            "status": self.status.value,
        }
        if self.info is not None:
            payload["info"] = self.info
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class DoneEvent:
    """Terminal event; exactly one per sync invocation."""

    success: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "done", "success": self.success}


SyncEvent = Union[StatusEvent, DoneEvent]
EventSink = Callable[[SyncEvent], None]


class ChannelClosedError(RuntimeError):
    """Raised when an event is emitted after the terminal event."""


class ProgressChannel:
    """Append-only, thread-safe event channel with a single terminal event.

    Sinks are invoked synchronously, in emission order, while the channel lock
    is held, so every sink observes the same total order. Once a
    :class:`DoneEvent` has been emitted the channel is closed and any further
    emit raises :class:`ChannelClosedError`.
    """

    def __init__(self, sinks: Optional[List[EventSink]] = None) -> None:
        self._events: List[SyncEvent] = []
        self._sinks: List[EventSink] = list(sinks or [])
        self._lock = threading.RLock()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def events(self) -> List[SyncEvent]:
        with self._lock:
            return list(self._events)

    def subscribe(self, sink: EventSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def unsubscribe(self, sink: EventSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def emit(self, event: SyncEvent) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosedError(f"Channel already completed; dropped {event!r}")
            self._events.append(event)
            if isinstance(event, DoneEvent):
                self._closed = True
            for sink in list(self._sinks):
                sink(event)

    def status(
        self,
        status: Status,
        source_id: str,
        step: Step,
        *,
        error: Optional[str] = None,
        info: Optional[str] = None,
    ) -> StatusEvent:
        event = StatusEvent(status=status, source_id=source_id, step=step, error=error, info=info)
        self.emit(event)
        return event

    def done(self, success: bool) -> DoneEvent:
        event = DoneEvent(success=success)
        self.emit(event)
        return event

    async def stream(self) -> AsyncIterator[SyncEvent]:
        """Yield past and future events until the terminal event."""
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[SyncEvent]" = asyncio.Queue()

        def _sink(event: SyncEvent) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, event)

        with self._lock:
            backlog = list(self._events)
            closed = self._closed
            if not closed:
                self._sinks.append(_sink)

        try:
            for event in backlog:
                yield event
            if closed:
                return
            while True:
                event = await queue.get()
                yield event
                if isinstance(event, DoneEvent):
                    return
        finally:
            self.unsubscribe(_sink)


__all__ = [
    "ChannelClosedError",
    "DoneEvent",
    "EventSink",
    "ProgressChannel",
    "SOURCE_STEPS",
    "Status",
    "StatusEvent",
    "Step",
    "SyncEvent",
]
