"""
Scan progress events.

The orchestrator publishes lifecycle events to an EventChannel; transports
(the SSE route) consume the channel without knowing anything about the
pipeline itself.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional


CREATED = "created"
STATUS = "status"
COMPLETE = "complete"
ERROR = "error"

TERMINAL_EVENTS = (COMPLETE, ERROR)


@dataclass
class ScanEvent:
    name: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.name in TERMINAL_EVENTS

    def to_sse(self) -> str:
        """Server-sent-event frame."""
        return f"event: {self.name}\ndata: {json.dumps(self.data, default=str)}\n\n"


class EventChannel:
    """
    Ordered, single-consumer event stream for one scan.

    Publishing never blocks. Iteration ends after the first terminal event
    or once the channel is closed.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self.history: list[ScanEvent] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, name: str, **data) -> None:
        if self._closed:
            return
        event = ScanEvent(name, data)
        self.history.append(event)
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    async def next_event(self) -> Optional[ScanEvent]:
        item = await self._queue.get()
        if item is self._CLOSED:
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[ScanEvent]:
        while True:
            event = await self.next_event()
            if event is None:
                return
            yield event
            if event.is_terminal:
                return
