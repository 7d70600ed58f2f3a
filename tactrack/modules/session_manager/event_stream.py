"""
Event Stream - Bounded in-process event channel

Publishing never blocks: when the queue is full the oldest event is dropped
and counted.
"""

import asyncio
from typing import AsyncIterator, List

from tactrack.models.events import Event
from tactrack.utils.logger import get_logger

class EventStream:
    """Bounded asyncio queue of tracking events with drop-oldest overflow"""

    def __init__(self, max_size: int = 1000):
        if max_size <= 0:
            raise ValueError(f"Event queue size must be positive, got {max_size}")

        self.logger = get_logger(__name__)
        self.max_size = max_size
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)

        self.published = 0
        self.dropped = 0

    def publish(self, event: Event) -> None:
        if self.queue.full():
            try:
                discarded = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                discarded = None
            if discarded is not None:
                self.dropped += 1
                self.logger.warning(
                    f"Event queue full, dropped {discarded.event_type.value} event for {discarded.target_id}"
                )

        self.queue.put_nowait(event)
        self.published += 1

    def publish_all(self, events: List[Event]) -> None:
        for event in events:
            self.publish(event)

    async def get(self) -> Event:
        return await self.queue.get()

    def drain(self) -> List[Event]:
        """Remove and return every queued event without waiting"""

        events = []
        while True:
            try:
                events.append(self.queue.get_nowait())
            except asyncio.QueueEmpty:
                return events

    def qsize(self) -> int:
        return self.queue.qsize()

    async def __aiter__(self) -> AsyncIterator[Event]:
        while True:
            yield await self.queue.get()
