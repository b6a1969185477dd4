from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Any


class EventBus:
    """Fan-out of session / bulk-run events keyed by channel id.

    The latest event per channel is retained so a subscriber that connects late
    still starts from the current status.
    """

    def __init__(self) -> None:
        self._queues: dict[str, list[asyncio.Queue[dict[str, Any]]]] = defaultdict(list)
        self._latest: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def publish(self, channel: str, event: dict[str, Any]) -> None:
        async with self._lock:
            self._latest[channel] = event
            for queue in list(self._queues.get(channel, [])):
                await queue.put(event)

    def latest(self, channel: str) -> dict[str, Any] | None:
        return self._latest.get(channel)

    async def subscribe(self, channel: str) -> AsyncIterator[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        async with self._lock:
            self._queues[channel].append(queue)
            if channel in self._latest:
                queue.put_nowait(self._latest[channel])

        try:
            while True:
                event = await queue.get()
                yield event
        finally:
            async with self._lock:
                if queue in self._queues.get(channel, []):
                    self._queues[channel].remove(queue)
