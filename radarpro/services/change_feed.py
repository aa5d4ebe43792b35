"""In-process row-level change feed for the reports table.

Every committed mutation made through the report store is published here as
a ``ChangeEvent``. Each subscriber gets its own bounded queue and worker task,
so events reach a subscriber in publish order without the publisher waiting
on slow consumers. When a queue overflows the event is dropped and the
subscriber's ``on_gap`` hook runs once its backlog is drained, which is the
subscriber's cue to resynchronise from the store.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable

from radarpro.schemas.ws_messages import ChangeEvent, WSMessage

logger = logging.getLogger(__name__)

EventCallback = Callable[[ChangeEvent], Awaitable[None]]
GapCallback = Callable[[], Awaitable[None]]

REPORTS_CHANNEL = "reports"


class Subscription:
    def __init__(
        self,
        feed: "ChangeFeed",
        callback: EventCallback,
        on_gap: GapCallback | None = None,
        queue_size: int = 256,
    ):
        self._feed = feed
        self._callback = callback
        self._on_gap = on_gap
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=queue_size)
        self._gap = False
        self.active = True
        self._task = asyncio.create_task(self._run())

    @property
    def has_gap(self) -> bool:
        return self._gap

    def offer(self, event: ChangeEvent) -> None:
        if not self.active:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._gap = True
            logger.warning(
                "Change feed subscriber backlog full, dropped %s event for %s",
                event.event_type, event.record_id,
            )

    async def _deliver(self, event: ChangeEvent) -> None:
        try:
            await self._callback(event)
        except Exception:
            logger.exception("Change feed subscriber failed on %s %s", event.event_type, event.record_id)

    async def _recover(self) -> None:
        self._gap = False
        if self._on_gap is None:
            return
        try:
            await self._on_gap()
        except Exception:
            logger.exception("Change feed gap recovery failed")

    async def _run(self):
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
                if self._gap and self._queue.empty():
                    await self._recover()
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._feed._remove(self)
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task


class ChangeFeed:
    def __init__(self, queue_size: int = 256, broadcaster=None):
        self._subscriptions: list[Subscription] = []
        self._queue_size = queue_size
        self._broadcaster = broadcaster

    def subscribe(self, callback: EventCallback, on_gap: GapCallback | None = None) -> Subscription:
        sub = Subscription(self, callback, on_gap=on_gap, queue_size=self._queue_size)
        self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: ChangeEvent) -> None:
        logger.debug("Change feed: %s %s", event.event_type, event.record_id)
        for sub in list(self._subscriptions):
            sub.offer(event)
        if self._broadcaster is not None:
            msg = WSMessage(event="change", report_id=event.record_id, data=event.model_dump(mode="json"))
            try:
                await self._broadcaster.broadcast(REPORTS_CHANNEL, msg.model_dump())
            except Exception:
                logger.exception("Failed to broadcast change event %s", event.record_id)

    async def close(self) -> None:
        for sub in list(self._subscriptions):
            await sub.unsubscribe()
