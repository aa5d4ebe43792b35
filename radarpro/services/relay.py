"""Relays raw report change events to one client's view and notification pipeline.

Bare change events only carry table columns, so each insert/update is
hydrated with ``fetch_by_id`` (author and media included) before it touches
the local view. Hydration is async; results older than what the view has
already applied for that id are discarded, so the newest ``updated_at`` wins
regardless of the order in which fetches complete.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from radarpro.schemas import ChangeEvent, ReportRead
from radarpro.services.change_feed import ChangeFeed, Subscription
from radarpro.services.report_store import ReportGateway, iter_active

logger = logging.getLogger(__name__)

Handler = Callable[..., Any] | None


@dataclass
class RelayHandlers:
    on_new: Handler = None
    on_update: Handler = None
    on_delete: Handler = None  # called with the report id
    on_expired: Handler = None  # called with the report; falls back to on_delete(id)


def _utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


class ReportView:
    """Ordered active reports, newest first, with at most one entry per id."""

    def __init__(self):
        self._reports: list[ReportRead] = []
        self._versions: dict[str, datetime] = {}
        self._deleted: set[str] = set()
        # change counter and the count at which each id was last touched by a live event
        self._tick = 0
        self._touched: dict[str, int] = {}

    def __contains__(self, report_id: str) -> bool:
        return any(r.id == report_id for r in self._reports)

    def __len__(self) -> int:
        return len(self._reports)

    def snapshot(self) -> list[ReportRead]:
        return list(self._reports)

    def ids(self) -> list[str]:
        return [r.id for r in self._reports]

    def is_deleted(self, report_id: str) -> bool:
        return report_id in self._deleted

    def is_stale(self, report: ReportRead) -> bool:
        seen = self._versions.get(report.id)
        return seen is not None and _utc(report.updated_at) < seen

    def is_current(self, report: ReportRead) -> bool:
        return report.id in self and self._versions.get(report.id) == _utc(report.updated_at)

    def _remember(self, report: ReportRead) -> None:
        self._versions[report.id] = _utc(report.updated_at)

    def _touch(self, report_id: str) -> None:
        self._tick += 1
        self._touched[report_id] = self._tick

    def mark(self) -> int:
        return self._tick

    def touched_since(self, report_id: str, mark: int) -> bool:
        return self._touched.get(report_id, 0) > mark

    def prepend(self, report: ReportRead) -> bool:
        if report.id in self:
            return False
        self._reports.insert(0, report)
        self._remember(report)
        self._touch(report.id)
        return True

    def upsert(self, report: ReportRead) -> None:
        for i, existing in enumerate(self._reports):
            if existing.id == report.id:
                self._reports[i] = report
                self._remember(report)
                self._touch(report.id)
                return
        self.prepend(report)

    def remove(self, report_id: str, version: datetime | None = None) -> bool:
        before = len(self._reports)
        self._reports = [r for r in self._reports if r.id != report_id]
        if version is not None:
            self._versions[report_id] = _utc(version)
        self._touch(report_id)
        return len(self._reports) != before

    def tombstone(self, report_id: str) -> None:
        self.remove(report_id)
        self._deleted.add(report_id)

    def replace_all(self, reports: list[ReportRead]) -> None:
        self._reports = []
        for report in reports:
            if report.id in self._deleted or report.id in self:
                continue
            self._reports.append(report)
            self._remember(report)


class ChangeFeedRelay:
    def __init__(
        self,
        gateway: ReportGateway,
        feed: ChangeFeed,
        current_user_id: str | None = None,
        handlers: RelayHandlers | None = None,
        coordinator=None,
        page_size: int = 100,
    ):
        self._gateway = gateway
        self._feed = feed
        self.current_user_id = current_user_id
        self.handlers = handlers or RelayHandlers()
        self._coordinator = coordinator
        self._page_size = page_size
        self.view = ReportView()
        self._subscription: Subscription | None = None
        self._stopped = False

    @property
    def is_connected(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def start(self) -> None:
        """Start following the change feed, then load the current active reports."""
        if self.is_connected:
            return
        self._stopped = False
        self._subscription = self._feed.subscribe(self.handle_event, on_gap=self.reconcile)
        await self.reconcile()
        logger.info("Real-time report relay started for %s", self.current_user_id or "anonymous")

    async def stop(self) -> None:
        self._stopped = True
        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None
            logger.info("Real-time report relay stopped for %s", self.current_user_id or "anonymous")

    async def drain(self) -> None:
        if self._subscription is not None:
            await self._subscription.drain()

    async def reconcile(self) -> None:
        """Repair the view from the store after a gap in the change feed.

        Entries touched by live events while the store page was loading win
        over the page.
        """
        if self._stopped:
            return
        mark = self.view.mark()
        try:
            active = [r async for r in iter_active(self._gateway, self._page_size)]
        except Exception:
            logger.exception("Failed to reconcile report view")
            return
        if self._stopped:
            return
        current = {r.id: r for r in self.view.snapshot()}
        live = [r for r in current.values() if self.view.touched_since(r.id, mark)]
        live_ids = {r.id for r in live}
        active_ids = {r.id for r in active}
        merged = [r for r in live if r.id not in active_ids]
        for report in active:
            if self.view.touched_since(report.id, mark):
                if report.id in live_ids:
                    merged.append(current[report.id])
            elif not self.view.is_stale(report):
                merged.append(report)
            elif report.id in current:
                merged.append(current[report.id])
        kept = {r.id for r in merged}
        dropped = [rid for rid in current if rid not in kept]
        self.view.replace_all(merged)
        if dropped:
            logger.info("Reconcile removed %d reports no longer active", len(dropped))

    def _is_own(self, report: ReportRead) -> bool:
        return bool(self.current_user_id) and report.user_id == self.current_user_id

    async def _emit(self, handler: Handler, *args) -> None:
        if handler is None:
            return
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Report change handler failed")

    async def _notify(self, report: ReportRead, kind: str) -> None:
        if self._coordinator is None:
            return
        if self._is_own(report):
            logger.debug("Skipping notification for own report %s", report.id)
            return
        try:
            await self._coordinator.notify_for_report_event(report, kind)
        except Exception:
            logger.exception("Notification coordinator failed for report %s", report.id)

    async def _hydrate(self, report_id: str) -> ReportRead | None:
        try:
            report = await self._gateway.fetch_by_id(report_id)
        except Exception:
            logger.exception("Error fetching report %s", report_id)
            return None
        if report is None:
            logger.info("Report %s no longer exists, dropping change event", report_id)
        return report

    async def handle_event(self, event: ChangeEvent) -> None:
        if self._stopped:
            return
        report_id = event.record_id
        if not report_id:
            logger.warning("Change event without a report id: %s", event.event_type)
            return

        if event.event_type == "delete":
            self.view.tombstone(report_id)
            await self._emit(self.handlers.on_delete, report_id)
            return

        if self.view.is_deleted(report_id):
            return
        report = await self._hydrate(report_id)
        if report is None or self._stopped or self.view.is_deleted(report_id):
            return
        if self.view.is_stale(report):
            logger.debug("Discarding stale hydration for report %s", report_id)
            return

        if event.event_type == "insert":
            await self._on_insert(report)
        else:
            await self._on_update(report)

    async def _on_insert(self, report: ReportRead) -> None:
        if report.status != "active":
            return
        if not self.view.prepend(report):
            logger.debug("Duplicate insert for report %s ignored", report.id)
            return
        await self._emit(self.handlers.on_new, report)
        await self._notify(report, "new")

    async def _on_update(self, report: ReportRead) -> None:
        if report.status != "active":
            self.view.remove(report.id, version=report.updated_at)
            if report.status == "expired" and self.handlers.on_expired is not None:
                await self._emit(self.handlers.on_expired, report)
            else:
                await self._emit(self.handlers.on_delete, report.id)
            return
        if self.view.is_current(report):
            logger.debug("Duplicate update for report %s ignored", report.id)
            return
        self.view.upsert(report)
        await self._emit(self.handlers.on_update, report)
        await self._notify(report, "update")


async def subscribe_to_report_changes(
    gateway: ReportGateway,
    feed: ChangeFeed,
    handlers: RelayHandlers,
    current_user_id: str | None = None,
    coordinator=None,
) -> Callable[[], Awaitable[None]]:
    """Start a relay and return its ``unsubscribe`` coroutine function."""
    relay = ChangeFeedRelay(gateway, feed, current_user_id, handlers, coordinator)
    await relay.start()
    return relay.stop
