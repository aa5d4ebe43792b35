"""Per-user client sessions and the lifecycle of the shared expiry sweeper.

A ``ClientSession`` is what a logged-in device holds: a relay keeping its
active-report view in sync with the change feed, and a notification
coordinator applying that user's preferences. The ``SessionManager`` owns the
single ``ExpirySweeper`` and runs it while at least one session is open.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from radarpro.config import Settings
from radarpro.schemas import ReportRead, WSMessage
from radarpro.services.change_feed import ChangeFeed
from radarpro.services.expiry_sweeper import ExpirySweeper
from radarpro.services.local_store import LocalStore
from radarpro.services.notification_store import NotificationHistory, PreferencesStore
from radarpro.services.notifications import NotificationCoordinator
from radarpro.services.push import SystemNotifier
from radarpro.services.relay import ChangeFeedRelay, RelayHandlers
from radarpro.services.report_store import ReportGateway
from radarpro.services.ws_manager import ConnectionManager, user_channel

logger = logging.getLogger(__name__)


@dataclass
class ClientSession:
    user_id: str
    relay: ChangeFeedRelay
    coordinator: NotificationCoordinator

    @property
    def preferences(self) -> PreferencesStore:
        return self.coordinator.preferences

    @property
    def history(self) -> NotificationHistory:
        return self.coordinator.history

    def reports(self) -> list[ReportRead]:
        return self.relay.view.snapshot()


def _view_pusher(manager: ConnectionManager | None, user_id: str) -> RelayHandlers:
    """Handlers that mirror relay view changes onto the user's WebSocket channel."""
    if manager is None:
        return RelayHandlers()
    channel = user_channel(user_id)

    async def push(event: str, report_id: str, data: dict | None = None):
        await manager.broadcast(channel, WSMessage(event=event, report_id=report_id, data=data or {}).model_dump())

    return RelayHandlers(
        on_new=lambda r: push("report_new", r.id, r.model_dump(mode="json")),
        on_update=lambda r: push("report_updated", r.id, r.model_dump(mode="json")),
        on_expired=lambda r: push("report_expired", r.id, r.model_dump(mode="json")),
        on_delete=lambda report_id: push("report_removed", report_id),
    )


class SessionManager:
    def __init__(
        self,
        sweeper: ExpirySweeper,
        feed: ChangeFeed,
        gateway: ReportGateway,
        settings: Settings,
        notifier: SystemNotifier | None = None,
        ws: ConnectionManager | None = None,
        clock: Callable | None = None,
    ):
        self.sweeper = sweeper
        self._feed = feed
        self._gateway = gateway
        self._settings = settings
        self._notifier = notifier
        self._ws = ws
        self._clock = clock
        self._sessions: dict[str, ClientSession] = {}

    @property
    def active_user_ids(self) -> list[str]:
        return list(self._sessions)

    def get(self, user_id: str) -> ClientSession | None:
        return self._sessions.get(user_id)

    def start_expiry_service(self) -> None:
        self.sweeper.start()

    async def stop_expiry_service(self) -> None:
        await self.sweeper.stop()

    def _build(self, user_id: str) -> ClientSession:
        cfg = self._settings.notifications
        store = LocalStore(cfg.storage_dir, user_id)
        coordinator = NotificationCoordinator(
            user_id,
            PreferencesStore(store),
            NotificationHistory(store, limit=cfg.history_limit),
            notifier=self._notifier,
            clock=self._clock,
        )
        relay = ChangeFeedRelay(
            self._gateway, self._feed,
            current_user_id=user_id,
            handlers=_view_pusher(self._ws, user_id),
            coordinator=coordinator,
            page_size=self._settings.expiry.page_size,
        )
        return ClientSession(user_id=user_id, relay=relay, coordinator=coordinator)

    async def open(self, user_id: str) -> ClientSession:
        existing = self._sessions.get(user_id)
        if existing is not None:
            return existing
        session = self._build(user_id)
        prefs = await session.preferences.load()
        await session.history.cleanup(prefs.global_settings.auto_cleanup_days)
        await session.relay.start()
        self._sessions[user_id] = session
        logger.info("Session opened for %s (%d active)", user_id, len(self._sessions))
        if len(self._sessions) == 1:
            self.start_expiry_service()
        return session

    async def close(self, user_id: str) -> bool:
        session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        await session.relay.stop()
        logger.info("Session closed for %s (%d active)", user_id, len(self._sessions))
        if not self._sessions:
            await self.stop_expiry_service()
        return True

    async def close_all(self) -> None:
        for user_id in list(self._sessions):
            await self.close(user_id)
        if self.sweeper.is_running:
            await self.stop_expiry_service()
