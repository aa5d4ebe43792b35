"""System notification channel.

The coordinator hands finished notifications to a ``SystemNotifier``. The
default one pushes them over the user's WebSocket channel, where the client
turns them into an OS-level notification.
"""

from __future__ import annotations

import logging
from typing import Protocol

from radarpro.schemas import StoredNotification, WSMessage
from radarpro.services.ws_manager import ConnectionManager, user_channel

logger = logging.getLogger(__name__)

CATEGORY_SOUNDS: dict[str, str] = {
    "police_checkpoint": "siren.wav",
    "accident": "crash.wav",
    "road_hazard": "warning.wav",
    "traffic_jam": "traffic.wav",
    "weather_alert": "weather.wav",
    "general": "default.wav",
}

# Notification priority -> platform (Android channel) priority.
PLATFORM_PRIORITY: dict[str, str] = {
    "low": "low",
    "normal": "default",
    "high": "high",
    "urgent": "max",
}


def sound_for_category(category: str) -> str:
    return CATEGORY_SOUNDS.get(category, "default.wav")


class SystemNotifier(Protocol):
    async def deliver(
        self, user_id: str, notification: StoredNotification, *,
        sound: str | None, vibrate: bool, platform_priority: str, display_duration: int,
    ) -> bool: ...


class WebSocketNotifier:
    def __init__(self, manager: ConnectionManager):
        self._manager = manager

    async def deliver(
        self, user_id: str, notification: StoredNotification, *,
        sound: str | None, vibrate: bool, platform_priority: str, display_duration: int,
    ) -> bool:
        msg = WSMessage(
            event="notification",
            report_id=notification.report_id,
            data={
                "notification": notification.model_dump(mode="json"),
                "sound": sound,
                "vibrate": vibrate,
                "priority": platform_priority,
                "display_duration": display_duration,
            },
        )
        sent = await self._manager.broadcast(user_channel(user_id), msg.model_dump())
        if not sent:
            logger.debug("No connected client for %s, notification %s kept in history only", user_id, notification.id)
        return sent > 0
