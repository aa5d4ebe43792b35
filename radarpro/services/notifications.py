"""Decides whether and how to notify the local user about a report event.

``NotificationCoordinator.notify_for_report_event`` applies the user's
preferences in a fixed order and stops at the first check that fails:

1. map the report category to its preference block
2. global notifications disabled
3. category disabled
4. inside quiet hours (windows may wrap past midnight)
5. category frequency throttle not yet elapsed
   (plus, when location filtering is on, the report is out of range)

Only then is content built, the notification persisted to the local history,
and, if the category allows it, dispatched to the system channel. The
persisted record is the source of truth: a failed dispatch does not remove it.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, time, timedelta
from typing import Callable

from ulid import ULID

from radarpro.schemas import (
    CategoryNotificationSettings, GlobalNotificationSettings, QuietHours,
    ReportRead, StoredNotification,
)
from radarpro.services.notification_store import NotificationHistory, PreferencesStore, preference_key
from radarpro.services.push import PLATFORM_PRIORITY, SystemNotifier, sound_for_category

logger = logging.getLogger(__name__)

FREQUENCY_INTERVALS: dict[str, timedelta | None] = {
    "immediate": None,
    "every_5min": timedelta(minutes=5),
    "every_15min": timedelta(minutes=15),
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
}

CATEGORY_DISPLAY: dict[str, tuple[str, str]] = {
    "police_checkpoint": ("Police Checkpoint", "\U0001F694"),
    "accident": ("Accident", "\U0001F697"),
    "road_hazard": ("Road Hazard", "⚠️"),
    "traffic_jam": ("Traffic Jam", "\U0001F6A6"),
    "weather_alert": ("Weather Alert", "\U0001F327️"),
    "general": ("General Report", "\U0001F4CD"),
}

EARTH_RADIUS_M = 6371000.0


def _parse_clock(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def is_in_quiet_hours(quiet_hours: QuietHours, now: datetime) -> bool:
    """True when ``now`` (local time) falls inside the quiet-hours window on an active day."""
    if not quiet_hours.enabled:
        return False
    if now.weekday() not in quiet_hours.days:
        return False
    start = _parse_clock(quiet_hours.start)
    end = _parse_clock(quiet_hours.end)
    current = now.time().replace(tzinfo=None)
    if start == end:
        return False
    if start < end:
        return start <= current < end
    return current >= start or current < end


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance on a spherical earth."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def build_content(report: ReportRead, event_kind: str) -> tuple[str, str]:
    name, emoji = CATEGORY_DISPLAY.get(report.category, (report.category.replace("_", " ").title(), "\U0001F4CD"))
    if event_kind == "new":
        title = f"{emoji} New {name}"
    elif event_kind == "update":
        title = f"{emoji} {name} Updated"
    else:
        title = f"{emoji} {name} Removed"
    body = f"{report.author_name}: {report.description}"
    return title, body


def _local_now() -> datetime:
    return datetime.now().astimezone()


class NotificationCoordinator:
    def __init__(
        self,
        user_id: str,
        preferences: PreferencesStore,
        history: NotificationHistory,
        notifier: SystemNotifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.user_id = user_id
        self.preferences = preferences
        self.history = history
        self._notifier = notifier
        self._clock = clock or _local_now
        # Last dispatch per category; in memory only, reset on restart.
        self._last_sent: dict[str, datetime] = {}
        self.location: tuple[float, float] | None = None

    def set_location(self, latitude: float, longitude: float) -> None:
        self.location = (latitude, longitude)

    def mark_sent(self, category: str, when: datetime) -> None:
        self._last_sent[category] = when

    def should_send_notification(self, category: str, frequency: str, now: datetime | None = None) -> bool:
        """Frequency throttle: has the category's minimum interval elapsed since the last send?"""
        interval = FREQUENCY_INTERVALS.get(frequency)
        if interval is None:
            return True
        last = self._last_sent.get(category)
        if last is None:
            return True
        now = now or self._clock()
        return now - last >= interval

    def _out_of_range(self, report: ReportRead, global_settings: GlobalNotificationSettings) -> bool:
        if not global_settings.location_based or self.location is None:
            return False
        lat, lon = self.location
        return distance_meters(lat, lon, report.latitude, report.longitude) > global_settings.radius_meters

    async def notify_for_report_event(self, report: ReportRead, event_kind: str) -> StoredNotification | None:
        """Apply preferences to one report event; returns the persisted notification, if any."""
        key = preference_key(report.category)
        if key is None:
            logger.warning("No notification preferences for category %r", report.category)
            return None

        prefs = await self.preferences.load()
        global_settings = prefs.global_settings
        settings: CategoryNotificationSettings = getattr(prefs, key)
        now = self._clock()

        if not global_settings.enabled:
            logger.debug("Notifications disabled globally for %s", self.user_id)
            return None
        if not settings.enabled:
            logger.debug("Notifications disabled for %s", key)
            return None
        if is_in_quiet_hours(global_settings.quiet_hours, now):
            logger.debug("Quiet hours, suppressing %s notification for %s", event_kind, report.id)
            return None
        if not self.should_send_notification(report.category, settings.frequency, now):
            logger.debug("Throttled %s notification (%s)", key, settings.frequency)
            return None
        if self._out_of_range(report, global_settings):
            logger.debug("Report %s outside notification radius", report.id)
            return None

        return await self._deliver(report, event_kind, settings, global_settings, now)

    async def send_test_notification(self, category: str) -> StoredNotification | None:
        """Send a sample notification for ``category`` regardless of gating."""
        key = preference_key(category)
        if key is None:
            raise ValueError(f"Unknown report category: {category}")
        prefs = await self.preferences.load()
        now = self._clock()
        sample = ReportRead(
            id=f"test_{ULID()}",
            user_id=self.user_id,
            category=category,
            description="This is a test notification",
            latitude=0.0,
            longitude=0.0,
            created_at=now,
            updated_at=now,
        )
        return await self._deliver(sample, "new", getattr(prefs, key), prefs.global_settings, now, record_throttle=False)

    async def _deliver(
        self,
        report: ReportRead,
        event_kind: str,
        settings: CategoryNotificationSettings,
        global_settings: GlobalNotificationSettings,
        now: datetime,
        record_throttle: bool = True,
    ) -> StoredNotification | None:
        title, body = build_content(report, event_kind)
        sound = sound_for_category(report.category) if (settings.sound_enabled and global_settings.sound_enabled) else None
        vibrate = settings.vibration_enabled and global_settings.vibration_enabled
        record = StoredNotification(
            id=str(ULID()),
            title=title,
            body=body,
            category=report.category,
            event=event_kind,
            priority=settings.priority,
            report_id=report.id,
            author_id=report.user_id,
            author_name=report.author_name,
            latitude=report.latitude,
            longitude=report.longitude,
            created_at=now,
            sound=sound,
        )
        try:
            await self.history.add(record)
        except Exception:
            logger.exception("Failed to record %s notification for report %s", event_kind, report.id)
            return None
        if record_throttle:
            self.mark_sent(report.category, now)

        if settings.show_system and self._notifier is not None:
            try:
                delivered = await self._notifier.deliver(
                    self.user_id, record,
                    sound=sound,
                    vibrate=vibrate,
                    platform_priority=PLATFORM_PRIORITY.get(settings.priority, "default"),
                    display_duration=settings.display_duration,
                )
                if delivered:
                    record = await self.history.update(
                        record.id,
                        delivery_channel="system",
                        sound_played=sound is not None,
                        vibration_played=vibrate,
                    ) or record
            except Exception:
                logger.exception("Failed to deliver %s notification for report %s", event_kind, report.id)
        logger.info("Notified %s: %s", self.user_id, title)
        return record
