"""Persisted notification preferences and notification history for one device."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from radarpro.schemas import (
    CategoryNotificationSettings, CategorySettingsUpdate, NotificationPreferences,
    NotificationStatistics, StoredNotification,
)
from radarpro.services.expiry import ReportCategory
from radarpro.services.local_store import LocalStore

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "notification_preferences"
HISTORY_KEY = "notification_history"
LAST_CLEANUP_KEY = "last_notification_cleanup"

CATEGORY_PREFERENCE_KEYS: dict[str, str] = {
    ReportCategory.POLICE_CHECKPOINT.value: "police_checkpoints",
    ReportCategory.ACCIDENT.value: "accidents",
    ReportCategory.ROAD_HAZARD.value: "road_hazards",
    ReportCategory.TRAFFIC_JAM.value: "traffic_jams",
    ReportCategory.WEATHER_ALERT.value: "weather_alerts",
    ReportCategory.GENERAL.value: "general_alerts",
}

_STATUS_STAMPS = {"read": "read_at", "dismissed": "dismissed_at", "archived": "archived_at"}


def preference_key(category: str) -> str | None:
    return CATEGORY_PREFERENCE_KEYS.get(category)


class PreferencesStore:
    def __init__(self, store: LocalStore):
        self._store = store
        self._lock = asyncio.Lock()

    async def load(self) -> NotificationPreferences:
        """Stored preferences, creating and saving the defaults on first use."""
        raw = await self._store.get(PREFERENCES_KEY)
        if raw is not None:
            try:
                return NotificationPreferences.model_validate(raw)
            except ValidationError:
                logger.error("Stored notification preferences are invalid, resetting to defaults")
        prefs = NotificationPreferences()
        await self.save(prefs)
        return prefs

    async def save(self, prefs: NotificationPreferences) -> None:
        await self._store.set(PREFERENCES_KEY, prefs.model_dump(mode="json"))

    async def replace(self, prefs: NotificationPreferences) -> NotificationPreferences:
        async with self._lock:
            await self.save(prefs)
        return prefs

    async def update_category(self, category: str, update: CategorySettingsUpdate) -> NotificationPreferences:
        key = preference_key(category)
        if key is None:
            raise ValueError(f"Unknown report category: {category}")
        async with self._lock:
            prefs = await self.load()
            current: CategoryNotificationSettings = getattr(prefs, key)
            merged = current.model_dump() | update.model_dump(exclude_none=True)
            setattr(prefs, key, CategoryNotificationSettings.model_validate(merged))
            await self.save(prefs)
            return prefs


class NotificationHistory:
    """Newest-first list of notifications shown to the user, capped at ``limit``."""

    def __init__(self, store: LocalStore, limit: int = 500):
        self._store = store
        self._limit = limit
        self._lock = asyncio.Lock()

    async def _load(self) -> list[StoredNotification]:
        raw = await self._store.get(HISTORY_KEY) or []
        items = []
        for entry in raw:
            try:
                items.append(StoredNotification.model_validate(entry))
            except ValidationError:
                logger.warning("Dropping malformed notification history entry")
        return items

    async def _save(self, items: list[StoredNotification]) -> None:
        await self._store.set(HISTORY_KEY, [n.model_dump(mode="json") for n in items])

    async def add(self, notification: StoredNotification) -> StoredNotification:
        async with self._lock:
            items = await self._load()
            items.insert(0, notification)
            if len(items) > self._limit:
                del items[self._limit:]
            await self._save(items)
        logger.debug("Stored notification %s for %s", notification.id, notification.category)
        return notification

    async def query(
        self, status: str | None = None, priority: str | None = None, category: str | None = None,
    ) -> list[StoredNotification]:
        items = await self._load()
        if status:
            items = [n for n in items if n.status == status]
        if priority:
            items = [n for n in items if n.priority == priority]
        if category:
            items = [n for n in items if n.category == category]
        return sorted(items, key=lambda n: n.created_at, reverse=True)

    async def get(self, notification_id: str) -> StoredNotification | None:
        for n in await self._load():
            if n.id == notification_id:
                return n
        return None

    async def update(self, notification_id: str, **fields) -> StoredNotification | None:
        async with self._lock:
            items = await self._load()
            for i, n in enumerate(items):
                if n.id == notification_id:
                    items[i] = n.model_copy(update=fields)
                    await self._save(items)
                    return items[i]
        logger.warning("Notification %s not found for update", notification_id)
        return None

    async def update_status(self, notification_id: str, status: str) -> StoredNotification | None:
        fields: dict = {"status": status}
        stamp = _STATUS_STAMPS.get(status)
        if stamp:
            fields[stamp] = datetime.now(timezone.utc)
        return await self.update(notification_id, **fields)

    async def mark_all_read(self) -> int:
        now = datetime.now(timezone.utc)
        async with self._lock:
            items = await self._load()
            changed = 0
            for i, n in enumerate(items):
                if n.status == "unread":
                    items[i] = n.model_copy(update={"status": "read", "read_at": now})
                    changed += 1
            if changed:
                await self._save(items)
        return changed

    async def delete(self, notification_id: str) -> bool:
        async with self._lock:
            items = await self._load()
            kept = [n for n in items if n.id != notification_id]
            if len(kept) == len(items):
                return False
            await self._save(kept)
            return True

    async def clear(self) -> None:
        async with self._lock:
            await self._store.remove(HISTORY_KEY)

    async def cleanup(self, days_to_keep: int = 30, now: datetime | None = None) -> int:
        """Delete notifications older than ``days_to_keep`` days."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days_to_keep)
        async with self._lock:
            items = await self._load()
            kept = [n for n in items if _utc(n.created_at) > cutoff]
            removed = len(items) - len(kept)
            if removed:
                await self._save(kept)
            await self._store.set(LAST_CLEANUP_KEY, now.isoformat())
        if removed:
            logger.info("Cleaned up %d notifications older than %d days", removed, days_to_keep)
        return removed

    async def statistics(self, now: datetime | None = None) -> NotificationStatistics:
        now = now or datetime.now(timezone.utc)
        week_ago = now - timedelta(days=7)
        items = await self._load()
        by_category = Counter({c: 0 for c in CATEGORY_PREFERENCE_KEYS})
        by_priority = Counter({p: 0 for p in ("low", "normal", "high", "urgent")})
        for n in items:
            by_category[n.category] += 1
            by_priority[n.priority] += 1
        return NotificationStatistics(
            total_sent=len(items),
            this_week=sum(1 for n in items if _utc(n.created_at) >= week_ago),
            unread_count=sum(1 for n in items if n.status == "unread"),
            by_category=dict(by_category),
            by_priority=dict(by_priority),
        )


def _utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt
