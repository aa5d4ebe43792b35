from __future__ import annotations
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, Field, field_validator

NotificationFrequency = Literal["immediate", "every_5min", "every_15min", "hourly", "daily"]
NotificationPriority = Literal["low", "normal", "high", "urgent"]
NotificationStatus = Literal["unread", "read", "dismissed", "archived"]
EventKind = Literal["new", "update", "delete"]


class QuietHours(BaseModel):
    enabled: bool = False
    start: str = "22:00"  # HH:MM, local time
    end: str = "07:00"
    days: list[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4, 5, 6])  # Monday=0

    @field_validator("start", "end")
    @classmethod
    def _check_clock(cls, v: str) -> str:
        hours, _, minutes = v.partition(":")
        if not (hours.isdigit() and minutes.isdigit() and 0 <= int(hours) < 24 and 0 <= int(minutes) < 60):
            raise ValueError(f"invalid time of day: {v!r}")
        return f"{int(hours):02d}:{int(minutes):02d}"

    @field_validator("days")
    @classmethod
    def _check_days(cls, v: list[int]) -> list[int]:
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("days must be weekday numbers 0-6 (Monday=0)")
        return sorted(set(v))


class GlobalNotificationSettings(BaseModel):
    enabled: bool = True
    sound_enabled: bool = True
    vibration_enabled: bool = True
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    location_based: bool = False
    radius_meters: int = 5000
    batch_notifications: bool = False
    auto_cleanup_days: int = 30


class CategoryNotificationSettings(BaseModel):
    enabled: bool = True
    sound_enabled: bool = True
    vibration_enabled: bool = True
    frequency: NotificationFrequency = "immediate"
    display_duration: int = 5  # seconds
    show_in_app: bool = True
    show_system: bool = True
    priority: NotificationPriority = "normal"


def _category(priority: NotificationPriority) -> CategoryNotificationSettings:
    return CategoryNotificationSettings(priority=priority)


class NotificationPreferences(BaseModel):
    global_settings: GlobalNotificationSettings = Field(default_factory=GlobalNotificationSettings)
    police_checkpoints: CategoryNotificationSettings = Field(default_factory=lambda: _category("high"))
    accidents: CategoryNotificationSettings = Field(default_factory=lambda: _category("urgent"))
    road_hazards: CategoryNotificationSettings = Field(default_factory=lambda: _category("high"))
    traffic_jams: CategoryNotificationSettings = Field(default_factory=lambda: _category("normal"))
    weather_alerts: CategoryNotificationSettings = Field(default_factory=lambda: _category("normal"))
    general_alerts: CategoryNotificationSettings = Field(default_factory=lambda: _category("low"))


class CategorySettingsUpdate(BaseModel):
    enabled: bool | None = None
    sound_enabled: bool | None = None
    vibration_enabled: bool | None = None
    frequency: NotificationFrequency | None = None
    display_duration: int | None = None
    show_in_app: bool | None = None
    show_system: bool | None = None
    priority: NotificationPriority | None = None


class StoredNotification(BaseModel):
    id: str
    title: str
    body: str
    category: str
    event: EventKind = "new"
    priority: NotificationPriority = "normal"
    status: NotificationStatus = "unread"
    report_id: str
    author_id: str = ""
    author_name: str = "Anonymous"
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime
    read_at: datetime | None = None
    dismissed_at: datetime | None = None
    archived_at: datetime | None = None
    sound: str | None = None
    sound_played: bool = False
    vibration_played: bool = False
    delivery_channel: Literal["in_app", "system"] = "in_app"


class NotificationStatusUpdate(BaseModel):
    status: NotificationStatus


class NotificationStatistics(BaseModel):
    total_sent: int = 0
    this_week: int = 0
    unread_count: int = 0
    by_category: dict[str, int] = {}
    by_priority: dict[str, int] = {}
