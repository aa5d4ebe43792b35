"""Pydantic request/response schemas."""

from radarpro.schemas.user import UserCreate, UserRead
from radarpro.schemas.report import (
    ReportCreate, ReportUpdate, ReportRead, MediaFileCreate, MediaFileRead, ExpiryRead,
)
from radarpro.schemas.notification import (
    QuietHours, GlobalNotificationSettings, CategoryNotificationSettings,
    CategorySettingsUpdate, NotificationPreferences, StoredNotification,
    NotificationStatusUpdate, NotificationStatistics,
)
from radarpro.schemas.session import SessionOpen, SessionRead
from radarpro.schemas.ws_messages import WSMessage, ChangeEvent

__all__ = [
    "UserCreate", "UserRead",
    "ReportCreate", "ReportUpdate", "ReportRead", "MediaFileCreate", "MediaFileRead", "ExpiryRead",
    "QuietHours", "GlobalNotificationSettings", "CategoryNotificationSettings",
    "CategorySettingsUpdate", "NotificationPreferences", "StoredNotification",
    "NotificationStatusUpdate", "NotificationStatistics",
    "SessionOpen", "SessionRead",
    "WSMessage", "ChangeEvent",
]
