"""Category TTL policy and pure expiry arithmetic.

Every report stays ``active`` for a fixed number of minutes after its last
update; the number depends only on the category. These helpers have no I/O
and are shared by the background sweeper and the countdown endpoints.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Mapping

logger = logging.getLogger(__name__)


class ReportCategory(str, Enum):
    POLICE_CHECKPOINT = "police_checkpoint"
    ACCIDENT = "accident"
    ROAD_HAZARD = "road_hazard"
    TRAFFIC_JAM = "traffic_jam"
    WEATHER_ALERT = "weather_alert"
    GENERAL = "general"


REPORT_STATUSES = ("active", "resolved", "expired")

DEFAULT_TTL_MINUTES: dict[str, int] = {
    "police_checkpoint": 5,
    "accident": 2,
    "weather_alert": 2,
    "general": 10,
    "road_hazard": 15,
    "traffic_jam": 15,
}

# Returned for a category with no TTL entry: such reports never expire.
NO_EXPIRY = None

_ttl_table: dict[str, int] = dict(DEFAULT_TTL_MINUTES)


def is_valid_category(value: str) -> bool:
    return value in {c.value for c in ReportCategory}


def validate_ttl_table(table: Mapping[str, int]) -> list[str]:
    """Return the categories missing from ``table``, logging each gap loudly."""
    missing = [c.value for c in ReportCategory if c.value not in table]
    for category in missing:
        logger.error("No TTL configured for category %r; its reports will never expire", category)
    for category, minutes in table.items():
        if not is_valid_category(category):
            logger.warning("TTL configured for unknown category %r (ignored)", category)
        elif minutes <= 0:
            logger.error("Non-positive TTL %s for category %r", minutes, category)
    return missing


def configure_ttl_table(table: Mapping[str, int]) -> list[str]:
    """Install the process-wide TTL table. Called once at startup."""
    global _ttl_table
    missing = validate_ttl_table(table)
    _ttl_table = {k: int(v) for k, v in table.items() if is_valid_category(k) and v > 0}
    return missing


def ttl_table() -> dict[str, int]:
    return dict(_ttl_table)


def get_ttl_minutes(category: str) -> int | None:
    return _ttl_table.get(_category_value(category), NO_EXPIRY)


def _category_value(category) -> str:
    return category.value if isinstance(category, ReportCategory) else str(category)


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _now(now: datetime | None) -> datetime:
    return _as_utc(now) if now is not None else datetime.now(timezone.utc)


def calculate_expiry_time(category: str, updated_at: datetime) -> datetime | None:
    """``updated_at + TTL(category)``, or None when the category never expires."""
    minutes = get_ttl_minutes(category)
    if minutes is NO_EXPIRY:
        return None
    return _as_utc(updated_at) + timedelta(minutes=minutes)


def is_report_expired(category: str, updated_at: datetime, now: datetime | None = None) -> bool:
    expires_at = calculate_expiry_time(category, updated_at)
    if expires_at is None:
        return False
    return _now(now) >= expires_at


def get_time_until_expiry(category: str, updated_at: datetime, now: datetime | None = None) -> int | None:
    """Whole minutes left before expiry, floored and never negative.

    A report with 59 seconds left reports 0; use ``is_report_expired`` to
    tell that apart from an expired one. None means no expiry.
    """
    expires_at = calculate_expiry_time(category, updated_at)
    if expires_at is None:
        return None
    remaining = (expires_at - _now(now)).total_seconds()
    return max(0, math.floor(remaining / 60))


def is_report_about_to_expire(category: str, updated_at: datetime, now: datetime | None = None) -> bool:
    remaining = get_time_until_expiry(category, updated_at, now)
    return remaining is not None and 0 < remaining <= 1


def expiry_snapshot(category: str, updated_at: datetime, now: datetime | None = None) -> dict:
    """All countdown values for one report, computed against a single clock reading."""
    now = _now(now)
    return {
        "ttl_minutes": get_ttl_minutes(category),
        "expires_at": calculate_expiry_time(category, updated_at),
        "remaining_minutes": get_time_until_expiry(category, updated_at, now),
        "is_expired": is_report_expired(category, updated_at, now),
        "is_about_to_expire": is_report_about_to_expire(category, updated_at, now),
    }
