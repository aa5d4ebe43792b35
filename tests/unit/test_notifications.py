from datetime import datetime, timedelta, timezone

import pytest

from conftest import T0, FakeGateway, make_report
from radarpro.schemas import CategorySettingsUpdate, ChangeEvent, QuietHours
from radarpro.services.change_feed import ChangeFeed
from radarpro.services.local_store import LocalStore
from radarpro.services.notification_store import NotificationHistory, PreferencesStore
from radarpro.services.notifications import (
    NotificationCoordinator, build_content, distance_meters, is_in_quiet_hours,
)
from radarpro.services.relay import ChangeFeedRelay

# 2024-05-01 is a Wednesday (weekday 2)
WED = datetime(2024, 5, 1, tzinfo=timezone.utc)


def at(hour, minute=0, day=WED):
    return day.replace(hour=hour, minute=minute)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class FakeNotifier:
    def __init__(self, fail=False, delivered=True):
        self.fail = fail
        self.delivered = delivered
        self.calls = []

    async def deliver(self, user_id, notification, *, sound, vibrate, platform_priority, display_duration):
        if self.fail:
            raise ConnectionError("push service down")
        self.calls.append({
            "user_id": user_id, "id": notification.id, "sound": sound,
            "vibrate": vibrate, "priority": platform_priority, "duration": display_duration,
        })
        return self.delivered


def make_coordinator(tmp_path, user_id="u2", notifier=None, now=None):
    store = LocalStore(tmp_path, user_id)
    return NotificationCoordinator(
        user_id,
        PreferencesStore(store),
        NotificationHistory(store, limit=50),
        notifier=notifier,
        clock=Clock(now or at(12)),
    )


async def enable_quiet_hours(coordinator, start="22:00", end="07:00", days=None):
    prefs = await coordinator.preferences.load()
    prefs.global_settings.quiet_hours = QuietHours(
        enabled=True, start=start, end=end, days=days if days is not None else list(range(7)),
    )
    await coordinator.preferences.replace(prefs)


# ── quiet hours ──────────────────────────────────────────

def test_quiet_hours_wrap_past_midnight():
    qh = QuietHours(enabled=True, start="22:00", end="07:00")
    assert is_in_quiet_hours(qh, at(23, 30))
    assert is_in_quiet_hours(qh, at(6, 30))
    assert is_in_quiet_hours(qh, at(22, 0))
    assert not is_in_quiet_hours(qh, at(7, 0))
    assert not is_in_quiet_hours(qh, at(12, 0))


def test_quiet_hours_same_day_window():
    qh = QuietHours(enabled=True, start="13:00", end="15:00")
    assert is_in_quiet_hours(qh, at(14, 0))
    assert not is_in_quiet_hours(qh, at(15, 0))
    assert not is_in_quiet_hours(qh, at(12, 59))


def test_quiet_hours_respect_days_and_enabled():
    assert not is_in_quiet_hours(QuietHours(enabled=False), at(23, 30))
    weekend = QuietHours(enabled=True, start="22:00", end="07:00", days=[5, 6])
    assert not is_in_quiet_hours(weekend, at(23, 30))
    saturday = WED + timedelta(days=3)
    assert is_in_quiet_hours(weekend, at(23, 30, day=saturday))


def test_quiet_hours_equal_bounds_is_no_window():
    assert not is_in_quiet_hours(QuietHours(enabled=True, start="08:00", end="08:00"), at(8, 0))


def test_quiet_hours_validation():
    assert QuietHours(start="7:5").start == "07:05"
    with pytest.raises(ValueError):
        QuietHours(start="25:00")
    with pytest.raises(ValueError):
        QuietHours(days=[7])


# ── throttle ─────────────────────────────────────────────

def test_hourly_throttle(tmp_path):
    coordinator = make_coordinator(tmp_path)
    coordinator.mark_sent("traffic_jam", at(12))
    assert not coordinator.should_send_notification("traffic_jam", "hourly", at(12, 30))
    assert coordinator.should_send_notification("traffic_jam", "hourly", at(13, 1))
    assert coordinator.should_send_notification("traffic_jam", "immediate", at(12, 1))
    assert coordinator.should_send_notification("accident", "hourly", at(12, 1))


async def test_throttled_event_is_not_recorded(tmp_path):
    coordinator = make_coordinator(tmp_path)
    await coordinator.preferences.update_category("traffic_jam", CategorySettingsUpdate(frequency="every_15min"))
    report = make_report("traffic_jam")

    assert await coordinator.notify_for_report_event(report, "new") is not None
    coordinator._clock.now = at(12, 10)
    assert await coordinator.notify_for_report_event(report, "update") is None
    coordinator._clock.now = at(12, 16)
    assert await coordinator.notify_for_report_event(report, "update") is not None
    assert len(await coordinator.history.query()) == 2


# ── gating order ─────────────────────────────────────────

async def test_quiet_hours_produce_no_record(tmp_path):
    notifier = FakeNotifier()
    coordinator = make_coordinator(tmp_path, notifier=notifier, now=at(23))
    await enable_quiet_hours(coordinator)

    result = await coordinator.notify_for_report_event(make_report("accident"), "new")

    assert result is None
    assert notifier.calls == []
    assert await coordinator.history.query() == []


async def test_disabled_globally_or_per_category(tmp_path):
    coordinator = make_coordinator(tmp_path)
    await coordinator.preferences.update_category("accident", CategorySettingsUpdate(enabled=False))
    assert await coordinator.notify_for_report_event(make_report("accident"), "new") is None

    prefs = await coordinator.preferences.load()
    prefs.global_settings.enabled = False
    await coordinator.preferences.replace(prefs)
    assert await coordinator.notify_for_report_event(make_report("general"), "new") is None
    assert await coordinator.history.query() == []


async def test_unknown_category_is_skipped(tmp_path):
    coordinator = make_coordinator(tmp_path)
    assert await coordinator.notify_for_report_event(make_report("meteor_strike"), "new") is None


async def test_location_filter(tmp_path):
    coordinator = make_coordinator(tmp_path)
    prefs = await coordinator.preferences.load()
    prefs.global_settings.location_based = True
    prefs.global_settings.radius_meters = 1000
    await coordinator.preferences.replace(prefs)

    far = make_report("accident")  # 40.0, -73.0
    # unknown device location: no filtering
    assert await coordinator.notify_for_report_event(far, "new") is not None

    coordinator.set_location(41.0, -73.0)
    assert await coordinator.notify_for_report_event(make_report("general"), "new") is None
    coordinator.set_location(40.001, -73.0)
    assert await coordinator.notify_for_report_event(make_report("general"), "new") is not None


def test_distance():
    assert distance_meters(40.0, -73.0, 40.0, -73.0) == 0
    assert 111_000 < distance_meters(40.0, -73.0, 41.0, -73.0) < 111_400


# ── delivery ─────────────────────────────────────────────

async def test_delivery_uses_category_settings(tmp_path):
    notifier = FakeNotifier()
    coordinator = make_coordinator(tmp_path, notifier=notifier)

    record = await coordinator.notify_for_report_event(make_report("accident", username="bob"), "new")

    assert record.priority == "urgent"
    assert record.title.endswith("New Accident")
    assert record.body == "bob: Checkpoint at Main St"
    assert record.delivery_channel == "system"
    assert record.sound_played and record.vibration_played
    assert notifier.calls[0]["sound"] == "crash.wav"
    assert notifier.calls[0]["priority"] == "max"
    assert notifier.calls[0]["duration"] == 5


async def test_sound_and_system_toggles(tmp_path):
    notifier = FakeNotifier()
    coordinator = make_coordinator(tmp_path, notifier=notifier)
    await coordinator.preferences.update_category(
        "police_checkpoint", CategorySettingsUpdate(sound_enabled=False, vibration_enabled=False),
    )
    await coordinator.preferences.update_category("general", CategorySettingsUpdate(show_system=False))

    record = await coordinator.notify_for_report_event(make_report("police_checkpoint"), "new")
    assert record.sound is None
    assert notifier.calls[0]["sound"] is None
    assert notifier.calls[0]["vibrate"] is False

    record = await coordinator.notify_for_report_event(make_report("general"), "new")
    assert record.delivery_channel == "in_app"
    assert len(notifier.calls) == 1


async def test_dispatch_failure_keeps_record(tmp_path):
    coordinator = make_coordinator(tmp_path, notifier=FakeNotifier(fail=True))

    record = await coordinator.notify_for_report_event(make_report("accident"), "new")

    assert record is not None
    stored = await coordinator.history.query()
    assert [n.id for n in stored] == [record.id]
    assert stored[0].delivery_channel == "in_app"


async def test_history_write_failure_sends_nothing(tmp_path, monkeypatch):
    notifier = FakeNotifier()
    coordinator = make_coordinator(tmp_path, notifier=notifier)

    async def broken_add(notification):
        raise OSError("disk full")

    monkeypatch.setattr(coordinator.history, "add", broken_add)

    assert await coordinator.notify_for_report_event(make_report("accident"), "new") is None
    assert notifier.calls == []
    assert coordinator.should_send_notification("accident", "hourly", at(12, 1))


async def test_undelivered_push_stays_in_app(tmp_path):
    coordinator = make_coordinator(tmp_path, notifier=FakeNotifier(delivered=False))
    record = await coordinator.notify_for_report_event(make_report("accident"), "new")
    assert record.delivery_channel == "in_app"


async def test_test_notification_bypasses_gating(tmp_path):
    coordinator = make_coordinator(tmp_path, now=at(23))
    await enable_quiet_hours(coordinator)

    record = await coordinator.send_test_notification("weather_alert")
    assert record.body.endswith("This is a test notification")
    assert record.report_id.startswith("test_")
    with pytest.raises(ValueError):
        await coordinator.send_test_notification("meteor_strike")


def test_content_titles():
    report = make_report("road_hazard", username=None)
    title, body = build_content(report, "update")
    assert title.endswith("Road Hazard Updated")
    assert body == "Anonymous: Checkpoint at Main St"
    assert build_content(report, "new")[0].endswith("New Road Hazard")


# ── author suppression through the relay ─────────────────

async def test_author_is_not_notified_other_user_is(tmp_path):
    gw = FakeGateway()
    feed = ChangeFeed()
    author = make_coordinator(tmp_path, user_id="u1", notifier=FakeNotifier())
    other = make_coordinator(tmp_path, user_id="u2", notifier=FakeNotifier())
    relays = [
        ChangeFeedRelay(gw, feed, current_user_id="u1", coordinator=author),
        ChangeFeedRelay(gw, feed, current_user_id="u2", coordinator=other),
    ]
    for relay in relays:
        await relay.start()

    report = gw.put(make_report("accident", user_id="u1", username="alice"))
    await feed.publish(ChangeEvent(event_type="insert", new={"id": report.id}))
    for relay in relays:
        await relay.drain()

    assert report.id in relays[0].view and report.id in relays[1].view
    assert await author.history.query() == []
    received = await other.history.query()
    assert len(received) == 1
    assert received[0].priority == "urgent"
    assert received[0].author_name == "alice"

    for relay in relays:
        await relay.stop()
