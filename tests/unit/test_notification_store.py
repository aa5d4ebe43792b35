from datetime import datetime, timedelta, timezone

import pytest

from radarpro.schemas import CategorySettingsUpdate, StoredNotification
from radarpro.services.local_store import LocalStore
from radarpro.services.notification_store import (
    HISTORY_KEY, PREFERENCES_KEY, NotificationHistory, PreferencesStore,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def note(n, category="accident", priority="urgent", age=timedelta(0)):
    return StoredNotification(
        id=f"n{n}", title=f"t{n}", body="b", category=category, priority=priority,
        report_id=f"r{n}", created_at=NOW - age,
    )


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path, "device-1")


async def test_local_store_round_trip_and_corruption(store, tmp_path):
    assert await store.get("missing") is None
    await store.set("k", {"a": [1, 2]})
    assert await store.get("k") == {"a": [1, 2]}

    (tmp_path / "device-1" / "k.json").write_text("{not json")
    assert await store.get("k") is None

    await store.remove("k")
    await store.remove("k")
    assert not (tmp_path / "device-1" / "k.json").exists()


async def test_preferences_created_with_defaults(store):
    prefs = await PreferencesStore(store).load()
    assert prefs.global_settings.enabled
    assert prefs.accidents.priority == "urgent"
    assert prefs.police_checkpoints.priority == "high"
    assert prefs.general_alerts.priority == "low"
    assert await store.get(PREFERENCES_KEY) is not None


async def test_invalid_stored_preferences_reset(store):
    await store.set(PREFERENCES_KEY, {"global_settings": {"quiet_hours": {"start": "99:99"}}})
    prefs = await PreferencesStore(store).load()
    assert prefs.global_settings.quiet_hours.start == "22:00"


async def test_update_category_merges(store):
    prefs_store = PreferencesStore(store)
    prefs = await prefs_store.update_category("traffic_jam", CategorySettingsUpdate(frequency="hourly"))
    assert prefs.traffic_jams.frequency == "hourly"
    assert prefs.traffic_jams.priority == "normal"

    reloaded = await PreferencesStore(store).load()
    assert reloaded.traffic_jams.frequency == "hourly"

    with pytest.raises(ValueError):
        await prefs_store.update_category("meteor_strike", CategorySettingsUpdate(enabled=False))


async def test_history_newest_first_and_capped(store):
    history = NotificationHistory(store, limit=3)
    for i in range(5):
        await history.add(note(i, age=timedelta(minutes=10 - i)))

    items = await history.query()
    assert [n.id for n in items] == ["n4", "n3", "n2"]


async def test_history_filters(store):
    history = NotificationHistory(store)
    await history.add(note(1, category="accident", priority="urgent"))
    await history.add(note(2, category="general", priority="low"))

    assert [n.id for n in await history.query(priority="low")] == ["n2"]
    assert [n.id for n in await history.query(category="accident")] == ["n1"]
    assert len(await history.query(status="unread")) == 2


async def test_status_transitions_are_stamped(store):
    history = NotificationHistory(store)
    await history.add(note(1))
    await history.add(note(2))

    read = await history.update_status("n1", "read")
    assert read.status == "read" and read.read_at is not None
    archived = await history.update_status("n2", "archived")
    assert archived.archived_at is not None
    assert await history.update_status("nope", "read") is None

    await history.add(note(3))
    assert await history.mark_all_read() == 1
    assert await history.query(status="unread") == []


async def test_delete_and_clear(store):
    history = NotificationHistory(store)
    await history.add(note(1))
    await history.add(note(2))

    assert await history.delete("n1")
    assert not await history.delete("n1")
    assert [n.id for n in await history.query()] == ["n2"]

    await history.clear()
    assert await store.get(HISTORY_KEY) is None
    assert await history.query() == []


async def test_cleanup_by_age(store):
    history = NotificationHistory(store)
    await history.add(note(1, age=timedelta(days=40)))
    await history.add(note(2, age=timedelta(days=2)))

    assert await history.cleanup(30, now=NOW) == 1
    assert [n.id for n in await history.query()] == ["n2"]


async def test_statistics(store):
    history = NotificationHistory(store)
    await history.add(note(1, age=timedelta(days=10)))
    await history.add(note(2, category="general", priority="low"))
    await history.update_status("n2", "read")

    stats = await history.statistics(now=NOW)
    assert stats.total_sent == 2
    assert stats.this_week == 1
    assert stats.unread_count == 1
    assert stats.by_category["accident"] == 1
    assert stats.by_category["traffic_jam"] == 0
    assert stats.by_priority == {"low": 1, "normal": 0, "high": 0, "urgent": 1}
