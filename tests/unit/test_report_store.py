import pytest
import pytest_asyncio

from radarpro.db import crud
from radarpro.db.engine import create_all, make_engine, make_session_factory
from radarpro.schemas import ChangeEvent
from radarpro.services.report_store import ReportStateError, SqlReportStore, iter_active


class CapturingFeed:
    def __init__(self):
        self.events: list[ChangeEvent] = []

    async def publish(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def kinds(self):
        return [(e.event_type, e.record_id) for e in self.events]


@pytest_asyncio.fixture
async def env(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await create_all(engine)
    factory = make_session_factory(engine)
    async with factory() as db:
        user = await crud.create_user(db, "alice@example.com", "alice")
    feed = CapturingFeed()
    yield SqlReportStore(factory, feed), feed, user
    await engine.dispose()


async def test_create_publishes_insert_and_hydrates_author(env):
    store, feed, user = env
    report = await store.create_report(user.id, "accident", "Crash on 5th", 40.7, -74.0)

    assert report.status == "active"
    assert report.author_name == "alice"
    assert feed.kinds() == [("insert", report.id)]
    assert feed.events[0].new["category"] == "accident"


async def test_fetch_active_excludes_other_statuses(env):
    store, _, user = env
    a = await store.create_report(user.id, "accident", "a", 0, 0)
    b = await store.create_report(user.id, "general", "b", 0, 0)
    await store.resolve_report(b.id)

    assert [r.id for r in await store.fetch_active()] == [a.id]
    assert (await store.fetch_by_id(b.id)).status == "resolved"
    assert await store.fetch_by_id("missing") is None


async def test_iter_active_pages(env):
    store, _, user = env
    ids = {(await store.create_report(user.id, "general", str(i), 0, 0)).id for i in range(5)}
    assert {r.id async for r in iter_active(store, page_size=2)} == ids


async def test_bulk_mark_expired_is_idempotent(env):
    store, feed, user = env
    report = await store.create_report(user.id, "accident", "a", 0, 0)

    assert await store.bulk_mark_expired([report.id]) == 1
    assert await store.bulk_mark_expired([report.id]) == 0
    assert await store.bulk_mark_expired([]) == 0

    assert feed.kinds() == [("insert", report.id), ("update", report.id)]
    assert feed.events[-1].new["status"] == "expired"
    assert feed.events[-1].old["status"] == "active"


async def test_update_restarts_countdown(env):
    store, feed, user = env
    report = await store.create_report(user.id, "road_hazard", "pothole", 0, 0)

    updated = await store.update_report(report.id, description="big pothole", category="general")
    assert updated.description == "big pothole"
    assert updated.category == "road_hazard"
    assert updated.updated_at >= report.updated_at
    assert feed.kinds()[-1] == ("update", report.id)
    assert await store.update_report("missing", description="x") is None


async def test_only_active_reports_change_state(env):
    store, _, user = env
    report = await store.create_report(user.id, "accident", "a", 0, 0)
    await store.bulk_mark_expired([report.id])

    with pytest.raises(ReportStateError):
        await store.update_report(report.id, description="too late")
    with pytest.raises(ReportStateError):
        await store.resolve_report(report.id)


async def test_delete_publishes_delete(env):
    store, feed, user = env
    report = await store.create_report(user.id, "general", "a", 0, 0)
    await store.add_media(report.id, "photo", "/media/a.jpg", "a.jpg")

    assert await store.delete_report(report.id)
    assert not await store.delete_report(report.id)
    assert feed.kinds()[-1] == ("delete", report.id)
    assert await store.fetch_by_id(report.id) is None


async def test_add_media(env):
    store, _, user = env
    report = await store.create_report(user.id, "general", "a", 0, 0)
    hydrated = await store.add_media(report.id, "photo", "/media/a.jpg", "a.jpg")
    assert [m.file_name for m in hydrated.media_files] == ["a.jpg"]
    assert await store.add_media("missing", "photo", "/x", "x") is None


async def test_purge_expired(env):
    store, feed, user = env
    report = await store.create_report(user.id, "accident", "a", 0, 0)
    await store.bulk_mark_expired([report.id])

    assert await store.purge_expired(older_than_hours=24) == 0
    assert await store.purge_expired(older_than_hours=0) == 1
    assert feed.kinds()[-1] == ("delete", report.id)
