"""Report store gateway: persistence operations the core depends on.

``ReportGateway`` is the narrow contract used by the expiry sweeper and the
change feed relay. ``SqlReportStore`` implements it on the async SQLAlchemy
session factory and additionally carries the mutations the API exposes.
Every committed mutation is published on the change feed.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from radarpro.db import crud
from radarpro.models import Report
from radarpro.schemas import ReportRead, ChangeEvent
from radarpro.services.change_feed import ChangeFeed

logger = logging.getLogger(__name__)


class ReportStateError(Exception):
    """Raised for a status transition the report lifecycle does not allow."""


class ReportGateway(Protocol):
    async def fetch_active(self, limit: int = 50, offset: int = 0) -> list[ReportRead]: ...

    async def bulk_mark_expired(self, report_ids: list[str]) -> int: ...

    async def fetch_by_id(self, report_id: str) -> ReportRead | None: ...


async def iter_active(gateway: ReportGateway, page_size: int = 100) -> AsyncIterator[ReportRead]:
    """Walk every active report, one page at a time."""
    offset = 0
    while True:
        page = await gateway.fetch_active(limit=page_size, offset=offset)
        for report in page:
            yield report
        if len(page) < page_size:
            return
        offset += page_size


def _row(report: Report) -> dict:
    """Flat column payload, shaped like a database change-feed row."""
    return {
        "id": report.id,
        "user_id": report.user_id,
        "category": report.category,
        "description": report.description,
        "latitude": report.latitude,
        "longitude": report.longitude,
        "status": report.status,
        "created_at": report.created_at.isoformat() if report.created_at else None,
        "updated_at": report.updated_at.isoformat() if report.updated_at else None,
    }


class SqlReportStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], feed: ChangeFeed | None = None):
        self._session_factory = session_factory
        self._feed = feed

    async def _publish(self, event_type: str, new: dict | None = None, old: dict | None = None):
        if self._feed is None:
            return
        await self._feed.publish(ChangeEvent(event_type=event_type, new=new or {}, old=old or {}))

    # ── Gateway ──────────────────────────────────────────

    async def fetch_active(self, limit: int = 50, offset: int = 0) -> list[ReportRead]:
        async with self._session_factory() as db:
            reports = await crud.list_reports_by_status(db, "active", limit=limit, offset=offset)
            return [ReportRead.model_validate(r) for r in reports]

    async def fetch_by_id(self, report_id: str) -> ReportRead | None:
        async with self._session_factory() as db:
            report = await crud.get_report(db, report_id)
            return ReportRead.model_validate(report) if report else None

    async def bulk_mark_expired(self, report_ids: list[str]) -> int:
        async with self._session_factory() as db:
            old_rows = {r.id: _row(r) for r in await crud.get_reports_by_ids(db, report_ids)}
            changed = await crud.mark_reports_expired(db, report_ids)
        if not changed:
            return 0
        async with self._session_factory() as db:
            for report in await crud.get_reports_by_ids(db, changed):
                await self._publish("update", new=_row(report), old=old_rows.get(report.id))
        return len(changed)

    # ── Mutations ────────────────────────────────────────

    async def create_report(
        self, user_id: str, category: str, description: str, latitude: float, longitude: float,
    ) -> ReportRead:
        async with self._session_factory() as db:
            report = await crud.create_report(db, user_id, category, description, latitude, longitude)
            row = _row(report)
        await self._publish("insert", new=row)
        return await self.fetch_by_id(row["id"])

    async def update_report(self, report_id: str, **changes) -> ReportRead | None:
        """Edit description/location. Category is immutable; status is not editable here."""
        changes.pop("category", None)
        changes.pop("status", None)
        async with self._session_factory() as db:
            report = await crud.get_report(db, report_id)
            if report is None:
                return None
            if report.status != "active":
                raise ReportStateError(f"Cannot edit a {report.status} report")
            old = _row(report)
            report = await crud.update_report(db, report, **changes)
            new = _row(report)
        await self._publish("update", new=new, old=old)
        return await self.fetch_by_id(report_id)

    async def resolve_report(self, report_id: str) -> ReportRead | None:
        async with self._session_factory() as db:
            report = await crud.get_report(db, report_id)
            if report is None:
                return None
            if report.status != "active":
                raise ReportStateError(f"Cannot resolve a {report.status} report")
            old = _row(report)
            report = await crud.update_report(db, report, status="resolved")
            new = _row(report)
        await self._publish("update", new=new, old=old)
        return await self.fetch_by_id(report_id)

    async def delete_report(self, report_id: str) -> bool:
        async with self._session_factory() as db:
            report = await crud.get_report(db, report_id)
            if report is None:
                return False
            old = _row(report)
            await crud.delete_report(db, report)
        await self._publish("delete", old=old)
        return True

    async def add_media(self, report_id: str, file_type: str, file_url: str, file_name: str) -> ReportRead | None:
        async with self._session_factory() as db:
            report = await crud.get_report(db, report_id)
            if report is None:
                return None
            await crud.create_media_file(db, report_id, file_type, file_url, file_name)
        return await self.fetch_by_id(report_id)

    async def purge_expired(self, older_than_hours: int = 24) -> int:
        """Housekeeping: physically delete long-expired reports."""
        async with self._session_factory() as db:
            ids = await crud.delete_expired_reports(db, older_than_hours)
        for report_id in ids:
            await self._publish("delete", old={"id": report_id, "status": "expired"})
        if ids:
            logger.info("Purged %d expired reports older than %dh", len(ids), older_than_hours)
        return len(ids)
