"""Shared fakes for the expiry and relay tests."""

from __future__ import annotations

from datetime import datetime, timezone

from ulid import ULID

from radarpro.schemas import ReportRead, UserRead

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_report(
    category: str = "police_checkpoint",
    updated_at: datetime = T0,
    status: str = "active",
    user_id: str = "author-1",
    report_id: str | None = None,
    description: str = "Checkpoint at Main St",
    username: str | None = "bob",
) -> ReportRead:
    user = None
    if username is not None:
        user = UserRead(id=user_id, email=f"{username}@example.com", username=username, created_at=T0)
    return ReportRead(
        id=report_id or str(ULID()),
        user_id=user_id,
        category=category,
        description=description,
        latitude=40.0,
        longitude=-73.0,
        status=status,
        created_at=updated_at,
        updated_at=updated_at,
        user=user,
    )


class FakeGateway:
    """In-memory ReportGateway."""

    def __init__(self, reports: list[ReportRead] | None = None):
        self.reports: dict[str, ReportRead] = {r.id: r for r in reports or []}
        self.fail_fetch = False
        self.fail_mark = False
        self.mark_calls: list[list[str]] = []
        self.fetch_calls = 0

    def put(self, report: ReportRead) -> ReportRead:
        self.reports[report.id] = report
        return report

    async def fetch_active(self, limit: int = 50, offset: int = 0) -> list[ReportRead]:
        self.fetch_calls += 1
        if self.fail_fetch:
            raise ConnectionError("store unreachable")
        active = sorted(
            (r for r in self.reports.values() if r.status == "active"),
            key=lambda r: (r.updated_at, r.id), reverse=True,
        )
        return active[offset:offset + limit]

    async def bulk_mark_expired(self, report_ids: list[str]) -> int:
        self.mark_calls.append(list(report_ids))
        if self.fail_mark:
            raise ConnectionError("write rejected")
        changed = 0
        for rid in report_ids:
            r = self.reports.get(rid)
            if r is not None and r.status == "active":
                self.reports[rid] = r.model_copy(update={"status": "expired"})
                changed += 1
        return changed

    async def fetch_by_id(self, report_id: str) -> ReportRead | None:
        return self.reports.get(report_id)
