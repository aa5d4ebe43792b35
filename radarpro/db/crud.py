"""CRUD operations for users, reports and media files."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from radarpro.models import User, Report, MediaFile


# ── User ──────────────────────────────────────────────────

async def create_user(
    db: AsyncSession, email: str, username: str | None = None, notification_radius: int = 5000,
) -> User:
    user = User(
        email=email,
        username=username or email.split("@", 1)[0],
        notification_radius=notification_radius,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_user(db: AsyncSession, user_id: str) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalars().first()


# ── Report ────────────────────────────────────────────────

async def create_report(
    db: AsyncSession, user_id: str, category: str, description: str,
    latitude: float, longitude: float,
) -> Report:
    report = Report(
        user_id=user_id, category=category, description=description,
        latitude=latitude, longitude=longitude,
    )
    db.add(report)
    await db.commit()
    await db.refresh(report)
    return report


async def get_report(db: AsyncSession, report_id: str) -> Report | None:
    return await db.get(Report, report_id)


async def get_reports_by_ids(db: AsyncSession, report_ids: list[str]) -> list[Report]:
    if not report_ids:
        return []
    result = await db.execute(select(Report).where(Report.id.in_(report_ids)))
    return list(result.scalars().all())


async def list_reports_by_status(
    db: AsyncSession, status: str = "active", limit: int = 50, offset: int = 0,
) -> list[Report]:
    """Reports with the given status, most recently updated first."""
    result = await db.execute(
        select(Report)
        .where(Report.status == status)
        .order_by(Report.updated_at.desc(), Report.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def update_report(db: AsyncSession, report: Report, **kwargs) -> Report:
    for k, v in kwargs.items():
        if v is not None:
            setattr(report, k, v)
    # Any edit restarts the expiry countdown, even if no column value changed.
    report.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(report)
    return report


async def mark_reports_expired(db: AsyncSession, report_ids: list[str]) -> list[str]:
    """Expire every still-active report in report_ids in one transaction.

    Returns the ids that actually changed; already-expired or resolved
    reports are left untouched.
    """
    if not report_ids:
        return []
    result = await db.execute(
        select(Report.id).where(Report.id.in_(report_ids), Report.status == "active")
    )
    ids = list(result.scalars().all())
    if ids:
        await db.execute(
            update(Report)
            .where(Report.id.in_(ids), Report.status == "active")
            .values(status="expired", updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
    await db.commit()
    return ids


async def delete_report(db: AsyncSession, report: Report) -> None:
    await db.delete(report)
    await db.commit()


async def delete_expired_reports(db: AsyncSession, older_than_hours: int = 24) -> list[str]:
    """Delete expired reports whose last update is older than the cutoff."""
    cutoff = datetime.now(timezone.utc) - timedelta(hours=older_than_hours)
    result = await db.execute(
        select(Report.id).where(Report.status == "expired", Report.updated_at < cutoff)
    )
    ids = list(result.scalars().all())
    if ids:
        await db.execute(delete(MediaFile).where(MediaFile.report_id.in_(ids)))
        await db.execute(delete(Report).where(Report.id.in_(ids)))
    await db.commit()
    return ids


# ── MediaFile ─────────────────────────────────────────────

async def create_media_file(
    db: AsyncSession, report_id: str, file_type: str, file_url: str, file_name: str,
) -> MediaFile:
    media = MediaFile(report_id=report_id, file_type=file_type, file_url=file_url, file_name=file_name)
    db.add(media)
    await db.commit()
    await db.refresh(media)
    return media


async def list_media_for_report(db: AsyncSession, report_id: str) -> list[MediaFile]:
    result = await db.execute(
        select(MediaFile).where(MediaFile.report_id == report_id).order_by(MediaFile.created_at)
    )
    return list(result.scalars().all())
