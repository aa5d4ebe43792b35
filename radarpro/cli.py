"""CLI for RadarPro: database setup, config checks and expiry housekeeping."""

from __future__ import annotations

import argparse
import asyncio
import sys


async def cmd_init_db(args):
    """Create all tables in the configured database."""
    from radarpro.config import get_settings
    from radarpro.db.engine import create_all, engine

    await create_all()
    await engine.dispose()
    print(f"Database ready: {get_settings().database_url}")


async def cmd_check_config(args):
    """Validate the category TTL table; exit non-zero if a category has no TTL."""
    from radarpro.config import get_settings
    from radarpro.services.expiry import validate_ttl_table

    settings = get_settings()
    table = settings.expiry.ttl_minutes
    for category, minutes in sorted(table.items()):
        print(f"  {category:<20} {minutes} min")
    missing = validate_ttl_table(table)
    if missing:
        print(f"Missing TTL for: {', '.join(missing)} (these reports will never expire)")
        sys.exit(1)
    print("TTL table OK")


async def cmd_sweep(args):
    """Run a single expiry sweep against the configured database."""
    from radarpro.config import get_settings
    from radarpro.db.engine import async_session_factory, engine
    from radarpro.services.expiry import configure_ttl_table
    from radarpro.services.expiry_sweeper import ExpirySweeper
    from radarpro.services.report_store import SqlReportStore

    settings = get_settings()
    configure_ttl_table(settings.expiry.ttl_minutes)
    sweeper = ExpirySweeper(SqlReportStore(async_session_factory), page_size=settings.expiry.page_size)
    result = await sweeper.sweep_once()
    await engine.dispose()

    if result.error:
        print(f"Sweep failed: {result.error}")
        sys.exit(1)
    print(f"Checked {result.checked} active reports, expired {result.marked}")
    for report_id in result.expired_ids:
        print(f"  {report_id}")


async def cmd_purge_expired(args):
    """Delete expired reports older than the cutoff."""
    from radarpro.config import get_settings
    from radarpro.db.engine import async_session_factory, engine
    from radarpro.services.report_store import SqlReportStore

    hours = args.hours if args.hours is not None else get_settings().expiry.purge_after_hours
    removed = await SqlReportStore(async_session_factory).purge_expired(hours)
    await engine.dispose()
    print(f"Purged {removed} expired reports older than {hours}h")


def main():
    parser = argparse.ArgumentParser(description="RadarPro CLI")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("check-config", help="Validate the category TTL table")
    subparsers.add_parser("sweep", help="Run one expiry sweep now")

    pe = subparsers.add_parser("purge-expired", help="Delete long-expired reports")
    pe.add_argument("--hours", type=int, default=None, help="Age cutoff (defaults to expiry.purge_after_hours)")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "init-db":
        asyncio.run(cmd_init_db(args))
    elif args.command == "check-config":
        asyncio.run(cmd_check_config(args))
    elif args.command == "sweep":
        asyncio.run(cmd_sweep(args))
    elif args.command == "purge-expired":
        asyncio.run(cmd_purge_expired(args))


if __name__ == "__main__":
    main()
