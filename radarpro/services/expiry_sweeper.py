"""Background sweeper that expires reports whose TTL has elapsed.

The sweeper polls rather than scheduling one timer per report: every tick it
re-reads all active reports and expires the stale ones in one bulk update.
Expiry is idempotent, so a failed or partial sweep is simply retried by the
next tick.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from contextlib import suppress
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Callable

from radarpro.services.expiry import is_report_expired
from radarpro.services.report_store import ReportGateway, iter_active

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    started_at: datetime
    checked: int = 0
    expired_ids: list[str] = field(default_factory=list)
    marked: int = 0
    error: str | None = None
    skipped: bool = False


class ExpirySweeper:
    def __init__(
        self,
        gateway: ReportGateway,
        interval_seconds: float = 30.0,
        page_size: int = 100,
        clock: Callable[[], datetime] | None = None,
    ):
        self._gateway = gateway
        self.interval_seconds = interval_seconds
        self._page_size = page_size
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._timer: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()
        self._sweeping = False
        self.last_result: SweepResult | None = None

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        if self._timer is not None:
            logger.info("Report expiry service is already running")
            return
        logger.info("Starting report expiry service (every %ss)", self.interval_seconds)
        self._timer = asyncio.create_task(self._tick_loop())

    async def stop(self) -> None:
        """Cancel the periodic timer. A sweep already in progress is allowed to finish."""
        if self._timer is None:
            logger.info("Report expiry service is not running")
            return
        timer, self._timer = self._timer, None
        timer.cancel()
        with suppress(asyncio.CancelledError):
            await timer
        logger.info("Report expiry service stopped")

    async def wait_idle(self) -> None:
        """Wait for sweeps already started by the timer to complete."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def status(self) -> dict:
        return {
            "is_running": self.is_running,
            "check_interval_seconds": self.interval_seconds,
            "sweep_in_progress": self._sweeping,
            "last_sweep": asdict(self.last_result) if self.last_result else None,
        }

    async def _tick_loop(self):
        while True:
            if self._sweeping:
                logger.warning("Previous expiry sweep still running, skipping this tick")
            else:
                task = asyncio.create_task(self.sweep_once())
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
            await asyncio.sleep(self.interval_seconds)

    async def sweep_once(self) -> SweepResult:
        """Run one sweep. Never raises: failures are logged and reported in the result."""
        result = SweepResult(started_at=self._clock())
        if self._sweeping:
            result.skipped = True
            return result
        self._sweeping = True
        try:
            now = self._clock()
            statuses: Counter[str] = Counter()
            async for report in iter_active(self._gateway, self._page_size):
                result.checked += 1
                statuses[report.category] += 1
                if is_report_expired(report.category, report.updated_at or report.created_at, now):
                    logger.debug("Report %s (%s) has expired", report.id, report.category)
                    result.expired_ids.append(report.id)

            if not result.checked:
                logger.debug("No active reports to check for expiry")
            elif result.expired_ids:
                result.marked = await self._gateway.bulk_mark_expired(result.expired_ids)
                logger.info(
                    "Expiry sweep: %d active checked, %d expired, %d marked",
                    result.checked, len(result.expired_ids), result.marked,
                )
                if result.marked < len(result.expired_ids):
                    logger.warning(
                        "Only %d of %d expired reports were marked; the rest will be retried",
                        result.marked, len(result.expired_ids),
                    )
            else:
                logger.debug("Expiry sweep: %d active checked (%s), none expired", result.checked, dict(statuses))
        except Exception as e:
            logger.exception("Error during expiry sweep")
            result.error = str(e)
        finally:
            self._sweeping = False
        self.last_result = result
        return result
