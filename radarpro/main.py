"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from radarpro.config import Settings, get_settings
from radarpro.db.engine import async_session_factory, create_all, engine
from radarpro.api.router import api_router
from radarpro.services.change_feed import ChangeFeed
from radarpro.services.expiry import configure_ttl_table
from radarpro.services.expiry_sweeper import ExpirySweeper
from radarpro.services.push import WebSocketNotifier
from radarpro.services.report_store import ReportStateError, SqlReportStore
from radarpro.services.sessions import SessionManager
from radarpro.services.ws_manager import ws_manager

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.logging.level.upper(), format=settings.logging.format)


def install_services(
    app: FastAPI,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> SessionManager:
    """Build the change feed, report store, sweeper and session manager onto ``app.state``."""
    configure_ttl_table(settings.expiry.ttl_minutes)
    feed = ChangeFeed(queue_size=settings.realtime.queue_size, broadcaster=ws_manager)
    store = SqlReportStore(session_factory, feed)
    sweeper = ExpirySweeper(
        store,
        interval_seconds=settings.expiry.sweep_interval_seconds,
        page_size=settings.expiry.page_size,
    )
    sessions = SessionManager(
        sweeper, feed, store, settings,
        notifier=WebSocketNotifier(ws_manager),
        ws=ws_manager,
    )
    app.state.settings = settings
    app.state.feed = feed
    app.state.store = store
    app.state.sweeper = sweeper
    app.state.sessions = sessions
    return sessions


async def shutdown_services(app: FastAPI) -> None:
    sessions: SessionManager | None = getattr(app.state, "sessions", None)
    if sessions is not None:
        await sessions.close_all()
        await sessions.sweeper.wait_idle()
    feed: ChangeFeed | None = getattr(app.state, "feed", None)
    if feed is not None:
        await feed.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)

    await create_all()
    install_services(app, settings, async_session_factory)
    logger.info("RadarPro started")
    yield
    await shutdown_services(app)
    await engine.dispose()


app = FastAPI(
    title="RadarPro",
    description="Community safety reports with category-based expiry, a live change feed and per-user notifications.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(api_router)


@app.exception_handler(ReportStateError)
async def report_state_error_handler(request: Request, exc: ReportStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/health")
async def health():
    return {"ok": True}
