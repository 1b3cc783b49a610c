import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sqlalchemy import text

from bolt.config import settings
from bolt.db.base import engine, session_scope
from bolt.routers import (
    ad_copies,
    analytics,
    assistant,
    audience_analyses,
    auth,
    callbacks,
    chat,
    content_briefs,
    ga4_reports,
    templates,
)
from bolt.services.cleanup import cleanup_stale_chat_sessions

logger = logging.getLogger(__name__)


def _run_chat_cleanup() -> None:
    with session_scope() as session:
        cleanup_stale_chat_sessions(session)


async def _chat_cleanup_loop(interval_hours: int) -> None:
    while True:
        try:
            await asyncio.to_thread(_run_chat_cleanup)
        except Exception:
            logger.exception("Scheduled chat session cleanup failed")
        await asyncio.sleep(interval_hours * 3600)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    cleanup_task = None
    if settings.CHAT_CLEANUP_INTERVAL_HOURS > 0:
        cleanup_task = asyncio.create_task(_chat_cleanup_loop(settings.CHAT_CLEANUP_INTERVAL_HOURS))
    try:
        yield
    finally:
        if cleanup_task is not None:
            cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup_task


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.LOG_LEVEL)

    app = FastAPI(
        title="Bolt Marketing API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )

    allow_origins = sorted(set(settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(auth.router)
    app.include_router(ad_copies.router)
    app.include_router(content_briefs.router)
    app.include_router(audience_analyses.router)
    app.include_router(ga4_reports.router)
    app.include_router(analytics.router)
    app.include_router(callbacks.router)
    app.include_router(chat.router)
    app.include_router(templates.router)
    app.include_router(assistant.router)

    return app


app = create_app()
