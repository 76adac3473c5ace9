# huddle/main.py
import asyncio
import logging
from contextlib import suppress

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from huddle.api.routes import attendance, availability, health, internal, meetings, schedules
from huddle.core.config import get_settings
from huddle.core.errors import HuddleError
from huddle.core.logging import setup_logging
from huddle.db.session import AsyncSessionLocal, init_db
from huddle.services.attendance_service import AttendanceService

logger = logging.getLogger(__name__)


async def run_attendance_sweeper(interval_seconds: float) -> None:
    """
    Periodically finalize attendance checks that expired unobserved.

    One failing sweep is logged and the loop keeps going.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with AsyncSessionLocal() as session:
                await AttendanceService(session).sweep_expired()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Attendance sweep failed")


def create_app() -> FastAPI:
    """
    Application factory for the Huddle Scheduler service.
    """
    setup_logging()
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend service that merges group availability into ranked meeting-time\n"
            "suggestions, commits chosen times into participants' calendars, and\n"
            "verifies attendance with short-lived codes."
        ),
        version="0.1.0",
    )

    # Routers
    app.include_router(health.router)
    app.include_router(meetings.router)
    app.include_router(availability.router)
    app.include_router(schedules.router)
    app.include_router(attendance.router)
    app.include_router(internal.router)

    @app.exception_handler(HuddleError)
    async def handle_domain_error(request: Request, exc: HuddleError) -> JSONResponse:
        return JSONResponse(
            status_code=int(exc.status_code),
            content={"detail": exc.message, "error": exc.code},
        )

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db()
        if settings.ATTENDANCE_SWEEP_INTERVAL_SECONDS > 0:
            app.state.sweeper = asyncio.create_task(
                run_attendance_sweeper(settings.ATTENDANCE_SWEEP_INTERVAL_SECONDS)
            )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:  # pragma: no cover
        sweeper = getattr(app.state, "sweeper", None)
        if sweeper is not None:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper

    return app


app = create_app()
