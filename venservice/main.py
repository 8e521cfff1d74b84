"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from venservice.api.v1.router import api_router
from venservice.config import settings
from venservice.core.background_tasks import start_hold_sweeper, stop_hold_sweeper
from venservice.core.exceptions import AppException
from venservice.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from venservice.services.reservation_service import get_registry

logger = logging.getLogger(__name__)

# Hold sweeper handle
_sweeper_task: asyncio.Task | None = None


def configure_logging() -> None:
    """Root logging for the service process."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Run the hold sweeper for as long as the app serves requests."""
    global _sweeper_task

    logger.info(
        f"{settings.app_name} {settings.app_version} starting: "
        f"catalog={settings.catalog_backend} gateway={settings.submission_gateway} "
        f"drafts={settings.draft_storage_backend}"
    )
    _sweeper_task = asyncio.create_task(start_hold_sweeper())

    yield

    stop_hold_sweeper()
    if _sweeper_task:
        _sweeper_task.cancel()
        try:
            await _sweeper_task
        except asyncio.CancelledError:
            pass

    # Closes catalog and gateway HTTP clients
    await get_registry().close()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        content: dict = {"detail": exc.detail}
        if exc.errors:
            content["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


def create_application() -> FastAPI:
    """Build the reservation API."""
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Seat reservations for venService intercity vans and buses",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    register_exception_handlers(app)

    # Last added runs first
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "version": settings.app_version,
            "active_sessions": len(get_registry()),
            "checked_at": datetime.now(UTC).isoformat(),
        }

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    # Sessions live in process memory, so a single worker.
    uvicorn.run("venservice.main:app", host=settings.host, port=settings.port, reload=settings.debug)
