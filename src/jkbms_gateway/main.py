"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jkbms_gateway import __version__
from jkbms_gateway.api.dependencies import app_state, resolve_identity
from jkbms_gateway.api.routes import router as api_router
from jkbms_gateway.ble.connection import BleakTransport
from jkbms_gateway.control.live import LiveMonitor
from jkbms_gateway.control.refresh import RefreshOrchestrator, SessionFactory
from jkbms_gateway.control.scheduler import RefreshScheduler
from jkbms_gateway.core.cache import SnapshotCache
from jkbms_gateway.core.config import Settings, setup_logging
from jkbms_gateway.core.models import HealthResponse, SelectedDevice
from jkbms_gateway.protocol.codec import JK02Codec
from jkbms_gateway.protocol.session import Session

logger = logging.getLogger(__name__)


def build_session_factory(settings: Settings, cache: SnapshotCache) -> SessionFactory:
    """Sessions over one shared BLE transport, caching every decoded record."""
    transport = BleakTransport()
    codec = JK02Codec()

    def session_factory() -> Session:
        return Session(
            transport,
            codec,
            request_timeout=settings.request_timeout,
            connect_timeout=settings.connect_timeout,
            on_record=cache.store_record,
        )

    return session_factory


def build_orchestrator(
    settings: Settings, cache: SnapshotCache, session_factory: SessionFactory
) -> RefreshOrchestrator:
    """Wire a refresh orchestrator."""
    return RefreshOrchestrator(
        session_factory,
        cache,
        max_attempts=settings.max_attempts,
        backoff_base=settings.backoff_base,
        cycle_timeout=settings.cycle_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    settings = app_state.settings or Settings()
    app_state.settings = settings

    setup_logging(settings.log_level)
    logger.info(f"Starting JK BMS Gateway v{__version__}")

    # Initialize components
    app_state.cache = SnapshotCache(settings.snapshot_file if settings.persist_cache else None)
    app_state.cache.load()

    if settings.device_address and await app_state.cache.get_selected_device() is None:
        await app_state.cache.set_selected_device(
            SelectedDevice(address=settings.device_address, name=settings.device_name)
        )

    session_factory = build_session_factory(settings, app_state.cache)
    app_state.orchestrator = build_orchestrator(settings, app_state.cache, session_factory)
    live = LiveMonitor(session_factory)
    app_state.live = live
    app_state.scheduler = RefreshScheduler(
        app_state.orchestrator,
        resolve_identity,
        interval=settings.refresh_interval,
        can_run=lambda: not live.active,
    )

    await app_state.scheduler.start(run_immediately=settings.refresh_on_start)

    yield

    # Shutdown
    logger.info("Shutting down...")
    if app_state.scheduler is not None:
        await app_state.scheduler.stop()
    if app_state.live is not None:
        await app_state.live.stop()


app = FastAPI(
    title="JK BMS Gateway",
    description="Local REST API gateway for JK battery management systems",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "JK BMS Gateway",
        "version": __version__,
        "status": "running",
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    cache = app_state.cache
    scheduler = app_state.scheduler

    if cache is None or scheduler is None:
        return HealthResponse(status="unhealthy", device_configured=False)

    device_configured = await resolve_identity() is not None
    last_result = app_state.orchestrator.last_result if app_state.orchestrator else None

    if not device_configured:
        status = "unhealthy"
    elif cache.has_data and (last_result is None or last_result.succeeded):
        status = "healthy"
    else:
        status = "degraded"

    return HealthResponse(
        status=status,
        device_configured=device_configured,
        refresh_in_progress=scheduler.in_progress,
        last_update=cache.last_update,
    )


def main():
    """Run the application (for CLI entry point)."""
    import uvicorn

    settings = Settings()
    setup_logging(settings.log_level)
    app_state.settings = settings

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
