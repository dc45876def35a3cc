"""FastAPI dependency injection for shared application state."""

from jkbms_gateway.control.live import LiveMonitor
from jkbms_gateway.control.refresh import RefreshOrchestrator
from jkbms_gateway.control.scheduler import RefreshScheduler
from jkbms_gateway.core.cache import SnapshotCache
from jkbms_gateway.core.config import Settings


class AppState:
    """Holds shared application state instances.

    Created during app startup and accessed via FastAPI dependencies.
    """

    def __init__(self) -> None:
        self.settings: Settings | None = None
        self.cache: SnapshotCache | None = None
        self.orchestrator: RefreshOrchestrator | None = None
        self.scheduler: RefreshScheduler | None = None
        self.live: LiveMonitor | None = None


# Global app state singleton
app_state = AppState()


def get_cache() -> SnapshotCache:
    """Get the snapshot cache instance."""
    assert app_state.cache is not None, "App not initialized"
    return app_state.cache


def get_scheduler() -> RefreshScheduler:
    """Get the refresh scheduler instance."""
    assert app_state.scheduler is not None, "App not initialized"
    return app_state.scheduler


def get_live_monitor() -> LiveMonitor:
    """Get the live monitor instance."""
    assert app_state.live is not None, "App not initialized"
    return app_state.live


def get_settings() -> Settings:
    """Get the settings instance."""
    assert app_state.settings is not None, "App not initialized"
    return app_state.settings


async def resolve_identity() -> str | None:
    """Device identity for the next refresh: selected device, else configured address."""
    if app_state.cache is not None:
        selected = await app_state.cache.get_selected_device()
        if selected is not None:
            return selected.address
    if app_state.settings is not None:
        return app_state.settings.device_address
    return None
