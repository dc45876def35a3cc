"""Snapshot cache for JK BMS gateway."""

import asyncio
import logging
import os
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ValidationError

from jkbms_gateway.core.models import CellTelemetry, DeviceInfo, SelectedDevice, Snapshot

logger = logging.getLogger(__name__)


class _CacheState(BaseModel):
    """On-disk layout of the cache file."""

    snapshot: Snapshot | None = None
    device_info: DeviceInfo | None = None
    selected_device: SelectedDevice | None = None


class SnapshotCache:
    """Last known-good BMS data plus the selected device.

    Provides async-safe access using asyncio.Lock(). When a path is given,
    every write replaces the cache file atomically so readers never see a
    partial file.
    """

    def __init__(self, path: Path | None = None) -> None:
        """Initialize empty cache, optionally backed by a JSON file."""
        self._lock = asyncio.Lock()
        self._path = path
        self._state = _CacheState()

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def last_update(self) -> datetime | None:
        """Capture time of the cached snapshot."""
        return self._state.snapshot.captured_at if self._state.snapshot else None

    @property
    def has_data(self) -> bool:
        return self._state.snapshot is not None

    def load(self) -> bool:
        """Load state from the backing file.

        Returns:
            True if state was loaded, False if there was nothing usable.
        """
        if self._path is None or not self._path.exists():
            return False

        try:
            self._state = _CacheState.model_validate_json(self._path.read_text())
        except (OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", self._path, e)
            return False

        logger.info("Loaded cache from %s (last update: %s)", self._path, self.last_update)
        return True

    def _persist(self) -> None:
        if self._path is None:
            return

        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(self._state.model_dump_json())
            os.replace(tmp, self._path)
        except OSError as e:
            logger.error("Failed to persist cache to %s: %s", self._path, e)

    # -- snapshot --------------------------------------------------------------

    async def save(self, snapshot: Snapshot) -> None:
        """Replace the cached snapshot."""
        async with self._lock:
            self._state.snapshot = snapshot
            if snapshot.device_info is not None:
                self._state.device_info = snapshot.device_info
            self._persist()

    async def save_device_info(self, info: DeviceInfo) -> None:
        """Replace the cached device info."""
        async with self._lock:
            self._state.device_info = info
            self._persist()

    async def load_latest(self) -> Snapshot | None:
        """Latest snapshot, completed with cached device info when it has none."""
        async with self._lock:
            snapshot = self._state.snapshot
            if snapshot is None:
                return None
            if snapshot.device_info is None and self._state.device_info is not None:
                return snapshot.model_copy(update={"device_info": self._state.device_info})
            return snapshot

    async def get_device_info(self) -> DeviceInfo | None:
        async with self._lock:
            return self._state.device_info

    async def store_record(self, _kind: object, record: CellTelemetry | DeviceInfo) -> None:
        """Persist a record decoded by a live session."""
        if isinstance(record, CellTelemetry):
            device_info = await self.get_device_info()
            await self.save(Snapshot(cell_data=record, device_info=device_info))
        elif isinstance(record, DeviceInfo):
            await self.save_device_info(record)

    async def clear(self) -> None:
        """Drop cached data, keeping the selected device."""
        async with self._lock:
            self._state.snapshot = None
            self._state.device_info = None
            self._persist()

    # -- selected device -------------------------------------------------------

    async def get_selected_device(self) -> SelectedDevice | None:
        async with self._lock:
            return self._state.selected_device

    async def set_selected_device(self, device: SelectedDevice) -> None:
        async with self._lock:
            self._state.selected_device = device
            self._persist()

    async def clear_selected_device(self) -> None:
        async with self._lock:
            self._state.selected_device = None
            self._persist()
