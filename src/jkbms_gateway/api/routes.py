"""API route handlers."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import StreamingResponse

from jkbms_gateway.api.dependencies import get_cache, get_live_monitor, get_scheduler, resolve_identity
from jkbms_gateway.control.live import LiveMonitor
from jkbms_gateway.control.scheduler import RefreshScheduler
from jkbms_gateway.core.cache import SnapshotCache
from jkbms_gateway.core.errors import DeviceBusy, TransportError
from jkbms_gateway.core.models import ErrorResponse, RefreshResponse, RefreshStatus, SelectedDevice, Snapshot

router = APIRouter(prefix="/api")


@router.get("/snapshot", response_model=Snapshot, responses={404: {"model": ErrorResponse}})
async def get_snapshot(cache: SnapshotCache = Depends(get_cache)):
    """Get the last known-good BMS snapshot."""
    snapshot = await cache.load_latest()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No data cached yet")
    return snapshot


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    responses={
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def refresh(
    scheduler: RefreshScheduler = Depends(get_scheduler),
    live: LiveMonitor = Depends(get_live_monitor),
):
    """Refresh now (joins a refresh already in progress)."""
    if live.active:
        raise HTTPException(status_code=409, detail="Live session active")

    result = await scheduler.trigger_now()

    if result.status == RefreshStatus.SKIPPED:
        raise HTTPException(status_code=409, detail="No device selected")
    if result.status == RefreshStatus.FAILED:
        raise HTTPException(status_code=503, detail=str(result.error))

    return RefreshResponse(
        status=result.status,
        attempts=result.attempts,
        snapshot=result.snapshot,
    )


@router.get("/device", response_model=SelectedDevice, responses={404: {"model": ErrorResponse}})
async def get_device(cache: SnapshotCache = Depends(get_cache)):
    """Get the selected device."""
    device = await cache.get_selected_device()
    if device is None:
        raise HTTPException(status_code=404, detail="No device selected")
    return device


@router.put("/device", response_model=SelectedDevice)
async def select_device(device: SelectedDevice, cache: SnapshotCache = Depends(get_cache)):
    """Select the device used for refreshes."""
    await cache.set_selected_device(device)
    return device


@router.delete("/device", status_code=204)
async def clear_device(cache: SnapshotCache = Depends(get_cache)):
    """Clear the selected device."""
    await cache.clear_selected_device()
    return Response(status_code=204)


@router.get(
    "/telemetry/stream",
    response_class=StreamingResponse,
    responses={
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def stream_telemetry(
    limit: int | None = Query(default=None, ge=1),
    live: LiveMonitor = Depends(get_live_monitor),
    scheduler: RefreshScheduler = Depends(get_scheduler),
):
    """Stream live cell telemetry as newline-delimited JSON.

    The stream ends after limit records or when the link drops. Every
    record is also written to the cache.
    """
    identity = await resolve_identity()
    if not identity:
        raise HTTPException(status_code=409, detail="No device selected")
    if scheduler.in_progress:
        raise HTTPException(status_code=409, detail="Refresh in progress")

    try:
        session = await live.start(identity)
    except DeviceBusy as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except TransportError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    async def records():
        sent = 0
        try:
            async for cell in session.telemetry():
                yield cell.model_dump_json() + "\n"
                sent += 1
                if limit is not None and sent >= limit:
                    break
        finally:
            await live.stop()

    return StreamingResponse(records(), media_type="application/x-ndjson")


@router.post("/telemetry/pause", status_code=204, responses={409: {"model": ErrorResponse}})
async def pause_telemetry(live: LiveMonitor = Depends(get_live_monitor)):
    """Pause the live feed without disconnecting."""
    if not live.active:
        raise HTTPException(status_code=409, detail="No live session")
    await live.pause()
    return Response(status_code=204)


@router.post("/telemetry/resume", status_code=204, responses={409: {"model": ErrorResponse}})
async def resume_telemetry(live: LiveMonitor = Depends(get_live_monitor)):
    """Resume a paused live feed."""
    if not live.active:
        raise HTTPException(status_code=409, detail="No live session")
    live.resume()
    return Response(status_code=204)
