import asyncio
import logging

from fastapi import APIRouter, Depends

from agrilink.services.telemetry_service import TelemetryService
from routers.dependencies import get_service
from schemas import ConnectionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/connection", tags=["connection"])


def _status(service: TelemetryService) -> ConnectionResponse:
    manager = service.connection
    return ConnectionResponse(
        state=manager.state.value,
        connected=service.is_connected(),
        attempts=manager.reconnect_attempts,
        maxAttempts=manager.max_attempts,
        endpoint=manager.url,
        activePlant=service.active_plant.value,
        wateringActive=service.is_watering_active(),
        lightActive=service.is_light_active(),
    )


@router.get("", response_model=ConnectionResponse)
async def get_connection(service: TelemetryService = Depends(get_service)) -> ConnectionResponse:
    """
    Get the backend connection status.

    `state` is one of disconnected, connecting, connected, reconnecting or
    failed. Once failed, no further retries happen until POST /connect.
    """
    return _status(service)


@router.post("/connect", status_code=202, response_model=ConnectionResponse)
async def connect(service: TelemetryService = Depends(get_service)) -> ConnectionResponse:
    """
    Start connecting to the backend, resetting the retry budget if the last
    session failed or was closed. Returns immediately; poll GET /connection.
    """
    if not service.is_connected():
        logger.info("Manual connect requested")
        task = asyncio.create_task(service.start())
        task.add_done_callback(_log_result)
    return _status(service)


def _log_result(task: asyncio.Task):
    if task.cancelled():
        return
    if task.exception() is not None:
        logger.error(f"Connect task failed: {task.exception()!r}")
