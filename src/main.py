from fastapi import FastAPI
from pydantic_settings import BaseSettings
from contextlib import asynccontextmanager
import asyncio
import logging

from routers.api import router as api_router
from schemas import AppHealthOK
from agrilink.config_loader import ConfigLoader
from agrilink.services.telemetry_service import TelemetryService

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "AgriLink Telemetry API"
    debug: bool = True
    # Connect to the backend as soon as the app starts
    # If False, call POST /api/connection/connect to start the session
    autoconnect: bool = True


settings = Settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the telemetry service and open the backend session in the background."""
    config = ConfigLoader().get_config()
    service = TelemetryService(config)
    service.hub.init(asyncio.get_running_loop())
    app.state.service = service

    connect_task = None
    if settings.autoconnect:
        logger.info("Connecting to backend at %s", config.connection.url)
        connect_task = asyncio.create_task(service.start())
    else:
        logger.info("Autoconnect disabled, waiting for POST /api/connection/connect")

    try:
        yield
    finally:
        logger.info("Stopping telemetry service")
        if connect_task is not None and not connect_task.done():
            connect_task.cancel()
        await service.stop()


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)


@app.get("/", tags=["meta"])
async def read_root() -> dict[str, str]:
    return {"message": settings.app_name}


@app.get("/health", tags=["meta"], response_model=AppHealthOK)
async def healthcheck() -> AppHealthOK:
    return AppHealthOK(status="ok", app=settings.app_name)


# mount API router under /api
app.include_router(api_router, prefix="/api")
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
