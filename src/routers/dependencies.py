from fastapi import Request

from agrilink.services.telemetry_service import TelemetryService


def get_service(request: Request) -> TelemetryService:
    """The TelemetryService built for this app in main.lifespan."""
    return request.app.state.service
