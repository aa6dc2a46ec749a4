from fastapi import APIRouter, Depends, HTTPException

from agrilink.models.plant import ActuatorKind
from agrilink.services.command_dispatcher import NOT_CONNECTED_MESSAGE
from agrilink.services.telemetry_service import TelemetryService
from routers.dependencies import get_service
from schemas import ControlResponse

router = APIRouter(prefix="/control", tags=["control"])


@router.post("/{action}", response_model=ControlResponse, responses={
    400: {"description": "Unknown action. Valid actions are water, light and nutrients."},
    503: {
        "description": "Not connected to the backend.",
        "content": {
            "application/json": {
                "example": {"detail": "Not connected to backend. Please check your connection."}
            }
        }
    },
    502: {"description": "The backend rejected the command or could not be reached."},
})
async def send_command(action: str, service: TelemetryService = Depends(get_service)) -> ControlResponse:
    """
    Send an actuator command to the device serving the active plant.

    On success the matching actuator flag is toggled right away.
    """
    try:
        ActuatorKind(action)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid action: {action}. Valid actions are: {', '.join(a.value for a in ActuatorKind)}",
        )

    error = await service.dispatch_command(action)
    if error == NOT_CONNECTED_MESSAGE:
        raise HTTPException(status_code=503, detail=error)
    if error is not None:
        raise HTTPException(status_code=502, detail=error)

    return ControlResponse(
        action=action,
        success=True,
        wateringActive=service.is_watering_active(),
        lightActive=service.is_light_active(),
    )
