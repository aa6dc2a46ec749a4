from fastapi import APIRouter, Depends, HTTPException

from agrilink.models.plant import PlantSlot
from agrilink.processing.series import SeriesKind
from agrilink.services.telemetry_service import TelemetryService
from routers.dependencies import get_service
from schemas import PlantReading, Reservoir, SeriesResponse

router = APIRouter(prefix="/plant", tags=["plant"])


@router.get("/current", response_model=PlantReading, responses={
    404: {
        "description": "No device has reported data for the active plant yet.",
        "content": {
            "application/json": {
                "example": {"detail": "No data available for plant level1"}
            }
        }
    }
})
async def get_current_reading(service: TelemetryService = Depends(get_service)) -> PlantReading:
    """
    Get the combined reading for the active plant.

    Climate values come from the climate device, soil values from the plant's
    own device and NPK / tank levels from the fertilizer device.
    """
    reading = service.get_current_reading()
    if reading is None:
        raise HTTPException(status_code=404, detail=f"No data available for plant {service.active_plant.value}")
    return PlantReading.from_reading(reading)


@router.put("/{plant}", status_code=204, responses={
    400: {
        "description": "Unknown plant slot.",
        "content": {
            "application/json": {
                "example": {"detail": "Invalid plant: level3. Valid values are: level1, level2"}
            }
        }
    }
})
async def set_active_plant(plant: str, service: TelemetryService = Depends(get_service)) -> None:
    """
    Select the active plant.

    The current reading is recombined from cached device data right away and
    the backend is told about the new selection when connected.
    """
    try:
        slot = PlantSlot.parse(plant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await service.set_active_plant(slot)


@router.get("/reservoir", response_model=Reservoir)
async def get_reservoir(service: TelemetryService = Depends(get_service)) -> Reservoir:
    """Get the latest water and fertilizer tank levels."""
    return Reservoir.from_levels(service.get_reservoir_levels())


@router.get("/history/{kind}", response_model=SeriesResponse, responses={
    400: {
        "description": "Unknown series kind.",
        "content": {
            "application/json": {
                "example": {"detail": "Invalid kind: pressure. Valid values are: moisture, temperature, nutrients"}
            }
        }
    }
})
async def get_history(kind: str, service: TelemetryService = Depends(get_service)) -> SeriesResponse:
    """
    Get the 5-minute averaged series for the active plant.

    - **moisture**: soil moisture percentage
    - **temperature**: air temperature in °C
    - **nutrients**: mean of the nitrogen, phosphorus and potassium indices

    Live readings are folded in once the stream has been quiet for the
    debounce window; `pending` is true while such an update is waiting.
    """
    try:
        series_kind = SeriesKind.parse(kind)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    series = service.get_series(series_kind)
    return SeriesResponse(
        kind=series_kind.value,
        plant=service.active_plant.value,
        points=SeriesResponse.to_points(series.points),
        pending=series.pending,
        error=series.error,
    )
