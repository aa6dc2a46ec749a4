import logging
from typing import Mapping, Optional

from agrilink.models.plant import DeviceRoles, PlantSlot
from agrilink.models.sensor_reading import CombinedReading, SensorReading
from agrilink.models.timestamps import utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_ROLES = DeviceRoles()

# Stand-in for a device that has not reported yet: every field at its default
_EMPTY = SensorReading()


def combine(
    readings: Mapping[str, SensorReading],
    plant: PlantSlot,
    roles: DeviceRoles = DEFAULT_ROLES,
    now: Optional[str] = None,
) -> Optional[CombinedReading]:
    """
    Fuse the latest per-device readings into one reading for `plant`.

    Climate (temperature, humidity, water level) comes from the climate device,
    soil values (moisture, light, NPK) from the plant's own device and the
    fertilizer level from the fertilizer device. Returns None when none of
    those devices has reported yet.
    """
    plant_device = roles.device_for(plant)
    climate = readings.get(roles.climate_device)
    soil = readings.get(plant_device)
    fertilizer = readings.get(roles.fertilizer_device)

    if climate is None and soil is None and fertilizer is None:
        logger.debug(f"No sensor data available for {plant.value}, nothing to emit")
        return None

    climate = climate or _EMPTY
    soil = soil or _EMPTY
    fertilizer = fertilizer or _EMPTY

    return CombinedReading(
        temperature=climate.temperature,
        humidity=climate.humidity,
        moisture=soil.moisture,
        sunlight=soil.sunlight,
        nitrogen=soil.nitrogen,
        phosphorus=soil.phosphorus,
        potassium=soil.potassium,
        water_level=climate.water_level,
        fertilizer_level=fertilizer.fertilizer_level,
        timestamp=now or utc_now_iso(),
        device_id=plant_device,
        plant=plant,
    )
