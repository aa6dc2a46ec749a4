"""
Turns whatever a gateway device sends into a SensorReading.

Devices disagree on field names (firmware revisions, sensor variants), so each
field family is looked up through an ordered list of aliases; the first key
present with a non-null value wins. Missing or unparseable values resolve to
the documented defaults, never to NaN.
"""
import logging
import math
from collections.abc import Mapping
from typing import Any, Optional, Sequence

from agrilink.models.plant import PlantSlot
from agrilink.models.sensor_reading import DEFAULT_HUMIDITY, DEFAULT_TEMPERATURE, SensorReading
from agrilink.models.timestamps import coerce_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

MOISTURE_KEYS = ("moisture_percent", "soil_moisture_percent", "moisture")
LIGHT_KEYS = ("lux", "lightLevel", "ldr")
WATER_LEVEL_KEYS = ("waterLevelPercent", "waterLevel")
FERTILIZER_LEVEL_KEYS = ("fertilizer_level", "fertilizerLevel")
NPK_KEY = "npk"


def safe_number(value: Any, default: float = 0.0) -> float:
    """Convert value to a finite float, or return default."""
    if value is None or isinstance(value, (Mapping, list, tuple, set)):
        return default
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def first_present(payload: Mapping, keys: Sequence[str]) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _extract_npk(payload: Mapping):
    npk = payload.get(NPK_KEY)
    if isinstance(npk, Mapping):
        return (
            safe_number(npk.get("N")),
            safe_number(npk.get("P")),
            safe_number(npk.get("K")),
        )
    return (
        safe_number(payload.get("nitrogen")),
        safe_number(payload.get("phosphorus")),
        safe_number(payload.get("potassium")),
    )


def normalize(raw: Any, device_id: str = "", active_plant: Optional[PlantSlot] = None) -> SensorReading:
    """Build a SensorReading from one raw device payload. Never raises."""
    payload = raw if isinstance(raw, Mapping) else {}
    if payload is not raw:
        logger.debug(f"Non-object payload from {device_id or 'unknown device'}: {type(raw).__name__}")

    nitrogen, phosphorus, potassium = _extract_npk(payload)
    timestamp = coerce_timestamp(payload.get("timestamp")) or utc_now_iso()

    reading = SensorReading(
        temperature=safe_number(payload.get("temperature"), DEFAULT_TEMPERATURE),
        humidity=safe_number(payload.get("humidity"), DEFAULT_HUMIDITY),
        moisture=safe_number(first_present(payload, MOISTURE_KEYS)),
        sunlight=safe_number(first_present(payload, LIGHT_KEYS)),
        nitrogen=nitrogen,
        phosphorus=phosphorus,
        potassium=potassium,
        water_level=safe_number(first_present(payload, WATER_LEVEL_KEYS)),
        fertilizer_level=safe_number(first_present(payload, FERTILIZER_LEVEL_KEYS)),
        timestamp=timestamp,
        device_id=device_id,
    )
    if active_plant is not None:
        logger.debug(f"Normalized {device_id} while {active_plant.value} is active")
    return reading
