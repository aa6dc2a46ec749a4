"""
Sensor reading models.
"""

from dataclasses import dataclass
from typing import Any

from agrilink.models.plant import PlantSlot

DEFAULT_TEMPERATURE = 20.0
DEFAULT_HUMIDITY = 50.0


@dataclass(frozen=True)
class SensorReading:
    """
    One normalized sample from one device at one instant.
    """
    temperature: float = DEFAULT_TEMPERATURE
    humidity: float = DEFAULT_HUMIDITY
    moisture: float = 0.0
    sunlight: float = 0.0
    nitrogen: float = 0.0
    phosphorus: float = 0.0
    potassium: float = 0.0
    water_level: float = 0.0
    fertilizer_level: float = 0.0
    timestamp: str = ""
    device_id: str = ""


@dataclass(frozen=True)
class CombinedReading:
    """
    Logical reading for the active plant, fused from the per-device readings.
    """
    temperature: float
    humidity: float
    moisture: float
    sunlight: float
    nitrogen: float
    phosphorus: float
    potassium: float
    water_level: float
    fertilizer_level: float
    timestamp: str
    device_id: str
    plant: PlantSlot


@dataclass(frozen=True)
class ReservoirLevels:
    """Snapshot of both tanks, as a percentage and as a height in cm."""
    water: float = 75.0
    water_cm: float = 15.0
    fertilizer: float = 60.0
    fertilizer_cm: float = 12.0


@dataclass(frozen=True)
class RawPoint:
    """A single (timestamp, value) sample of one charted quantity."""
    timestamp: Any
    value: float


@dataclass(frozen=True)
class AveragedDataPoint:
    timestamp: str
    value: float
    count: int
