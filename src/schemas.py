from typing import List, Optional
from pydantic import BaseModel

from agrilink.models.sensor_reading import AveragedDataPoint, CombinedReading, ReservoirLevels


class AppHealthOK(BaseModel):
    status: str
    app: str


class PlantReading(BaseModel):
    temperature: float
    humidity: float
    moisture: float
    sunlight: float
    nitrogen: float
    phosphorus: float
    potassium: float
    waterLevel: float
    fertilizerLevel: float
    timestamp: str
    deviceId: str
    plant: str

    @classmethod
    def from_reading(cls, reading: CombinedReading) -> "PlantReading":
        return cls(
            temperature=reading.temperature,
            humidity=reading.humidity,
            moisture=reading.moisture,
            sunlight=reading.sunlight,
            nitrogen=reading.nitrogen,
            phosphorus=reading.phosphorus,
            potassium=reading.potassium,
            waterLevel=reading.water_level,
            fertilizerLevel=reading.fertilizer_level,
            timestamp=reading.timestamp,
            deviceId=reading.device_id,
            plant=reading.plant.value,
        )


class Reservoir(BaseModel):
    water: float
    waterCm: float
    fertilizer: float
    fertilizerCm: float

    @classmethod
    def from_levels(cls, levels: ReservoirLevels) -> "Reservoir":
        return cls(
            water=levels.water,
            waterCm=levels.water_cm,
            fertilizer=levels.fertilizer,
            fertilizerCm=levels.fertilizer_cm,
        )


class AveragedPoint(BaseModel):
    timestamp: str
    value: float
    count: int


class SeriesResponse(BaseModel):
    kind: str
    plant: str
    points: List[AveragedPoint]
    pending: bool = False
    error: Optional[str] = None

    @staticmethod
    def to_points(points: List[AveragedDataPoint]) -> List[AveragedPoint]:
        return [AveragedPoint(timestamp=p.timestamp, value=p.value, count=p.count) for p in points]


class ConnectionResponse(BaseModel):
    state: str
    connected: bool
    attempts: int
    maxAttempts: int
    endpoint: str
    activePlant: str
    wateringActive: bool
    lightActive: bool


class ControlResponse(BaseModel):
    action: str
    success: bool
    wateringActive: bool
    lightActive: bool
