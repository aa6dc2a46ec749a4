"""Topics published on the event hub and the payload carried by each."""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from agrilink.models.sensor_reading import CombinedReading, ReservoirLevels
from agrilink.models.timestamps import utc_now_iso


class Topic(Enum):
    DATA = "data"
    RESERVOIR = "reservoir"
    CONNECTION = "connection"
    ALERT = "alert"
    CONTROL_SUCCESS = "controlSuccess"
    CONTROL_ERROR = "controlError"
    ERROR = "error"


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool


@dataclass(frozen=True)
class Alert:
    """Informational notice for the user (connection established, restored...)."""
    message: str
    type: str = "info"
    id: str = field(default_factory=lambda: str(int(time.time() * 1000)))
    timestamp: str = field(default_factory=utc_now_iso)
    read: bool = False


@dataclass(frozen=True)
class ControlResult:
    """Outcome of an actuator command."""
    action: str
    success: bool
    message: str
    timestamp: str = field(default_factory=utc_now_iso)
    active: Optional[bool] = None


@dataclass(frozen=True)
class ErrorNotice:
    message: str
    details: str = ""
    attempts: int = 0
    endpoint: str = ""


# Payload type accepted on each topic
TOPIC_PAYLOADS = {
    Topic.DATA: CombinedReading,
    Topic.RESERVOIR: ReservoirLevels,
    Topic.CONNECTION: ConnectionStatus,
    Topic.ALERT: Alert,
    Topic.CONTROL_SUCCESS: ControlResult,
    Topic.CONTROL_ERROR: ControlResult,
    Topic.ERROR: ErrorNotice,
}
