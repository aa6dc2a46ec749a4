from dataclasses import dataclass, field

from agrilink.models.plant import DeviceRoles

DEFAULT_BACKEND_URL = "https://smart-agri-backend-ysjs.onrender.com"


@dataclass
class connectionConfigData:
    url: str = DEFAULT_BACKEND_URL
    max_attempts: int = 5
    base_delay: float = 5.0  # seconds before the first retry
    cap_delay: float = 20.0
    backoff_multiplier: float = 1.5
    connect_timeout: float = 20.0  # per-attempt watchdog


@dataclass
class historyConfigData:
    bucket_seconds: int = 300
    max_buckets: int = 60
    raw_history_size: int = 100  # readings kept per plant
    debounce_seconds: float = 30.0


@dataclass
class commandConfigData:
    value: int = 1
    duration_ms: int = 3000
    request_timeout: float = 10.0


@dataclass
class configData:
    connection: connectionConfigData = field(default_factory=connectionConfigData)
    history: historyConfigData = field(default_factory=historyConfigData)
    command: commandConfigData = field(default_factory=commandConfigData)
    devices: DeviceRoles = field(default_factory=DeviceRoles)
