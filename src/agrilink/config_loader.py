import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from agrilink.models.config_data import (
    commandConfigData,
    configData,
    connectionConfigData,
    historyConfigData,
)
from agrilink.models.plant import DeviceRoles, PlantSlot

logger = logging.getLogger(__name__)

BACKEND_URL_ENV = "BACKEND_URL"


class ConfigLoader:
    """Loads telemetry client configuration from a JSON file."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.get_config_path()
        self._config = self._get_default_config()
        self.load_config()

    @staticmethod
    def get_config_path() -> Path:
        """Get the path to the telemetry_config.json file."""
        # Config file lives in the project root/config directory
        return Path(__file__).parent.parent.parent / "config" / "telemetry_config.json"

    def load_config(self):
        """Load configuration from JSON file, then apply environment overrides."""
        # Start from defaults so a partial file still yields a full config
        self._config = self._get_default_config()

        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}, using defaults")
        else:
            try:
                with open(self.config_path, 'r') as f:
                    json_data = json.load(f)
                self._config = self._parse(json_data)
                logger.info(f"Configuration loaded from {self.config_path}")

            except json.JSONDecodeError as e:
                logger.error(f"Failed to parse configuration file: {e}")
                self._config = self._get_default_config()

            except (TypeError, ValueError, KeyError, AttributeError) as e:
                logger.error(f"Invalid configuration in {self.config_path}: {e}")
                self._config = self._get_default_config()

        url = os.getenv(BACKEND_URL_ENV)
        if url:
            self._config.connection.url = url
            logger.info(f"Backend URL overridden from environment: {url}")

    @staticmethod
    def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
        """Return the object stored under key, or {} when it is absent."""
        section = data.get(key, {})
        if not isinstance(section, dict):
            raise ValueError(f"\"{key}\" must be an object, got {type(section).__name__}")
        return section

    @classmethod
    def _parse(cls, json_data: Any) -> configData:
        if not isinstance(json_data, dict):
            raise ValueError(f"top level must be an object, got {type(json_data).__name__}")
        defaults = configData()
        conn = cls._section(json_data, "connection")
        hist = cls._section(json_data, "history")
        cmd = cls._section(json_data, "command")
        dev = cls._section(json_data, "devices")

        connection = connectionConfigData(
            url=conn.get("url", defaults.connection.url),
            max_attempts=int(conn.get("max_attempts", defaults.connection.max_attempts)),
            base_delay=float(conn.get("base_delay", defaults.connection.base_delay)),
            cap_delay=float(conn.get("cap_delay", defaults.connection.cap_delay)),
            backoff_multiplier=float(conn.get("backoff_multiplier", defaults.connection.backoff_multiplier)),
            connect_timeout=float(conn.get("connect_timeout", defaults.connection.connect_timeout)),
        )
        history = historyConfigData(
            bucket_seconds=int(hist.get("bucket_seconds", defaults.history.bucket_seconds)),
            max_buckets=int(hist.get("max_buckets", defaults.history.max_buckets)),
            raw_history_size=int(hist.get("raw_history_size", defaults.history.raw_history_size)),
            debounce_seconds=float(hist.get("debounce_seconds", defaults.history.debounce_seconds)),
        )
        command = commandConfigData(
            value=int(cmd.get("value", defaults.command.value)),
            duration_ms=int(cmd.get("duration_ms", defaults.command.duration_ms)),
            request_timeout=float(cmd.get("request_timeout", defaults.command.request_timeout)),
        )
        plant_devices = dict(defaults.devices.plant_devices)
        for plant_key, device_id in cls._section(dev, "plants").items():
            plant_devices[PlantSlot.parse(plant_key)] = device_id
        devices = DeviceRoles(
            climate_device=dev.get("climate", defaults.devices.climate_device),
            fertilizer_device=dev.get("fertilizer", defaults.devices.fertilizer_device),
            plant_devices=plant_devices,
        )
        return configData(connection=connection, history=history, command=command, devices=devices)

    @staticmethod
    def _get_default_config() -> configData:
        """Return default configuration."""
        return configData()

    def get_config(self) -> configData:
        return self._config
