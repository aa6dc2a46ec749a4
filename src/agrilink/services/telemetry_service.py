import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

from agrilink.connection_manager import ConnectionManager
from agrilink.event_hub import EventHub
from agrilink.models.config_data import configData
from agrilink.models.events import ControlResult, Topic
from agrilink.models.history_buffer import PlantHistory
from agrilink.models.plant import ActuatorState, PlantSelector, PlantSlot, command_to_action
from agrilink.models.sensor_reading import CombinedReading, ReservoirLevels, SensorReading
from agrilink.processing.combiner import combine
from agrilink.processing.normalizer import normalize, safe_number
from agrilink.processing.series import HistoricalSeries, SeriesKind
from agrilink.scheduler import LoopScheduler, Scheduler
from agrilink.services.command_dispatcher import CommandDispatcher
from agrilink.transport import SocketIOTransport, Transport

logger = logging.getLogger(__name__)


def parse_reservoir(payload: Any, current: ReservoirLevels) -> ReservoirLevels:
    """Build a ReservoirLevels snapshot; fields missing from payload keep their current value."""
    if not isinstance(payload, Mapping):
        return current
    return ReservoirLevels(
        water=safe_number(payload.get("water"), current.water),
        water_cm=safe_number(payload.get("waterCm"), current.water_cm),
        fertilizer=safe_number(payload.get("fertilizer"), current.fertilizer),
        fertilizer_cm=safe_number(payload.get("fertilizerCm"), current.fertilizer_cm),
    )


class TelemetryService:
    """
    Client-side state for one gateway session.

    Owns the per-device reading cache, reservoir snapshot, actuator flags and
    per-plant history, and keeps them current from gateway events. Every state
    change is published on the hub in the same turn it is applied.
    """

    def __init__(
        self,
        config: configData,
        hub: Optional[EventHub] = None,
        transport_factory: Optional[Callable[[], Transport]] = None,
        scheduler: Optional[Scheduler] = None,
        dispatcher: Optional[CommandDispatcher] = None,
    ):
        self.config = config
        self.hub = hub or EventHub()
        self.roles = config.devices
        self.scheduler = scheduler or LoopScheduler()
        self.selector = PlantSelector()
        self.actuators = ActuatorState()
        self.readings: Dict[str, SensorReading] = {}
        self.reservoir = ReservoirLevels()
        self.history: PlantHistory[SensorReading] = PlantHistory(config.history.raw_history_size)
        self.current: Optional[CombinedReading] = None
        self.series: Dict[SeriesKind, HistoricalSeries] = {}

        self.connection = ConnectionManager(
            self.hub,
            transport_factory or SocketIOTransport,
            config.connection,
            scheduler=self.scheduler,
            snapshot_request=self._snapshot_request,
        )
        self.dispatcher = dispatcher or CommandDispatcher(
            self.hub,
            config.connection.url,
            self.connection.is_connected,
            self.selector,
            self.roles,
            self.actuators,
            config.command,
        )

        self.connection.add_message_handler("initData", self._on_init_data)
        self.connection.add_message_handler("dataUpdate", self._on_data_update)
        self.connection.add_message_handler("reservoirUpdate", self._on_reservoir_update)
        self.connection.add_message_handler("controlResponse", self._on_control_response)
        self.connection.add_message_handler("commandIssued", self._on_command_issued)
        self.connection.add_message_handler("commandTimeout", self._on_command_timeout)

    @property
    def active_plant(self) -> PlantSlot:
        return self.selector.current

    async def start(self) -> bool:
        return await self.connection.connect()

    async def stop(self):
        for series in self.series.values():
            series.close()
        self.series.clear()
        await self.connection.disconnect()
        await self.dispatcher.close()

    def is_connected(self) -> bool:
        return self.connection.is_connected()

    async def set_active_plant(self, plant: PlantSlot):
        logger.info(f"🌱 Setting active plant to: {plant.value}")
        self.selector.current = plant
        # Re-emit from cached readings before telling the backend
        self._publish_combined()
        for series in self.series.values():
            series.load()
        if self.connection.is_connected():
            await self.connection.emit("setPlantType", {"plantType": plant.value})

    async def send_command(self, action: str) -> bool:
        return await self.dispatcher.send_command(action)

    async def dispatch_command(self, action: str) -> Optional[str]:
        """Like send_command, but returns the error message of this request, or None."""
        return await self.dispatcher.dispatch(action)

    def get_current_reading(self) -> Optional[CombinedReading]:
        return self.current

    def get_reservoir_levels(self) -> ReservoirLevels:
        return self.reservoir

    def get_historical_data(self, plant: Optional[PlantSlot] = None) -> List[SensorReading]:
        return self.history.get_data(plant or self.selector.current)

    def get_series(self, kind: SeriesKind) -> HistoricalSeries:
        """Chart series for kind, opened on first use and kept live afterwards."""
        series = self.series.get(kind)
        if series is None:
            history = self.config.history
            series = HistoricalSeries(
                self.hub,
                self.get_historical_data,
                kind,
                self.scheduler,
                debounce_seconds=history.debounce_seconds,
                bucket_ms=history.bucket_seconds * 1000,
                max_buckets=history.max_buckets,
                max_queued=history.raw_history_size,
            )
            series.open()
            self.series[kind] = series
        return series

    def is_watering_active(self) -> bool:
        return self.actuators.watering_active

    def is_light_active(self) -> bool:
        return self.actuators.light_active

    def _snapshot_request(self) -> Dict[str, Any]:
        return {"plantType": self.selector.current.value, "deviceIds": self.roles.device_ids()}

    def _publish_combined(self):
        combined = combine(self.readings, self.selector.current, self.roles)
        if combined is None:
            return
        self.current = combined
        self.hub.publish(Topic.DATA, combined)

    def _on_init_data(self, data: Any):
        if not isinstance(data, Mapping):
            logger.warning(f"Ignoring malformed initData: {type(data).__name__}")
            return
        logger.info("📡 Initial data received from backend")

        sensor_data = data.get("sensorData")
        if isinstance(sensor_data, Mapping):
            for device_id, payload in sensor_data.items():
                if payload is not None:
                    self.readings[device_id] = normalize(payload, device_id, self.selector.current)
            self._publish_combined()

        if data.get("reservoirLevels"):
            self.reservoir = parse_reservoir(data["reservoirLevels"], self.reservoir)
            self.hub.publish(Topic.RESERVOIR, self.reservoir)

        device_states = data.get("deviceStates")
        if isinstance(device_states, Mapping):
            climate_state = device_states.get(self.roles.climate_device)
            if isinstance(climate_state, Mapping):
                self.actuators.watering_active = bool(climate_state.get("waterPump"))
            plant_state = device_states.get(self.roles.device_for(self.selector.current))
            if isinstance(plant_state, Mapping):
                self.actuators.light_active = bool(plant_state.get("light"))

    def _on_data_update(self, update: Any):
        if not isinstance(update, Mapping) or not update.get("deviceId") or update.get("data") is None:
            logger.debug(f"Ignoring incomplete dataUpdate: {update!r}")
            return
        device_id = str(update["deviceId"])
        logger.debug(f"📊 Data update received from {device_id}")

        # Last writer wins by arrival, whatever the embedded timestamp says
        reading = normalize(update["data"], device_id, self.selector.current)
        self.readings[device_id] = reading

        try:
            plant = PlantSlot.parse(update["plantType"]) if update.get("plantType") else self.roles.plant_for(device_id)
        except ValueError:
            plant = self.roles.plant_for(device_id)
        self.history.append(plant, reading)

        self._publish_combined()

    def _on_reservoir_update(self, levels: Any):
        logger.debug(f"🚰 Reservoir update received: {levels!r}")
        self.reservoir = parse_reservoir(levels, self.reservoir)
        self.hub.publish(Topic.RESERVOIR, self.reservoir)

    def _on_control_response(self, response: Any):
        if not isinstance(response, Mapping):
            return
        logger.info(f"🎮 Control response received: {response}")
        action = str(response.get("action", ""))
        active = bool(response.get("active", False))
        self.actuators.set(action, active)

        success = bool(response.get("success"))
        message = response.get("message") or f"{action} command {'succeeded' if success else 'failed'}"
        result = ControlResult(action=action, success=success, message=str(message), active=active)
        self.hub.publish(Topic.CONTROL_SUCCESS if success else Topic.CONTROL_ERROR, result)

    def _on_command_issued(self, command: Any):
        if not isinstance(command, Mapping):
            return
        name = str(command.get("command", ""))
        logger.info(f"📤 Command issued: {name}")
        if name == "water_pump":
            self.actuators.watering_active = bool(command.get("value"))
        elif name in ("light_on", "light_off"):
            self.actuators.light_active = name == "light_on"

        self.hub.publish(Topic.CONTROL_SUCCESS, ControlResult(
            action=command_to_action(name),
            success=True,
            message=f"{name} command executed successfully",
        ))

    def _on_command_timeout(self, command: Any):
        name = str(command.get("command", "")) if isinstance(command, Mapping) else ""
        logger.warning(f"⏰ Command timeout: {name}")
        self.hub.publish(Topic.CONTROL_ERROR, ControlResult(
            action=command_to_action(name),
            success=False,
            message=f"{name} command timed out",
        ))
