"""Plant slots and the device roles that feed them."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List


class PlantSlot(Enum):
    """Enumeration of the two monitored plant slots."""
    LEVEL1 = "level1"
    LEVEL2 = "level2"

    @classmethod
    def parse(cls, value: str) -> "PlantSlot":
        """Return the slot for a wire value such as "level2" (case-insensitive)."""
        try:
            return cls(value.strip().lower())
        except (AttributeError, ValueError):
            raise ValueError(f"Invalid plant: {value}. Valid values are: {', '.join(s.value for s in cls)}") from None


class ActuatorKind(Enum):
    """Commands accepted by the gateway."""
    WATER = "water"
    LIGHT = "light"
    NUTRIENTS = "nutrients"


# Gateway command names -> action reported to consumers
COMMAND_ACTIONS: Dict[str, str] = {
    "water_pump": ActuatorKind.WATER.value,
    "light_on": ActuatorKind.LIGHT.value,
    "light_off": ActuatorKind.LIGHT.value,
    "led": ActuatorKind.LIGHT.value,
    "add_nutrients": ActuatorKind.NUTRIENTS.value,
    "fert_pump": ActuatorKind.NUTRIENTS.value,
}


def command_to_action(command: str) -> str:
    """Map a gateway command name to its action, unknown names pass through."""
    return COMMAND_ACTIONS.get(command, command)


@dataclass
class DeviceRoles:
    """
    Which device supplies which part of a plant reading.

    climate_device: temperature, humidity and water level
    fertilizer_device: fertilizer level
    plant_devices: soil readings (moisture, light, NPK) per plant slot
    """
    climate_device: str = "esp32_1"
    fertilizer_device: str = "esp32_2"
    plant_devices: Dict[PlantSlot, str] = field(default_factory=lambda: {
        PlantSlot.LEVEL1: "esp32_1",
        PlantSlot.LEVEL2: "esp32_2",
    })

    def device_for(self, plant: PlantSlot) -> str:
        return self.plant_devices[plant]

    def plant_for(self, device_id: str) -> PlantSlot:
        """Slot whose soil readings come from device_id (first slot if unknown)."""
        for plant, device in self.plant_devices.items():
            if device == device_id:
                return plant
        return PlantSlot.LEVEL1

    def device_ids(self) -> List[str]:
        ids = [self.climate_device, *self.plant_devices.values(), self.fertilizer_device]
        return list(dict.fromkeys(ids))


@dataclass
class PlantSelector:
    """Holds the active plant slot for one service instance."""
    current: PlantSlot = PlantSlot.LEVEL1


@dataclass
class ActuatorState:
    watering_active: bool = False
    light_active: bool = False

    def toggle(self, action: str) -> None:
        if action == ActuatorKind.WATER.value:
            self.watering_active = not self.watering_active
        elif action == ActuatorKind.LIGHT.value:
            self.light_active = not self.light_active

    def set(self, action: str, active: bool) -> None:
        if action == ActuatorKind.WATER.value:
            self.watering_active = active
        elif action == ActuatorKind.LIGHT.value:
            self.light_active = active
