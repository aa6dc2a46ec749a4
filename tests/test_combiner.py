from agrilink.models.plant import DeviceRoles, PlantSlot
from agrilink.models.sensor_reading import SensorReading
from agrilink.processing.combiner import combine


def climate_reading():
    return SensorReading(
        temperature=24.0, humidity=60.0, moisture=40.0, sunlight=700.0,
        nitrogen=1.0, phosphorus=2.0, potassium=3.0,
        water_level=80.0, fertilizer_level=11.0, device_id="esp32_1",
    )


def fertilizer_reading():
    return SensorReading(
        temperature=30.0, humidity=30.0, moisture=25.0, sunlight=300.0,
        nitrogen=10.0, phosphorus=20.0, potassium=30.0,
        water_level=5.0, fertilizer_level=55.0, device_id="esp32_2",
    )


class TestCombine:
    """Test which device feeds which field."""

    def test_level1_reading(self):
        readings = {"esp32_1": climate_reading(), "esp32_2": fertilizer_reading()}

        combined = combine(readings, PlantSlot.LEVEL1, now="2024-01-01T00:00:00.000Z")

        assert combined.plant == PlantSlot.LEVEL1
        assert combined.device_id == "esp32_1"
        assert combined.temperature == 24.0
        assert combined.humidity == 60.0
        assert combined.water_level == 80.0
        # Soil from esp32_1
        assert combined.moisture == 40.0
        assert combined.sunlight == 700.0
        assert combined.nitrogen == 1.0
        # Fertilizer tank always from esp32_2
        assert combined.fertilizer_level == 55.0
        assert combined.timestamp == "2024-01-01T00:00:00.000Z"

    def test_level2_reading(self):
        readings = {"esp32_1": climate_reading(), "esp32_2": fertilizer_reading()}

        combined = combine(readings, PlantSlot.LEVEL2)

        assert combined.device_id == "esp32_2"
        # Climate still from esp32_1
        assert combined.temperature == 24.0
        assert combined.water_level == 80.0
        # Soil from esp32_2
        assert combined.moisture == 25.0
        assert combined.sunlight == 300.0
        assert (combined.nitrogen, combined.phosphorus, combined.potassium) == (10.0, 20.0, 30.0)
        assert combined.fertilizer_level == 55.0

    def test_missing_fertilizer_device(self):
        combined = combine({"esp32_1": climate_reading()}, PlantSlot.LEVEL1)
        assert combined.fertilizer_level == 0.0

    def test_missing_climate_device(self):
        combined = combine({"esp32_2": fertilizer_reading()}, PlantSlot.LEVEL2)

        assert combined.temperature == 20.0
        assert combined.humidity == 50.0
        assert combined.water_level == 0.0
        assert combined.moisture == 25.0

    def test_no_readings(self):
        assert combine({}, PlantSlot.LEVEL1) is None

    def test_unrelated_devices_only(self):
        assert combine({"esp32_9": climate_reading()}, PlantSlot.LEVEL1) is None

    def test_custom_roles(self):
        roles = DeviceRoles(
            climate_device="climate",
            fertilizer_device="tank",
            plant_devices={PlantSlot.LEVEL1: "bed_a", PlantSlot.LEVEL2: "bed_b"},
        )
        readings = {
            "climate": climate_reading(),
            "bed_b": fertilizer_reading(),
            "tank": SensorReading(fertilizer_level=42.0),
        }

        combined = combine(readings, PlantSlot.LEVEL2, roles)

        assert combined.device_id == "bed_b"
        assert combined.temperature == 24.0
        assert combined.moisture == 25.0
        assert combined.fertilizer_level == 42.0
