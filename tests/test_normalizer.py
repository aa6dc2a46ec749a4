import math

import pytest

from agrilink.models.plant import PlantSlot
from agrilink.processing.normalizer import normalize, safe_number


class TestSafeNumber:
    """Test coercion of raw payload values."""

    @pytest.mark.parametrize("value, expected", [
        (42, 42.0),
        ("37.5", 37.5),
        (" 12 ", 12.0),
        (0, 0.0),
    ])
    def test_parses_numbers(self, value, expected):
        assert safe_number(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", [], {}, float("nan"), float("inf")])
    def test_unusable_values_use_default(self, value):
        assert safe_number(value, 7.0) == 7.0


class TestNormalize:
    """Test field aliasing and defaults."""

    def test_full_payload(self):
        reading = normalize({
            "temperature": 24.5,
            "humidity": "61",
            "moisture_percent": 40,
            "lux": 800,
            "npk": {"N": 10, "P": 20, "K": 30},
            "waterLevelPercent": 85,
            "fertilizer_level": 55,
            "timestamp": "2024-01-01T00:00:10Z",
        }, device_id="esp32_1")

        assert reading.temperature == 24.5
        assert reading.humidity == 61.0
        assert reading.moisture == 40.0
        assert reading.sunlight == 800.0
        assert (reading.nitrogen, reading.phosphorus, reading.potassium) == (10.0, 20.0, 30.0)
        assert reading.water_level == 85.0
        assert reading.fertilizer_level == 55.0
        assert reading.timestamp == "2024-01-01T00:00:10Z"
        assert reading.device_id == "esp32_1"

    def test_alias_priority(self):
        """The first alias present wins over later ones."""
        reading = normalize({
            "soil_moisture_percent": 33,
            "moisture": 99,
            "lightLevel": 120,
            "ldr": 5,
            "waterLevel": 70,
            "fertilizerLevel": 44,
        })

        assert reading.moisture == 33.0
        assert reading.sunlight == 120.0
        assert reading.water_level == 70.0
        assert reading.fertilizer_level == 44.0

    def test_null_alias_falls_through(self):
        reading = normalize({"moisture_percent": None, "moisture": 21})
        assert reading.moisture == 21.0

    def test_flat_npk_fields(self):
        reading = normalize({"nitrogen": 1, "phosphorus": "2", "potassium": 3})
        assert (reading.nitrogen, reading.phosphorus, reading.potassium) == (1.0, 2.0, 3.0)

    def test_nested_npk_preferred_over_flat(self):
        reading = normalize({"npk": {"N": 5}, "nitrogen": 50, "potassium": 70})
        assert (reading.nitrogen, reading.phosphorus, reading.potassium) == (5.0, 0.0, 0.0)

    def test_empty_payload_uses_defaults(self):
        reading = normalize({})

        assert reading.temperature == 20.0
        assert reading.humidity == 50.0
        assert reading.moisture == 0.0
        assert reading.sunlight == 0.0
        assert reading.water_level == 0.0
        assert reading.fertilizer_level == 0.0
        assert reading.timestamp  # filled with the current time

    @pytest.mark.parametrize("raw", [None, "garbage", 42, ["list"]])
    def test_non_object_payload(self, raw):
        reading = normalize(raw, device_id="esp32_2", active_plant=PlantSlot.LEVEL2)
        assert reading.temperature == 20.0
        assert reading.device_id == "esp32_2"

    def test_never_produces_nan(self):
        reading = normalize({"temperature": "NaN", "humidity": "n/a", "lux": float("inf")})

        for value in (reading.temperature, reading.humidity, reading.sunlight):
            assert math.isfinite(value)
        assert reading.temperature == 20.0
        assert reading.humidity == 50.0
        assert reading.sunlight == 0.0

    def test_numeric_timestamp_converted_to_iso(self):
        reading = normalize({"timestamp": 1704067210000})
        assert reading.timestamp == "2024-01-01T00:00:10.000Z"
