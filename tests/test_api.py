import pytest
from fastapi.testclient import TestClient

from agrilink.services.command_dispatcher import NOT_CONNECTED_MESSAGE
from main import app
from routers.dependencies import get_service

client = TestClient(app)


@pytest.fixture(autouse=True)
def override_service(service):
    app.dependency_overrides[get_service] = lambda: service
    yield
    app.dependency_overrides.clear()


def feed(service, device_id, data):
    service._on_data_update({"deviceId": device_id, "data": data})


class TestMeta:
    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_root(self):
        response = client.get("/")
        assert response.status_code == 200
        assert "message" in response.json()


class TestPlantRoutes:
    """Test the plant endpoints."""

    def test_current_without_data(self):
        response = client.get("/api/plant/current")
        assert response.status_code == 404

    def test_current_reading(self, service):
        feed(service, "esp32_1", {"temperature": 23.5, "moisture_percent": 41})
        feed(service, "esp32_2", {"fertilizer_level": 52})

        response = client.get("/api/plant/current")

        assert response.status_code == 200
        data = response.json()
        assert data["plant"] == "level1"
        assert data["deviceId"] == "esp32_1"
        assert data["temperature"] == 23.5
        assert data["moisture"] == 41
        assert data["fertilizerLevel"] == 52

    def test_select_plant(self, service):
        feed(service, "esp32_2", {"soil_moisture_percent": 19})

        response = client.put("/api/plant/level2")

        assert response.status_code == 204
        assert client.get("/api/plant/current").json()["moisture"] == 19

    def test_select_unknown_plant(self):
        response = client.put("/api/plant/level3")
        assert response.status_code == 400
        assert "Invalid plant" in response.json()["detail"]

    def test_reservoir_defaults(self):
        response = client.get("/api/plant/reservoir")
        assert response.json() == {"water": 75, "waterCm": 15, "fertilizer": 60, "fertilizerCm": 12}

    def test_history_without_data(self):
        response = client.get("/api/plant/history/moisture")

        assert response.status_code == 200
        data = response.json()
        assert data["points"] == []
        assert data["error"] == "No data available from the server"

    def test_history(self, service):
        feed(service, "esp32_1", {"temperature": 20, "timestamp": "2024-01-01T00:00:10Z"})
        feed(service, "esp32_1", {"temperature": 30, "timestamp": "2024-01-01T00:01:00Z"})

        data = client.get("/api/plant/history/temperature").json()

        assert data["kind"] == "temperature"
        assert data["plant"] == "level1"
        assert data["points"] == [{"timestamp": "2024-01-01T00:00:00Z", "value": 25.0, "count": 2}]
        assert data["error"] is None

    def test_history_unknown_kind(self):
        response = client.get("/api/plant/history/pressure")
        assert response.status_code == 400


class TestControlRoutes:
    """Test the command endpoint."""

    def test_command_while_disconnected(self):
        response = client.post("/api/control/water")

        assert response.status_code == 503
        assert response.json()["detail"] == NOT_CONNECTED_MESSAGE

    def test_unknown_action(self):
        response = client.post("/api/control/dance")
        assert response.status_code == 400

    def test_backend_rejection(self, service, monkeypatch):
        async def dispatch_command(action):
            return "Device offline"

        monkeypatch.setattr(service, "dispatch_command", dispatch_command)
        response = client.post("/api/control/light")

        assert response.status_code == 502
        assert response.json()["detail"] == "Device offline"

    def test_success(self, service, monkeypatch):
        sent = []

        async def dispatch_command(action):
            sent.append(action)
            service.actuators.toggle(action)
            return None

        monkeypatch.setattr(service, "dispatch_command", dispatch_command)
        response = client.post("/api/control/water")

        assert response.status_code == 200
        assert response.json()["wateringActive"] is True
        assert sent == ["water"]


class TestConnectionRoutes:
    """Test the connection status endpoints."""

    def test_status(self):
        data = client.get("/api/connection").json()

        assert data["state"] == "disconnected"
        assert data["connected"] is False
        assert data["attempts"] == 0
        assert data["maxAttempts"] == 5
        assert data["activePlant"] == "level1"
        assert data["wateringActive"] is False

    def test_connect_accepted(self, service):
        started = []

        async def start():
            started.append(True)
            return True

        service.start = start
        response = client.post("/api/connection/connect")

        assert response.status_code == 202
        assert response.json()["endpoint"] == service.connection.url


class TestOpenAPIExport:
    def test_export_writes_schema(self, tmp_path):
        import importlib.util
        from pathlib import Path

        script = Path(__file__).parent.parent / "scripts" / "export_openapi.py"
        spec = importlib.util.spec_from_file_location("export_openapi", script)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        schema = module.export(tmp_path / "docs" / "openapi.json")

        assert (tmp_path / "docs" / "openapi.json").exists()
        assert "/api/plant/current" in schema["paths"]
        assert "/api/control/{action}" in schema["paths"]
