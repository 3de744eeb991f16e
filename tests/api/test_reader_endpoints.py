"""Tests para endpoints REST del lector."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_reader_service
from api.main import app
from services.reader_service import ReaderService


STATUS = {
    "connected": True,
    "devicePath": "/dev/ttyS0",
    "readerType": "IC_SERIAL",
    "state": "connected",
    "firmwareVersion": "V2.5",
}


class TestReaderEndpoints:
    """Tests para los endpoints /api/v1/reader y /api/v1/hardware."""

    @pytest.fixture
    def service(self):
        """ReaderService simulado."""
        service = MagicMock(spec=ReaderService)
        service.get_status.return_value = STATUS
        service.recent_events.return_value = []
        return service

    @pytest.fixture
    def client(self, service):
        """Cliente de prueba FastAPI con el servicio inyectado."""
        app.dependency_overrides[get_reader_service] = lambda: service
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_root_endpoint(self, client):
        """Test endpoint raíz."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["message"] == "IC Reader Bridge API"
        assert data["docs"] == "/docs"

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_initialize_success(self, client, service):
        """Test inicialización exitosa."""
        service.initialize_reader.return_value = {
            "success": True,
            "message": "Lector conectado en /dev/ttyS0",
            "devicePath": "/dev/ttyS0",
            "error": None,
        }

        response = client.post("/api/v1/reader/initialize", json={"device_path": "/dev/ttyS0"})

        assert response.status_code == 200
        assert response.json()["devicePath"] == "/dev/ttyS0"
        service.initialize_reader.assert_awaited_once_with("/dev/ttyS0", False)

    def test_initialize_failure(self, client, service):
        """Test inicialización fallida: 503."""
        service.initialize_reader.return_value = {
            "success": False,
            "message": "No se pudo inicializar el lector",
            "devicePath": "/dev/ttyUSB0",
            "error": "No se encontró ningún lector",
        }

        response = client.post("/api/v1/reader/initialize", json={"auto": True})

        assert response.status_code == 503
        assert response.json()["detail"] == "No se encontró ningún lector"
        service.initialize_reader.assert_awaited_once_with(None, True)

    @pytest.mark.parametrize("endpoint,method", [
        ("/api/v1/reader/read", "read_card"),
        ("/api/v1/reader/start", "start_reading"),
        ("/api/v1/reader/beep", "beep"),
    ])
    def test_commands(self, client, service, endpoint, method):
        getattr(service, method).return_value = {"success": True, "message": "ok"}

        response = client.post(endpoint)

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_command_without_reader_is_conflict(self, client, service):
        """Test comando sin lector inicializado: 409."""
        service.read_card.return_value = {
            "success": False,
            "message": "El lector no está inicializado (estado: disconnected)",
            "code": 1001,
        }

        response = client.post("/api/v1/reader/read")

        assert response.status_code == 409
        assert "inicializado" in response.json()["detail"]

    def test_stop_and_disconnect(self, client, service):
        service.stop_reading.return_value = {"success": True, "message": "Lectura continua detenida"}
        service.disconnect_reader.return_value = {"success": True, "message": "Lector desconectado"}

        assert client.post("/api/v1/reader/stop").status_code == 200
        assert client.post("/api/v1/reader/disconnect").json()["message"] == "Lector desconectado"

    def test_status(self, client):
        response = client.get("/api/v1/reader/status")

        assert response.status_code == 200
        assert response.json() == STATUS

    def test_events_limit(self, client, service):
        """Test eventos recientes limitados a los últimos N."""
        service.recent_events.return_value = [{"cardId": str(i)} for i in range(5)]

        response = client.get("/api/v1/reader/events", params={"limit": 2})

        assert response.json() == [{"cardId": "3"}, {"cardId": "4"}]
        assert client.get("/api/v1/reader/events", params={"limit": 0}).status_code == 422

    def test_detect_hardware(self, client, service):
        service.detect_hardware.return_value = [{
            "type": "ic_card_reader",
            "devicePath": "/dev/ttyS0",
            "description": "Lector IC (UART)",
            "available": True,
            "properties": {"transport": "UART"},
        }, {
            "type": "remote_cloud",
            "devicePath": None,
            "description": "Servicio remoto",
            "available": True,
            "properties": {},
        }]

        response = client.get("/api/v1/hardware/detect")

        assert response.status_code == 200
        assert [h["type"] for h in response.json()] == ["ic_card_reader", "remote_cloud"]

    def test_detect_hardware_error(self, client, service):
        service.detect_hardware.side_effect = RuntimeError("sysfs")

        response = client.get("/api/v1/hardware/detect")

        assert response.status_code == 500

    def test_preferred_hardware_missing(self, client, service):
        service.preferred_hardware.return_value = None
        assert client.get("/api/v1/hardware/preferred").status_code == 404


class TestServiceUnavailable:
    """Tests sin servicio inicializado."""

    def test_reader_endpoint_returns_503(self):
        app.dependency_overrides.clear()
        client = TestClient(app)

        response = client.get("/api/v1/reader/status")

        assert response.status_code == 503
        assert response.json()["detail"] == "Reader service not available"
