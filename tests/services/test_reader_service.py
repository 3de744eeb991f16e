"""Tests para el servicio asíncrono del lector."""

import asyncio
from unittest.mock import MagicMock

import pytest

from adapters.interfaces import ServiceStatus
from api.websocket_manager import ConnectionManager
from core.entities.hardware import HardwareInfo, HardwareType
from modules.icreader_config import ReaderSettings
from modules.icreader_hardware import DeviceCatalog
from modules.icreader_serial import SerialLink
from modules.icreader_serial.frame import Command, build_command
from modules.icreader_session import SessionState
from services.reader_service import BroadcastEventSink, ReaderService


async def wait_until(predicate, timeout: float = 2.0) -> bool:
    """Cede el loop hasta que se cumple la condición."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


@pytest.fixture
def manager():
    manager = MagicMock(spec=ConnectionManager)
    manager.get_connection_count.return_value = 0
    return manager


@pytest.fixture
def make_service(manager, fake_port_factory):
    """Crea un ReaderService sobre puertos simulados."""
    def _make(available=("/dev/ttyS0",), detector=None, history=50):
        settings = ReaderSettings(read_timeout=0.05, open_retry_delay=0, event_history=history)
        factory = fake_port_factory(available=available)
        catalog = DeviceCatalog.from_paths(["/dev/ttyS0"], probe=lambda p: True)
        link = SerialLink(port_factory=factory, settings=settings)
        service = ReaderService(
            settings=settings, manager=manager, catalog=catalog, link=link, detector=detector
        )
        return service, factory
    return _make


class TestReaderService:
    """Tests del ciclo de vida y comandos del servicio."""

    @pytest.mark.asyncio
    async def test_initialize_broadcasts_connection(self, make_service, manager):
        """Test inicialización exitosa con broadcast de estado."""
        service, factory = make_service()
        await service.start()
        assert service.status == ServiceStatus.RUNNING

        result = await service.initialize_reader()

        assert result["success"] is True
        assert result["devicePath"] == "/dev/ttyS0"
        assert await wait_until(lambda: manager.broadcast_reader_status.await_count >= 1)
        assert manager.broadcast_reader_status.await_args.args == (True, {"devicePath": "/dev/ttyS0"})

        await service.stop()
        assert service.status == ServiceStatus.STOPPED
        assert service.session.state == SessionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_initialize_failure(self, make_service, manager):
        """Test sin lector disponible: error 1001 difundido."""
        service, factory = make_service(available=())
        await service.start()

        result = await service.initialize_reader()

        assert result["success"] is False
        assert "/dev/ttyS0" in result["error"]
        assert await wait_until(lambda: manager.broadcast_error.await_count >= 1)
        message, code = manager.broadcast_error.await_args.args
        assert code == 1001

        await service.stop()

    @pytest.mark.asyncio
    async def test_read_card_without_initialize(self, make_service):
        """Test lectura sin lector inicializado."""
        service, factory = make_service()
        await service.start()

        result = await service.read_card()

        assert result["success"] is False
        assert result["code"] == 1001
        assert "inicializado" in result["message"]

        await service.stop()

    @pytest.mark.asyncio
    async def test_command_error_is_not_a_previous_one(self, make_service):
        """Test el error devuelto es el de este comando, no uno anterior."""
        service, factory = make_service()
        await service.start()
        service.sink.on_error("Error enviando comando a /dev/ttyS0", 1002)

        result = await service.read_card()

        assert result["success"] is False
        assert result["code"] == 1001
        assert "inicializado" in result["message"]

        await service.initialize_reader()
        factory.ports["/dev/ttyS0"].fail_write = OSError(5, "Input/output error")
        beep = await service.beep()
        assert beep["code"] == 1002

        factory.ports["/dev/ttyS0"].fail_write = None
        assert (await service.beep())["success"] is True

        await service.stop()

    @pytest.mark.asyncio
    async def test_card_event_is_broadcast_and_recorded(self, make_service, manager):
        """Test lectura aceptada: broadcast y eventos recientes."""
        service, factory = make_service()
        await service.start()
        await service.initialize_reader("/dev/ttyS0")
        port = factory.ports["/dev/ttyS0"]

        port.inject(build_command(Command.READ_CARD, bytes.fromhex("4404A1B2C3D49000")))

        assert await wait_until(lambda: manager.broadcast_card_event.await_count == 1)
        card = manager.broadcast_card_event.await_args.args[0]
        assert card["cardId"] == "A1B2C3D4"
        assert card["cardType"] == "BANK_CARD_ISO14443A"
        assert card["readerType"] == "IC_SERIAL"
        assert service.recent_events() == [card]

        await service.stop()

    @pytest.mark.asyncio
    async def test_commands_when_connected(self, make_service):
        service, factory = make_service()
        await service.start()
        await service.initialize_reader()

        assert (await service.read_card())["success"] is True
        assert (await service.start_reading())["success"] is True
        assert service.session.state == SessionState.READING

        stopped = await service.stop_reading()
        assert stopped["success"] is True
        assert service.session.state == SessionState.CONNECTED

        disconnected = await service.disconnect_reader()
        assert disconnected == {"success": True, "message": "Lector desconectado"}
        again = await service.disconnect_reader()
        assert again["message"] == "El lector ya estaba desconectado"

        await service.stop()

    @pytest.mark.asyncio
    async def test_status_and_health(self, make_service):
        service, factory = make_service()
        await service.start()

        status = await service.get_status()
        health = await service.health_check()

        assert status["connected"] is False
        assert status["state"] == "disconnected"
        assert health["status"] == "running"
        assert health["websocket_clients"] == 0
        assert "bytes_sent" in health["stats"]

        await service.stop()

    @pytest.mark.asyncio
    async def test_detect_hardware(self, make_service):
        """Test detección delegada al detector."""
        detector = MagicMock()
        remote = HardwareInfo(
            type=HardwareType.REMOTE_CLOUD, device_path=None, description="Remoto", available=True
        )
        detector.detect_all.return_value = [remote]
        detector.preferred.return_value = remote
        service, factory = make_service(detector=detector)

        detected = await service.detect_hardware()
        preferred = await service.preferred_hardware()

        assert detected == [remote.to_dict()]
        assert preferred["type"] == "remote_cloud"

    @pytest.mark.asyncio
    async def test_auto_initialize(self, make_service):
        detector = MagicMock()
        detector.preferred.return_value = HardwareInfo(
            type=HardwareType.IC_CARD_READER, device_path="/dev/ttyS0",
            description="Lector", available=True
        )
        service, factory = make_service(detector=detector)
        await service.start()

        result = await service.initialize_reader(auto=True)

        assert result["success"] is True
        detector.preferred.assert_called_once()

        await service.stop()


class TestBroadcastEventSink:
    """Tests del receptor de eventos con broadcast."""

    def test_without_loop_only_records(self, manager):
        sink = BroadcastEventSink(manager, history=2)
        event = MagicMock()
        event.to_dict.side_effect = [{"cardId": str(i)} for i in range(3)]

        for _ in range(3):
            sink.on_card_detected(event)

        assert sink.recent_events() == [{"cardId": "1"}, {"cardId": "2"}]
        manager.broadcast_card_event.assert_not_called()

    def test_error_is_remembered(self):
        sink = BroadcastEventSink()
        sink.on_error("fallo", 1002)
        assert sink.last_error == {"message": "fallo", "code": 1002}
