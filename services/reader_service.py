"""Reader service para exponer el lector IC a la API."""

import asyncio
import functools
import logging
import threading
from collections import deque
from typing import Any, Callable, Dict, List, Optional

from adapters.interfaces import ReaderServiceInterface, ServiceStatus, WebSocketManagerInterface
from core.entities.card import CardEvent
from modules.icreader_config import ReaderSettings
from modules.icreader_hardware import DeviceCatalog, HardwareDetector
from modules.icreader_serial import SerialLink
from modules.icreader_session import CardReaderSession, CommandResult, ReaderEventSink

logger = logging.getLogger(__name__)


class BroadcastEventSink(ReaderEventSink):
    """Reenvía los eventos del lector al loop asyncio y a los clientes WebSocket.

    Los eventos llegan desde los hilos del motor; cada broadcast se agenda en
    el loop con ``asyncio.run_coroutine_threadsafe``.
    """

    def __init__(self, manager: Optional[WebSocketManagerInterface] = None, history: int = 50):
        self.manager = manager
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()
        self._events: deque = deque(maxlen=history)
        self.last_error: Optional[Dict[str, Any]] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Asocia el loop donde se ejecutan los broadcasts."""
        self._loop = loop

    def recent_events(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._events)

    def on_connected(self, device_path: str) -> None:
        self._schedule(lambda m: m.broadcast_reader_status(True, {"devicePath": device_path}))

    def on_disconnected(self) -> None:
        self._schedule(lambda m: m.broadcast_reader_status(False))

    def on_card_detected(self, event: CardEvent) -> None:
        card = event.to_dict()
        with self._lock:
            self._events.append(card)
        self._schedule(lambda m: m.broadcast_card_event(card))

    def on_error(self, message: str, code: int) -> None:
        self.last_error = {"message": message, "code": code}
        logger.warning(f"Error del lector ({code}): {message}")
        self._schedule(lambda m: m.broadcast_error(message, code))

    def _schedule(self, factory: Callable[[WebSocketManagerInterface], Any]) -> None:
        loop = self._loop
        if self.manager is None or loop is None or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(factory(self.manager), loop)


class ReaderService(ReaderServiceInterface):
    """Servicio asíncrono sobre la sesión de lectura.

    Las operaciones bloqueantes del motor serie se ejecutan en el executor
    por defecto del loop.
    """

    def __init__(self,
                 settings: Optional[ReaderSettings] = None,
                 manager: Optional[WebSocketManagerInterface] = None,
                 catalog: Optional[DeviceCatalog] = None,
                 link: Optional[SerialLink] = None,
                 detector: Optional[HardwareDetector] = None):
        """Inicializar el servicio del lector.

        Args:
            settings: Configuración del lector
            manager: Gestor WebSocket para broadcast de eventos
            catalog: Catálogo de interfaces candidatas
            link: Enlace serie a usar
            detector: Detector de hardware
        """
        super().__init__()
        self.settings = settings or ReaderSettings()
        self.sink = BroadcastEventSink(manager, history=self.settings.event_history)
        self.session = CardReaderSession(self.sink, catalog=catalog, link=link, settings=self.settings)
        self.detector = detector or HardwareDetector(self.session.catalog)
        logger.info("ReaderService inicializado")

    async def initialize(self) -> None:
        self.sink.bind_loop(asyncio.get_running_loop())

    async def start(self) -> None:
        await self.initialize()
        self._set_status(ServiceStatus.RUNNING)

    async def stop(self) -> None:
        self._set_status(ServiceStatus.STOPPING)
        await self._run(self.session.disconnect)
        self._set_status(ServiceStatus.STOPPED)

    async def detect_hardware(self) -> List[Dict[str, Any]]:
        """Detecta el hardware de lectura disponible."""
        detected = await self._run(self.detector.detect_all)
        return [info.to_dict() for info in detected]

    async def preferred_hardware(self) -> Optional[Dict[str, Any]]:
        """Hardware preferido según la prioridad."""
        info = await self._run(self.detector.preferred)
        return info.to_dict() if info else None

    async def initialize_reader(self, device_path: Optional[str] = None, auto: bool = False) -> Dict[str, Any]:
        """Conecta con el lector.

        Args:
            device_path: Ruta a probar primero
            auto: Usar el lector IC preferido del detector

        Returns:
            Resultado de la inicialización
        """
        if auto and not device_path:
            result = await self._run(self.session.auto_initialize, self.detector)
        else:
            result = await self._run(self.session.initialize, device_path)

        if result.success:
            logger.info(f"Lector inicializado en {result.device_path}")
            message = f"Lector conectado en {result.device_path}"
        else:
            message = "No se pudo inicializar el lector"

        return {
            "success": result.success,
            "message": message,
            "devicePath": result.device_path,
            "error": result.error,
        }

    async def read_card(self) -> Dict[str, Any]:
        """Envía un comando de lectura única."""
        result = await self._run(self.session.read_single_card)
        return self._command_result(result, "Comando de lectura enviado")

    async def start_reading(self) -> Dict[str, Any]:
        """Inicia la lectura continua."""
        result = await self._run(self.session.start_continuous_reading)
        return self._command_result(result, "Lectura continua iniciada")

    async def stop_reading(self) -> Dict[str, Any]:
        """Detiene la lectura continua."""
        stopped = await self._run(self.session.stop_card_reading)
        message = "Lectura continua detenida" if stopped else "La lectura continua no estaba activa"
        return {"success": True, "message": message}

    async def disconnect_reader(self) -> Dict[str, Any]:
        """Desconecta el lector."""
        closed = await self._run(self.session.disconnect)
        message = "Lector desconectado" if closed else "El lector ya estaba desconectado"
        return {"success": True, "message": message}

    async def beep(self) -> Dict[str, Any]:
        """Hace sonar el lector."""
        result = await self._run(self.session.beep)
        return self._command_result(result, "Pitido enviado")

    async def get_status(self) -> Dict[str, Any]:
        """Estado del lector."""
        return self.session.status()

    def recent_events(self) -> List[Dict[str, Any]]:
        """Últimas lecturas aceptadas, de la más antigua a la más reciente."""
        return self.sink.recent_events()

    async def health_check(self) -> Dict[str, Any]:
        manager = self.sink.manager
        return {
            "status": self.status.value,
            "reader": self.session.status(),
            "stats": self.session.link.stats,
            "websocket_clients": manager.get_connection_count() if manager else 0,
        }

    def _command_result(self, result: CommandResult, message: str) -> Dict[str, Any]:
        if result:
            return {"success": True, "message": message}
        return {
            "success": False,
            "message": result.message or "Operación fallida",
            "code": result.code,
        }

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))
