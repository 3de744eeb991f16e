"""Base service interfaces for the IC reader bridge.

Define interfaces comunes para evitar dependencias circulares.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, List
from enum import Enum


class ServiceStatus(Enum):
    """Estados posibles de un servicio."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


class BaseService(ABC):
    """Interfaz base para todos los servicios."""

    def __init__(self):
        self._status = ServiceStatus.STOPPED
        self._error_message: Optional[str] = None

    @property
    def status(self) -> ServiceStatus:
        """Estado actual del servicio."""
        return self._status

    @property
    def error_message(self) -> Optional[str]:
        """Mensaje de error si el servicio está en estado ERROR."""
        return self._error_message

    @property
    def is_running(self) -> bool:
        """True si el servicio está ejecutándose."""
        return self._status == ServiceStatus.RUNNING

    @abstractmethod
    async def initialize(self) -> None:
        """Inicializa el servicio."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Inicia el servicio."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Detiene el servicio."""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Verifica el estado de salud del servicio."""
        pass

    def _set_status(self, status: ServiceStatus, error_message: Optional[str] = None) -> None:
        """Establece el estado del servicio."""
        self._status = status
        self._error_message = error_message


class WebSocketManagerInterface(ABC):
    """Interfaz para el manager de WebSocket."""

    @abstractmethod
    async def connect(self, websocket) -> None:
        """Conecta un cliente WebSocket."""
        pass

    @abstractmethod
    def disconnect(self, websocket) -> None:
        """Desconecta un cliente WebSocket."""
        pass

    @abstractmethod
    async def broadcast(self, message: Dict[str, Any]) -> None:
        """Envía un mensaje a todos los clientes conectados."""
        pass

    @abstractmethod
    async def broadcast_card_event(self, card: Dict[str, Any]) -> None:
        """Envía una lectura de tarjeta a todos los clientes."""
        pass

    @abstractmethod
    async def broadcast_reader_status(self, connected: bool, details: Optional[Dict[str, Any]] = None) -> None:
        """Envía el estado de conexión del lector a todos los clientes."""
        pass

    @abstractmethod
    async def broadcast_error(self, message: str, code: int) -> None:
        """Envía un error del lector a todos los clientes."""
        pass

    @abstractmethod
    def get_connection_count(self) -> int:
        """Número de clientes conectados."""
        pass


class ReaderServiceInterface(BaseService):
    """Interfaz para el servicio del lector de tarjetas IC."""

    @abstractmethod
    async def detect_hardware(self) -> List[Dict[str, Any]]:
        """Detecta el hardware de lectura disponible."""
        pass

    @abstractmethod
    async def preferred_hardware(self) -> Optional[Dict[str, Any]]:
        """Obtiene el hardware preferido."""
        pass

    @abstractmethod
    async def initialize_reader(self, device_path: Optional[str] = None, auto: bool = False) -> Dict[str, Any]:
        """Conecta con el lector."""
        pass

    @abstractmethod
    async def read_card(self) -> Dict[str, Any]:
        """Solicita una lectura única."""
        pass

    @abstractmethod
    async def start_reading(self) -> Dict[str, Any]:
        """Inicia la lectura continua."""
        pass

    @abstractmethod
    async def stop_reading(self) -> Dict[str, Any]:
        """Detiene la lectura continua."""
        pass

    @abstractmethod
    async def disconnect_reader(self) -> Dict[str, Any]:
        """Desconecta el lector."""
        pass

    @abstractmethod
    async def get_status(self) -> Dict[str, Any]:
        """Obtiene el estado del lector."""
        pass
