"""Receptores de eventos de la sesión de lectura."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from core.entities.card import CardEvent


logger = logging.getLogger(__name__)


class ReaderEventSink(ABC):
    """Destino de los eventos de una sesión de lectura.

    Los métodos se invocan de forma síncrona desde los hilos del motor,
    por lo que las implementaciones deben retornar rápido.
    """

    @abstractmethod
    def on_connected(self, device_path: str) -> None:
        """El lector quedó conectado en ``device_path``."""

    @abstractmethod
    def on_disconnected(self) -> None:
        """La conexión se cerró o se perdió."""

    @abstractmethod
    def on_card_detected(self, event: CardEvent) -> None:
        """Se aceptó una lectura de tarjeta."""

    @abstractmethod
    def on_error(self, message: str, code: int) -> None:
        """Se produjo un error con código numérico."""


class LoggingEventSink(ReaderEventSink):
    """Registra todos los eventos en el log."""

    def on_connected(self, device_path: str) -> None:
        logger.info(f"Lector conectado: {device_path}")

    def on_disconnected(self) -> None:
        logger.info("Lector desconectado")

    def on_card_detected(self, event: CardEvent) -> None:
        logger.info(f"Tarjeta {event.card_id} ({event.card_family.value})")

    def on_error(self, message: str, code: int) -> None:
        logger.error(f"Error {code}: {message}")


class CallbackEventSink(ReaderEventSink):
    """Adapta funciones sueltas a la interfaz de eventos."""

    def __init__(self,
                 on_connected: Optional[Callable[[str], None]] = None,
                 on_disconnected: Optional[Callable[[], None]] = None,
                 on_card_detected: Optional[Callable[[CardEvent], None]] = None,
                 on_error: Optional[Callable[[str, int], None]] = None):
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._on_card_detected = on_card_detected
        self._on_error = on_error

    def on_connected(self, device_path: str) -> None:
        if self._on_connected:
            self._on_connected(device_path)

    def on_disconnected(self) -> None:
        if self._on_disconnected:
            self._on_disconnected()

    def on_card_detected(self, event: CardEvent) -> None:
        if self._on_card_detected:
            self._on_card_detected(event)

    def on_error(self, message: str, code: int) -> None:
        if self._on_error:
            self._on_error(message, code)
