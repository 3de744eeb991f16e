"""Sesión de lectura de tarjetas IC.

Máquina de estados sobre ``SerialLink``:

    DISCONNECTED -> CONNECTING -> CONNECTED <-> READING
    cualquier estado -> DISCONNECTED (disconnect)
    cualquier estado -> FAULTED (violación de contrato)

El modo de lectura continua usa un hilo de sondeo que envía un comando de
lectura cada ``poll_interval`` y observa un evento de parada en cada
iteración. ``disconnect()`` detiene y espera ambos hilos antes de retornar.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from core.entities.card import CardEvent
from core.entities.hardware import HardwareType
from modules.icreader_config.settings import ReaderSettings
from modules.icreader_hardware.catalog import DeviceCatalog
from modules.icreader_hardware.detector import HardwareDetector
from modules.icreader_serial.errors import (
    ConnectError,
    ContractViolationError,
    ErrorCode,
    NotConnectedError,
    SendError,
    SendIOError,
    TransientReadError,
)
from modules.icreader_serial.serial_link import Connection, SerialLink
from modules.icreader_session.events import ReaderEventSink


logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Estados de la sesión de lectura."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    READING = "reading"
    FAULTED = "faulted"


@dataclass
class InitializeResult:
    """Resultado de ``initialize``."""
    success: bool
    device_path: Optional[str] = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "devicePath": self.device_path,
            "error": self.error,
        }


@dataclass
class CommandResult:
    """Resultado de un comando enviado al lector.

    Lleva el error de esta llamada, no el último error de la sesión.
    """
    success: bool
    message: Optional[str] = None
    code: Optional[int] = None

    def __bool__(self) -> bool:
        return self.success


class CardReaderSession:
    """Sesión de lectura sobre un lector IC serie."""

    def __init__(self,
                 sink: ReaderEventSink,
                 catalog: Optional[DeviceCatalog] = None,
                 link: Optional[SerialLink] = None,
                 settings: Optional[ReaderSettings] = None):
        """Inicializa la sesión.

        Args:
            sink: Receptor de eventos
            catalog: Catálogo de interfaces candidatas
            link: Enlace serie (se crea uno si es None)
            settings: Configuración del lector
        """
        if settings is None:
            settings = link.settings if link is not None else ReaderSettings()
        self.settings = settings
        self.sink = sink

        catalog = catalog or DeviceCatalog()
        if settings.extra_paths:
            catalog = catalog.with_extra_paths(settings.extra_paths)
        self.catalog = catalog

        self.link = link or SerialLink(settings=settings)
        self.link.on_connected = self._handle_connected
        self.link.on_disconnected = self._handle_disconnected
        self.link.on_card_detected = self._handle_card
        self.link.on_connection_lost = self._handle_connection_lost
        self.link.on_read_error = self._handle_read_error

        self._lock = threading.RLock()
        self._state = SessionState.DISCONNECTED
        self._cancel_connect = False
        self._poll_thread: Optional[threading.Thread] = None
        self._poll_stop = threading.Event()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state in (SessionState.CONNECTED, SessionState.READING)

    @property
    def is_reading(self) -> bool:
        return self.state == SessionState.READING

    def initialize(self, path: Optional[str] = None) -> InitializeResult:
        """Conecta con el lector.

        Args:
            path: Ruta a probar antes que el catálogo

        Returns:
            InitializeResult con la ruta conectada o la última ruta probada
        """
        self._teardown()

        with self._lock:
            self._state = SessionState.CONNECTING
            self._cancel_connect = False

        candidates = self.catalog.candidate_paths(path or self.settings.preferred_path)
        logger.info(f"Inicializando lector IC ({len(candidates)} candidatos)")

        try:
            connection = self.link.connect(candidates)
        except ConnectError as e:
            with self._lock:
                self._state = SessionState.DISCONNECTED
            self._emit_error(str(e), ErrorCode.CONNECTION_FAILED)
            return InitializeResult(False, e.port, str(e))

        with self._lock:
            cancelled = self._cancel_connect
            if not cancelled:
                self._state = SessionState.CONNECTED

        if cancelled:
            logger.info("Inicialización cancelada durante la conexión")
            self.link.disconnect()
            return InitializeResult(False, connection.path, "Inicialización cancelada")

        return InitializeResult(True, connection.path)

    def auto_initialize(self, detector: Optional[HardwareDetector] = None) -> InitializeResult:
        """Inicializa con el lector IC preferido del detector."""
        detector = detector or HardwareDetector(self.catalog)
        preferred = detector.preferred()

        if preferred is None or preferred.type != HardwareType.IC_CARD_READER:
            message = "No hay ningún lector IC disponible"
            self._emit_error(message, ErrorCode.CONNECTION_FAILED)
            return InitializeResult(False, None, message)

        return self.initialize(preferred.device_path)

    def start_continuous_reading(self) -> CommandResult:
        """Inicia la lectura continua.

        Returns:
            CommandResult verdadero si la sesión queda en modo lectura
        """
        with self._lock:
            if self._state == SessionState.READING:
                return CommandResult(True)
            if self._state != SessionState.CONNECTED:
                state = self._state
            else:
                state = None
                stop_event = threading.Event()
                thread = threading.Thread(
                    target=self._poll_worker,
                    args=(stop_event,),
                    name="IcReader-Poll",
                    daemon=True
                )
                self._poll_stop = stop_event
                self._poll_thread = thread
                self._state = SessionState.READING

        if state is not None:
            return self._not_initialized(state)

        thread.start()
        logger.info(f"Lectura continua iniciada (intervalo {self.settings.poll_interval}s)")
        return CommandResult(True)

    def stop_card_reading(self) -> bool:
        """Detiene la lectura continua y vuelve a CONNECTED."""
        with self._lock:
            if self._state != SessionState.READING:
                return False
            self._state = SessionState.CONNECTED
            stop_event, thread = self._poll_stop, self._poll_thread
            self._poll_thread = None

        stop_event.set()
        self._join(thread)
        logger.info("Lectura continua detenida")
        return True

    def read_single_card(self) -> CommandResult:
        """Envía un único comando de lectura sin cambiar de estado."""
        return self._command(self.link.read_card)

    def beep(self) -> CommandResult:
        """Hace sonar el lector."""
        return self._command(self.link.beep)

    def disconnect(self) -> bool:
        """Detiene la lectura y cierra la conexión. Idempotente.

        Returns:
            True si había una conexión que cerrar
        """
        with self._lock:
            if self._state == SessionState.CONNECTING:
                self._cancel_connect = True
            if self._state != SessionState.FAULTED:
                self._state = SessionState.DISCONNECTED

        return self._teardown()

    def status(self) -> Dict[str, Any]:
        """Estado actual de la sesión."""
        return {
            "connected": self.link.is_connected,
            "devicePath": self.link.device_path,
            "readerType": self.settings.reader_type,
            "state": self.state.value,
            "firmwareVersion": self.link.firmware_version,
        }

    def _teardown(self) -> bool:
        with self._lock:
            stop_event, thread = self._poll_stop, self._poll_thread
            self._poll_thread = None

        stop_event.set()
        self._join(thread)
        return self.link.disconnect()

    def _join(self, thread: Optional[threading.Thread]) -> None:
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self.settings.poll_interval + 1.0)

    def _command(self, send: Callable[[], int]) -> CommandResult:
        state = self.state
        if state not in (SessionState.CONNECTED, SessionState.READING):
            return self._not_initialized(state)

        try:
            send()
        except SendError as e:
            return self._failed(str(e), e.code)
        return CommandResult(True)

    def _not_initialized(self, state: SessionState) -> CommandResult:
        return self._failed(
            f"El lector no está inicializado (estado: {state.value})",
            ErrorCode.CONNECTION_FAILED
        )

    def _failed(self, message: str, code: int) -> CommandResult:
        self._emit_error(message, code)
        return CommandResult(False, message, int(code))

    def _poll_worker(self, stop_event: threading.Event) -> None:
        """Worker thread de sondeo."""
        while not stop_event.is_set():
            try:
                self.link.read_card()
            except SendIOError as e:
                # Fallo pasajero del bus, se reintenta en la siguiente vuelta
                self._emit_error(str(e), ErrorCode.READ_FAILED)
            except NotConnectedError as e:
                if stop_event.is_set() or self.link.last_error is not None:
                    break
                self._fault(ContractViolationError(
                    "El bucle de lectura no encontró conexión sin desconexión previa", e
                ))
                break

            if stop_event.wait(self.settings.poll_interval):
                break

        logger.debug("Bucle de sondeo finalizado")

    def _fault(self, error: ContractViolationError) -> None:
        with self._lock:
            self._state = SessionState.FAULTED
            self._poll_stop.set()

        logger.error(f"Sesión en estado FAULTED: {error}")
        self._emit_error(str(error), error.code)
        self.link.disconnect()

    def _handle_connected(self, connection: Connection) -> None:
        self.sink.on_connected(connection.path)

    def _handle_disconnected(self) -> None:
        self.sink.on_disconnected()

    def _handle_connection_lost(self, error: Exception) -> None:
        with self._lock:
            self._poll_stop.set()
            if self._state != SessionState.FAULTED:
                self._state = SessionState.DISCONNECTED

        self._emit_error(str(error), ErrorCode.COMMUNICATION_ERROR)

    def _handle_read_error(self, error: TransientReadError) -> None:
        self._emit_error(str(error), ErrorCode.READ_FAILED)

    def _handle_card(self, event: CardEvent) -> None:
        self.sink.on_card_detected(event)

        if not self.settings.beep_on_read:
            return
        try:
            self.link.beep()
        except SendError as e:
            logger.warning(f"No se pudo emitir el pitido: {e}")

    def _emit_error(self, message: str, code: int) -> None:
        try:
            self.sink.on_error(message, int(code))
        except Exception:
            logger.exception("Error en el receptor de eventos on_error")
