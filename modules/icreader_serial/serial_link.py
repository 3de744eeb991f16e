"""Enlace serie con el lector de tarjetas IC.

Gestiona una única conexión con el dispositivo: apertura con reintentos,
bucle de recepción en un hilo propio, reensamblado de tramas y despacho
por comando. Los eventos se entregan mediante callbacks ``on_*`` de forma
síncrona en el hilo de recepción.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import serial
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from core.entities.card import CardEvent
from core.entities.device import DeviceDescriptor
from modules.icreader_config.settings import ReaderSettings
from modules.icreader_hardware.catalog import infer_transport
from modules.icreader_serial.char_device import CharDevicePort
from modules.icreader_serial.classifier import classify, extract_card_id
from modules.icreader_serial.errors import (
    ConnectError,
    ConnectionLostError,
    ContractViolationError,
    NoDeviceFoundError,
    NotConnectedError,
    SendIOError,
    TransientReadError,
    UnknownCommandError,
    is_port_busy,
    is_transient_read_error,
    map_serial_error,
)
from modules.icreader_serial.frame import Command, Frame, FrameAssembler, build_command, hex_dump


logger = logging.getLogger(__name__)

PortFactory = Callable[[DeviceDescriptor, ReaderSettings], Any]
Candidate = Union[DeviceDescriptor, str]


def open_port(descriptor: DeviceDescriptor, settings: ReaderSettings) -> Any:
    """Abre el puerto de un descriptor.

    UART, USB-serie y cualquier URL de pyserial (ej: 'loop://') se abren con
    ``serial.serial_for_url``; los nodos I2C/SPI con ``CharDevicePort``.
    """
    if "://" in descriptor.path or descriptor.is_serial:
        return serial.serial_for_url(
            descriptor.path,
            baudrate=descriptor.default_speed,
            timeout=settings.read_timeout,
            write_timeout=settings.write_timeout,
        )
    return CharDevicePort(descriptor.path, timeout=settings.read_timeout)


@dataclass
class Connection:
    """Conexión abierta con un dispositivo."""
    path: str
    descriptor: DeviceDescriptor
    port: Any
    baudrate: int
    opened_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "communication": self.descriptor.transport_kind.label,
            "baudRate": self.baudrate,
            "openedAt": self.opened_at,
        }


class SerialLink:
    """Enlace con el lector IC.

    Mantiene como máximo una conexión abierta. Callbacks disponibles:

    - on_connected(connection)
    - on_disconnected()
    - on_card_detected(event)
    - on_connection_lost(error)
    - on_read_error(error): fallo de lectura pasajero, el bucle continúa
    """

    def __init__(self,
                 port_factory: Optional[PortFactory] = None,
                 settings: Optional[ReaderSettings] = None):
        """Inicializa el enlace.

        Args:
            port_factory: Función que abre el puerto de un descriptor
            settings: Configuración del lector
        """
        self.settings = settings or ReaderSettings()
        self._port_factory = port_factory or open_port

        self._lock = threading.RLock()
        self._connect_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._connection: Optional[Connection] = None
        self._rx_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._assembler = FrameAssembler(address=self.settings.device_address)

        self.firmware_version: Optional[str] = None
        self.last_error: Optional[Exception] = None

        # Callbacks
        self.on_connected: Optional[Callable[[Connection], None]] = None
        self.on_disconnected: Optional[Callable[[], None]] = None
        self.on_card_detected: Optional[Callable[[CardEvent], None]] = None
        self.on_connection_lost: Optional[Callable[[Exception], None]] = None
        self.on_read_error: Optional[Callable[[TransientReadError], None]] = None

        # Estadísticas
        self._counters = {
            'bytes_received': 0,
            'bytes_sent': 0,
            'rx_errors': 0,
            'tx_errors': 0,
            'unknown_commands': 0,
            'cards_detected': 0,
            'connections': 0,
        }

    @property
    def connection(self) -> Optional[Connection]:
        with self._lock:
            return self._connection

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    @property
    def device_path(self) -> Optional[str]:
        connection = self.connection
        return connection.path if connection else None

    @property
    def stats(self) -> Dict[str, int]:
        """Contadores del enlace y del ensamblador de tramas."""
        with self._lock:
            result = dict(self._counters)
            result.update(self._assembler.stats)
        return result

    def connect(self, candidates: Iterable[Candidate]) -> Connection:
        """Conecta con el primer candidato que se pueda abrir.

        Si ya hay una conexión abierta se cierra antes por completo.

        Args:
            candidates: Descriptores (o rutas) en orden de prueba

        Returns:
            Connection abierta

        Raises:
            NoDeviceFoundError: Si ningún candidato se pudo abrir
        """
        # Serializa conexiones concurrentes: nunca hay dos puertos ligados
        with self._connect_lock:
            return self._connect(candidates)

    def _connect(self, candidates: Iterable[Candidate]) -> Connection:
        if self.is_connected:
            logger.info("Cerrando conexión previa antes de reconectar")
            self.disconnect()

        tried: List[str] = []
        last_error: Optional[ConnectError] = None

        for candidate in candidates:
            descriptor = self._as_descriptor(candidate)
            tried.append(descriptor.path)

            try:
                port = self._open_with_retry(descriptor)
            except Exception as e:
                last_error = map_serial_error(e, descriptor.path)
                logger.debug(f"Candidato {descriptor.path} descartado: {last_error}")
                continue

            connection = Connection(
                path=descriptor.path,
                descriptor=descriptor,
                port=port,
                baudrate=descriptor.default_speed,
            )
            self._bind(connection)
            return connection

        error = NoDeviceFoundError(tried, last_error)
        logger.error(str(error))
        raise error

    def send(self, command: int, payload: bytes = b"") -> int:
        """Envía un comando al lector.

        Returns:
            Bytes escritos

        Raises:
            NotConnectedError: Si no hay conexión
            SendIOError: Si la escritura falla
        """
        connection = self.connection
        if connection is None:
            raise NotConnectedError()

        data = build_command(command, payload, self.settings.device_address)
        try:
            with self._write_lock:
                written = connection.port.write(data)
                connection.port.flush()
        except (serial.SerialException, OSError, ValueError) as e:
            self._count('tx_errors')
            raise SendIOError(connection.path, e) from e

        written = len(data) if written is None else written
        self._count('bytes_sent', written)
        logger.debug(f"TX {connection.path}: {hex_dump(data)}")
        return written

    def query_version(self) -> int:
        return self.send(Command.VERSION)

    def read_card(self) -> int:
        return self.send(Command.READ_CARD)

    def beep(self, duration: int = 0x01) -> int:
        return self.send(Command.BEEP, bytes([duration & 0xFF]))

    def disconnect(self) -> bool:
        """Cierra la conexión. Idempotente.

        Returns:
            True si había una conexión que cerrar
        """
        with self._lock:
            connection = self._connection
            self._connection = None
            thread = self._rx_thread
            self._rx_thread = None
            self._stop_event.set()

        if connection is None:
            return False

        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self.settings.read_timeout * 5))

        self._close_port(connection)
        logger.info(f"Desconectado de {connection.path}")
        self._fire(self.on_disconnected)
        return True

    def _as_descriptor(self, candidate: Candidate) -> DeviceDescriptor:
        if isinstance(candidate, DeviceDescriptor):
            return candidate
        return DeviceDescriptor.create(candidate, infer_transport(candidate))

    def _open_with_retry(self, descriptor: DeviceDescriptor) -> Any:
        retryer = Retrying(
            stop=stop_after_attempt(self.settings.open_attempts),
            wait=wait_fixed(self.settings.open_retry_delay),
            retry=retry_if_exception(is_port_busy),
            reraise=True,
        )
        return retryer(self._port_factory, descriptor, self.settings)

    def _bind(self, connection: Connection) -> None:
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._rx_worker,
            args=(connection, stop_event),
            name="IcReader-RX",
            daemon=True
        )

        with self._lock:
            current = self._connection
            if current is None:
                self._connection = connection
                self._stop_event = stop_event
                self._rx_thread = thread
                self._assembler.clear()
                self.firmware_version = None
                self.last_error = None
                self._count('connections')

        if current is not None:
            self._close_port(connection)
            raise ContractViolationError(
                f"Ya hay una conexión abierta en {current.path}; no se liga {connection.path}"
            )

        thread.start()
        logger.info(
            f"Lector conectado en {connection.path} "
            f"({connection.descriptor.transport_kind.label}, {connection.baudrate})"
        )
        self._fire(self.on_connected, connection)

        try:
            self.query_version()
        except (NotConnectedError, SendIOError) as e:
            logger.warning(f"No se pudo consultar la versión: {e}")

    def _rx_worker(self, connection: Connection, stop_event: threading.Event) -> None:
        """Worker thread para recepción de datos."""
        port = connection.port

        while not stop_event.is_set():
            try:
                data = port.read(port.in_waiting or 1)
            except Exception as e:
                if stop_event.is_set():
                    break
                if is_transient_read_error(e):
                    self._count('rx_errors')
                    transient = TransientReadError(f"Lectura interrumpida en {connection.path}", e)
                    logger.warning(str(transient))
                    self._fire(self.on_read_error, transient)
                    stop_event.wait(self.settings.read_timeout)
                    continue
                self._handle_connection_lost(connection, e)
                break

            if not data:
                continue

            with self._lock:
                self._count('bytes_received', len(data))
                frames = self._assembler.feed(data)

            for frame in frames:
                try:
                    self._dispatch(frame)
                except Exception:
                    self._count('rx_errors')
                    logger.exception(f"Error procesando trama 0x{frame.command:02X}")

    def _dispatch(self, frame: Frame) -> None:
        if frame.command == Command.VERSION:
            if len(frame.payload) >= 2:
                self.firmware_version = f"V{frame.payload[0]}.{frame.payload[1]}"
                logger.info(f"Firmware del lector: {self.firmware_version}")
            else:
                logger.debug("Respuesta de versión sin datos")

        elif frame.command == Command.READ_CARD:
            if not frame.payload:
                logger.debug("Sin tarjeta en el campo")
                return

            event = CardEvent(
                card_id=extract_card_id(frame.payload),
                card_family=classify(frame.payload),
                reader_type=self.settings.reader_type,
                raw_payload=frame.payload,
            )
            self._count('cards_detected')
            logger.info(f"Tarjeta detectada: {event.card_id} ({event.card_family.value})")
            if self.on_card_detected:
                self.on_card_detected(event)

        elif frame.command == Command.BEEP:
            logger.debug("Pitido confirmado")

        else:
            self._count('unknown_commands')
            logger.warning(f"{UnknownCommandError(frame.command)} [{hex_dump(frame.payload)}]")

    def _handle_connection_lost(self, connection: Connection, error: Exception) -> None:
        lost = ConnectionLostError(connection.path, error)

        with self._lock:
            if self._connection is not connection:
                return
            self._connection = None
            self._rx_thread = None
            self.last_error = lost
            self._count('rx_errors')

        logger.error(str(lost))
        self._close_port(connection)
        self._fire(self.on_connection_lost, lost)
        self._fire(self.on_disconnected)

    def _close_port(self, connection: Connection) -> None:
        try:
            connection.port.close()
        except Exception as e:
            logger.debug(f"Error cerrando {connection.path}: {e}")

    def _count(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def _fire(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Error en callback {getattr(callback, '__name__', callback)}")
