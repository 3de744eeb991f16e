"""Excepciones específicas del lector de tarjetas IC.

Este módulo define la jerarquía de errores del motor serie: descubrimiento,
conexión, envío, tramas y lectura. Cada error lleva un código numérico
compatible con los códigos que recibe la capa de aplicación.
"""

import errno
from enum import IntEnum
from typing import Optional, Sequence


class ErrorCode(IntEnum):
    """Códigos de error entregados junto a los eventos on_error."""
    CONNECTION_FAILED = 1001
    READ_FAILED = 1002
    NO_CARD_DETECTED = 1003
    UNSUPPORTED_CARD = 1004
    COMMUNICATION_ERROR = 1005


class ReaderError(Exception):
    """Excepción base del lector IC.

    Todas las excepciones del motor serie heredan de esta clase.
    """

    code: ErrorCode = ErrorCode.COMMUNICATION_ERROR

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        """Inicializa la excepción base.

        Args:
            message: Mensaje de error amigable
            original_error: Excepción original que causó este error
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Retorna representación string del error."""
        if self.original_error:
            return f"{self.message} (Causa: {self.original_error})"
        return self.message


class DiscoveryError(ReaderError):
    """Error durante el descubrimiento de interfaces."""

    code = ErrorCode.CONNECTION_FAILED


class ConnectError(ReaderError):
    """Error al establecer la conexión con un dispositivo."""

    code = ErrorCode.CONNECTION_FAILED

    def __init__(self, message: str, port: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.port = port


class PermissionDeniedError(ConnectError):
    """El dispositivo existe pero no hay permisos de lectura/escritura.

    Se lanza cuando:
    - El usuario no pertenece al grupo del dispositivo (dialout, i2c...)
    - Una política del sistema bloquea el acceso al nodo /dev
    """

    def __init__(self, port: str, original_error: Optional[Exception] = None):
        message = (
            f"Permiso denegado en {port}. "
            "Verifica que el usuario tenga acceso de lectura y escritura al dispositivo."
        )
        super().__init__(message, port, original_error)


class PortIOError(ConnectError):
    """Error de E/S al abrir el dispositivo.

    Se lanza cuando:
    - La ruta no existe
    - El puerto está ocupado por otra aplicación
    - El driver rechaza la configuración
    """

    def __init__(self, port: str, original_error: Optional[Exception] = None):
        message = f"No se pudo abrir {port}"
        super().__init__(message, port, original_error)


class NoDeviceFoundError(DiscoveryError, ConnectError):
    """Ningún candidato aceptó la apertura."""

    def __init__(self, searched_ports: Optional[Sequence[str]] = None,
                 original_error: Optional[Exception] = None):
        """Inicializa error de dispositivo no encontrado.

        Args:
            searched_ports: Rutas probadas en orden
            original_error: Último error de apertura
        """
        self.searched_ports = list(searched_ports or [])
        last_port = self.searched_ports[-1] if self.searched_ports else None

        if self.searched_ports:
            ports_info = f" Rutas verificadas: {', '.join(self.searched_ports)}."
        else:
            ports_info = " No había rutas candidatas."

        message = f"No se encontró ningún lector de tarjetas IC.{ports_info}"
        super().__init__(message, last_port, original_error)

    @property
    def last_path(self) -> Optional[str]:
        """Última ruta intentada."""
        return self.port


class SendError(ReaderError):
    """Error al enviar un comando al lector."""

    code = ErrorCode.COMMUNICATION_ERROR


class NotConnectedError(SendError):
    """Se intentó enviar sin una conexión abierta."""

    def __init__(self, original_error: Optional[Exception] = None):
        super().__init__("El lector no está conectado", original_error)


class SendIOError(SendError):
    """Fallo de escritura en el dispositivo."""

    code = ErrorCode.READ_FAILED

    def __init__(self, port: str, original_error: Optional[Exception] = None):
        super().__init__(f"Error enviando comando a {port}", original_error)
        self.port = port


class FrameError(ReaderError):
    """Error a nivel de trama. Se registra y nunca sale del bucle de recepción."""


class ChecksumMismatchError(FrameError):
    """La suma de verificación de la trama no coincide."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Checksum inválido: esperado 0x{expected:02X}, recibido 0x{actual:02X}"
        )
        self.expected = expected
        self.actual = actual


class UnknownCommandError(FrameError):
    """La trama lleva un byte de comando sin manejador."""

    def __init__(self, command: int):
        super().__init__(f"Comando desconocido: 0x{command:02X}")
        self.command = command


class ReadError(ReaderError):
    """Error durante la lectura de tarjetas."""

    code = ErrorCode.READ_FAILED


class TransientReadError(ReadError):
    """Error pasajero: ausencia de tarjeta o fallo puntual del bus."""


class ConnectionLostError(ReadError):
    """La conexión se perdió de forma irrecuperable."""

    code = ErrorCode.COMMUNICATION_ERROR

    def __init__(self, port: Optional[str], original_error: Optional[Exception] = None):
        super().__init__(f"Conexión perdida con {port}", original_error)
        self.port = port


class ContractViolationError(ReaderError):
    """Violación del contrato interno; lleva la sesión a FAULTED."""


_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM}
_BUSY_ERRNOS = {errno.EBUSY, errno.EAGAIN}
_TRANSIENT_READ_ERRNOS = {errno.EINTR, errno.EAGAIN}


def _error_number(error: Exception) -> Optional[int]:
    """Obtiene el errno de una excepción de pyserial u OSError."""
    number = getattr(error, "errno", None)
    if isinstance(number, int):
        return number
    return None


def is_port_busy(error: Exception) -> bool:
    """True si el error indica un puerto ocupado temporalmente."""
    if _error_number(error) in _BUSY_ERRNOS:
        return True
    error_str = str(error).lower()
    return "resource busy" in error_str or "temporarily unavailable" in error_str


def is_transient_read_error(error: Exception) -> bool:
    """True si un fallo de lectura no implica perder la conexión."""
    return _error_number(error) in _TRANSIENT_READ_ERRNOS


def map_serial_error(error: Exception, port: str) -> ConnectError:
    """Mapea errores de pyserial/OS a nuestras excepciones específicas.

    Args:
        error: Excepción original
        port: Ruta que se intentaba abrir

    Returns:
        ConnectError: Excepción específica mapeada
    """
    if isinstance(error, PermissionError) or _error_number(error) in _PERMISSION_ERRNOS:
        return PermissionDeniedError(port, error)

    if "permission denied" in str(error).lower():
        return PermissionDeniedError(port, error)

    return PortIOError(port, error)
