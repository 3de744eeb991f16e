"""Puerto sobre nodos de carácter I2C/SPI.

Los lectores conectados por I2C o SPI se exponen como nodos /dev que no
admiten configuración termios. Esta clase ofrece la misma interfaz mínima
que un ``serial.Serial`` (read, write, flush, close, in_waiting) sobre un
descriptor abierto con ``os.open`` y lecturas acotadas con ``select``.
"""

import logging
import os
import select
from typing import Optional

import serial


logger = logging.getLogger(__name__)


class CharDevicePort:
    """Puerto de bytes sobre un nodo de carácter."""

    def __init__(self, path: str, timeout: float = 0.2):
        """Abre el nodo.

        Args:
            path: Ruta del dispositivo (ej: '/dev/i2c-1')
            timeout: Timeout de lectura en segundos

        Raises:
            serial.SerialException: Si el nodo no se puede abrir
        """
        self.port = path
        self.timeout = timeout
        self._fd: Optional[int] = None

        flags = os.O_RDWR | os.O_NONBLOCK | getattr(os, "O_NOCTTY", 0)
        try:
            self._fd = os.open(path, flags)
        except OSError as e:
            raise serial.SerialException(e.errno, f"could not open port {path}: {e}") from e

        logger.debug(f"Nodo {path} abierto (fd={self._fd})")

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    @property
    def in_waiting(self) -> int:
        # Los nodos de bus no informan bytes pendientes
        return 0

    def read(self, size: int = 1) -> bytes:
        """Lee hasta ``size`` bytes esperando como máximo ``timeout``."""
        if self._fd is None:
            raise serial.PortNotOpenError()

        try:
            ready, _, _ = select.select([self._fd], [], [], self.timeout)
            if not ready:
                return b""
            return os.read(self._fd, size)
        except BlockingIOError:
            return b""
        except OSError as e:
            raise serial.SerialException(e.errno, f"read failed: {e}") from e

    def write(self, data: bytes) -> int:
        """Escribe los bytes en el nodo."""
        if self._fd is None:
            raise serial.PortNotOpenError()

        try:
            return os.write(self._fd, bytes(data))
        except OSError as e:
            raise serial.SerialException(e.errno, f"write failed: {e}") from e

    def flush(self) -> None:
        pass

    def reset_input_buffer(self) -> None:
        pass

    def close(self) -> None:
        """Cierra el descriptor. Idempotente."""
        fd, self._fd = self._fd, None
        if fd is None:
            return
        try:
            os.close(fd)
        except OSError as e:
            logger.debug(f"Error cerrando {self.port}: {e}")
