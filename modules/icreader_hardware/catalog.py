"""Catálogo de interfaces candidatas para el lector IC.

Este módulo es la única fuente de verdad de las rutas de dispositivo que se
prueban durante el descubrimiento. El orden de prioridad es una decisión de
diseño reproducible: UART primero (la conexión cableada más probable para
un lector), luego USB-serie, luego I2C y por último SPI.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from core.entities.device import DeviceDescriptor, TransportKind


logger = logging.getLogger(__name__)

TRANSPORT_PRIORITY = (
    TransportKind.UART,
    TransportKind.USB_SERIAL,
    TransportKind.I2C,
    TransportKind.SPI,
)

# Prefijos de nombre de nodo por tipo de interfaz
_PATH_PREFIXES = (
    (("ttyS", "ttyRK", "ttyAMA"), TransportKind.UART),
    (("ttyUSB", "ttyACM"), TransportKind.USB_SERIAL),
    (("i2c",), TransportKind.I2C),
    (("spidev", "spi"), TransportKind.SPI),
)

SYS_TTY_CLASS = Path("/sys/class/tty")


def infer_transport(path: str) -> TransportKind:
    """Deduce el tipo de interfaz a partir del nombre de la ruta.

    Args:
        path: Ruta del dispositivo (ej: '/dev/ttyUSB0', '/dev/i2c-1')

    Returns:
        Tipo de interfaz; UART si el nombre no es reconocible
    """
    name = os.path.basename(path)
    for prefixes, kind in _PATH_PREFIXES:
        if name.startswith(prefixes):
            return kind
    return TransportKind.UART


def _default_descriptors() -> List[DeviceDescriptor]:
    paths = (
        # UART de la placa
        [f"/dev/ttyS{i}" for i in range(5)] +
        [f"/dev/ttyRK{i}" for i in range(4)] +
        # Adaptadores USB-serie
        [f"/dev/ttyUSB{i}" for i in range(4)] +
        [f"/dev/ttyACM{i}" for i in range(4)] +
        # Módulos en bus I2C
        [f"/dev/i2c-{i}" for i in range(5)] +
        # Módulos en bus SPI
        [f"/dev/spidev{i}.0" for i in range(3)]
    )
    return [DeviceDescriptor.create(path, infer_transport(path)) for path in paths]


DEFAULT_DESCRIPTORS = tuple(_default_descriptors())


def probe_path(path: str) -> bool:
    """Comprueba existencia y permisos de lectura/escritura sin bloquear.

    Abre el nodo con O_NONBLOCK y O_NOCTTY y lo cierra inmediatamente.
    Nunca lanza excepciones.

    Args:
        path: Ruta a comprobar

    Returns:
        True si la ruta se puede abrir en lectura y escritura
    """
    if not os.path.exists(path):
        return False

    flags = os.O_RDWR | os.O_NONBLOCK | getattr(os, "O_NOCTTY", 0)
    try:
        fd = os.open(path, flags)
    except OSError as e:
        sys_entry = SYS_TTY_CLASS / os.path.basename(path)
        if sys_entry.exists():
            logger.info(f"{path} existe en {SYS_TTY_CLASS} pero requiere permisos: {e}")
        else:
            logger.debug(f"{path} no accesible: {e}")
        return False

    try:
        os.close(fd)
    except OSError:
        logger.debug(f"Error cerrando {path} tras la comprobación")
    return True


class DeviceCatalog:
    """Lista configurable de interfaces candidatas."""

    def __init__(self,
                 descriptors: Optional[Iterable[DeviceDescriptor]] = None,
                 probe: Optional[Callable[[str], bool]] = None):
        """Inicializa el catálogo.

        Args:
            descriptors: Descriptores candidatos (por defecto DEFAULT_DESCRIPTORS)
            probe: Función de accesibilidad por ruta (por defecto probe_path)
        """
        if descriptors is None:
            descriptors = DEFAULT_DESCRIPTORS

        unique = {}
        for descriptor in descriptors:
            unique.setdefault(descriptor.path, descriptor)

        # Orden estable por prioridad de interfaz
        self._descriptors = tuple(sorted(
            unique.values(),
            key=lambda d: TRANSPORT_PRIORITY.index(d.transport_kind)
        ))
        self._probe = probe or probe_path

    @classmethod
    def from_paths(cls, paths: Sequence[str],
                   probe: Optional[Callable[[str], bool]] = None) -> "DeviceCatalog":
        """Crea un catálogo deduciendo el tipo de interfaz de cada ruta."""
        return cls([DeviceDescriptor.create(p, infer_transport(p)) for p in paths], probe)

    def with_extra_paths(self, paths: Sequence[str]) -> "DeviceCatalog":
        """Devuelve un catálogo nuevo con rutas adicionales."""
        extra = [DeviceDescriptor.create(p, infer_transport(p)) for p in paths]
        return DeviceCatalog(list(self._descriptors) + extra, self._probe)

    @property
    def descriptors(self) -> List[DeviceDescriptor]:
        """Descriptores en orden de prioridad."""
        return list(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, path: str) -> bool:
        return any(d.path == path for d in self._descriptors)

    def descriptor_for(self, path: str) -> DeviceDescriptor:
        """Obtiene el descriptor de una ruta, deduciéndolo si no está en el catálogo."""
        for descriptor in self._descriptors:
            if descriptor.path == path:
                return descriptor
        return DeviceDescriptor.create(path, infer_transport(path))

    def candidate_paths(self, preferred_path: Optional[str] = None) -> List[DeviceDescriptor]:
        """Candidatos en orden de prueba.

        Args:
            preferred_path: Ruta que se prueba primero, si se indica

        Returns:
            Lista ordenada de descriptores
        """
        candidates = list(self._descriptors)
        if preferred_path:
            preferred = self.descriptor_for(preferred_path)
            candidates = [preferred] + [d for d in candidates if d.path != preferred_path]
        return candidates

    def is_accessible(self, path: str) -> bool:
        """Comprueba si la ruta existe y admite lectura/escritura. Nunca lanza."""
        try:
            return bool(self._probe(path))
        except Exception as e:
            logger.warning(f"Error comprobando {path}: {e}")
            return False

    def accessible_descriptors(self) -> List[DeviceDescriptor]:
        """Descriptores cuya ruta es accesible ahora mismo."""
        return [d for d in self._descriptors if self.is_accessible(d.path)]
