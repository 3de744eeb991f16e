"""Detector de capacidades de lectura de tarjetas.

Enumera las interfaces del catálogo accesibles en este host y añade las
alternativas de lectura (NFC de la plataforma y servicio remoto) para que
la aplicación elija la mejor disponible.
"""

import logging
import os
from typing import Callable, Dict, List, Optional

import serial.tools.list_ports

from core.entities.hardware import HardwareInfo, HardwareType, HARDWARE_PRIORITY
from modules.icreader_hardware.catalog import DeviceCatalog


logger = logging.getLogger(__name__)

SYS_NFC_CLASS = "/sys/class/nfc"


def probe_platform_nfc() -> bool:
    """True si el kernel expone algún controlador NFC."""
    try:
        return bool(os.listdir(SYS_NFC_CLASS))
    except OSError:
        return False


def serial_port_descriptions() -> Dict[str, str]:
    """Descripciones de los puertos serie que reporta pyserial."""
    try:
        return {
            port.device: port.description
            for port in serial.tools.list_ports.comports()
            if port.description and port.description != "n/a"
        }
    except Exception as e:
        logger.debug(f"No se pudieron listar los puertos serie: {e}")
        return {}


class HardwareDetector:
    """Detector de hardware de lectura de tarjetas."""

    def __init__(self,
                 catalog: Optional[DeviceCatalog] = None,
                 nfc_probe: Optional[Callable[[], bool]] = None,
                 port_descriptions: Optional[Callable[[], Dict[str, str]]] = None):
        """Inicializa el detector.

        Args:
            catalog: Catálogo de interfaces candidatas
            nfc_probe: Comprobación de NFC de la plataforma
            port_descriptions: Fuente de descripciones de puertos serie
        """
        self.catalog = catalog or DeviceCatalog()
        self._nfc_probe = nfc_probe or probe_platform_nfc
        self._port_descriptions = port_descriptions or serial_port_descriptions

    def detect_all(self) -> List[HardwareInfo]:
        """Detecta todas las capacidades de lectura disponibles.

        Returns:
            Lectores IC accesibles (en orden del catálogo), seguidos de la
            entrada de NFC de la plataforma y la del servicio remoto
        """
        logger.info("Detectando hardware de lectura de tarjetas")

        results: List[HardwareInfo] = []
        descriptions = self._port_descriptions()

        for descriptor in self.catalog.accessible_descriptors():
            label = descriptor.transport_kind.label
            detail = descriptions.get(descriptor.path)
            description = f"Lector de tarjetas IC ({label})"
            if detail:
                description = f"{description} - {detail}"

            results.append(HardwareInfo(
                type=HardwareType.IC_CARD_READER,
                device_path=descriptor.path,
                description=description,
                available=True,
                properties={
                    "supports": sorted(descriptor.supported_card_families),
                    "communication": label,
                    "baudRate": descriptor.default_speed,
                    "transport": descriptor.transport_kind.value,
                },
            ))
            logger.debug(f"Lector IC accesible en {descriptor.path}")

        try:
            nfc_available = bool(self._nfc_probe())
        except Exception as e:
            logger.warning(f"Error comprobando NFC de la plataforma: {e}")
            nfc_available = False

        results.append(HardwareInfo(
            type=HardwareType.ANDROID_NFC,
            device_path=None,
            description="NFC de la plataforma",
            available=nfc_available,
            properties={"supports": ["ISO14443A", "ISO14443B", "NFC_FORUM"]},
        ))

        results.append(HardwareInfo(
            type=HardwareType.REMOTE_CLOUD,
            device_path=None,
            description="Servicio remoto de lectura",
            available=True,
            properties={"requiresNetwork": True},
        ))

        readers = sum(1 for info in results if info.type == HardwareType.IC_CARD_READER)
        logger.info(f"Se encontraron {readers} lectores IC accesibles")
        return results

    def preferred(self) -> Optional[HardwareInfo]:
        """Primera capacidad disponible según la prioridad de hardware."""
        detected = self.detect_all()
        for hardware_type in HARDWARE_PRIORITY:
            for info in detected:
                if info.type == hardware_type and info.available:
                    return info
        return None

    def by_type(self, hardware_type: HardwareType) -> List[HardwareInfo]:
        """Entradas detectadas de un tipo concreto."""
        return [info for info in self.detect_all() if info.type == hardware_type]

    def is_available(self, hardware_type: HardwareType) -> bool:
        """True si hay al menos una entrada disponible del tipo indicado."""
        return any(info.available for info in self.by_type(hardware_type))
