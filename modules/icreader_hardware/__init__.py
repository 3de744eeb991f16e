"""Descubrimiento de hardware de lectura de tarjetas IC."""

from modules.icreader_hardware.catalog import (
    DEFAULT_DESCRIPTORS,
    TRANSPORT_PRIORITY,
    DeviceCatalog,
    infer_transport,
    probe_path,
)
from modules.icreader_hardware.detector import HardwareDetector

__version__ = "1.0.0"
__all__ = [
    "DEFAULT_DESCRIPTORS",
    "TRANSPORT_PRIORITY",
    "DeviceCatalog",
    "infer_transport",
    "probe_path",
    "HardwareDetector",
]
