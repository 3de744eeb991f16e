"""Device descriptor domain entity."""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Dict, Any

from core.entities.card import CardFamily


class TransportKind(Enum):
    """Physical interfaces a card reader can be attached through."""
    UART = "uart"
    USB_SERIAL = "usb_serial"
    I2C = "i2c"
    SPI = "spi"

    @property
    def label(self) -> str:
        """Human readable interface name."""
        return _TRANSPORT_LABELS[self]


_TRANSPORT_LABELS = {
    TransportKind.UART: "UART/Serial",
    TransportKind.USB_SERIAL: "USB-Serial",
    TransportKind.I2C: "I2C",
    TransportKind.SPI: "SPI",
}

# Bus speed used when nothing else is configured (baud for serial, Hz for buses).
DEFAULT_SPEEDS: Dict[TransportKind, int] = {
    TransportKind.UART: 115200,
    TransportKind.USB_SERIAL: 115200,
    TransportKind.I2C: 400000,
    TransportKind.SPI: 1000000,
}

# Card families advertised by the wired reader boards.
DEFAULT_SUPPORTED_FAMILIES: FrozenSet[str] = frozenset(
    family.value for family in (
        CardFamily.M1_S50,
        CardFamily.NTAG213,
        CardFamily.NTAG215,
        CardFamily.NTAG216,
        CardFamily.BANK_ISO14443A,
        CardFamily.BANK_ISO14443B,
        CardFamily.EMV_PAYMENT,
    )
)


@dataclass(frozen=True)
class DeviceDescriptor:
    """Candidate physical interface considered during discovery."""

    path: str
    transport_kind: TransportKind
    default_speed: int
    supported_card_families: FrozenSet[str] = field(
        default_factory=lambda: DEFAULT_SUPPORTED_FAMILIES
    )

    @classmethod
    def create(cls, path: str, transport_kind: TransportKind) -> "DeviceDescriptor":
        """Create a descriptor using the default speed for its transport."""
        return cls(
            path=path,
            transport_kind=transport_kind,
            default_speed=DEFAULT_SPEEDS[transport_kind],
        )

    @property
    def is_serial(self) -> bool:
        """True for interfaces driven through a termios serial port."""
        return self.transport_kind in (TransportKind.UART, TransportKind.USB_SERIAL)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the descriptor."""
        return {
            "path": self.path,
            "transport": self.transport_kind.value,
            "communication": self.transport_kind.label,
            "speed": self.default_speed,
            "supports": sorted(self.supported_card_families),
        }
