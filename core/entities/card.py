"""Card read domain entities."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any


class CardFamily(Enum):
    """Classification buckets for detected cards."""
    BANK_ISO14443A = "BANK_CARD_ISO14443A"
    BANK_ISO14443B = "BANK_CARD_ISO14443B"
    EMV_PAYMENT = "EMV_PAYMENT_CARD"
    DOOR_125KHZ = "DOOR_CARD_125KHZ"
    M1_S50 = "M1_S50"
    NTAG213 = "NTAG213"
    NTAG215 = "NTAG215"
    NTAG216 = "NTAG216"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class CardEvent:
    """A single accepted card read."""

    card_id: str
    card_family: CardFamily
    read_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reader_type: str = "IC_SERIAL"
    success: bool = True
    raw_payload: bytes = b""

    @property
    def read_time_ms(self) -> int:
        """Read timestamp as epoch milliseconds."""
        return int(self.read_timestamp.timestamp() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the plugin card data layout."""
        return {
            "cardId": self.card_id,
            "cardType": self.card_family.value,
            "readTime": self.read_time_ms,
            "readerType": self.reader_type,
            "success": self.success,
        }
