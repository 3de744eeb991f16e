"""Hardware capability domain entity."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Optional, Mapping, Any, Dict


class HardwareType(Enum):
    """Kinds of card reading capability a host can offer."""
    IC_CARD_READER = "ic_card_reader"
    ANDROID_NFC = "android_nfc"
    REMOTE_CLOUD = "remote_cloud"


# Preference order used when picking an interface automatically.
HARDWARE_PRIORITY = (
    HardwareType.IC_CARD_READER,
    HardwareType.ANDROID_NFC,
    HardwareType.REMOTE_CLOUD,
)


@dataclass(frozen=True)
class HardwareInfo:
    """Capability descriptor produced by a detection pass."""

    type: HardwareType
    device_path: Optional[str]
    description: str
    available: bool
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the plugin map layout."""
        return {
            "type": self.type.value,
            "devicePath": self.device_path,
            "description": self.description,
            "available": self.available,
            "properties": dict(self.properties),
        }
