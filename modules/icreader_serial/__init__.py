"""Motor serie del lector de tarjetas IC

Codificación de tramas, clasificación de tarjetas y enlace con el
dispositivo con bucle de recepción en segundo plano.
"""

from modules.icreader_serial.frame import (
    Command,
    Frame,
    FrameAssembler,
    build_command,
    decode_frame,
    encode_frame,
)
from modules.icreader_serial.classifier import classify, extract_card_id
from modules.icreader_serial.serial_link import Connection, SerialLink, open_port
from modules.icreader_serial.char_device import CharDevicePort
from modules.icreader_serial.errors import (
    ErrorCode,
    ReaderError,
    ConnectError,
    NoDeviceFoundError,
    SendError,
    NotConnectedError,
    SendIOError,
    FrameError,
    ConnectionLostError,
    ContractViolationError,
)

__version__ = "1.0.0"
__all__ = [
    "Command",
    "Frame",
    "FrameAssembler",
    "build_command",
    "decode_frame",
    "encode_frame",
    "classify",
    "extract_card_id",
    "Connection",
    "SerialLink",
    "open_port",
    "CharDevicePort",
    "ErrorCode",
    "ReaderError",
    "ConnectError",
    "NoDeviceFoundError",
    "SendError",
    "NotConnectedError",
    "SendIOError",
    "FrameError",
    "ConnectionLostError",
    "ContractViolationError",
]
