"""Codificación y parsing de tramas del lector IC.

Formato en el cable:

    AA BB | LEN_H LEN_L | ADDR | CMD | DATA... | CHK

- LEN: longitud big-endian de 16 bits de todo lo que sigue al campo
  (ADDR + CMD + DATA + CHK), es decir len(DATA) + 3.
- ADDR: dirección de estación del lector (0x01).
- CHK: (LEN_H + LEN_L + CMD + sum(DATA)) & 0xFF. La dirección no entra
  en la suma.

Con esta convención se reproducen exactamente los comandos del fabricante:
versión ``AA BB 00 03 01 01 04``, lectura ``AA BB 00 03 01 02 05`` y
pitido ``AA BB 00 04 01 06 01 0B``.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Union

from modules.icreader_serial.errors import ChecksumMismatchError, FrameError


logger = logging.getLogger(__name__)

PREAMBLE = b"\xAA\xBB"
DEFAULT_ADDRESS = 0x01

# ADDR + CMD + CHK
FRAME_OVERHEAD = 3
MAX_PAYLOAD = 255
HEADER_SIZE = len(PREAMBLE) + 2
MIN_FRAME_SIZE = HEADER_SIZE + FRAME_OVERHEAD
MAX_FRAME_SIZE = HEADER_SIZE + FRAME_OVERHEAD + MAX_PAYLOAD


class Command(IntEnum):
    """Bytes de comando del protocolo."""
    VERSION = 0x01
    READ_CARD = 0x02
    BEEP = 0x06


BytesLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class Frame:
    """Trama del lector ya validada."""
    command: int
    payload: bytes = b""
    address: int = DEFAULT_ADDRESS

    def __post_init__(self) -> None:
        if not 0 <= self.command <= 0xFF:
            raise ValueError(f"Comando fuera de rango: {self.command}")
        if not 0 <= self.address <= 0xFF:
            raise ValueError(f"Dirección fuera de rango: {self.address}")
        if len(self.payload) > MAX_PAYLOAD:
            raise ValueError(f"Payload demasiado largo: {len(self.payload)} > {MAX_PAYLOAD}")
        object.__setattr__(self, "payload", bytes(self.payload))

    @property
    def length(self) -> int:
        """Valor del campo LEN."""
        return len(self.payload) + FRAME_OVERHEAD

    @property
    def checksum(self) -> int:
        """Suma de verificación de la trama."""
        return compute_checksum(self.length, self.command, self.payload)

    def to_bytes(self) -> bytes:
        """Convierte la trama a bytes."""
        return encode_frame(self)


def compute_checksum(length: int, command: int, payload: BytesLike = b"") -> int:
    """Calcula la suma módulo 256 de LEN, CMD y DATA."""
    total = (length >> 8) + (length & 0xFF) + command
    for byte in payload:
        total += byte
    return total & 0xFF


def encode_frame(frame: Frame) -> bytes:
    """Codifica una trama en bytes listos para el cable."""
    result = bytearray(PREAMBLE)
    result.extend(frame.length.to_bytes(2, "big"))
    result.append(frame.address)
    result.append(frame.command)
    result.extend(frame.payload)
    result.append(frame.checksum)
    return bytes(result)


def build_command(command: int, payload: BytesLike = b"", address: int = DEFAULT_ADDRESS) -> bytes:
    """Atajo para codificar un comando saliente."""
    return encode_frame(Frame(command=command, payload=bytes(payload), address=address))


def declared_length(buffer: BytesLike) -> Optional[int]:
    """Lee el campo LEN de un buffer que empieza por el preámbulo."""
    if len(buffer) < HEADER_SIZE:
        return None
    return (buffer[2] << 8) | buffer[3]


def decode_frame(buffer: BytesLike) -> Frame:
    """Decodifica una trama completa.

    Args:
        buffer: Bytes de exactamente una trama

    Returns:
        Frame validada

    Raises:
        FrameError: Si la estructura es inválida
        ChecksumMismatchError: Si la suma de verificación no coincide
    """
    if len(buffer) < MIN_FRAME_SIZE:
        raise FrameError(f"Trama demasiado corta: {len(buffer)} bytes")

    if bytes(buffer[:2]) != PREAMBLE:
        raise FrameError("Preámbulo inválido")

    length = declared_length(buffer)
    if length < FRAME_OVERHEAD or length > FRAME_OVERHEAD + MAX_PAYLOAD:
        raise FrameError(f"Longitud declarada inválida: {length}")

    if len(buffer) != HEADER_SIZE + length:
        raise FrameError(
            f"Longitud inconsistente: declarada {length}, disponible {len(buffer) - HEADER_SIZE}"
        )

    address = buffer[4]
    command = buffer[5]
    payload = bytes(buffer[6:-1])
    received = buffer[-1]

    expected = compute_checksum(length, command, payload)
    if expected != received:
        raise ChecksumMismatchError(expected, received)

    return Frame(command=command, payload=payload, address=address)


def hex_dump(data: BytesLike) -> str:
    """Representa bytes como 'AA BB 00 ...'."""
    return " ".join(f"{byte:02X}" for byte in data)


class FrameAssembler:
    """Reensambla tramas a partir de un flujo de bytes.

    Mantiene un buffer acumulativo, busca el preámbulo y, cuando la trama
    declarada está completa, valida la suma de verificación. Una trama
    corrupta se descarta y el escaneo continúa desde el byte siguiente,
    de modo que un flujo corrupto nunca bloquea el ensamblador.
    """

    def __init__(self, max_buffer: int = 4 * MAX_FRAME_SIZE, address: Optional[int] = None):
        """Inicializa el ensamblador.

        Args:
            max_buffer: Tamaño máximo del buffer acumulado en bytes
            address: Si se indica, se descartan las tramas de otra dirección
        """
        if max_buffer < MAX_FRAME_SIZE:
            raise ValueError(f"El buffer debe admitir al menos {MAX_FRAME_SIZE} bytes")

        self._buffer = bytearray()
        self._max_buffer = max_buffer
        self.address = address
        self.stats = {
            'frames': 0,
            'checksum_errors': 0,
            'framing_errors': 0,
            'address_mismatches': 0,
            'discarded_bytes': 0,
        }

    @property
    def pending(self) -> int:
        """Bytes pendientes en el buffer."""
        return len(self._buffer)

    def clear(self) -> None:
        """Descarta los bytes acumulados."""
        self._buffer.clear()

    def feed(self, data: BytesLike) -> List[Frame]:
        """Agrega bytes recibidos y devuelve las tramas completas validadas.

        Args:
            data: Bytes leídos del dispositivo

        Returns:
            Lista de tramas válidas en orden de llegada
        """
        self._buffer.extend(data)
        frames: List[Frame] = []

        while True:
            start = self._buffer.find(PREAMBLE)
            if start < 0:
                # Conservar un posible 0xAA final que inicie el próximo preámbulo
                keep = 1 if self._buffer[-1:] == PREAMBLE[:1] else 0
                self._discard(len(self._buffer) - keep)
                break

            if start > 0:
                self._discard(start)

            length = declared_length(self._buffer)
            if length is None:
                break

            if length < FRAME_OVERHEAD or length > FRAME_OVERHEAD + MAX_PAYLOAD:
                self.stats['framing_errors'] += 1
                logger.debug(f"Longitud inválida {length}, descartando preámbulo")
                self._discard(1)
                continue

            total = HEADER_SIZE + length
            if len(self._buffer) < total:
                break

            candidate = bytes(self._buffer[:total])
            try:
                frame = decode_frame(candidate)
            except ChecksumMismatchError as e:
                self.stats['checksum_errors'] += 1
                logger.debug(f"Trama descartada: {e} [{hex_dump(candidate)}]")
                self._discard(1)
                continue

            # La dirección no entra en la suma de verificación
            if self.address is not None and frame.address != self.address:
                self.stats['address_mismatches'] += 1
                logger.debug(f"Trama para la dirección 0x{frame.address:02X} descartada")
                self._discard(1)
                continue

            del self._buffer[:total]
            self.stats['frames'] += 1
            frames.append(frame)

        if len(self._buffer) > self._max_buffer:
            self._discard(len(self._buffer) - self._max_buffer)

        return frames

    def _discard(self, count: int) -> None:
        if count <= 0:
            return
        del self._buffer[:count]
        self.stats['discarded_bytes'] += count
