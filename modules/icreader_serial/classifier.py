"""Clasificador de familias de tarjeta.

Aplica una lista ordenada de pruebas sobre el payload de una respuesta de
lectura. Los patrones de bytes se solapan, así que gana la primera prueba
que coincide. El orden es una política documentada, no un protocolo
publicado por el fabricante: el byte 0x04 aparece tanto en la prueba ATQA
de ISO14443 Tipo A como en la tabla de banderas (NTAG216), y la prueba
Tipo A tiene prioridad.
"""

from typing import Callable, Dict, Sequence, Tuple, Union

from core.entities.card import CardFamily


BytesLike = Union[bytes, bytearray, memoryview, Sequence[int]]

# Posición de la bandera de tipo dentro del payload
TYPE_FLAG_OFFSET = 1

# UID: 4 bytes a partir de esta posición
CARD_ID_OFFSET = 2
CARD_ID_LENGTH = 4

TYPE_FLAGS: Dict[int, CardFamily] = {
    0x01: CardFamily.M1_S50,
    0x02: CardFamily.NTAG213,
    0x03: CardFamily.NTAG215,
    0x04: CardFamily.NTAG216,
    0x08: CardFamily.DOOR_125KHZ,
    0x44: CardFamily.BANK_ISO14443A,
    0x50: CardFamily.BANK_ISO14443B,
}


def is_iso14443_type_a(payload: BytesLike) -> bool:
    """ATQA de ISO14443 Tipo A (mayoría de tarjetas bancarias)."""
    return len(payload) >= 7 and payload[0] in (0x44, 0x04)


def is_iso14443_type_b(payload: BytesLike) -> bool:
    """ATQB de ISO14443 Tipo B."""
    return len(payload) >= 12 and payload[0] == 0x50


def is_emv(payload: BytesLike) -> bool:
    """Plantilla FCI, nombre DF o ATR de tarjeta de pago."""
    if not payload:
        return False
    if payload[0] in (0x6F, 0x84):
        return True
    return payload[0] == 0x3B and len(payload) >= 10


def is_low_frequency(payload: BytesLike) -> bool:
    """Patrones de tarjetas de acceso de 125 kHz (EM4100, HID Prox)."""
    if not payload:
        return False
    if payload[0] == 0x1D and len(payload) == 5:
        return True
    if len(payload) < 2:
        return False
    return (payload[0] == 0xFD and payload[1] == 0x55) or \
           (payload[0] == 0x00 and payload[1] == 0x00)


ORDERED_TESTS: Tuple[Tuple[Callable[[BytesLike], bool], CardFamily], ...] = (
    (is_iso14443_type_a, CardFamily.BANK_ISO14443A),
    (is_iso14443_type_b, CardFamily.BANK_ISO14443B),
    (is_emv, CardFamily.EMV_PAYMENT),
    (is_low_frequency, CardFamily.DOOR_125KHZ),
)


def classify(payload: BytesLike) -> CardFamily:
    """Clasifica el payload de una respuesta de lectura.

    Args:
        payload: Bytes de la respuesta de lectura (sin cabecera de trama)

    Returns:
        Familia de la tarjeta, UNKNOWN si ninguna prueba coincide
    """
    for test, family in ORDERED_TESTS:
        if test(payload):
            return family

    if len(payload) > TYPE_FLAG_OFFSET:
        return TYPE_FLAGS.get(payload[TYPE_FLAG_OFFSET], CardFamily.UNKNOWN)

    return CardFamily.UNKNOWN


def extract_card_id(payload: BytesLike) -> str:
    """Extrae el identificador de la tarjeta como hexadecimal de ancho fijo.

    Args:
        payload: Bytes de la respuesta de lectura

    Returns:
        8 caracteres hexadecimales en mayúsculas
    """
    uid = bytes(payload[CARD_ID_OFFSET:CARD_ID_OFFSET + CARD_ID_LENGTH])
    return uid.ljust(CARD_ID_LENGTH, b"\x00").hex().upper()
