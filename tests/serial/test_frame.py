"""Tests para codificación y reensamblado de tramas."""

import logging

import pytest

from modules.icreader_serial.errors import ChecksumMismatchError, FrameError
from modules.icreader_serial.frame import (
    Command,
    Frame,
    FrameAssembler,
    MAX_FRAME_SIZE,
    build_command,
    compute_checksum,
    decode_frame,
    encode_frame,
    hex_dump,
)


CARD_PAYLOAD = bytes.fromhex("4404A1B2C3D49000")


class TestFrameEncoding:
    """Tests de codificación de comandos."""

    def test_version_query_matches_reference(self):
        """Test comando de versión byte a byte."""
        assert build_command(Command.VERSION) == bytes.fromhex("AABB0003010104")

    def test_read_card_matches_reference(self):
        """Test comando de lectura byte a byte."""
        assert build_command(Command.READ_CARD) == bytes.fromhex("AABB0003010205")

    def test_beep_matches_reference(self):
        """Test comando de pitido byte a byte."""
        assert build_command(Command.BEEP, b"\x01") == bytes.fromhex("AABB00040106010B")

    def test_length_counts_address_command_data_and_checksum(self):
        """Test campo LEN = len(DATA) + 3."""
        frame = Frame(command=Command.READ_CARD, payload=CARD_PAYLOAD)
        encoded = frame.to_bytes()

        assert frame.length == len(CARD_PAYLOAD) + 3
        assert encoded[2:4] == frame.length.to_bytes(2, "big")
        assert len(encoded) == 4 + frame.length

    def test_checksum_excludes_address(self):
        """Test la dirección no altera la suma de verificación."""
        a = encode_frame(Frame(command=0x02, payload=b"\x10", address=0x01))
        b = encode_frame(Frame(command=0x02, payload=b"\x10", address=0x7F))
        assert a[-1] == b[-1]
        assert compute_checksum(4, 0x02, b"\x10") == a[-1]

    def test_checksum_wraps_modulo_256(self):
        """Test suma módulo 256."""
        assert compute_checksum(3 + 2, 0xFF, b"\xFF\xFF") == (5 + 0xFF * 3) & 0xFF

    def test_frame_rejects_out_of_range_values(self):
        """Test validación de campos."""
        with pytest.raises(ValueError):
            Frame(command=0x100)
        with pytest.raises(ValueError):
            Frame(command=0x01, address=-1)
        with pytest.raises(ValueError):
            Frame(command=0x01, payload=bytes(256))

    def test_hex_dump(self):
        assert hex_dump(b"\xAA\xBB\x00") == "AA BB 00"


class TestFrameDecoding:
    """Tests de decodificación de tramas completas."""

    def test_decode_reference_read_command(self):
        """Test decodificación del comando de lectura."""
        frame = decode_frame(bytes.fromhex("AABB0003010205"))
        assert frame == Frame(command=Command.READ_CARD, payload=b"", address=0x01)

    def test_decode_card_response(self):
        """Test decodificación de una respuesta con datos."""
        encoded = build_command(Command.READ_CARD, CARD_PAYLOAD)
        frame = decode_frame(encoded)

        assert frame.command == Command.READ_CARD
        assert frame.payload == CARD_PAYLOAD
        assert decode_frame(frame.to_bytes()) == frame

    def test_decode_bad_checksum(self):
        """Test checksum incorrecto."""
        data = bytearray(build_command(Command.VERSION))
        data[-1] ^= 0x01

        with pytest.raises(ChecksumMismatchError) as exc_info:
            decode_frame(bytes(data))

        assert exc_info.value.expected == 0x04
        assert exc_info.value.actual == 0x05

    def test_decode_structural_errors(self):
        """Test tramas mal formadas."""
        with pytest.raises(FrameError):
            decode_frame(b"\xAA\xBB\x00")
        with pytest.raises(FrameError):
            decode_frame(bytes.fromhex("AACC0003010205"))
        with pytest.raises(FrameError):
            decode_frame(bytes.fromhex("AABB000201FF05"))
        with pytest.raises(FrameError):
            decode_frame(bytes.fromhex("AABB00050102050B"))


class TestFrameAssembler:
    """Tests del reensamblador de tramas sobre flujo de bytes."""

    def test_single_frame(self):
        """Test trama completa en un solo bloque."""
        assembler = FrameAssembler()
        frames = assembler.feed(build_command(Command.READ_CARD, CARD_PAYLOAD))

        assert len(frames) == 1
        assert frames[0].payload == CARD_PAYLOAD
        assert assembler.pending == 0
        assert assembler.stats['frames'] == 1

    def test_frame_split_byte_by_byte(self):
        """Test trama recibida en fragmentos de un byte."""
        assembler = FrameAssembler()
        encoded = build_command(Command.READ_CARD, CARD_PAYLOAD)

        frames = []
        for byte in encoded:
            frames.extend(assembler.feed(bytes([byte])))

        assert [f.payload for f in frames] == [CARD_PAYLOAD]

    def test_garbage_before_and_between_frames(self):
        """Test basura antes y entre tramas."""
        assembler = FrameAssembler()
        stream = (
            b"\x00\x13\x37" +
            build_command(Command.VERSION, b"\x01\x02") +
            b"\xFF\xAA\x00" +
            build_command(Command.BEEP)
        )

        frames = assembler.feed(stream)

        assert [f.command for f in frames] == [Command.VERSION, Command.BEEP]
        assert assembler.stats['discarded_bytes'] == 6

    def test_trailing_preamble_byte_is_kept(self):
        """Test 0xAA final se conserva para el siguiente bloque."""
        assembler = FrameAssembler()
        encoded = build_command(Command.READ_CARD)

        assert assembler.feed(b"\x01\x02" + encoded[:1]) == []
        assert assembler.pending == 1

        frames = assembler.feed(encoded[1:])
        assert len(frames) == 1

    def test_bad_checksum_is_dropped_and_logged(self, caplog):
        """Test trama con checksum incorrecto: se descarta con log debug."""
        caplog.set_level(logging.DEBUG, logger="modules.icreader_serial.frame")
        assembler = FrameAssembler()
        data = bytearray(build_command(Command.READ_CARD, CARD_PAYLOAD))
        data[-1] ^= 0x55

        assert assembler.feed(bytes(data)) == []
        assert assembler.stats['checksum_errors'] == 1

        drops = [r for r in caplog.records if "Trama descartada" in r.getMessage()]
        assert len(drops) == 1
        assert drops[0].levelno == logging.DEBUG

    def test_resyncs_after_corrupted_frame(self):
        """Test el escaneo continúa tras una trama corrupta."""
        assembler = FrameAssembler()
        corrupted = bytearray(build_command(Command.READ_CARD, CARD_PAYLOAD))
        corrupted[7] ^= 0x01

        frames = assembler.feed(bytes(corrupted) + build_command(Command.BEEP, b"\x01"))

        assert [f.command for f in frames] == [Command.BEEP]

    def test_any_single_byte_flip_is_rejected(self):
        """Test alterar cualquier byte de la trama impide aceptarla."""
        encoded = build_command(Command.READ_CARD, CARD_PAYLOAD)

        for index in range(len(encoded)):
            corrupted = bytearray(encoded)
            corrupted[index] ^= 0xFF
            assembler = FrameAssembler(address=0x01)
            assert assembler.feed(bytes(corrupted)) == [], f"byte {index} aceptado"

    def test_invalid_length_is_false_preamble(self):
        """Test LEN fuera de rango se trata como falso preámbulo."""
        assembler = FrameAssembler()

        frames = assembler.feed(b"\xAA\xBB\x00\x01" + build_command(Command.VERSION))

        assert [f.command for f in frames] == [Command.VERSION]
        assert assembler.stats['framing_errors'] == 1

    def test_address_filter(self):
        """Test tramas de otra dirección se descartan."""
        assembler = FrameAssembler(address=0x01)

        frames = assembler.feed(build_command(Command.BEEP, address=0x02))

        assert frames == []
        assert assembler.stats['address_mismatches'] == 1

    def test_buffer_is_bounded(self):
        """Test el buffer no crece sin límite."""
        assembler = FrameAssembler(max_buffer=MAX_FRAME_SIZE)
        # Trama de longitud máxima con checksum incorrecto seguida de relleno
        assembler.feed(b"\xAA\xBB\x01\x02" + bytes(MAX_FRAME_SIZE * 2))

        assert assembler.pending <= MAX_FRAME_SIZE

    def test_clear(self):
        assembler = FrameAssembler()
        assembler.feed(b"\xAA\xBB\x00")
        assembler.clear()
        assert assembler.pending == 0

    def test_rejects_small_buffer(self):
        with pytest.raises(ValueError):
            FrameAssembler(max_buffer=10)
