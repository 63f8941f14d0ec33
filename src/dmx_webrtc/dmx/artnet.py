"""Art-Net packet encoding and decoding."""

from __future__ import annotations

import struct
import threading
from dataclasses import dataclass
from enum import IntEnum

from dmx_webrtc.core.exceptions import DecodingError, EncodingError
from dmx_webrtc.dmx.universe import DMX_CHANNEL_COUNT, is_valid_universe

ARTNET_HEADER = b"Art-Net\x00"
ARTNET_PROTOCOL_VERSION = 14

ARTNET_HEADER_SIZE = 18
ARTNET_OPCODE_OFFSET = 8
ARTNET_SEQUENCE_OFFSET = 12
ARTNET_UNIVERSE_LOW_OFFSET = 14
ARTNET_UNIVERSE_HIGH_OFFSET = 15
ARTNET_DATA_OFFSET = 18

SEQUENCE_MODULO = 255
OPCODE_MAX = 0xFFFF


class OpCode(IntEnum):
    """Art-Net opcodes."""

    # Device discovery
    POLL = 0x2000
    POLL_REPLY = 0x2100
    # Device configuration
    ADDRESS = 0x6000
    INPUT = 0x7000
    IP_PROG = 0xF800
    IP_PROG_REPLY = 0xF900
    COMMAND = 0x2400
    # Streaming control
    DMX = 0x5000
    NZS = 0x5100
    SYNC = 0x5200
    # RDM
    TOD_REQUEST = 0x8000
    TOD_DATA = 0x8100
    TOD_CONTROL = 0x8200
    RDM = 0x8300
    RDM_SUB = 0x8400
    # Time keeping
    TIME_CODE = 0x9700
    TIME_SYNC = 0x9800
    # Triggering
    TRIGGER = 0x9900
    # Diagnostics
    DIAG_DATA = 0x2300


def low_byte(value: int) -> int:
    return value & 0xFF


def high_byte(value: int) -> int:
    return (value >> 8) & 0xFF


@dataclass(frozen=True)
class ArtNetFrame:
    """Fields read back from a received Art-Net frame."""
    universe: int
    payload: bytes
    opcode: int
    sequence: int


def check_frame_fields(opcode: int, universe: int, payload: bytes) -> None:
    """Raise EncodingError when a field does not fit the frame layout."""
    if not 0 <= opcode <= OPCODE_MAX:
        raise EncodingError("opcode", opcode, "must fit in 16 bits")
    if not is_valid_universe(universe):
        raise EncodingError("universe", universe, "must fit in 15 bits")
    if len(payload) > DMX_CHANNEL_COUNT:
        raise EncodingError(
            "length", len(payload), f"payload exceeds {DMX_CHANNEL_COUNT} slots"
        )


def encode_frame(opcode: int, universe: int, payload: bytes, sequence: int) -> bytes:
    """
    Build an Art-Net streaming frame.

    The payload is sent as-is (no padding to 512 slots), so the frame is
    always ``18 + len(payload)`` bytes long.
    """
    check_frame_fields(opcode, universe, payload)

    length = len(payload)

    packet = bytearray()
    packet.extend(ARTNET_HEADER)
    packet.extend(bytes([low_byte(opcode), high_byte(opcode)]))
    packet.extend(struct.pack(">H", ARTNET_PROTOCOL_VERSION))
    packet.extend(bytes([sequence % SEQUENCE_MODULO, 0]))  # physical port is always 0
    packet.extend(bytes([low_byte(universe), high_byte(universe)]))
    # Length is big-endian per Art-Net spec.
    packet.extend(bytes([high_byte(length), low_byte(length)]))
    packet.extend(payload)
    return bytes(packet)


def decode_frame(frame: bytes) -> ArtNetFrame:
    """
    Read universe and DMX data from a received frame.

    The Art-Net identifier and opcode are reported but not validated.
    """
    if len(frame) < ARTNET_HEADER_SIZE:
        raise DecodingError(len(frame), ARTNET_HEADER_SIZE)

    universe = frame[ARTNET_UNIVERSE_LOW_OFFSET] | (frame[ARTNET_UNIVERSE_HIGH_OFFSET] << 8)
    opcode = frame[ARTNET_OPCODE_OFFSET] | (frame[ARTNET_OPCODE_OFFSET + 1] << 8)
    return ArtNetFrame(
        universe=universe,
        payload=bytes(frame[ARTNET_DATA_OFFSET:]),
        opcode=opcode,
        sequence=frame[ARTNET_SEQUENCE_OFFSET],
    )


class SequenceCounter:
    """Thread-safe Art-Net sequence source cycling through 0..254."""

    def __init__(self, start: int = 0):
        self._value = start % SEQUENCE_MODULO
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._value
            self._value = (value + 1) % SEQUENCE_MODULO
        return value


class ArtNetCodec:
    """Encoder owning the process sequence counter, plus the permissive decoder."""

    def __init__(self, sequence: SequenceCounter | None = None):
        self.sequence = sequence or SequenceCounter()

    def encode(self, opcode: int, universe: int, payload: bytes) -> bytes:
        # Rejected frames do not consume a sequence value
        check_frame_fields(opcode, universe, payload)
        return encode_frame(opcode, universe, payload, self.sequence.next())

    def encode_dmx(self, universe: int, payload: bytes) -> bytes:
        return self.encode(OpCode.DMX, universe, payload)

    @staticmethod
    def decode(frame: bytes) -> ArtNetFrame:
        return decode_frame(frame)
