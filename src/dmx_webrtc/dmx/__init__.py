"""DMX and Art-Net wire helpers."""

from dmx_webrtc.dmx.artnet import (
    ArtNetCodec,
    ArtNetFrame,
    OpCode,
    SequenceCounter,
    decode_frame,
    encode_frame,
)
from dmx_webrtc.dmx.network import list_ipv4_interfaces, resolve_broadcast
from dmx_webrtc.dmx.universe import (
    DMX_CHANNEL_COUNT,
    UNIVERSE_MAX,
    is_valid_universe,
    to_dmx_buffer,
)

__all__ = [
    "ArtNetCodec",
    "ArtNetFrame",
    "OpCode",
    "SequenceCounter",
    "decode_frame",
    "encode_frame",
    "list_ipv4_interfaces",
    "resolve_broadcast",
    "DMX_CHANNEL_COUNT",
    "UNIVERSE_MAX",
    "is_valid_universe",
    "to_dmx_buffer",
]
