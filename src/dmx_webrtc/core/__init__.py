"""Core configuration and error types for DMXWebRTC."""

from dmx_webrtc.core.config import OutputConfig, Settings
from dmx_webrtc.core.exceptions import (
    BridgeError,
    DecodingError,
    EncodingError,
    InvalidAddressError,
    MalformedPayloadError,
)

__all__ = [
    "OutputConfig",
    "Settings",
    "BridgeError",
    "DecodingError",
    "EncodingError",
    "InvalidAddressError",
    "MalformedPayloadError",
]
