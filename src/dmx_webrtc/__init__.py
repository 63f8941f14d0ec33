"""
DMXWebRTC: WebRTC to Art-Net bridge.

Receives DMX512 universes from browsers over WebRTC data channels and
broadcasts them as ArtDMX packets to every configured network output.
"""

__version__ = "0.1.0"
__author__ = "DMXWebRTC Team"

from dmx_webrtc.core.config import Settings

__all__ = [
    "Settings",
    "__version__",
]
