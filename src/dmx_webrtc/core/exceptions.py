"""
Custom Exceptions for DMXWebRTC.

Every error raised by the bridge is local to one operation (one frame, one
message, one configuration update) unless marked non-recoverable. Callers
log recoverable errors and drop the offending operation.
"""

from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base exception for all DMXWebRTC errors."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


# =============================================================================
# Art-Net Errors
# =============================================================================


class ArtNetError(BridgeError):
    """Base exception for Art-Net codec errors."""
    pass


class EncodingError(ArtNetError):
    """A field does not fit the Art-Net frame layout."""

    def __init__(self, field: str, value: int, reason: str):
        super().__init__(f"Cannot encode {field}={value}: {reason}")
        self.field = field
        self.value = value


class DecodingError(ArtNetError):
    """Received frame is too short to hold the Art-Net header."""

    def __init__(self, length: int, minimum: int):
        super().__init__(
            f"Art-Net frame too short: {length} bytes (need at least {minimum})"
        )
        self.length = length
        self.minimum = minimum


# =============================================================================
# Network Errors
# =============================================================================


class NetworkError(BridgeError):
    """Base exception for network-related errors."""
    pass


class InvalidAddressError(NetworkError):
    """Malformed dotted-decimal IPv4 address or netmask."""

    def __init__(self, address: str, reason: str):
        super().__init__(f"Invalid IPv4 address {address!r}: {reason}")
        self.address = address
        self.reason = reason


class SocketBindError(NetworkError):
    """Failed to bind the shared Art-Net socket."""

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(
            f"Failed to bind Art-Net socket on {host}:{port}: {reason}",
            recoverable=False,
        )
        self.host = host
        self.port = port
        self.reason = reason


# =============================================================================
# Channel Errors
# =============================================================================


class ChannelError(BridgeError):
    """Base exception for peer data channel errors."""
    pass


class MalformedPayloadError(ChannelError):
    """Control message from a peer could not be parsed."""

    def __init__(self, reason: str, channel_id: Optional[int] = None):
        where = f" on channel {channel_id}" if channel_id is not None else ""
        super().__init__(f"Malformed control payload{where}: {reason}")
        self.channel_id = channel_id
        self.reason = reason


# =============================================================================
# Signaling Errors
# =============================================================================


class SignalingError(BridgeError):
    """Malformed or unprocessable signaling message."""

    def __init__(self, reason: str, message_type: Optional[str] = None):
        prefix = f"Signaling message '{message_type}'" if message_type else "Signaling message"
        super().__init__(f"{prefix} rejected: {reason}")
        self.message_type = message_type
        self.reason = reason

