"""Shared Art-Net UDP socket and its asyncio endpoint."""

from __future__ import annotations

import asyncio
import socket
from typing import Callable, Optional, Tuple

import structlog

from dmx_webrtc.core.config import ArtNetConfig
from dmx_webrtc.core.exceptions import DecodingError, SocketBindError
from dmx_webrtc.dmx.artnet import ArtNetFrame, decode_frame

logger = structlog.get_logger()

FrameHandler = Callable[[ArtNetFrame, Tuple[str, int]], None]
ErrorHandler = Callable[[Exception], None]


def open_artnet_socket(
    bind_host: str,
    port: int,
    broadcast: bool = True,
    reuse_address: bool = True,
) -> socket.socket:
    """Create and bind the UDP socket shared by every output and channel."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        if reuse_address:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if broadcast:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.bind((bind_host, port))
    except OSError as e:
        sock.close()
        raise SocketBindError(bind_host, port, str(e)) from e
    return sock


class ArtNetEndpoint(asyncio.DatagramProtocol):
    """Decodes inbound Art-Net datagrams and hands them to a callback."""

    def __init__(
        self,
        on_frame: Optional[FrameHandler] = None,
        on_error: Optional[ErrorHandler] = None,
    ):
        self.on_frame = on_frame
        self.on_error = on_error
        self.transport: Optional[asyncio.DatagramTransport] = None

        # Stats
        self._received = 0
        self._undecodable = 0
        self._socket_errors = 0

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]
        logger.info("Art-Net socket ready", sockname=transport.get_extra_info("sockname"))

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self._received += 1
        try:
            frame = decode_frame(data)
        except DecodingError as e:
            self._undecodable += 1
            logger.debug("Ignored Art-Net datagram", source=addr[0], error=e.message)
            return

        if self.on_frame is not None:
            self.on_frame(frame, addr)

    def error_received(self, exc: Exception) -> None:
        self._socket_errors += 1
        logger.error("Art-Net socket error", error=str(exc))
        if self.on_error is not None:
            self.on_error(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            logger.error("Art-Net socket lost", error=str(exc))
        else:
            logger.info("Art-Net socket closed")
        self.transport = None

    def get_stats(self) -> dict:
        return {
            "received": self._received,
            "undecodable": self._undecodable,
            "socket_errors": self._socket_errors,
        }


async def create_artnet_endpoint(
    config: ArtNetConfig,
    on_frame: Optional[FrameHandler] = None,
    on_error: Optional[ErrorHandler] = None,
) -> Tuple[asyncio.DatagramTransport, ArtNetEndpoint]:
    """Bind the shared socket and attach it to the running event loop."""
    sock = open_artnet_socket(
        config.bind_host,
        config.port,
        broadcast=config.broadcast,
        reuse_address=config.reuse_address,
    )
    sock.setblocking(False)
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: ArtNetEndpoint(on_frame, on_error),
        sock=sock,
    )
    return transport, protocol
