"""
DMXWebRTC Bridge: wires signaling, data channels and the Art-Net socket.

All process-scoped state (sequence counter, channel registry, output set,
shared socket) lives on one bridge instance rather than in module globals.
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional, Tuple

import structlog

from dmx_webrtc.bridge.channels import EVENT_MESSAGE, ChannelRegistry
from dmx_webrtc.bridge.outputs import OutputSet
from dmx_webrtc.bridge.peers import PeerManager
from dmx_webrtc.bridge.pipeline import ForwardingPipeline
from dmx_webrtc.bridge.signaling import SignalingServer
from dmx_webrtc.bridge.transport import ArtNetEndpoint, create_artnet_endpoint
from dmx_webrtc.core.config import Settings
from dmx_webrtc.dmx.artnet import ArtNetCodec, ArtNetFrame, OpCode

logger = structlog.get_logger()


def frame_to_message(frame: ArtNetFrame) -> str:
    """JSON control message carrying a received ArtDMX frame."""
    return json.dumps({"universe": frame.universe, "DMX512Buffer": list(frame.payload)})


class DMXWebRTCBridge:
    """Owns one bridge instance: signaling, peers, channels and outputs."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

        self.codec = ArtNetCodec()
        self.registry = ChannelRegistry()
        self.outputs = OutputSet(self.settings.outputs)
        self.pipeline = ForwardingPipeline(
            self.codec,
            self.outputs,
            port=self.settings.artnet.port,
        )
        self.peers = PeerManager(self.registry, self.settings.webrtc)
        self.signaling = SignalingServer(self.settings.signaling, self.peers, self.outputs)

        self.registry.subscribe(EVENT_MESSAGE, self.pipeline.on_message)

        self._transport: Optional[asyncio.DatagramTransport] = None
        self._endpoint: Optional[ArtNetEndpoint] = None
        self._stop_event: Optional[asyncio.Event] = None

    async def start(self) -> None:
        """Bind the Art-Net socket, then open signaling. SocketBindError is fatal."""
        logger.info(
            "Initialising DMXWebRTC bridge",
            signaling_port=self.settings.signaling.port,
            artnet_port=self.settings.artnet.port,
        )
        self._transport, self._endpoint = await create_artnet_endpoint(
            self.settings.artnet,
            on_frame=self.handle_inbound_frame,
            on_error=self.pipeline.record_socket_error,
        )
        self.pipeline.attach(self._transport)
        await self.signaling.start()

    async def stop(self) -> None:
        await self.signaling.stop()
        await self.peers.close()
        self.pipeline.attach(None)
        if self._transport is not None:
            self._transport.close()
            self._transport = None

        logger.info(
            "DMXWebRTC bridge stopped",
            pipeline=self.pipeline.get_stats(),
            channels=self.registry.get_stats(),
        )

    async def run(self) -> None:
        """Run until ``request_stop`` is called or the task is cancelled."""
        self._stop_event = asyncio.Event()
        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.stop()

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    def handle_inbound_frame(self, frame: ArtNetFrame, addr: Tuple[str, int]) -> None:
        """Relay received ArtDMX frames to open channels when enabled."""
        if not self.settings.artnet.relay_inbound or frame.opcode != OpCode.DMX:
            return
        relayed = self.registry.broadcast(frame_to_message(frame))
        logger.debug(
            "Relayed inbound ArtDMX frame",
            source=addr[0],
            universe=frame.universe,
            channels=relayed,
        )

    def get_stats(self) -> dict:
        return {
            "pipeline": self.pipeline.get_stats(),
            "channels": self.registry.get_stats(),
            "inbound": self._endpoint.get_stats() if self._endpoint else {},
            "outputs": len(self.outputs),
            "peers": len(self.peers),
        }
