"""
Peer Manager: hands browser offers to aiortc and collects data channels.

The WebRTC engine owns negotiation, ICE and encryption. This module only
creates a peer connection per offer, returns the engine's answer, and
registers every data channel the remote side opens.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Set

import structlog
from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription

from dmx_webrtc.bridge.channels import ChannelRegistry
from dmx_webrtc.core.config import WebRTCConfig
from dmx_webrtc.core.exceptions import SignalingError

logger = structlog.get_logger()

TERMINAL_CONNECTION_STATES = ("failed", "closed")


def _build_rtc_configuration(config: WebRTCConfig) -> Optional[RTCConfiguration]:
    if not config.ice_servers:
        return None  # LAN only: host candidates
    return RTCConfiguration(iceServers=[RTCIceServer(urls=url) for url in config.ice_servers])


def parse_session_description(description: Any) -> RTCSessionDescription:
    if not isinstance(description, Mapping):
        raise SignalingError("session description must be an object")
    sdp = description.get("sdp")
    kind = description.get("type")
    if not isinstance(sdp, str) or not isinstance(kind, str):
        raise SignalingError("session description needs string 'sdp' and 'type'")
    if kind != "offer":
        raise SignalingError(f"expected an offer, got '{kind}'")
    return RTCSessionDescription(sdp=sdp, type=kind)


class PeerManager:
    """Creates one RTCPeerConnection per offer and tracks it until it ends."""

    def __init__(
        self,
        registry: ChannelRegistry,
        config: Optional[WebRTCConfig] = None,
        peer_factory: Optional[Callable[..., RTCPeerConnection]] = None,
    ):
        self.registry = registry
        self.config = config or WebRTCConfig()
        self._peer_factory = peer_factory or RTCPeerConnection
        self._peers: Set[RTCPeerConnection] = set()

    async def accept_offer(self, description: Any) -> Dict[str, str]:
        """Answer a remote offer; data channels are registered as they arrive."""
        offer = parse_session_description(description)

        logger.info("Creating peer connection")
        peer = self._peer_factory(configuration=_build_rtc_configuration(self.config))
        self._peers.add(peer)

        @peer.on("datachannel")
        def on_datachannel(channel: Any) -> None:
            logger.info("Creating new DMX data channel", label=getattr(channel, "label", None))
            self.registry.register(channel)

        @peer.on("connectionstatechange")
        async def on_connectionstatechange() -> None:
            state = peer.connectionState
            logger.debug("Peer connection state", state=state)
            if state in TERMINAL_CONNECTION_STATES:
                await self._close_peer(peer)

        try:
            await peer.setRemoteDescription(offer)
            logger.debug("Preparing answer")
            await peer.setLocalDescription(await peer.createAnswer())
        except Exception as e:
            await self._close_peer(peer)
            raise SignalingError(f"WebRTC negotiation failed: {e}") from e

        logger.info("Waiting for data channel", peers=len(self._peers))
        local = peer.localDescription
        return {"sdp": local.sdp, "type": local.type}

    async def _close_peer(self, peer: RTCPeerConnection) -> None:
        if peer not in self._peers:
            return
        self._peers.discard(peer)
        await peer.close()
        logger.info("Peer connection closed", peers=len(self._peers))

    async def close(self) -> None:
        for peer in list(self._peers):
            await self._close_peer(peer)

    def __len__(self) -> int:
        return len(self._peers)
