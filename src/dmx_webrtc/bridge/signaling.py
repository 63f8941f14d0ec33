"""
Signaling Server: websocket relay for session descriptions and outputs.

Every message is a JSON object ``{"type": ..., "data": ...}``:

- ``__WRTC_OFR``: ``data`` is a WebRTC offer; the reply carries the answer.
- ``__OUTPUTS_LIST``: the reply lists the host's IPv4 interfaces.
- ``__OUTPUTS__SET``: ``data`` replaces the output set. No reply.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

import structlog
import websockets

from dmx_webrtc.bridge.outputs import OutputSet
from dmx_webrtc.core.config import SignalingConfig
from dmx_webrtc.core.exceptions import InvalidAddressError, SignalingError
from dmx_webrtc.dmx.network import list_ipv4_interfaces

logger = structlog.get_logger()


class MessageType(str, Enum):
    WEBRTC_OFFER = "__WRTC_OFR"
    OUTPUTS_LIST = "__OUTPUTS_LIST"
    OUTPUTS_SET = "__OUTPUTS__SET"


class OfferHandler(Protocol):
    async def accept_offer(self, description: Any) -> Dict[str, str]: ...


class SignalingServer:
    """Websocket endpoint browsers use to negotiate and configure outputs."""

    def __init__(
        self,
        config: SignalingConfig,
        peers: OfferHandler,
        outputs: OutputSet,
        list_interfaces: Callable[[], List[Dict[str, str]]] = list_ipv4_interfaces,
    ):
        self.config = config
        self.peers = peers
        self.outputs = outputs
        self.list_interfaces = list_interfaces
        self._server: Any = None

    async def start(self) -> None:
        self._server = await websockets.serve(self._handle_connection, self.config.host, self.config.port)
        logger.info("Websocket signaling listening", host=self.config.host, port=self.config.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Websocket signaling stopped")

    async def _handle_connection(self, websocket: Any) -> None:
        remote = getattr(websocket, "remote_address", None)
        logger.info("Signaling client connected", remote=remote)
        try:
            async for raw in websocket:
                try:
                    reply = await self.handle_message(raw, remote=remote)
                except SignalingError as e:
                    logger.warning("Dropped signaling message", remote=remote, error=e.message)
                    continue
                if reply is not None:
                    await websocket.send(json.dumps(reply))
        except websockets.ConnectionClosed:
            pass
        finally:
            logger.info("Signaling client disconnected", remote=remote)

    async def handle_message(self, raw: Any, remote: Any = None) -> Optional[Dict[str, Any]]:
        """Process one signaling message and return the reply, if any."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise SignalingError(f"invalid JSON ({e})") from e
        if not isinstance(message, dict) or "type" not in message:
            raise SignalingError("message must be an object with a 'type'")

        kind = message["type"]
        data = message.get("data")

        if kind == MessageType.WEBRTC_OFFER.value:
            logger.info("Websocket offer", remote=remote)
            answer = await self.peers.accept_offer(data)
            return {"type": MessageType.WEBRTC_OFFER.value, "data": answer}

        if kind == MessageType.OUTPUTS_LIST.value:
            return {"type": MessageType.OUTPUTS_LIST.value, "data": self.list_interfaces()}

        if kind == MessageType.OUTPUTS_SET.value:
            if not isinstance(data, list):
                raise SignalingError("outputs must be a list", kind)
            try:
                self.outputs.replace(data)
            except InvalidAddressError as e:
                raise SignalingError(e.message, kind) from e
            return None

        logger.debug("Ignored signaling message", type=kind)
        return None
