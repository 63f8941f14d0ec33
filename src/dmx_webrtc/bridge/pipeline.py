"""
Forwarding Pipeline: peer control messages to Art-Net broadcasts.

A control message is a JSON object carrying a universe id and its DMX512
buffer. Each message becomes one ArtDMX frame, replicated to the broadcast
address of every configured output over the shared Art-Net socket.
Delivery is fire-and-forget: malformed messages and failed sends are
logged and dropped.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Optional, Protocol, Tuple, Union

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from dmx_webrtc.bridge.outputs import OutputSet
from dmx_webrtc.core.exceptions import BridgeError, MalformedPayloadError
from dmx_webrtc.dmx.artnet import ArtNetCodec, OpCode
from dmx_webrtc.dmx.universe import (
    DMX_CHANNEL_COUNT,
    DMX_VALUE_MAX,
    DMX_VALUE_MIN,
    UNIVERSE_MAX,
    UNIVERSE_MIN,
    to_dmx_buffer,
)

logger = structlog.get_logger()

# Datagrams buffered by the event loop beyond this size mean the socket is not keeping up
SEND_BACKLOG_WARNING_BYTES = 64 * 1024

DmxValue = Annotated[int, Field(ge=DMX_VALUE_MIN, le=DMX_VALUE_MAX)]


class DatagramSender(Protocol):
    """Anything with a ``sendto`` like a UDP socket or an asyncio datagram transport."""

    def sendto(self, data: bytes, addr: Tuple[str, int]) -> Any: ...


class ControlPayload(BaseModel):
    """One universe update sent by a peer."""

    # Strict: "7", true and 1.0 are not channel values
    model_config = ConfigDict(populate_by_name=True, strict=True)

    universe: int = Field(ge=UNIVERSE_MIN, le=UNIVERSE_MAX)
    channel_values: List[DmxValue] = Field(
        max_length=DMX_CHANNEL_COUNT,
        validation_alias=AliasChoices("DMX512Buffer", "channelValues", "channel_values"),
    )

    @field_validator("channel_values", mode="before")
    @classmethod
    def _index_object_to_list(cls, value: Any) -> Any:
        # JSON.stringify on a typed array yields {"0": v0, "1": v1, ...}
        # Keys must be exactly "0".."n-1"; anything else is left for validation to reject
        if isinstance(value, dict) and set(value) == {str(i) for i in range(len(value))}:
            return [value[str(i)] for i in range(len(value))]
        return value

    def dmx_buffer(self) -> bytes:
        return to_dmx_buffer(self.channel_values)


def parse_control_payload(
    raw: Union[str, bytes, bytearray], channel_id: Optional[int] = None
) -> ControlPayload:
    """Parse a JSON control message, raising MalformedPayloadError on any failure."""
    if not isinstance(raw, (str, bytes, bytearray)):
        raise MalformedPayloadError(f"unsupported message type {type(raw).__name__}", channel_id)
    try:
        return ControlPayload.model_validate_json(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "message"
        raise MalformedPayloadError(f"{location}: {first['msg']}", channel_id) from e


class ForwardingPipeline:
    """
    Turns control messages into ArtDMX frames and broadcasts them.

    The sender is attached once the shared socket is bound; until then
    frames are discarded.
    """

    def __init__(
        self,
        codec: ArtNetCodec,
        outputs: OutputSet,
        port: int,
        sender: Optional[DatagramSender] = None,
    ):
        self.codec = codec
        self.outputs = outputs
        self.port = port
        self._sender = sender

        # Stats
        self._messages = 0
        self._malformed = 0
        self._frames = 0
        self._datagrams_sent = 0
        self._send_errors = 0
        self._discarded = 0

    def attach(self, sender: Optional[DatagramSender]) -> None:
        self._sender = sender

    def on_message(self, channel_id: int, raw: Any) -> int:
        """
        Handle one message from a data channel.

        Returns the number of outputs the frame was handed to. Errors are
        logged and never raised.
        """
        self._messages += 1
        try:
            payload = parse_control_payload(raw, channel_id)
            return self.forward(payload)
        except BridgeError as e:
            self._malformed += 1
            logger.warning(
                "Dropped control message",
                channel_id=channel_id,
                error=e.message,
            )
            return 0

    def forward(self, payload: ControlPayload) -> int:
        frame = self.codec.encode(OpCode.DMX, payload.universe, payload.dmx_buffer())
        self._frames += 1
        return self.deliver(frame, universe=payload.universe)

    def deliver(self, frame: bytes, universe: Optional[int] = None) -> int:
        """
        Send a frame to every output in one snapshot of the output set.

        Returns the number of outputs the frame was handed to. A plain socket
        raises OSError here and the failure is counted per output. An asyncio
        transport never raises from ``sendto``; it reports errors later through
        ``ArtNetEndpoint.error_received``, which feeds ``record_socket_error``.
        """
        outputs = self.outputs.snapshot()
        sender = self._sender

        if not outputs or sender is None:
            self._discarded += 1
            return 0

        delivered = 0
        for output in outputs:
            try:
                sender.sendto(frame, (output.broadcast, self.port))
            except OSError as e:
                self._send_errors += 1
                logger.error(
                    "Art-Net send failed",
                    output=output.name,
                    broadcast=output.broadcast,
                    error=str(e),
                )
                continue
            delivered += 1

        self._datagrams_sent += delivered
        logger.debug("Forwarded ArtDMX frame", universe=universe, outputs=delivered)
        self._check_backlog(sender)
        return delivered

    def record_socket_error(self, exc: Exception) -> None:
        """Count an error the event loop reported for the shared socket."""
        self._send_errors += 1

    def _check_backlog(self, sender: DatagramSender) -> None:
        get_size = getattr(sender, "get_write_buffer_size", None)
        if get_size is None:
            return
        backlog = get_size()
        if backlog > SEND_BACKLOG_WARNING_BYTES:
            logger.warning("Art-Net socket backlog", buffered_bytes=backlog)

    def get_stats(self) -> dict:
        return {
            "messages": self._messages,
            "malformed": self._malformed,
            "frames": self._frames,
            "datagrams_sent": self._datagrams_sent,
            "send_errors": self._send_errors,
            "discarded": self._discarded,
        }
