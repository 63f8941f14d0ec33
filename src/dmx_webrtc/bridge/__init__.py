"""WebRTC data channel to Art-Net bridge components."""

from dmx_webrtc.bridge.channels import Channel, ChannelRegistry, ChannelState
from dmx_webrtc.bridge.outputs import Output, OutputSet
from dmx_webrtc.bridge.pipeline import ControlPayload, ForwardingPipeline, parse_control_payload

__all__ = [
    "Channel",
    "ChannelRegistry",
    "ChannelState",
    "Output",
    "OutputSet",
    "ControlPayload",
    "ForwardingPipeline",
    "parse_control_payload",
]
