from __future__ import annotations

import asyncio
import json

import pytest

from dmx_webrtc.bridge import service
from dmx_webrtc.bridge.service import DMXWebRTCBridge, frame_to_message
from dmx_webrtc.bridge.transport import ArtNetEndpoint
from dmx_webrtc.core.config import ArtNetConfig, OutputConfig, Settings
from dmx_webrtc.dmx.artnet import ArtNetFrame, OpCode


class _OpenChannel:
    readyState = "open"
    label = "dmx"

    def __init__(self) -> None:
        self.sent: list = []
        self._listeners: dict = {}

    def on(self, event, f):
        self._listeners.setdefault(event, []).append(f)
        return f

    def emit(self, event, *args) -> None:
        for listener in self._listeners.get(event, []):
            listener(*args)

    def send(self, data) -> None:
        self.sent.append(data)


class _SenderProbe:
    def __init__(self) -> None:
        self.sent: list = []

    def sendto(self, data, addr) -> None:
        self.sent.append((data, addr))


def test_bridge_builds_outputs_from_settings() -> None:
    settings = Settings(outputs=[OutputConfig(name="eth0", address="2.0.0.1", mask="255.0.0.0")])
    bridge = DMXWebRTCBridge(settings)

    assert [o.broadcast for o in bridge.outputs] == ["2.255.255.255"]
    assert bridge.pipeline.port == 6454


def test_channel_messages_flow_to_art_net() -> None:
    settings = Settings(outputs=[OutputConfig(name="eth0", address="192.168.1.10", mask="255.255.255.0")])
    bridge = DMXWebRTCBridge(settings)
    sender = _SenderProbe()
    bridge.pipeline.attach(sender)

    handle = _OpenChannel()
    bridge.registry.register(handle)
    handle.emit("message", json.dumps({"universe": 1, "DMX512Buffer": [255, 0, 127]}))

    assert len(sender.sent) == 1
    data, addr = sender.sent[0]
    assert addr == ("192.168.1.255", 6454)
    assert data[18:] == bytes([255, 0, 127])


def test_inbound_frames_are_relayed_when_enabled() -> None:
    bridge = DMXWebRTCBridge(Settings(artnet=ArtNetConfig(relay_inbound=True)))
    handle = _OpenChannel()
    bridge.registry.register(handle)

    bridge.handle_inbound_frame(
        ArtNetFrame(universe=5, payload=b"\x01\x02", opcode=OpCode.DMX, sequence=0),
        ("192.168.1.20", 6454),
    )
    bridge.handle_inbound_frame(
        ArtNetFrame(universe=5, payload=b"", opcode=OpCode.POLL, sequence=0),
        ("192.168.1.20", 6454),
    )

    assert [json.loads(m) for m in handle.sent] == [{"universe": 5, "DMX512Buffer": [1, 2]}]


def test_inbound_frames_are_not_relayed_by_default() -> None:
    bridge = DMXWebRTCBridge()
    handle = _OpenChannel()
    bridge.registry.register(handle)

    bridge.handle_inbound_frame(
        ArtNetFrame(universe=5, payload=b"\x01", opcode=OpCode.DMX, sequence=0),
        ("192.168.1.20", 6454),
    )

    assert handle.sent == []


def test_frame_to_message() -> None:
    frame = ArtNetFrame(universe=300, payload=b"\x00\xff", opcode=OpCode.DMX, sequence=1)
    assert json.loads(frame_to_message(frame)) == {"universe": 300, "DMX512Buffer": [0, 255]}


def test_stats_cover_every_component() -> None:
    stats = DMXWebRTCBridge().get_stats()
    assert set(stats) == {"pipeline", "channels", "inbound", "outputs", "peers"}
    assert stats["outputs"] == 0


def test_socket_errors_reach_pipeline_stats(monkeypatch: pytest.MonkeyPatch) -> None:
    bridge = DMXWebRTCBridge()

    async def fake_endpoint(config, on_frame=None, on_error=None):
        return _SenderProbe(), ArtNetEndpoint(on_frame, on_error)

    async def no_signaling() -> None:
        pass

    monkeypatch.setattr(service, "create_artnet_endpoint", fake_endpoint)
    monkeypatch.setattr(bridge.signaling, "start", no_signaling)

    asyncio.run(bridge.start())
    bridge._endpoint.error_received(OSError("Network is unreachable"))

    stats = bridge.get_stats()
    assert stats["pipeline"]["send_errors"] == 1
    assert stats["inbound"]["socket_errors"] == 1
