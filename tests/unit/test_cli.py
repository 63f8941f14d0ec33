from __future__ import annotations

import logging

import pytest
import structlog
from click.testing import CliRunner

from dmx_webrtc.dmx import network
from dmx_webrtc.ui import cli as cli_module
from dmx_webrtc.ui.cli import _parse_output, cli


def test_parse_output_accepts_prefix_length() -> None:
    output = _parse_output("192.168.1.10/24")
    assert output.address == "192.168.1.10"
    assert output.mask == "255.255.255.0"


def test_parse_output_accepts_dotted_mask() -> None:
    assert _parse_output("10.0.0.5/255.0.0.0").mask == "255.0.0.0"


def test_list_outputs_prints_broadcast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        network,
        "list_ipv4_interfaces",
        lambda: [{"name": "eth0", "cidr": "192.168.1.10/24", "address": "192.168.1.10", "mask": "255.255.255.0"}],
    )

    result = CliRunner().invoke(cli, ["list-outputs"], obj={})

    assert result.exit_code == 0
    assert "eth0" in result.output
    assert "192.168.1.255" in result.output


def test_send_broadcasts_one_frame(monkeypatch: pytest.MonkeyPatch) -> None:
    sent = []

    class _SocketProbe:
        def sendto(self, data, addr) -> None:
            sent.append((data, addr))

        def close(self) -> None:
            pass

    import dmx_webrtc.bridge.transport as transport

    monkeypatch.setattr(transport, "open_artnet_socket", lambda *args, **kwargs: _SocketProbe())

    result = CliRunner().invoke(
        cli, ["send", "-n", "2", "-o", "10.0.0.5/8", "-u", "6455", "255", "0", "10"], obj={}
    )

    assert result.exit_code == 0, result.output
    assert len(sent) == 1
    data, addr = sent[0]
    assert addr == ("10.255.255.255", 6455)
    assert data[14] == 2
    assert data[18:] == bytes([255, 0, 10])


def test_send_rejects_bad_output() -> None:
    result = CliRunner().invoke(cli, ["send", "-o", "10.0.0/8", "1"], obj={})
    assert result.exit_code != 0


def test_main_is_callable() -> None:
    assert callable(cli_module.main)


@pytest.mark.parametrize(
    "args,expected",
    [
        ([], logging.WARNING),
        (["--debug"], logging.DEBUG),
    ],
)
def test_log_level_comes_from_settings_unless_debug(
    monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest, args: list, expected: int
) -> None:
    levels = []
    make_logger = structlog.make_filtering_bound_logger

    def recording_logger(level: int):
        levels.append(level)
        return make_logger(level)

    monkeypatch.setattr(structlog, "make_filtering_bound_logger", recording_logger)
    request.addfinalizer(structlog.reset_defaults)
    monkeypatch.setattr(network, "list_ipv4_interfaces", lambda: [])

    result = CliRunner().invoke(
        cli, args + ["list-outputs"], obj={}, env={"DMXWEBRTC_LOG_LEVEL": "warning"}
    )

    assert result.exit_code == 0, result.output
    assert levels == [expected]
