from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from dmx_webrtc.bridge.outputs import Output, OutputSet
from dmx_webrtc.core.config import OutputConfig
from dmx_webrtc.core.exceptions import InvalidAddressError


def test_replace_computes_broadcast_addresses() -> None:
    outputs = OutputSet()
    outputs.replace(
        [
            {"name": "eth0", "address": "192.168.1.10", "mask": "255.255.255.0"},
            {"name": "eth1", "address": "10.0.0.5", "mask": "255.0.0.0", "cidr": "10.0.0.5/8"},
        ]
    )

    assert [o.broadcast for o in outputs] == ["192.168.1.255", "10.255.255.255"]
    assert outputs.generation == 1


def test_replace_discards_previous_set() -> None:
    outputs = OutputSet([OutputConfig(name="a", address="192.168.1.10", mask="255.255.255.0")])
    outputs.replace([OutputConfig(name="b", address="10.1.2.3", mask="255.255.0.0")])

    assert [o.name for o in outputs] == ["b"]


def test_broadcast_is_recomputed_when_mask_changes() -> None:
    outputs = OutputSet([{"name": "eth0", "address": "10.1.2.3", "mask": "255.255.255.0"}])
    assert outputs.snapshot()[0].broadcast == "10.1.2.255"

    outputs.replace([{"name": "eth0", "address": "10.1.2.3", "mask": "255.255.0.0"}])
    assert outputs.snapshot()[0].broadcast == "10.1.255.255"


def test_invalid_entry_keeps_previous_set() -> None:
    original = [{"name": "eth0", "address": "192.168.1.10", "mask": "255.255.255.0"}]
    outputs = OutputSet(original)
    before = outputs.snapshot()

    with pytest.raises(InvalidAddressError):
        outputs.replace(
            [
                {"name": "ok", "address": "10.0.0.1", "mask": "255.0.0.0"},
                {"name": "bad", "address": "10.0.0", "mask": "255.0.0.0"},
            ]
        )
    with pytest.raises(InvalidAddressError):
        outputs.replace([{"name": "no-mask", "address": "10.0.0.1"}])

    assert outputs.snapshot() is before
    assert outputs.generation == 0


def test_replace_with_empty_list_clears_outputs() -> None:
    outputs = OutputSet([{"name": "eth0", "address": "192.168.1.10", "mask": "255.255.255.0"}])
    outputs.replace([])

    assert len(outputs) == 0
    assert outputs.snapshot() == ()


def test_output_as_dict() -> None:
    output = Output.from_config(OutputConfig(name="eth0", address="2.0.0.1", mask="255.0.0.0"))
    assert output.as_dict() == {
        "name": "eth0",
        "address": "2.0.0.1",
        "mask": "255.0.0.0",
        "broadcast": "2.255.255.255",
    }


def test_replace_logs_generation_and_outputs() -> None:
    outputs = OutputSet()

    with capture_logs() as logs:
        outputs.replace([{"name": "eth0", "address": "10.0.0.5", "mask": "255.0.0.0"}])

    (entry,) = [log for log in logs if log["event"] == "Outputs replaced"]
    assert entry["generation"] == 1
    assert entry["outputs"] == [
        {"name": "eth0", "address": "10.0.0.5", "mask": "255.0.0.0", "broadcast": "10.255.255.255"}
    ]
