import socket
from collections import namedtuple

import pytest

from dmx_webrtc.core.exceptions import InvalidAddressError
from dmx_webrtc.dmx import network
from dmx_webrtc.dmx.network import int_to_ip, ip_to_int, resolve_broadcast


@pytest.mark.parametrize(
    "address,mask,expected",
    [
        ("192.168.1.10", "255.255.255.0", "192.168.1.255"),
        ("10.0.0.5", "255.0.0.0", "10.255.255.255"),
        ("172.16.5.4", "255.255.240.0", "172.16.15.255"),
        ("2.0.0.1", "255.0.0.0", "2.255.255.255"),
        ("255.255.255.254", "255.255.255.255", "255.255.255.254"),
        ("192.168.1.10", "0.0.0.0", "255.255.255.255"),
    ],
)
def test_resolve_broadcast(address: str, mask: str, expected: str) -> None:
    assert resolve_broadcast(address, mask) == expected


def test_high_bit_addresses_stay_unsigned() -> None:
    assert ip_to_int("255.255.255.255") == 0xFFFFFFFF
    assert ip_to_int("200.1.2.3") == 0xC8010203
    assert int_to_ip(0xFFFFFFFF) == "255.255.255.255"
    assert int_to_ip(0xC8010203) == "200.1.2.3"


@pytest.mark.parametrize(
    "bad",
    ["192.168.1", "192.168.1.1.1", "192.168.one.1", "192.168.1.256", "", "1..2.3", "-1.2.3.4"],
)
def test_malformed_addresses_are_rejected(bad: str) -> None:
    with pytest.raises(InvalidAddressError):
        resolve_broadcast(bad, "255.255.255.0")
    with pytest.raises(InvalidAddressError):
        resolve_broadcast("192.168.1.10", bad)


def test_list_ipv4_interfaces_keeps_ipv4_only(monkeypatch: pytest.MonkeyPatch) -> None:
    Addr = namedtuple("Addr", "family address netmask broadcast ptp")
    fake = {
        "lo": [Addr(socket.AF_INET, "127.0.0.1", "255.0.0.0", None, None)],
        "eth0": [
            Addr(socket.AF_INET, "192.168.1.10", "255.255.255.0", "192.168.1.255", None),
            Addr(socket.AF_INET6, "fe80::1", "ffff:ffff:ffff:ffff::", None, None),
        ],
        "tun0": [Addr(socket.AF_INET, "10.8.0.2", None, None, None)],
    }
    monkeypatch.setattr(network.psutil, "net_if_addrs", lambda: fake)

    interfaces = network.list_ipv4_interfaces()

    assert interfaces == [
        {"name": "lo", "cidr": "127.0.0.1/8", "address": "127.0.0.1", "mask": "255.0.0.0"},
        {
            "name": "eth0",
            "cidr": "192.168.1.10/24",
            "address": "192.168.1.10",
            "mask": "255.255.255.0",
        },
    ]
