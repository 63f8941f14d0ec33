"""IPv4 broadcast address arithmetic and host interface discovery."""

from __future__ import annotations

import socket
import struct
from typing import Dict, List

import psutil
import structlog

from dmx_webrtc.core.exceptions import InvalidAddressError

logger = structlog.get_logger()

IPV4_MASK = 0xFFFFFFFF


def ip_to_int(address: str) -> int:
    """Convert a dotted-decimal quad to an unsigned 32-bit integer."""
    if not isinstance(address, str):
        raise InvalidAddressError(str(address), "expected a dotted-decimal string")

    octets = address.strip().split(".")
    if len(octets) != 4:
        raise InvalidAddressError(address, f"expected 4 octets, got {len(octets)}")

    value = 0
    for octet in octets:
        if not octet.isascii() or not octet.isdigit():
            raise InvalidAddressError(address, f"octet {octet!r} is not numeric")
        number = int(octet)
        if number > 255:
            raise InvalidAddressError(address, f"octet {number} out of range 0-255")
        value = (value << 8) | number
    return value


def int_to_ip(value: int) -> str:
    """Convert an unsigned 32-bit integer to a dotted-decimal quad."""
    return socket.inet_ntoa(struct.pack(">I", value & IPV4_MASK))


def resolve_broadcast(address: str, netmask: str) -> str:
    """
    Compute the subnet broadcast address for an interface.

    >>> resolve_broadcast("192.168.1.10", "255.255.255.0")
    '192.168.1.255'
    """
    ip = ip_to_int(address)
    mask = ip_to_int(netmask)
    network = ip & mask
    return int_to_ip(network | (~mask & IPV4_MASK))


def netmask_prefix(netmask: str) -> int:
    """Number of leading one bits in a netmask."""
    return bin(ip_to_int(netmask)).count("1")


def list_ipv4_interfaces() -> List[Dict[str, str]]:
    """
    Enumerate host IPv4 interfaces.

    Returns one ``{name, cidr, address, mask}`` entry per IPv4 address,
    the shape clients send back in an outputs update.
    """
    interfaces: List[Dict[str, str]] = []
    for name, addresses in psutil.net_if_addrs().items():
        for addr in addresses:
            if addr.family != socket.AF_INET or not addr.netmask:
                continue
            interfaces.append(
                {
                    "name": name,
                    "cidr": f"{addr.address}/{netmask_prefix(addr.netmask)}",
                    "address": addr.address,
                    "mask": addr.netmask,
                }
            )
    logger.debug("Enumerated IPv4 interfaces", count=len(interfaces))
    return interfaces
