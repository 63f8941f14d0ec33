"""Canonical DMX universe sizing and addressing helpers."""

from __future__ import annotations

from typing import Iterable

DMX_CHANNEL_COUNT = 512
DMX_VALUE_MIN = 0
DMX_VALUE_MAX = 255

# Art-Net Port-Address: Net (7 bits) + Sub-Net (4 bits) + Universe (4 bits)
UNIVERSE_MIN = 0
UNIVERSE_MAX = 0x7FFF


def is_valid_universe(universe: int) -> bool:
    """Return True when a universe id fits the 15-bit Art-Net Port-Address."""
    return UNIVERSE_MIN <= universe <= UNIVERSE_MAX


def to_dmx_buffer(values: Iterable[int]) -> bytes:
    """Pack channel levels into a DMX512 buffer."""
    buffer = bytes(values)
    if len(buffer) > DMX_CHANNEL_COUNT:
        raise ValueError(f"DMX buffer too large: {len(buffer)} channels")
    return buffer
