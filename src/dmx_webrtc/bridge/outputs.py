"""Output set: network destinations every forwarded frame is replicated to."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Tuple, Union

import structlog
from pydantic import ValidationError

from dmx_webrtc.core.config import OutputConfig
from dmx_webrtc.core.exceptions import InvalidAddressError
from dmx_webrtc.dmx.network import resolve_broadcast

logger = structlog.get_logger()

OutputEntry = Union[OutputConfig, Mapping[str, Any]]


@dataclass(frozen=True)
class Output:
    """One configured output with its derived broadcast address."""
    name: str
    address: str
    mask: str
    broadcast: str

    @classmethod
    def from_config(cls, config: OutputConfig) -> "Output":
        return cls(
            name=config.name,
            address=config.address,
            mask=config.mask,
            broadcast=resolve_broadcast(config.address, config.mask),
        )

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "address": self.address,
            "mask": self.mask,
            "broadcast": self.broadcast,
        }


def build_outputs(entries: Iterable[OutputEntry]) -> Tuple[Output, ...]:
    """
    Validate entries and derive their broadcast addresses.

    Raises InvalidAddressError on the first bad entry, so a caller either
    gets the whole new set or nothing.
    """
    outputs = []
    for index, entry in enumerate(entries):
        if isinstance(entry, OutputConfig):
            config = entry
        else:
            try:
                config = OutputConfig.model_validate(entry)
            except ValidationError as e:
                raise InvalidAddressError(
                    str(entry), f"output #{index} is missing name/address/mask ({e.error_count()} errors)"
                ) from e
        outputs.append(Output.from_config(config))
    return tuple(outputs)


class OutputSet:
    """
    Current outputs, replaced wholesale.

    The set is held as an immutable tuple; ``replace`` swaps the reference
    so readers taking a ``snapshot`` see the old set or the new one in full.
    """

    def __init__(self, entries: Iterable[OutputEntry] = ()):
        self._outputs: Tuple[Output, ...] = build_outputs(entries)
        self._lock = threading.Lock()
        self._generation = 0

    def replace(self, entries: Iterable[OutputEntry]) -> Tuple[Output, ...]:
        outputs = build_outputs(entries)
        with self._lock:
            self._outputs = outputs
            self._generation += 1
            generation = self._generation
        logger.info(
            "Outputs replaced",
            generation=generation,
            outputs=[o.as_dict() for o in outputs],
        )
        return outputs

    def snapshot(self) -> Tuple[Output, ...]:
        return self._outputs

    @property
    def generation(self) -> int:
        """Number of replacements applied so far."""
        return self._generation

    def __len__(self) -> int:
        return len(self._outputs)

    def __iter__(self):
        return iter(self._outputs)
