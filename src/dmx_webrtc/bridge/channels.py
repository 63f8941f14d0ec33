"""
Channel Registry: owns the open WebRTC data channels.

Each channel handed over by the WebRTC engine gets a process-unique
integer id. Message and close notifications from the underlying handle
are re-dispatched to subscribers tagged with that id, in the order the
handle delivered them.
"""

from __future__ import annotations

import itertools
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

import structlog

logger = structlog.get_logger()

READY_STATE_OPEN = "open"
READY_STATE_CONNECTING = "connecting"

EVENT_OPEN = "open"
EVENT_MESSAGE = "message"
EVENT_CLOSE = "close"
EVENT_KINDS = (EVENT_OPEN, EVENT_MESSAGE, EVENT_CLOSE)

Subscriber = Callable[[int, Any], None]


class ChannelHandle(Protocol):
    """The subset of the WebRTC engine's data channel the registry relies on."""

    readyState: str

    def on(self, event: str, f: Callable[..., Any]) -> Any: ...

    def send(self, data: Any) -> None: ...


class ChannelState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Channel:
    """One peer data channel tracked by the registry."""

    def __init__(self, channel_id: int, handle: ChannelHandle):
        self.id = channel_id
        self.handle = handle
        self.state = (
            ChannelState.CONNECTING
            if getattr(handle, "readyState", None) == READY_STATE_CONNECTING
            else ChannelState.OPEN
        )

    @property
    def label(self) -> Optional[str]:
        return getattr(self.handle, "label", None)

    def __repr__(self) -> str:
        return f"Channel(id={self.id}, state={self.state.value})"


class ChannelRegistry:
    """
    Live set of peer data channels keyed by id.

    Ids come from a monotonic counter and are never reused while the
    process runs. Lookups by id tolerate channels that have already been
    removed.
    """

    def __init__(self) -> None:
        self._channels: Dict[int, Channel] = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Subscriber]] = {kind: [] for kind in EVENT_KINDS}

        # Stats
        self._registered = 0
        self._closed = 0
        self._dropped_sends = 0

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, kind: str, callback: Subscriber) -> None:
        """Receive ``callback(channel_id, data)`` for every event of ``kind``."""
        if kind not in self._subscribers:
            raise ValueError(f"Unknown channel event kind: {kind}")
        self._subscribers[kind].append(callback)

    def _dispatch(self, kind: str, channel_id: int, data: Any = None) -> None:
        for callback in list(self._subscribers[kind]):
            callback(channel_id, data)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register(self, handle: ChannelHandle) -> Channel:
        """Wrap a freshly announced data channel and start routing its events."""
        with self._lock:
            channel = Channel(next(self._ids), handle)
            self._channels[channel.id] = channel
            self._registered += 1

        channel_id = channel.id
        handle.on(EVENT_OPEN, lambda: self._handle_open(channel_id))
        handle.on(EVENT_MESSAGE, lambda message: self._handle_message(channel_id, message))
        handle.on(EVENT_CLOSE, lambda: self._handle_close(channel_id))

        logger.info(
            "Data channel registered",
            channel_id=channel_id,
            label=channel.label,
            state=channel.state.value,
        )
        return channel

    def _handle_open(self, channel_id: int) -> None:
        channel = self.get(channel_id)
        if channel is None or channel.state is ChannelState.CLOSED:
            return
        channel.state = ChannelState.OPEN
        logger.info("Data channel connected", channel_id=channel_id)
        self._dispatch(EVENT_OPEN, channel_id)

    def _handle_message(self, channel_id: int, message: Any) -> None:
        if self.get(channel_id) is None:
            return
        self._dispatch(EVENT_MESSAGE, channel_id, message)

    def _handle_close(self, channel_id: int) -> None:
        if self.remove(channel_id) is not None:
            self._dispatch(EVENT_CLOSE, channel_id)

    def remove(self, channel_id: int) -> Optional[Channel]:
        """Mark a channel closed and drop it. Unknown ids are ignored."""
        with self._lock:
            channel = self._channels.pop(channel_id, None)
            if channel is None:
                return None
            channel.state = ChannelState.CLOSED
            self._closed += 1

        logger.info("Data channel closed", channel_id=channel_id, open_channels=len(self))
        return channel

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get(self, channel_id: int) -> Optional[Channel]:
        with self._lock:
            return self._channels.get(channel_id)

    def ids(self) -> List[int]:
        with self._lock:
            return list(self._channels)

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send(self, channel_id: int, data: Any) -> bool:
        """
        Best-effort send to one channel.

        Data is dropped without error when the channel is gone or its
        transport is not open. Nothing is queued.
        """
        channel = self.get(channel_id)
        if channel is None or getattr(channel.handle, "readyState", None) != READY_STATE_OPEN:
            self._dropped_sends += 1
            return False
        channel.handle.send(data)
        return True

    def broadcast(self, data: Any) -> int:
        """Best-effort send to every open channel; returns how many accepted it."""
        return sum(1 for channel_id in self.ids() if self.send(channel_id, data))

    def get_stats(self) -> dict:
        return {
            "open_channels": len(self),
            "registered": self._registered,
            "closed": self._closed,
            "dropped_sends": self._dropped_sends,
        }
