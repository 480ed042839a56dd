"""Device link states, failure reasons and discovery results."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = ["DiscoveredDevice", "LinkFailure", "LinkState", "LinkStatus"]


class LinkState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    FAILED = "failed"


class LinkFailure(Enum):
    """Why a device link entered ``LinkState.FAILED``."""

    CONNECTION_FAILED = "connection failed"
    CONNECTION_LOST = "connection lost"
    WRITE_FAILED = "write failed"
    SERVICE_NOT_FOUND = "service not found"
    CHARACTERISTIC_NOT_FOUND = "characteristic not found"
    TIMEOUT = "connection timed out"
    RECONNECTION_EXHAUSTED = "reconnection attempts exhausted"
    UNAVAILABLE = "transport unavailable"


@dataclass(frozen=True)
class LinkStatus:
    """Immutable snapshot of a device link's connection state.

    Attributes:
        state: Current state.
        reason: Failure reason, set only when ``state`` is FAILED.
        detail: Human readable detail of the failure, if any.
        attempt: Consecutive failures counted by the reconnect policy.
    """

    state: LinkState = LinkState.IDLE
    reason: LinkFailure | None = None
    detail: str = ""
    attempt: int = 0

    @property
    def is_connected(self) -> bool:
        return self.state is LinkState.CONNECTED

    @property
    def is_terminal(self) -> bool:
        """True when no automatic retry will follow."""
        return self.reason is LinkFailure.RECONNECTION_EXHAUSTED


@dataclass(frozen=True)
class DiscoveredDevice:
    """A receiver found during discovery.

    Equality and hashing use ``identifier`` only. The signal strength
    changes on every advertisement, and a re-sighted device must still
    match the entry already in a list or set.

    Attributes:
        identifier: Platform-assigned identity (BLE address or ``host:port``).
        name: Advertised display name, if any.
        signal_strength: RSSI in dBm, None where the transport has none.
        metadata: Raw advertisement data or probe results.
        handle: Platform object needed to connect (e.g. a bleak ``BLEDevice``).
    """

    identifier: str
    name: str | None = field(default=None, compare=False)
    signal_strength: int | None = field(default=None, compare=False)
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)
    handle: Any = field(default=None, compare=False, repr=False)
