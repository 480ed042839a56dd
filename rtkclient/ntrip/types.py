"""NTRIP session states and failure reasons."""

from dataclasses import dataclass
from enum import Enum

__all__ = ["NTRIPFailure", "NTRIPState", "NTRIPStatus"]


class NTRIPState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"
    FAILED = "failed"


class NTRIPFailure(Enum):
    """Why an NTRIP session entered ``NTRIPState.FAILED``."""

    CONNECTION_FAILED = "connection failed"
    CONNECTION_LOST = "connection lost"
    AUTHENTICATION_FAILED = "authentication failed"
    MOUNTPOINT_NOT_FOUND = "mountpoint not found"
    SERVER_ERROR = "server error"
    INVALID_RESPONSE = "invalid response"
    TIMEOUT = "connection timed out"
    RECONNECTION_EXHAUSTED = "reconnection attempts exhausted"


@dataclass(frozen=True)
class NTRIPStatus:
    """Immutable snapshot of the NTRIP session state.

    Attributes:
        state: Current state.
        reason: Failure reason, set only when ``state`` is FAILED.
        status_code: HTTP status code for ``SERVER_ERROR`` and other
            rejections by the caster, None otherwise.
        detail: Human readable detail of the failure, if any.
        attempt: Consecutive failures counted by the reconnect policy.
    """

    state: NTRIPState = NTRIPState.DISCONNECTED
    reason: NTRIPFailure | None = None
    status_code: int | None = None
    detail: str = ""
    attempt: int = 0

    @property
    def is_connected(self) -> bool:
        return self.state is NTRIPState.CONNECTED

    @property
    def is_terminal(self) -> bool:
        """True when no automatic retry will follow."""
        return self.reason in (
            NTRIPFailure.AUTHENTICATION_FAILED,
            NTRIPFailure.RECONNECTION_EXHAUSTED,
        )
