"""Exception hierarchy.

Exceptions never cross an actor boundary: transport failures are raised
inside a component and turned into a state transition by its owner. The one
exception callers see directly is ``ConfigurationError``, raised before any
connection attempt is made.
"""

from enum import Enum

__all__ = [
    "ConfigurationError",
    "LinkError",
    "NTRIPResponseError",
    "RTKClientError",
]


class RTKClientError(Exception):
    """Base class for all rtkclient errors."""


class ConfigurationError(RTKClientError, ValueError):
    """Connection parameters are malformed (empty host, bad port, ...)."""


class LinkError(RTKClientError):
    """A transport operation failed.

    Args:
        reason: Failure reason enum member of the owning component.
        message: Optional human readable detail.
    """

    def __init__(self, reason: Enum, message: str = "") -> None:
        super().__init__(message or reason.value)
        self.reason = reason


class NTRIPResponseError(RTKClientError):
    """The caster rejected the request or sent an unparseable response.

    Args:
        reason: ``NTRIPFailure`` member describing the rejection.
        status_code: HTTP status code, None when no status line was parsed.
        message: Optional human readable detail.
    """

    def __init__(
        self,
        reason: Enum,
        status_code: int | None = None,
        message: str = "",
    ) -> None:
        super().__init__(message or reason.value)
        self.reason = reason
        self.status_code = status_code
