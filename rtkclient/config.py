"""Typed connection configuration.

The core never persists settings or secrets. Hosts, ports, mountpoints and
credentials are handed in by the caller (CLI arguments, a settings store, a
keychain) and checked here before any socket is opened.
"""

import base64
from dataclasses import dataclass, field

from rtkclient.errors import ConfigurationError

__all__ = [
    "DEFAULT_NTRIP_PORT",
    "DEFAULT_USER_AGENT",
    "NTRIPConfig",
    "TCPEndpoint",
]

DEFAULT_NTRIP_PORT = 2101
DEFAULT_USER_AGENT = "NTRIP rtkclient/0.1"

_FORBIDDEN_HOST_CHARACTERS = frozenset(" \t\r\n/")
_FORBIDDEN_MOUNTPOINT_CHARACTERS = frozenset(" \t\r\n/")


def _validate_host(host: str) -> None:
    if not host:
        raise ConfigurationError("host must not be empty")
    if any(character in _FORBIDDEN_HOST_CHARACTERS for character in host):
        raise ConfigurationError(f"invalid host: {host!r}")


def _validate_port(port: int) -> None:
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConfigurationError(f"port must be an integer, got {port!r}")
    if not 1 <= port <= 65535:
        raise ConfigurationError(f"port out of range: {port}")


@dataclass(frozen=True)
class TCPEndpoint:
    """Address of a receiver reachable over plain TCP.

    Attributes:
        host: Hostname or IP address.
        port: TCP port. There is no universal default; many receivers use
            2947 or 2948 for their NMEA stream.
    """

    host: str
    port: int

    def validate(self) -> None:
        """Raise ``ConfigurationError`` if the endpoint is malformed."""
        _validate_host(self.host)
        _validate_port(self.port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class NTRIPConfig:
    """Caster address, mountpoint and credentials for one NTRIP session.

    Attributes:
        host: Caster hostname.
        port: Caster port (2101 by convention).
        mountpoint: Stream name on the caster, without leading slash.
        username: Caster account; empty for anonymous casters.
        password: Caster password. Excluded from ``repr``.
        user_agent: Value of the ``User-Agent`` header. Casters commonly
            require it to start with ``NTRIP``.
        position_report_interval: Seconds between GGA re-sends.
        connect_timeout: Seconds allowed for connect plus response headers.
    """

    host: str
    mountpoint: str
    port: int = DEFAULT_NTRIP_PORT
    username: str = ""
    password: str = field(default="", repr=False)
    user_agent: str = DEFAULT_USER_AGENT
    position_report_interval: float = 10.0
    connect_timeout: float = 10.0

    def validate(self) -> None:
        """Raise ``ConfigurationError`` if any field is malformed."""
        _validate_host(self.host)
        _validate_port(self.port)
        if not self.mountpoint:
            raise ConfigurationError("mountpoint must not be empty")
        if any(c in _FORBIDDEN_MOUNTPOINT_CHARACTERS for c in self.mountpoint):
            raise ConfigurationError(f"invalid mountpoint: {self.mountpoint!r}")
        if ":" in self.username:
            raise ConfigurationError("username must not contain ':'")
        if self.password and not self.username:
            raise ConfigurationError("password given without username")
        for value in (self.username, self.password, self.user_agent):
            if "\r" in value or "\n" in value:
                raise ConfigurationError("header values must not contain line breaks")
        if self.position_report_interval <= 0:
            raise ConfigurationError("position_report_interval must be positive")
        if self.connect_timeout <= 0:
            raise ConfigurationError("connect_timeout must be positive")

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/{self.mountpoint}"

    @property
    def authorization(self) -> str | None:
        """Value of the ``Authorization`` header, None for anonymous access."""
        if not self.username:
            return None
        token = f"{self.username}:{self.password}".encode("utf-8")
        return f"Basic {base64.b64encode(token).decode('ascii')}"
