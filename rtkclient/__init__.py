"""RTK GNSS client: receiver link, NTRIP corrections and NMEA parsing."""

from rtkclient.config import NTRIPConfig, TCPEndpoint
from rtkclient.errors import (
    ConfigurationError,
    LinkError,
    NTRIPResponseError,
    RTKClientError,
)
from rtkclient.gnss import FixQuality, GNSSPosition
from rtkclient.link import (
    BLEDeviceLink,
    DeviceLink,
    DiscoveredDevice,
    LinkFailure,
    LinkState,
    LinkStatus,
    TCPDeviceLink,
)
from rtkclient.nmea import NMEAStreamParser, build_gga_sentence, validate_checksum
from rtkclient.ntrip import NTRIPClient, NTRIPFailure, NTRIPState, NTRIPStatus
from rtkclient.reconnect import ReconnectPolicy
from rtkclient.session import GNSSSession, SessionSnapshot, SessionStatus

__all__ = [
    "BLEDeviceLink",
    "ConfigurationError",
    "DeviceLink",
    "DiscoveredDevice",
    "FixQuality",
    "GNSSPosition",
    "GNSSSession",
    "LinkError",
    "LinkFailure",
    "LinkState",
    "LinkStatus",
    "NMEAStreamParser",
    "NTRIPClient",
    "NTRIPConfig",
    "NTRIPFailure",
    "NTRIPResponseError",
    "NTRIPState",
    "NTRIPStatus",
    "RTKClientError",
    "ReconnectPolicy",
    "SessionSnapshot",
    "SessionStatus",
    "TCPDeviceLink",
    "TCPEndpoint",
    "build_gga_sentence",
    "validate_checksum",
]
