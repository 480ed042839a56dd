"""Byte links to GNSS receivers (BLE and TCP)."""

from rtkclient.link.base import DeviceLink
from rtkclient.link.ble import BLEDeviceLink
from rtkclient.link.tcp import TCPDeviceLink
from rtkclient.link.types import DiscoveredDevice, LinkFailure, LinkState, LinkStatus

__all__ = [
    "BLEDeviceLink",
    "DeviceLink",
    "DiscoveredDevice",
    "LinkFailure",
    "LinkState",
    "LinkStatus",
    "TCPDeviceLink",
]
