"""Device link to a receiver over Bluetooth Low Energy.

Compatible receivers expose the Nordic UART Service (NUS): NMEA arrives as
notifications on the TX characteristic and corrections are written to the
RX characteristic. bleak handles the platform BLE stack; its callbacks are
translated here into the link's status and data channels.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from rtkclient.errors import ConfigurationError, LinkError
from rtkclient.link.base import DEFAULT_CONNECT_TIMEOUT, DeviceLink
from rtkclient.link.types import DiscoveredDevice, LinkFailure
from rtkclient.reconnect import ReconnectPolicy

__all__ = [
    "NUS_NOTIFY_CHARACTERISTIC_UUID",
    "NUS_SERVICE_UUID",
    "NUS_WRITE_CHARACTERISTIC_UUID",
    "BLEDeviceLink",
]

logger = logging.getLogger(__name__)

NUS_SERVICE_UUID = "6e400001-b5a3-f393-e0a9-e50e24dcca9e"
NUS_WRITE_CHARACTERISTIC_UUID = "6e400002-b5a3-f393-e0a9-e50e24dcca9e"
NUS_NOTIFY_CHARACTERISTIC_UUID = "6e400003-b5a3-f393-e0a9-e50e24dcca9e"

_SCAN_TIMEOUT = 30.0

# ATT default MTU (23) minus the 3-byte ATT header
_MINIMUM_WRITE_SIZE = 20

ScannerFactory = Callable[..., BleakScanner]
ClientFactory = Callable[..., BleakClient]


def _chunks(data: bytes, size: int) -> list[bytes]:
    return [data[offset : offset + size] for offset in range(0, len(data), size)]


class BLEDeviceLink(DeviceLink[DiscoveredDevice | str]):
    """Device link over the Nordic UART Service.

    ``connect`` accepts a ``DiscoveredDevice`` from discovery or a bare
    address string. Discovery only reports devices advertising the NUS
    service and stops by itself after ``scan_timeout`` seconds.

    Args:
        reconnect_policy: Backoff applied after unexpected failures.
        connect_timeout: Watchdog for one connection attempt, in seconds.
        scan_timeout: Discovery auto-stop delay, in seconds.
        scanner_factory: Builds the scanner. Defaults to ``BleakScanner``.
        client_factory: Builds the GATT client. Defaults to ``BleakClient``.
    """

    def __init__(
        self,
        *,
        reconnect_policy: ReconnectPolicy | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        scan_timeout: float = _SCAN_TIMEOUT,
        scanner_factory: ScannerFactory = BleakScanner,
        client_factory: ClientFactory = BleakClient,
    ) -> None:
        super().__init__(
            "ble",
            reconnect_policy=reconnect_policy,
            connect_timeout=connect_timeout,
        )
        self._scan_timeout = scan_timeout
        self._scanner_factory = scanner_factory
        self._client_factory = client_factory
        self._scanner: BleakScanner | None = None
        self._scan_timer: asyncio.Task[None] | None = None
        self._client: BleakClient | None = None
        self._write_characteristic: BleakGATTCharacteristic | None = None

    def _validate_target(self, target: DiscoveredDevice | str) -> None:
        identifier = target.identifier if isinstance(target, DiscoveredDevice) else target
        if not identifier or not identifier.strip():
            raise ConfigurationError("BLE device address must not be empty")

    # --- connection ---------------------------------------------------------

    async def _open(self, target: DiscoveredDevice | str) -> None:
        device: BLEDevice | str
        if isinstance(target, DiscoveredDevice):
            device = target.handle if target.handle is not None else target.identifier
        else:
            device = target

        client = self._client_factory(device, disconnected_callback=self._on_disconnected)
        self._client = client
        try:
            await client.connect()
        except BleakError as exc:
            raise LinkError(LinkFailure.CONNECTION_FAILED, str(exc)) from exc

        service = client.services.get_service(NUS_SERVICE_UUID)
        if service is None:
            raise LinkError(LinkFailure.SERVICE_NOT_FOUND, NUS_SERVICE_UUID)
        write_characteristic = service.get_characteristic(NUS_WRITE_CHARACTERISTIC_UUID)
        notify_characteristic = service.get_characteristic(NUS_NOTIFY_CHARACTERISTIC_UUID)
        if write_characteristic is None or notify_characteristic is None:
            raise LinkError(
                LinkFailure.CHARACTERISTIC_NOT_FOUND,
                "NUS RX/TX characteristics missing",
            )

        try:
            await client.start_notify(notify_characteristic, self._on_notification)
        except BleakError as exc:
            raise LinkError(LinkFailure.CONNECTION_FAILED, str(exc)) from exc
        self._write_characteristic = write_characteristic

    async def _close(self) -> None:
        client = self._client
        self._client = None
        self._write_characteristic = None
        if client is None:
            return
        try:
            await client.disconnect()
        except BleakError as exc:
            raise LinkError(LinkFailure.CONNECTION_LOST, str(exc)) from exc

    async def _write(self, data: bytes) -> None:
        client = self._client
        characteristic = self._write_characteristic
        if client is None or characteristic is None:
            raise LinkError(LinkFailure.WRITE_FAILED, "not connected")

        size = max(characteristic.max_write_without_response_size, _MINIMUM_WRITE_SIZE)
        try:
            for chunk in _chunks(data, size):
                await client.write_gatt_char(characteristic, chunk, response=False)
        except BleakError as exc:
            raise LinkError(LinkFailure.WRITE_FAILED, str(exc)) from exc

    def _on_notification(self, _sender: Any, data: bytearray) -> None:
        self._data_received(bytes(data))

    def _on_disconnected(self, client: BleakClient) -> None:
        # late callback from a client already replaced by a newer attempt
        if client is not self._client:
            logger.debug("%s: ignoring disconnect of a stale client", self.name)
            return
        self._connection_lost("peripheral disconnected")

    # --- discovery ----------------------------------------------------------

    async def _start_discovery(self) -> None:
        scanner = self._scanner_factory(
            detection_callback=self._on_advertisement,
            service_uuids=[NUS_SERVICE_UUID],
        )
        try:
            await scanner.start()
        except BleakError as exc:
            raise LinkError(LinkFailure.UNAVAILABLE, str(exc)) from exc
        self._scanner = scanner
        self._scan_timer = asyncio.create_task(self._stop_after_timeout())

    async def _stop_discovery(self) -> None:
        timer = self._scan_timer
        self._scan_timer = None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

        scanner = self._scanner
        self._scanner = None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except BleakError as exc:
            raise LinkError(LinkFailure.UNAVAILABLE, str(exc)) from exc

    async def _stop_after_timeout(self) -> None:
        await asyncio.sleep(self._scan_timeout)
        logger.info("%s: discovery timed out after %gs", self.name, self._scan_timeout)
        await self.stop_discovery()

    def _on_advertisement(self, device: BLEDevice, advertisement: AdvertisementData) -> None:
        self._device_found(
            DiscoveredDevice(
                identifier=device.address,
                name=advertisement.local_name or device.name,
                signal_strength=advertisement.rssi,
                metadata={
                    "service_uuids": list(advertisement.service_uuids),
                    "manufacturer_data": dict(advertisement.manufacturer_data),
                    "tx_power": advertisement.tx_power,
                },
                handle=device,
            )
        )
