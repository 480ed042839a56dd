"""Tests for the BLE device link using stand-ins for the bleak objects."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from bleak.exc import BleakError

from rtkclient.errors import ConfigurationError, LinkError
from rtkclient.link import BLEDeviceLink, DiscoveredDevice, LinkFailure, LinkState
from rtkclient.link.ble import (
    NUS_NOTIFY_CHARACTERISTIC_UUID,
    NUS_SERVICE_UUID,
    NUS_WRITE_CHARACTERISTIC_UUID,
)
from rtkclient.reconnect import ReconnectPolicy

_NO_RETRY = ReconnectPolicy(base_delay=10.0)


class FakeClient:
    """Records the calls a ``BleakClient`` would receive."""

    def __init__(self, write_size: int = 20) -> None:
        self.device = None
        self.disconnected_callback = None
        self.notify_callback = None
        self.write_characteristic = MagicMock(uuid=NUS_WRITE_CHARACTERISTIC_UUID)
        self.write_characteristic.max_write_without_response_size = write_size
        self.notify_characteristic = MagicMock(uuid=NUS_NOTIFY_CHARACTERISTIC_UUID)
        characteristics = {
            NUS_WRITE_CHARACTERISTIC_UUID: self.write_characteristic,
            NUS_NOTIFY_CHARACTERISTIC_UUID: self.notify_characteristic,
        }
        self.service = MagicMock()
        self.service.get_characteristic.side_effect = characteristics.get
        self.services = MagicMock()
        self.services.get_service.side_effect = {NUS_SERVICE_UUID: self.service}.get
        self.connect = AsyncMock()
        self.disconnect = AsyncMock()
        self.write_gatt_char = AsyncMock()

    def factory(self, device, disconnected_callback=None) -> "FakeClient":
        self.device = device
        self.disconnected_callback = disconnected_callback
        return self

    async def start_notify(self, characteristic, callback) -> None:
        assert characteristic is self.notify_characteristic
        self.notify_callback = callback


class FakeScanner:
    """Records the calls a ``BleakScanner`` would receive."""

    def __init__(self) -> None:
        self.detection_callback = None
        self.service_uuids = None
        self.start = AsyncMock()
        self.stop = AsyncMock()

    def factory(self, detection_callback=None, service_uuids=None) -> "FakeScanner":
        self.detection_callback = detection_callback
        self.service_uuids = service_uuids
        return self

    def advertise(self, address: str, rssi: int, local_name: str | None = "RTK-Rover") -> MagicMock:
        device = MagicMock(address=address)
        device.name = "fallback"
        advertisement = MagicMock(
            local_name=local_name,
            rssi=rssi,
            service_uuids=[NUS_SERVICE_UUID],
            manufacturer_data={0x0059: b"\x01"},
            tx_power=None,
        )
        self.detection_callback(device, advertisement)
        return device


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def scanner() -> FakeScanner:
    return FakeScanner()


def _link(client: FakeClient, scanner: FakeScanner | None = None, **kwargs) -> BLEDeviceLink:
    scanner = scanner or FakeScanner()
    return BLEDeviceLink(
        client_factory=client.factory,
        scanner_factory=scanner.factory,
        **kwargs,
    )


class TestConnect:
    """Tests for connecting over the Nordic UART Service."""

    def test_connect_and_receive(self, client: FakeClient):
        async def _run() -> tuple[LinkState, bytes]:
            link = _link(client)
            data = link.subscribe_data()
            status = await link.connect("AA:BB:CC:DD:EE:FF")
            client.notify_callback(client.notify_characteristic, bytearray(b"$GPGGA"))
            chunk = data.get_nowait()
            await link.disconnect()
            return status.state, chunk

        state, chunk = asyncio.run(_run())
        assert state is LinkState.CONNECTED
        assert chunk == b"$GPGGA"
        assert client.device == "AA:BB:CC:DD:EE:FF"
        client.connect.assert_awaited_once()
        client.disconnect.assert_awaited_once()

    def test_missing_service(self, client: FakeClient):
        client.services.get_service.side_effect = lambda uuid: None

        async def _run() -> tuple[LinkState, LinkFailure | None]:
            link = _link(client, reconnect_policy=_NO_RETRY)
            status = await link.connect("AA:BB:CC:DD:EE:FF")
            await link.disconnect()
            return status.state, status.reason

        assert asyncio.run(_run()) == (LinkState.FAILED, LinkFailure.SERVICE_NOT_FOUND)
        client.disconnect.assert_awaited()

    def test_missing_characteristic(self, client: FakeClient):
        client.service.get_characteristic.side_effect = lambda uuid: None

        async def _run() -> LinkFailure | None:
            link = _link(client, reconnect_policy=_NO_RETRY)
            status = await link.connect("AA:BB:CC:DD:EE:FF")
            await link.disconnect()
            return status.reason

        assert asyncio.run(_run()) is LinkFailure.CHARACTERISTIC_NOT_FOUND

    def test_bleak_error_on_connect(self, client: FakeClient):
        client.connect.side_effect = BleakError("Device not found")

        async def _run() -> tuple[LinkFailure | None, str]:
            link = _link(client, reconnect_policy=_NO_RETRY)
            status = await link.connect("AA:BB:CC:DD:EE:FF")
            await link.disconnect()
            return status.reason, status.detail

        assert asyncio.run(_run()) == (LinkFailure.CONNECTION_FAILED, "Device not found")

    def test_unexpected_disconnect_is_link_loss(self, client: FakeClient):
        async def _run() -> tuple[LinkState, LinkFailure | None]:
            link = _link(client, reconnect_policy=_NO_RETRY)
            await link.connect("AA:BB:CC:DD:EE:FF")
            client.disconnected_callback(client)
            await asyncio.sleep(0.01)
            status = link.status
            await link.disconnect()
            return status.state, status.reason

        assert asyncio.run(_run()) == (LinkState.FAILED, LinkFailure.CONNECTION_LOST)

    def test_disconnect_of_stale_client_is_ignored(self, client: FakeClient):
        stale = FakeClient()

        async def _run() -> LinkState:
            link = _link(client, reconnect_policy=_NO_RETRY)
            await link.connect("AA:BB:CC:DD:EE:FF")
            client.disconnected_callback(stale)
            await asyncio.sleep(0.01)
            state = link.status.state
            await link.disconnect()
            return state

        assert asyncio.run(_run()) is LinkState.CONNECTED
        client.disconnect.assert_awaited_once()

    def test_late_disconnect_during_next_attempt_is_ignored(self, client: FakeClient):
        first = FakeClient()
        first.services.get_service.side_effect = lambda uuid: None
        clients = iter([first, client])

        def _factory(device, disconnected_callback=None):
            return next(clients).factory(device, disconnected_callback)

        async def _late_connect() -> None:
            first.disconnected_callback(first)

        client.connect.side_effect = _late_connect

        async def _run() -> tuple[LinkFailure | None, LinkState]:
            link = BLEDeviceLink(
                reconnect_policy=_NO_RETRY,
                client_factory=_factory,
                scanner_factory=FakeScanner().factory,
            )
            failed = await link.connect("AA:BB:CC:DD:EE:FF")
            retried = await link.connect("AA:BB:CC:DD:EE:FF")
            await link.disconnect()
            return failed.reason, retried.state

        assert asyncio.run(_run()) == (LinkFailure.SERVICE_NOT_FOUND, LinkState.CONNECTED)

    def test_connect_to_discovered_device_uses_handle(self, client: FakeClient):
        handle = object()

        async def _run() -> None:
            link = _link(client)
            await link.connect(DiscoveredDevice("AA:BB:CC:DD:EE:FF", handle=handle))
            await link.disconnect()

        asyncio.run(_run())
        assert client.device is handle

    def test_empty_address(self, client: FakeClient):
        async def _run() -> None:
            await _link(client).connect("  ")

        with pytest.raises(ConfigurationError):
            asyncio.run(_run())


class TestWrite:
    """Tests for writing corrections."""

    def test_writes_are_chunked(self, client: FakeClient):
        async def _run() -> bool:
            link = _link(client)
            await link.connect("AA:BB:CC:DD:EE:FF")
            sent = await link.send(bytes(range(45)))
            await link.disconnect()
            return sent

        assert asyncio.run(_run()) is True
        calls = client.write_gatt_char.await_args_list
        assert [len(call.args[1]) for call in calls] == [20, 20, 5]
        assert b"".join(call.args[1] for call in calls) == bytes(range(45))
        assert all(call.args[0] is client.write_characteristic for call in calls)
        assert all(call.kwargs == {"response": False} for call in calls)

    def test_negotiated_mtu_is_used(self):
        client = FakeClient(write_size=244)

        async def _run() -> None:
            link = _link(client)
            await link.connect("AA:BB:CC:DD:EE:FF")
            await link.send(bytes(200))
            await link.disconnect()

        asyncio.run(_run())
        assert client.write_gatt_char.await_count == 1

    def test_write_error(self, client: FakeClient):
        client.write_gatt_char.side_effect = BleakError("not connected")

        async def _run() -> tuple[bool, LinkFailure | None]:
            link = _link(client, reconnect_policy=_NO_RETRY)
            await link.connect("AA:BB:CC:DD:EE:FF")
            sent = await link.send(b"rtcm")
            await asyncio.sleep(0.01)
            reason = link.status.reason
            await link.disconnect()
            return sent, reason

        assert asyncio.run(_run()) == (False, LinkFailure.WRITE_FAILED)


class TestDiscovery:
    """Tests for BLE scanning."""

    def test_scan_filters_on_nus_and_deduplicates(self, client: FakeClient, scanner: FakeScanner):
        async def _run() -> list[DiscoveredDevice]:
            link = _link(client, scanner)
            await link.start_discovery()
            scanner.advertise("AA:BB:CC:DD:EE:FF", -70)
            scanner.advertise("AA:BB:CC:DD:EE:FF", -55)
            scanner.advertise("11:22:33:44:55:66", -90, local_name=None)
            devices = link.discovered_devices
            await link.stop_discovery()
            return devices

        devices = asyncio.run(_run())
        assert scanner.service_uuids == [NUS_SERVICE_UUID]
        assert [device.identifier for device in devices] == [
            "AA:BB:CC:DD:EE:FF",
            "11:22:33:44:55:66",
        ]
        assert devices[0].signal_strength == -55
        assert devices[0].name == "RTK-Rover"
        assert devices[1].name == "fallback"
        assert devices[0].metadata["manufacturer_data"] == {0x0059: b"\x01"}
        scanner.stop.assert_awaited_once()

    def test_scan_stops_after_timeout(self, client: FakeClient, scanner: FakeScanner):
        async def _run() -> bool:
            link = _link(client, scanner, scan_timeout=0.01)
            await link.start_discovery()
            await asyncio.sleep(0.05)
            return link.is_discovering

        assert asyncio.run(_run()) is False
        scanner.stop.assert_awaited_once()

    def test_scanner_unavailable(self, client: FakeClient, scanner: FakeScanner):
        scanner.start.side_effect = BleakError("Bluetooth is turned off")

        async def _run() -> BLEDeviceLink:
            link = _link(client, scanner)
            with pytest.raises(LinkError) as exc_info:
                await link.start_discovery()
            assert exc_info.value.reason is LinkFailure.UNAVAILABLE
            return link

        assert asyncio.run(_run()).is_discovering is False
