"""Transport-independent device link.

``DeviceLink`` implements the connection state machine shared by the BLE and
TCP links::

    IDLE -> CONNECTING -> CONNECTED -> DISCONNECTING -> IDLE
                 |            |
                 +------------+--> FAILED(reason) -> CONNECTING (retry)
                                                  -> IDLE (disconnect)

Subclasses only move bytes. They implement ``_open``, ``_close`` and
``_write`` and report transport events by calling ``_data_received``,
``_connection_lost`` and ``_remote_closed``. Those calls are synchronous
and never raise, so they are safe to make from library callbacks; each one
becomes a status value on the status channel or a chunk on the data
channel.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Generic, TypeVar

from rtkclient.broadcaster import Broadcaster
from rtkclient.errors import LinkError
from rtkclient.link.types import DiscoveredDevice, LinkFailure, LinkState, LinkStatus
from rtkclient.reconnect import ReconnectPolicy, ReconnectScheduler

__all__ = ["DEFAULT_CONNECT_TIMEOUT", "DeviceLink"]

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 15.0

_STATUS_QUEUE_SIZE = 16

TargetT = TypeVar("TargetT")


class DeviceLink(ABC, Generic[TargetT]):
    """Bidirectional byte link to a GNSS receiver.

    Args:
        name: Name used in log messages.
        reconnect_policy: Backoff applied after unexpected failures.
        connect_timeout: Watchdog for a single connection attempt, in
            seconds. An attempt that does not complete in time fails with
            ``LinkFailure.TIMEOUT``.
    """

    def __init__(
        self,
        name: str,
        *,
        reconnect_policy: ReconnectPolicy | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self.name = name
        self._connect_timeout = connect_timeout
        self._reconnect = ReconnectScheduler(reconnect_policy or ReconnectPolicy(), name)
        self._status = LinkStatus()
        self._status_channel: Broadcaster[LinkStatus] = Broadcaster(_STATUS_QUEUE_SIZE)
        self._data_channel: Broadcaster[bytes] = Broadcaster()
        self._discovery_channel: Broadcaster[DiscoveredDevice] = Broadcaster()
        self._devices: dict[str, DiscoveredDevice] = {}
        self._discovering = False
        self._target: TargetT | None = None
        self._attempt_task: asyncio.Task[None] | None = None
        self._recovery_task: asyncio.Task[None] | None = None
        self._early_close: tuple[LinkFailure | None, str] | None = None
        self._send_lock = asyncio.Lock()

    async def __aenter__(self) -> "DeviceLink[TargetT]":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def status(self) -> LinkStatus:
        return self._status

    @property
    def target(self) -> TargetT | None:
        """Target of the current or most recent connection."""
        return self._target

    @property
    def is_discovering(self) -> bool:
        return self._discovering

    @property
    def discovered_devices(self) -> list[DiscoveredDevice]:
        """Devices seen since discovery last started, first sighting first."""
        return list(self._devices.values())

    def subscribe_status(self) -> asyncio.Queue[LinkStatus]:
        """Queue receiving every status change. Oldest entries drop on overflow."""
        return self._status_channel.subscribe()

    def unsubscribe_status(self, queue: asyncio.Queue[LinkStatus]) -> None:
        self._status_channel.unsubscribe(queue)

    def subscribe_data(self) -> asyncio.Queue[bytes]:
        """Unbounded queue receiving inbound chunks in arrival order."""
        return self._data_channel.subscribe()

    def unsubscribe_data(self, queue: asyncio.Queue[bytes]) -> None:
        self._data_channel.unsubscribe(queue)

    async def start_discovery(self) -> asyncio.Queue[DiscoveredDevice]:
        """Start looking for receivers.

        Starting a new discovery session clears the device registry. Calling
        this while discovery is already running only adds a subscriber,
        which first receives the devices seen so far.

        Returns:
            Queue receiving every sighting, including re-sightings of a
            known device.

        Raises:
            LinkError: The transport cannot scan (``LinkFailure.UNAVAILABLE``).
        """
        queue = self._discovery_channel.subscribe()
        if self._discovering:
            for device in self._devices.values():
                queue.put_nowait(device)
            return queue

        self._devices.clear()
        try:
            await self._start_discovery()
        except LinkError:
            self._discovery_channel.unsubscribe(queue)
            raise
        self._discovering = True
        logger.info("%s: discovery started", self.name)
        return queue

    async def stop_discovery(self) -> None:
        """Stop discovery. The registry keeps the devices already seen."""
        if not self._discovering:
            return
        self._discovering = False
        try:
            await self._stop_discovery()
        except (LinkError, OSError) as exc:
            logger.debug("%s: error while stopping discovery: %s", self.name, exc)
        logger.info(
            "%s: discovery stopped, %d device(s) seen",
            self.name,
            len(self._devices),
        )

    async def connect(self, target: TargetT) -> LinkStatus:
        """Connect to *target*, replacing any current connection.

        A user-initiated connect resets the consecutive-failure counter, so
        it is also the way out of ``RECONNECTION_EXHAUSTED``.

        Args:
            target: Transport-specific address of the receiver.

        Returns:
            The status once this attempt has completed. A failed attempt
            may still be retried in the background.

        Raises:
            ConfigurationError: *target* is malformed. Nothing is changed.
        """
        self._validate_target(target)
        await self._teardown()
        self._reconnect.reset()
        self._target = target
        task = asyncio.create_task(self._attempt())
        self._attempt_task = task
        await asyncio.wait({task})
        return self._status

    async def disconnect(self) -> None:
        """Close the connection and cancel pending retries. Idempotent."""
        self._target = None
        await self._teardown()
        if self._status.state is not LinkState.IDLE:
            self._set_status(LinkStatus())
            logger.info("%s: disconnected", self.name)

    async def close(self) -> None:
        """Stop discovery and disconnect."""
        await self.stop_discovery()
        await self.disconnect()

    async def send(self, data: bytes) -> bool:
        """Write *data* to the receiver.

        Concurrent calls are serialized, so the bytes of one call are never
        interleaved with another's. A write error is treated as link loss.

        Returns:
            True if the data was written, False if the link is not connected
            or the write failed.
        """
        async with self._send_lock:
            if not self._status.is_connected:
                logger.debug("%s: not connected, dropping %d bytes", self.name, len(data))
                return False
            try:
                await self._write(data)
            except (LinkError, OSError) as exc:
                self._connection_lost(str(exc), LinkFailure.WRITE_FAILED)
                return False
        return True

    def _set_status(self, status: LinkStatus) -> None:
        if status == self._status:
            return
        self._status = status
        self._status_channel.publish(status)

    async def _attempt(self) -> None:
        target = self._target
        if target is None:
            return

        self._early_close = None
        self._set_status(
            LinkStatus(LinkState.CONNECTING, attempt=self._reconnect.failures)
        )
        logger.info("%s: connecting to %s", self.name, target)
        try:
            await asyncio.wait_for(self._open(target), timeout=self._connect_timeout)
        except asyncio.CancelledError:
            await self._close_transport()
            raise
        except TimeoutError:
            await self._close_transport()
            self._handle_failure(
                LinkFailure.TIMEOUT,
                f"no connection after {self._connect_timeout:g}s",
            )
            return
        except LinkError as exc:
            await self._close_transport()
            self._handle_failure(exc.reason, str(exc))  # type: ignore[arg-type]
            return
        except OSError as exc:
            await self._close_transport()
            self._handle_failure(LinkFailure.CONNECTION_FAILED, str(exc))
            return

        if self._early_close is not None:
            reason, detail = self._early_close
            self._early_close = None
            await self._close_transport()
            if reason is None:
                self._set_status(LinkStatus())
            else:
                self._handle_failure(reason, detail)
            return

        self._reconnect.reset()
        self._set_status(LinkStatus(LinkState.CONNECTED))
        logger.info("%s: connected to %s", self.name, target)

    async def _retry(self) -> None:
        await self._attempt()

    def _handle_failure(self, reason: LinkFailure, detail: str) -> None:
        delay = self._reconnect.record_failure()
        attempt = self._reconnect.failures
        if delay is None:
            self._set_status(
                LinkStatus(
                    LinkState.FAILED,
                    LinkFailure.RECONNECTION_EXHAUSTED,
                    detail,
                    attempt,
                )
            )
            return
        logger.warning("%s: %s: %s", self.name, reason.value, detail)
        self._set_status(LinkStatus(LinkState.FAILED, reason, detail, attempt))
        self._reconnect.schedule(delay, self._retry)

    async def _teardown(self) -> None:
        tasks = []
        retry = self._reconnect.cancel()
        if retry is not None:
            tasks.append(retry)
        for task in (self._attempt_task, self._recovery_task):
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()
                tasks.append(task)
        self._attempt_task = None
        self._recovery_task = None
        if tasks:
            await asyncio.wait(tasks)

        if self._status.state in (LinkState.CONNECTING, LinkState.CONNECTED):
            self._set_status(LinkStatus(LinkState.DISCONNECTING))
            await self._close_transport()

    async def _close_transport(self) -> None:
        try:
            await self._close()
        except (LinkError, OSError) as exc:
            logger.debug("%s: error while closing: %s", self.name, exc)

    async def _recover(self, reason: LinkFailure, detail: str) -> None:
        await self._close_transport()
        self._handle_failure(reason, detail)

    async def _finish_remote_close(self) -> None:
        self._set_status(LinkStatus(LinkState.DISCONNECTING))
        await self._close_transport()
        self._set_status(LinkStatus())

    def _recovering(self) -> bool:
        return self._recovery_task is not None and not self._recovery_task.done()

    def _data_received(self, data: bytes) -> None:
        """Publish an inbound chunk. Call from the transport's receive path."""
        if data:
            self._data_channel.publish(bytes(data))

    def _connection_lost(
        self,
        detail: str,
        reason: LinkFailure = LinkFailure.CONNECTION_LOST,
    ) -> None:
        """Report an unexpected loss of the transport; schedules a retry."""
        state = self._status.state
        if state is LinkState.CONNECTING:
            self._early_close = (reason, detail)
            return
        if state is not LinkState.CONNECTED or self._recovering():
            return
        self._recovery_task = asyncio.create_task(self._recover(reason, detail))

    def _remote_closed(self) -> None:
        """Report a graceful close by the receiver; no retry follows."""
        state = self._status.state
        if state is LinkState.CONNECTING:
            self._early_close = (None, "closed by remote")
            return
        if state is not LinkState.CONNECTED or self._recovering():
            return
        logger.info("%s: connection closed by remote", self.name)
        self._recovery_task = asyncio.create_task(self._finish_remote_close())

    def _device_found(self, device: DiscoveredDevice) -> None:
        """Record a sighting. A re-sighting replaces the entry in place."""
        if not self._discovering:
            return
        if device.identifier not in self._devices:
            logger.debug("%s: found %s (%s)", self.name, device.identifier, device.name)
        self._devices[device.identifier] = device
        self._discovery_channel.publish(device)

    def _validate_target(self, target: TargetT) -> None:
        """Raise ``ConfigurationError`` for a malformed target."""

    @abstractmethod
    async def _open(self, target: TargetT) -> None:
        """Establish the transport. Raise ``LinkError`` or ``OSError`` on failure."""

    @abstractmethod
    async def _close(self) -> None:
        """Release the transport. Must be idempotent."""

    @abstractmethod
    async def _write(self, data: bytes) -> None:
        """Write all of *data*. Raise ``LinkError`` or ``OSError`` on failure."""

    @abstractmethod
    async def _start_discovery(self) -> None: ...

    @abstractmethod
    async def _stop_discovery(self) -> None: ...
