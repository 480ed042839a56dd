"""Device link to a receiver that serves NMEA over plain TCP.

Many receivers (and WiFi serial bridges) expose their serial stream on a TCP
port. The link is a raw byte passthrough in both directions: NMEA in, RTCM
corrections out, no framing of its own.

Reading strategy:
    A receive task reads whatever is available (up to ``read_size`` bytes)
    and publishes it, then re-arms. A zero-length read means the receiver
    closed the connection cleanly, which ends the session without a retry.
    A read error is link loss and goes through the reconnect policy.
"""

import asyncio
import logging
import socket
import time
from collections.abc import Sequence

from rtkclient.config import TCPEndpoint
from rtkclient.errors import LinkError
from rtkclient.link.base import DEFAULT_CONNECT_TIMEOUT, DeviceLink
from rtkclient.link.types import DiscoveredDevice, LinkFailure
from rtkclient.reconnect import ReconnectPolicy

__all__ = ["TCPDeviceLink"]

logger = logging.getLogger(__name__)

# --- socket defaults ----------------------------------------------------------

_READ_SIZE = 4096
_KEEPALIVE_IDLE = 30  # seconds of silence before the first keep-alive probe
_KEEPALIVE_INTERVAL = 10
_KEEPALIVE_COUNT = 3

# --- discovery defaults -------------------------------------------------------

_PROBE_TIMEOUT = 2.0
_CLOSE_TIMEOUT = 1.0


def _configure_socket(sock: socket.socket | None) -> None:
    """Enable keep-alive and disable Nagle on a connected socket.

    Small RTCM messages must not sit in the send buffer waiting to be
    coalesced. Options the platform does not know are skipped.
    """
    if sock is None:
        return
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    for option, value in (
        ("TCP_KEEPIDLE", _KEEPALIVE_IDLE),
        ("TCP_KEEPINTVL", _KEEPALIVE_INTERVAL),
        ("TCP_KEEPCNT", _KEEPALIVE_COUNT),
    ):
        if hasattr(socket, option):
            sock.setsockopt(socket.IPPROTO_TCP, getattr(socket, option), value)


async def _close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await asyncio.wait_for(writer.wait_closed(), timeout=_CLOSE_TIMEOUT)
    except TimeoutError:
        logger.debug("Timeout waiting for socket close")
    except OSError as exc:
        logger.debug("Error closing socket: %s", exc)


class TCPDeviceLink(DeviceLink[TCPEndpoint]):
    """Device link over a TCP socket.

    Discovery has no broadcast mechanism to rely on, so it probes a list of
    candidate endpoints and reports those that accept a connection, with the
    measured connect latency in ``metadata["latency_ms"]``.

    Example::

        link = TCPDeviceLink()
        data = link.subscribe_data()
        await link.connect(TCPEndpoint("192.168.4.1", 2948))
        chunk = await read_coalesced(data)

    Args:
        candidates: Endpoints probed by ``start_discovery``.
        reconnect_policy: Backoff applied after unexpected failures.
        connect_timeout: Watchdog for one connection attempt, in seconds.
        probe_timeout: Per-candidate timeout during discovery, in seconds.
        read_size: Maximum bytes per read.
    """

    def __init__(
        self,
        candidates: Sequence[TCPEndpoint] = (),
        *,
        reconnect_policy: ReconnectPolicy | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        probe_timeout: float = _PROBE_TIMEOUT,
        read_size: int = _READ_SIZE,
    ) -> None:
        super().__init__(
            "tcp",
            reconnect_policy=reconnect_policy,
            connect_timeout=connect_timeout,
        )
        self._candidates = tuple(candidates)
        self._probe_timeout = probe_timeout
        self._read_size = read_size
        self._writer: asyncio.StreamWriter | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._probe_task: asyncio.Task[None] | None = None

    def _validate_target(self, target: TCPEndpoint) -> None:
        target.validate()

    async def _open(self, target: TCPEndpoint) -> None:
        reader, writer = await asyncio.open_connection(target.host, target.port)
        self._writer = writer
        _configure_socket(writer.get_extra_info("socket"))
        self._receive_task = asyncio.create_task(self._receive_loop(reader))

    async def _close(self) -> None:
        task = self._receive_task
        self._receive_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.wait({task})

        writer = self._writer
        self._writer = None
        if writer is not None:
            await _close_writer(writer)

    async def _write(self, data: bytes) -> None:
        if self._writer is None:
            raise LinkError(LinkFailure.WRITE_FAILED, "socket is closed")
        self._writer.write(data)
        await self._writer.drain()

    async def _receive_loop(self, reader: asyncio.StreamReader) -> None:
        try:
            while True:
                chunk = await reader.read(self._read_size)
                if not chunk:
                    self._remote_closed()
                    return
                self._data_received(chunk)
        except OSError as exc:
            self._connection_lost(str(exc) or type(exc).__name__)

    async def _start_discovery(self) -> None:
        self._probe_task = asyncio.create_task(self._probe_all())

    async def _stop_discovery(self) -> None:
        task = self._probe_task
        self._probe_task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    async def _probe_all(self) -> None:
        await asyncio.gather(*(self._probe(endpoint) for endpoint in self._candidates))
        logger.debug("%s: probed %d candidate(s)", self.name, len(self._candidates))

    async def _probe(self, endpoint: TCPEndpoint) -> None:
        started = time.monotonic()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(endpoint.host, endpoint.port),
                timeout=self._probe_timeout,
            )
        except OSError as exc:
            logger.debug("%s: %s unreachable: %s", self.name, endpoint, exc)
            return
        latency_ms = (time.monotonic() - started) * 1000.0
        await _close_writer(writer)
        self._device_found(
            DiscoveredDevice(
                identifier=str(endpoint),
                name=endpoint.host,
                metadata={"latency_ms": latency_ms},
                handle=endpoint,
            )
        )
