"""GNSS session orchestrator.

``GNSSSession`` wires one device link, one NTRIP client and one NMEA parser
together::

    device link --bytes--> parser --GGA/GSA--> latest position --> snapshot
         ^                                          |
         |                                          v  regenerated GGA
         +----------RTCM bytes---------------- NTRIP client

It owns the latest position and the derived session state, and publishes
them as immutable ``SessionSnapshot`` values. All mutation happens on the
session's own tasks: one consumer per inbound channel, plus a 1 Hz tick that
recomputes the data rate and correction age.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from types import TracebackType
from typing import Any

from rtkclient.broadcaster import Broadcaster, read_coalesced
from rtkclient.config import NTRIPConfig
from rtkclient.gnss.types import GNSSPosition
from rtkclient.link.base import DeviceLink
from rtkclient.link.types import LinkState, LinkStatus
from rtkclient.nmea.gga import build_gga_sentence
from rtkclient.nmea.stream import NMEAStreamParser
from rtkclient.nmea.types import GGASentence, GSASentence, NMEASentence
from rtkclient.ntrip.client import NTRIPClient
from rtkclient.ntrip.types import NTRIPState, NTRIPStatus

__all__ = [
    "GNSSSession",
    "SessionSnapshot",
    "SessionStatus",
    "derive_session_status",
]

logger = logging.getLogger(__name__)

_TICK_INTERVAL = 1.0
_STALE_AFTER = 2.0
_SNAPSHOT_QUEUE_SIZE = 16

PositionSink = Callable[[GNSSPosition], None]


class SessionStatus(Enum):
    DISCONNECTED = "disconnected"
    DEVICE_LINK_ACTIVE = "device_link_active"
    NTRIP_ONLY = "ntrip_only"


def derive_session_status(link: LinkStatus, ntrip: NTRIPStatus) -> SessionStatus:
    """Aggregate the two connection states. The device link takes precedence."""
    if link.state is LinkState.CONNECTED:
        return SessionStatus.DEVICE_LINK_ACTIVE
    if ntrip.state is NTRIPState.CONNECTED:
        return SessionStatus.NTRIP_ONLY
    return SessionStatus.DISCONNECTED


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything a consumer needs to render the session.

    Attributes:
        status: Aggregate connection status.
        link: Device link status.
        ntrip: NTRIP client status.
        position: Latest valid position, None before the first fix.
        data_rate: Sentences decoded during the last tick window.
        is_receiving_data: False when no bytes arrived for more than 2 s.
        correction_age: Seconds since correction bytes were last received,
            None if none ever were.
        sentence_count: Sentences decoded since the session started.
        correction_bytes: Correction bytes written to the receiver.
    """

    status: SessionStatus = SessionStatus.DISCONNECTED
    link: LinkStatus = field(default_factory=LinkStatus)
    ntrip: NTRIPStatus = field(default_factory=NTRIPStatus)
    position: GNSSPosition | None = None
    data_rate: int = 0
    is_receiving_data: bool = False
    correction_age: float | None = None
    sentence_count: int = 0
    correction_bytes: int = 0


class GNSSSession:
    """Composes a device link, an NTRIP client and a parser.

    Example::

        link = TCPDeviceLink()
        async with GNSSSession(link, NTRIPClient()) as session:
            updates = session.subscribe()
            await session.connect_device(TCPEndpoint("192.168.4.1", 2948))
            await session.connect_ntrip(config)
            snapshot = await updates.get()

    Args:
        device_link: Link to the receiver.
        ntrip_client: Correction stream client.
        parser: Parser for the receiver's byte stream. A fresh
            ``NMEAStreamParser`` by default.
        position_sink: Called with every new GGA position, e.g. to persist
            a track. Exceptions it raises are logged and ignored.
        clock: Monotonic time source in seconds.
        tick_interval: Period of the data-rate window, in seconds.
        stale_after: Seconds without inbound bytes after which the session
            reports that no data is being received.
    """

    def __init__(
        self,
        device_link: DeviceLink[Any],
        ntrip_client: NTRIPClient,
        parser: NMEAStreamParser | None = None,
        *,
        position_sink: PositionSink | None = None,
        clock: Callable[[], float] = time.monotonic,
        tick_interval: float = _TICK_INTERVAL,
        stale_after: float = _STALE_AFTER,
    ) -> None:
        self._link = device_link
        self._ntrip = ntrip_client
        self._parser = parser or NMEAStreamParser()
        self._position_sink = position_sink
        self._clock = clock
        self._tick_interval = tick_interval
        self._stale_after = stale_after

        self._snapshot = SessionSnapshot(link=device_link.status, ntrip=ntrip_client.status)
        self._channel: Broadcaster[SessionSnapshot] = Broadcaster(_SNAPSHOT_QUEUE_SIZE)
        self._tasks: list[asyncio.Task[None]] = []
        self._queues: list[tuple[Callable[[Any], None], asyncio.Queue[Any]]] = []

        self._position: GNSSPosition | None = None
        self._window_count = 0
        self._data_rate = 0
        self._sentence_count = 0
        self._correction_bytes = 0
        self._last_data_at: float | None = None
        self._last_correction_at: float | None = None

    async def __aenter__(self) -> "GNSSSession":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def position(self) -> GNSSPosition | None:
        return self._position

    @property
    def device_link(self) -> DeviceLink[Any]:
        return self._link

    @property
    def ntrip_client(self) -> NTRIPClient:
        return self._ntrip

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def subscribe(self) -> asyncio.Queue[SessionSnapshot]:
        """Queue receiving every new snapshot. Oldest entries drop on overflow."""
        return self._channel.subscribe()

    def unsubscribe(self, queue: asyncio.Queue[SessionSnapshot]) -> None:
        self._channel.unsubscribe(queue)

    async def start(self) -> None:
        """Start consuming the device and NTRIP channels. Idempotent."""
        if self._tasks:
            return
        device_data = self._link.subscribe_data()
        link_status = self._link.subscribe_status()
        corrections = self._ntrip.subscribe_data()
        ntrip_status = self._ntrip.subscribe_status()
        self._queues = [
            (self._link.unsubscribe_data, device_data),
            (self._link.unsubscribe_status, link_status),
            (self._ntrip.unsubscribe_data, corrections),
            (self._ntrip.unsubscribe_status, ntrip_status),
        ]
        self._tasks = [
            asyncio.create_task(self._consume_device_data(device_data)),
            asyncio.create_task(self._forward_corrections(corrections)),
            asyncio.create_task(self._follow_status(link_status)),
            asyncio.create_task(self._follow_status(ntrip_status)),
            asyncio.create_task(self._tick_loop()),
        ]
        logger.info("Session started")

    async def close(self) -> None:
        """Stop all tasks, disconnect both clients and reset the parser."""
        tasks = self._tasks
        self._tasks = []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)
        for unsubscribe, queue in self._queues:
            unsubscribe(queue)
        self._queues = []

        await self.disconnect_all()
        self._parser.reset()
        self._last_data_at = None
        self._window_count = 0
        self._data_rate = 0
        self._publish()
        logger.info("Session closed")

    async def connect_device(self, target: Any) -> LinkStatus:
        """Connect the device link. See ``DeviceLink.connect``."""
        return await self._link.connect(target)

    async def connect_ntrip(self, config: NTRIPConfig) -> NTRIPStatus:
        """Open the correction stream. See ``NTRIPClient.connect_with``."""
        return await self._ntrip.connect_with(config)

    async def disconnect_all(self) -> None:
        await self._ntrip.disconnect()
        await self._link.disconnect()

    def _publish(self) -> None:
        snapshot = SessionSnapshot(
            status=derive_session_status(self._link.status, self._ntrip.status),
            link=self._link.status,
            ntrip=self._ntrip.status,
            position=self._position,
            data_rate=self._data_rate,
            is_receiving_data=self._is_receiving(),
            correction_age=self._correction_age(),
            sentence_count=self._sentence_count,
            correction_bytes=self._correction_bytes,
        )
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        self._channel.publish(snapshot)

    def _is_receiving(self) -> bool:
        if self._last_data_at is None:
            return False
        return self._clock() - self._last_data_at <= self._stale_after

    def _correction_age(self) -> float | None:
        if self._last_correction_at is None:
            return None
        return self._clock() - self._last_correction_at

    def _tick(self) -> None:
        """Close the current data-rate window."""
        self._data_rate = self._window_count if self._is_receiving() else 0
        self._window_count = 0
        self._publish()

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self._tick()

    async def _follow_status(self, queue: asyncio.Queue[Any]) -> None:
        while True:
            await queue.get()
            self._publish()

    async def _consume_device_data(self, queue: asyncio.Queue[bytes]) -> None:
        while True:
            chunk = await read_coalesced(queue)
            self._handle_device_data(chunk)

    def _handle_device_data(self, chunk: bytes) -> None:
        self._last_data_at = self._clock()
        for sentence in self._parser.feed(chunk):
            self._window_count += 1
            self._sentence_count += 1
            self._handle_sentence(sentence)
        self._publish()

    def _handle_sentence(self, sentence: NMEASentence) -> None:
        if isinstance(sentence, GGASentence):
            position = sentence.to_position()
            if position is None:
                return
            self._position = position
            self._store(position)
            self._ntrip.submit_position_report(build_gga_sentence(position))
        elif isinstance(sentence, GSASentence):
            if self._position is None:
                return
            self._position = self._position.with_dop(
                pdop=sentence.pdop,
                hdop=sentence.hdop,
                vdop=sentence.vdop,
            )

    def _store(self, position: GNSSPosition) -> None:
        if self._position_sink is None:
            return
        try:
            self._position_sink(position)
        except Exception:
            logger.exception("Position sink failed")

    async def _forward_corrections(self, queue: asyncio.Queue[bytes]) -> None:
        while True:
            data = await read_coalesced(queue)
            self._last_correction_at = self._clock()
            if await self._link.send(data):
                self._correction_bytes += len(data)
            self._publish()
