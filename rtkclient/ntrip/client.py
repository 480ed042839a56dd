"""NTRIP session client.

Pulls an RTCM correction stream from a caster and feeds the rover's position
back on the same socket. Correction bytes are published unmodified: RTCM
framing is the receiver's business.

Session lifecycle::

    DISCONNECTED -> CONNECTING -> AUTHENTICATING -> CONNECTED
                        |               |               |
                        +---------------+---------------+--> FAILED(reason)

A failure is retried with exponential backoff unless the caster rejected the
credentials (401), which needs new credentials from the user. A caster that
closes the stream mid-session counts as link loss and is retried.
"""

import asyncio
import logging
from types import TracebackType

from rtkclient.broadcaster import Broadcaster
from rtkclient.config import DEFAULT_NTRIP_PORT, DEFAULT_USER_AGENT, NTRIPConfig
from rtkclient.errors import NTRIPResponseError
from rtkclient.ntrip.protocol import (
    build_request,
    check_response,
    parse_header_line,
    parse_status_line,
)
from rtkclient.ntrip.types import NTRIPFailure, NTRIPState, NTRIPStatus
from rtkclient.reconnect import ReconnectPolicy, ReconnectScheduler

__all__ = ["NTRIPClient"]

logger = logging.getLogger(__name__)

_READ_SIZE = 4096
_MAX_HEADER_LINES = 100
_CLOSE_TIMEOUT = 1.0
_STATUS_QUEUE_SIZE = 16


class NTRIPClient:
    """Client for one NTRIP correction stream at a time.

    Example::

        client = NTRIPClient()
        corrections = client.subscribe_data()
        await client.connect("caster.example.com", 2101, "MOUNT", "user", "pass")
        await client.send_position_report(gga_line)
        rtcm = await read_coalesced(corrections)

    Args:
        reconnect_policy: Backoff applied after unexpected failures.
        user_agent: Default ``User-Agent`` for ``connect``.
        position_report_interval: Default GGA re-send period for
            ``connect``, in seconds.
        connect_timeout: Default watchdog for connect plus response
            headers, in seconds.
        read_size: Maximum bytes per read.
    """

    def __init__(
        self,
        *,
        reconnect_policy: ReconnectPolicy | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        position_report_interval: float = 10.0,
        connect_timeout: float = 10.0,
        read_size: int = _READ_SIZE,
    ) -> None:
        self._user_agent = user_agent
        self._position_report_interval = position_report_interval
        self._connect_timeout = connect_timeout
        self._read_size = read_size
        self._reconnect = ReconnectScheduler(reconnect_policy or ReconnectPolicy(), "ntrip")
        self._status = NTRIPStatus()
        self._status_channel: Broadcaster[NTRIPStatus] = Broadcaster(_STATUS_QUEUE_SIZE)
        self._data_channel: Broadcaster[bytes] = Broadcaster()
        self._config: NTRIPConfig | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._attempt_task: asyncio.Task[None] | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._report_task: asyncio.Task[None] | None = None
        self._recovery_task: asyncio.Task[None] | None = None
        self._report_write_task: asyncio.Task[bool] | None = None
        self._last_report: str | None = None
        self._write_lock = asyncio.Lock()

    async def __aenter__(self) -> "NTRIPClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.disconnect()

    @property
    def status(self) -> NTRIPStatus:
        return self._status

    @property
    def config(self) -> NTRIPConfig | None:
        """Configuration of the current or most recent session."""
        return self._config

    @property
    def last_position_report(self) -> str | None:
        return self._last_report

    def subscribe_status(self) -> asyncio.Queue[NTRIPStatus]:
        """Queue receiving every status change. Oldest entries drop on overflow."""
        return self._status_channel.subscribe()

    def unsubscribe_status(self, queue: asyncio.Queue[NTRIPStatus]) -> None:
        self._status_channel.unsubscribe(queue)

    def subscribe_data(self) -> asyncio.Queue[bytes]:
        """Unbounded queue receiving correction bytes as they arrive."""
        return self._data_channel.subscribe()

    def unsubscribe_data(self, queue: asyncio.Queue[bytes]) -> None:
        self._data_channel.unsubscribe(queue)

    async def connect(
        self,
        host: str,
        port: int = DEFAULT_NTRIP_PORT,
        mountpoint: str = "",
        username: str = "",
        password: str = "",
    ) -> NTRIPStatus:
        """Open a correction stream using this client's defaults.

        Raises:
            ConfigurationError: A parameter is malformed. Nothing is changed.
        """
        config = NTRIPConfig(
            host=host,
            port=port,
            mountpoint=mountpoint,
            username=username,
            password=password,
            user_agent=self._user_agent,
            position_report_interval=self._position_report_interval,
            connect_timeout=self._connect_timeout,
        )
        return await self.connect_with(config)

    async def connect_with(self, config: NTRIPConfig) -> NTRIPStatus:
        """Open a correction stream, replacing any current session.

        Resets the consecutive-failure counter, so this is also the way out
        of a terminal failure.

        Returns:
            The status once this attempt has completed.

        Raises:
            ConfigurationError: *config* is malformed. Nothing is changed.
        """
        config.validate()
        await self._teardown()
        self._reconnect.reset()
        self._config = config
        task = asyncio.create_task(self._attempt())
        self._attempt_task = task
        await asyncio.wait({task})
        return self._status

    async def disconnect(self) -> None:
        """Close the stream and cancel pending retries and timers. Idempotent."""
        self._config = None
        self._last_report = None
        await self._teardown()
        if self._status.state is not NTRIPState.DISCONNECTED:
            self._set_status(NTRIPStatus())
            logger.info("ntrip: disconnected")

    async def send_position_report(self, gga: str) -> bool:
        """Store *gga* as the latest report and send it if connected.

        The stored report is re-sent every ``position_report_interval``
        seconds and right after every (re)connect.

        Args:
            gga: A complete GGA sentence, with or without line terminator.

        Returns:
            True if the report was written to the caster.
        """
        self._last_report = gga.strip()
        if not self._status.is_connected:
            return False
        return await self._write_report()

    def submit_position_report(self, gga: str) -> None:
        """Store *gga* and write it from a background task.

        Unlike ``send_position_report`` this never waits on the caster
        socket. While a write is still pending, a newer report only replaces
        the stored one, which the periodic timer sends next.
        """
        self._last_report = gga.strip()
        if not self._status.is_connected:
            return
        task = self._report_write_task
        if task is not None and not task.done():
            return
        self._report_write_task = asyncio.create_task(self._write_report())

    def _set_status(self, status: NTRIPStatus) -> None:
        if status == self._status:
            return
        self._status = status
        self._status_channel.publish(status)

    async def _attempt(self) -> None:
        config = self._config
        if config is None:
            return

        self._set_status(
            NTRIPStatus(NTRIPState.CONNECTING, attempt=self._reconnect.failures)
        )
        logger.info("ntrip: connecting to %s", config.url)
        try:
            reader = await asyncio.wait_for(
                self._open(config), timeout=config.connect_timeout
            )
        except asyncio.CancelledError:
            await self._close_stream()
            raise
        except NTRIPResponseError as exc:
            await self._close_stream()
            self._handle_failure(exc.reason, str(exc), exc.status_code)  # type: ignore[arg-type]
            return
        except TimeoutError:
            await self._close_stream()
            self._handle_failure(
                NTRIPFailure.TIMEOUT,
                f"no response after {config.connect_timeout:g}s",
            )
            return
        except OSError as exc:
            await self._close_stream()
            self._handle_failure(NTRIPFailure.CONNECTION_FAILED, str(exc))
            return

        self._reconnect.reset()
        self._set_status(NTRIPStatus(NTRIPState.CONNECTED))
        logger.info("ntrip: streaming corrections from %s", config.url)

        self._receive_task = asyncio.create_task(self._receive_loop(reader))
        self._report_task = asyncio.create_task(
            self._report_loop(config.position_report_interval)
        )
        if self._last_report is not None:
            await self._write_report()

    async def _open(self, config: NTRIPConfig) -> asyncio.StreamReader:
        reader, writer = await asyncio.open_connection(config.host, config.port)
        self._writer = writer

        self._set_status(
            NTRIPStatus(NTRIPState.AUTHENTICATING, attempt=self._reconnect.failures)
        )
        writer.write(build_request(config))
        await writer.drain()

        try:
            status_line = await reader.readline()
            if not status_line:
                raise NTRIPResponseError(
                    NTRIPFailure.INVALID_RESPONSE,
                    message="caster closed the connection without a response",
                )
            protocol, status_code, _ = parse_status_line(status_line)
            headers: dict[str, str] = {}
            if protocol.startswith("HTTP/"):
                headers = await self._read_headers(reader)
        except ValueError as exc:
            raise NTRIPResponseError(
                NTRIPFailure.INVALID_RESPONSE,
                message="response header too long",
            ) from exc
        check_response(protocol, status_code, headers)
        return reader

    async def _read_headers(self, reader: asyncio.StreamReader) -> dict[str, str]:
        headers: dict[str, str] = {}
        for _ in range(_MAX_HEADER_LINES):
            line = await reader.readline()
            if not line.strip():
                return headers
            header = parse_header_line(line)
            if header is not None:
                headers[header[0]] = header[1]
        raise NTRIPResponseError(
            NTRIPFailure.INVALID_RESPONSE,
            message="too many response headers",
        )

    def _handle_failure(
        self,
        reason: NTRIPFailure,
        detail: str,
        status_code: int | None = None,
    ) -> None:
        if reason is NTRIPFailure.AUTHENTICATION_FAILED:
            logger.error("ntrip: caster rejected the credentials")
            self._set_status(
                NTRIPStatus(
                    NTRIPState.FAILED,
                    reason,
                    status_code,
                    detail,
                    self._reconnect.failures,
                )
            )
            return

        delay = self._reconnect.record_failure()
        attempt = self._reconnect.failures
        if delay is None:
            self._set_status(
                NTRIPStatus(
                    NTRIPState.FAILED,
                    NTRIPFailure.RECONNECTION_EXHAUSTED,
                    status_code,
                    detail,
                    attempt,
                )
            )
            return
        logger.warning("ntrip: %s: %s", reason.value, detail)
        self._set_status(NTRIPStatus(NTRIPState.FAILED, reason, status_code, detail, attempt))
        self._reconnect.schedule(delay, self._attempt)

    async def _receive_loop(self, reader: asyncio.StreamReader) -> None:
        try:
            while True:
                chunk = await reader.read(self._read_size)
                if not chunk:
                    self._connection_lost("caster closed the stream")
                    return
                self._data_channel.publish(chunk)
        except OSError as exc:
            self._connection_lost(str(exc) or type(exc).__name__)

    async def _report_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            if self._last_report is not None:
                await self._write_report()

    async def _write_report(self) -> bool:
        async with self._write_lock:
            report = self._last_report
            if report is None:
                return False
            writer = self._writer
            if writer is None or not self._status.is_connected:
                return False
            try:
                writer.write(f"{report}\r\n".encode("ascii", errors="replace"))
                await writer.drain()
            except OSError as exc:
                self._connection_lost(str(exc) or type(exc).__name__)
                return False
        logger.debug("ntrip: sent position report")
        return True

    def _connection_lost(self, detail: str) -> None:
        if not self._status.is_connected:
            return
        if self._recovery_task is not None and not self._recovery_task.done():
            return
        self._recovery_task = asyncio.create_task(self._recover(detail))

    async def _recover(self, detail: str) -> None:
        await self._close_stream()
        self._handle_failure(NTRIPFailure.CONNECTION_LOST, detail)

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
        await self._close_stream()

    async def _close_stream(self) -> None:
        current = asyncio.current_task()
        tasks = []
        for task in (self._receive_task, self._report_task, self._report_write_task):
            if task is not None and not task.done() and task is not current:
                task.cancel()
                tasks.append(task)
        self._receive_task = None
        self._report_task = None
        self._report_write_task = None
        if tasks:
            await asyncio.wait(tasks)

        writer = self._writer
        self._writer = None
        if writer is None:
            return
        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=_CLOSE_TIMEOUT)
        except TimeoutError:
            logger.debug("ntrip: timeout waiting for socket close")
        except OSError as exc:
            logger.debug("ntrip: error closing socket: %s", exc)
