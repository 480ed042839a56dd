"""In-memory stand-ins shared by the link and session tests."""

import asyncio

from rtkclient.errors import ConfigurationError
from rtkclient.link import DeviceLink


class FakeLink(DeviceLink[str]):
    """Link whose transport behaviour is set by the test.

    ``failures`` are raised by successive opens, ``hang`` makes an open
    never complete and ``on_open`` runs inside a successful open. Writes are
    recorded in two halves with a yield in between, so interleaving would
    be visible.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("fake", **kwargs)
        self.failures: list[BaseException] = []
        self.hang = False
        self.on_open = None
        self.open_calls = 0
        self.close_calls = 0
        self.writes: list[bytes] = []
        self.write_error: BaseException | None = None
        self.scanning = False

    def _validate_target(self, target: str) -> None:
        if not target:
            raise ConfigurationError("empty target")

    async def _open(self, target: str) -> None:
        self.open_calls += 1
        if self.hang:
            await asyncio.Event().wait()
        if self.failures:
            raise self.failures.pop(0)
        if self.on_open is not None:
            self.on_open()

    async def _close(self) -> None:
        self.close_calls += 1

    async def _write(self, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        half = len(data) // 2
        self.writes.append(data[:half])
        await asyncio.sleep(0)
        self.writes.append(data[half:])

    async def _start_discovery(self) -> None:
        self.scanning = True

    async def _stop_discovery(self) -> None:
        self.scanning = False
