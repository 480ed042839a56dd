"""Pytest fixtures for server module testing."""

import asyncio

import pytest
from fastapi import FastAPI

from rtkclient.ntrip import NTRIPClient
from rtkclient.session import GNSSSession
from server.main import create_app
from tests.fakes import FakeLink

RTK_GGA = b"$GPGGA,123519.00,4807.0380,N,01131.0000,E,4,12,0.8,545.4,M,46.9,M,1.0,0000*49\r\n"


@pytest.fixture
def link() -> FakeLink:
    return FakeLink()


@pytest.fixture
def session(link: FakeLink) -> GNSSSession:
    return GNSSSession(link, NTRIPClient(), tick_interval=3600.0)


@pytest.fixture
def app(session: GNSSSession) -> FastAPI:
    return create_app(session)


@pytest.fixture
def streaming_app(session: GNSSSession, link: FakeLink) -> FastAPI:
    """App whose startup connects the receiver and delivers one fix."""

    async def _startup(started: GNSSSession) -> None:
        await started.connect_device("receiver")
        link._data_received(RTK_GGA)
        await asyncio.sleep(0.05)

    return create_app(session, startup=_startup)


@pytest.fixture(autouse=True)
def short_heartbeat(monkeypatch: pytest.MonkeyPatch) -> None:
    # handlers blocked on an idle queue only notice a closed socket on their next send
    monkeypatch.setattr("server.main._TIMEOUT_SECONDS", 0.2)
