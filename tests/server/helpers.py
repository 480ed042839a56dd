"""Helper factories for server tests."""

from datetime import datetime, timezone

from rtkclient.gnss import FixQuality, GNSSPosition
from rtkclient.link import LinkFailure, LinkState, LinkStatus
from rtkclient.ntrip import NTRIPFailure, NTRIPState, NTRIPStatus
from rtkclient.session import SessionSnapshot, SessionStatus


def make_position() -> GNSSPosition:
    return GNSSPosition(
        latitude=45.0,
        longitude=9.0,
        altitude=100.0,
        horizontal_accuracy=3.0,
        vertical_accuracy=5.0,
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        fix_quality=FixQuality.RTK_FIXED,
        satellite_count=8,
        hdop=1.0,
    )


def make_snapshot(with_position: bool) -> SessionSnapshot:
    return SessionSnapshot(
        status=SessionStatus.DEVICE_LINK_ACTIVE,
        link=LinkStatus(LinkState.CONNECTED),
        ntrip=NTRIPStatus(
            NTRIPState.FAILED,
            NTRIPFailure.SERVER_ERROR,
            status_code=503,
            detail="caster answered 503",
            attempt=2,
        ),
        position=make_position() if with_position else None,
        data_rate=5,
        is_receiving_data=True,
        correction_age=None,
        sentence_count=42,
        correction_bytes=1024,
    )


def make_failed_link() -> LinkStatus:
    return LinkStatus(LinkState.FAILED, LinkFailure.TIMEOUT, "no connection after 15s", 1)
