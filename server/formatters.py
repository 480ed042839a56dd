"""JSON formatting utilities for session snapshots."""

import json
from typing import Any

from rtkclient.gnss import GNSSPosition
from rtkclient.link import LinkStatus
from rtkclient.ntrip import NTRIPStatus
from rtkclient.session import SessionSnapshot

__all__ = ["format_snapshot_message", "snapshot_to_dict"]


def _position_to_dict(position: GNSSPosition | None) -> dict[str, Any] | None:
    if position is None:
        return None
    return {
        "lat": position.latitude,
        "lon": position.longitude,
        "alt": position.altitude,
        "fix_quality": int(position.fix_quality),
        "fix_label": position.fix_quality.label,
        "nominal_accuracy": position.fix_quality.accuracy,
        "horizontal_accuracy": position.horizontal_accuracy,
        "vertical_accuracy": position.vertical_accuracy,
        "num_satellites": position.satellite_count,
        "hdop": position.hdop,
        "vdop": position.vdop,
        "pdop": position.pdop,
        "timestamp": position.timestamp.isoformat(),
    }


def _link_to_dict(status: LinkStatus) -> dict[str, Any]:
    return {
        "state": status.state.value,
        "reason": status.reason.value if status.reason is not None else None,
        "detail": status.detail,
        "attempt": status.attempt,
    }


def _ntrip_to_dict(status: NTRIPStatus) -> dict[str, Any]:
    return {
        "state": status.state.value,
        "reason": status.reason.value if status.reason is not None else None,
        "status_code": status.status_code,
        "detail": status.detail,
        "attempt": status.attempt,
    }


def snapshot_to_dict(snapshot: SessionSnapshot) -> dict[str, Any]:
    """Convert a snapshot into JSON-compatible primitives."""
    return {
        "type": "session",
        "status": snapshot.status.value,
        "link": _link_to_dict(snapshot.link),
        "ntrip": _ntrip_to_dict(snapshot.ntrip),
        "position": _position_to_dict(snapshot.position),
        "data_rate": snapshot.data_rate,
        "is_receiving_data": snapshot.is_receiving_data,
        "correction_age": snapshot.correction_age,
        "sentence_count": snapshot.sentence_count,
        "correction_bytes": snapshot.correction_bytes,
    }


def format_snapshot_message(snapshot: SessionSnapshot) -> str:
    """Serialize a snapshot into a JSON string for WebSocket transmission."""
    return json.dumps(snapshot_to_dict(snapshot))
