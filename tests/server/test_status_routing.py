"""Tests for the status endpoint and snapshot payloads."""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from rtkclient.session import SessionSnapshot
from server.formatters import format_snapshot_message, snapshot_to_dict
from tests.server.helpers import make_failed_link, make_snapshot


def test_status_without_receiver(app: FastAPI) -> None:
    with TestClient(app) as client:
        response = client.get("/status")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "disconnected"
        assert data["link"]["state"] == "idle"
        assert data["ntrip"]["state"] == "disconnected"
        assert data["data_rate"] == 0


def test_status_with_fix(streaming_app: FastAPI) -> None:
    with TestClient(streaming_app) as client:
        data = client.get("/status").json()
        assert data["status"] == "device_link_active"
        assert data["sentence_count"] == 1
        assert data["is_receiving_data"] is True
        assert data["position"]["lat"] == pytest.approx(48.1173)
        assert data["position"]["fix_quality"] == 4
        assert data["position"]["num_satellites"] == 12


def test_snapshot_without_position_yields_null() -> None:
    data = snapshot_to_dict(make_snapshot(with_position=False))
    assert data["type"] == "session"
    assert data["position"] is None
    assert data["correction_age"] is None


def test_snapshot_with_position() -> None:
    data = snapshot_to_dict(make_snapshot(with_position=True))
    position = data["position"]
    assert position["lat"] == 45.0
    assert position["fix_label"] == "RTK"
    assert position["nominal_accuracy"] == "±2cm"
    assert position["pdop"] is None
    assert position["timestamp"] == "2024-05-01T12:00:00+00:00"


def test_failure_details_are_reported() -> None:
    snapshot = make_snapshot(with_position=False)
    data = snapshot_to_dict(snapshot)
    assert data["ntrip"] == {
        "state": "failed",
        "reason": "server error",
        "status_code": 503,
        "detail": "caster answered 503",
        "attempt": 2,
    }
    link = snapshot_to_dict(SessionSnapshot(link=make_failed_link()))["link"]
    assert link["reason"] == "connection timed out"
    assert link["attempt"] == 1


def test_message_is_json() -> None:
    message = format_snapshot_message(make_snapshot(with_position=True))
    assert json.loads(message)["data_rate"] == 5
