"""Tests for the position value types."""

import dataclasses
from datetime import datetime, timezone

import pytest

from rtkclient.gnss import FixQuality, GNSSPosition
from rtkclient.gnss.types import estimate_accuracy


def _position(**overrides) -> GNSSPosition:
    values = {
        "latitude": 35.0,
        "longitude": 139.0,
        "altitude": 40.0,
        "horizontal_accuracy": 3.0,
        "vertical_accuracy": 5.0,
        "timestamp": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "fix_quality": FixQuality.RTK_FLOAT,
        "satellite_count": 14,
        "hdop": 1.0,
    }
    values.update(overrides)
    return GNSSPosition(**values)


class TestFixQuality:
    """Tests for FixQuality."""

    def test_codes_round_trip(self):
        for code in range(9):
            assert int(FixQuality.from_code(code)) == code

    def test_unknown_code_is_invalid(self):
        assert FixQuality.from_code(9) is FixQuality.INVALID
        assert FixQuality.from_code(-1) is FixQuality.INVALID

    def test_labels_and_nominal_accuracy(self):
        assert FixQuality.RTK_FIXED.label == "RTK"
        assert FixQuality.RTK_FIXED.accuracy == "±2cm"
        assert FixQuality.RTK_FLOAT.label == "RTK Float"
        assert FixQuality.RTK_FLOAT.accuracy == "±1m"
        assert FixQuality.SIMULATION.accuracy == "Unknown"


class TestGNSSPosition:
    """Tests for GNSSPosition."""

    def test_is_valid(self):
        assert _position().is_valid is True
        assert _position(fix_quality=FixQuality.INVALID).is_valid is False

    def test_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            _position().latitude = 0.0  # type: ignore[misc]

    def test_with_dop_amends_only_supplied_values(self):
        original = _position()
        amended = original.with_dop(pdop=1.8, hdop=None, vdop=1.5)
        assert amended is not original
        assert amended.pdop == pytest.approx(1.8)
        assert amended.vdop == pytest.approx(1.5)
        assert amended.hdop == pytest.approx(1.0)
        assert amended.latitude == original.latitude
        assert original.pdop is None

    def test_with_dop_keeps_previous_values_when_none(self):
        amended = _position().with_dop(pdop=2.0, hdop=0.7, vdop=1.1)
        again = amended.with_dop(pdop=None, hdop=None, vdop=None)
        assert again == amended


class TestEstimateAccuracy:
    """Tests for estimate_accuracy function."""

    def test_scales_hdop(self):
        horizontal, vertical = estimate_accuracy(0.8)
        assert horizontal == pytest.approx(2.4)
        assert vertical == pytest.approx(4.0)

    def test_unknown_hdop(self):
        assert estimate_accuracy(None) == (None, None)
