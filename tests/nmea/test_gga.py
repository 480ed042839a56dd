"""Tests for GGA sentence parsing and regeneration."""

from datetime import datetime, timezone

import pytest

from rtkclient.gnss import FixQuality, GNSSPosition
from rtkclient.nmea import build_gga_sentence, parse_gga, validate_checksum

REFERENCE = "$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47"


def _position(**overrides) -> GNSSPosition:
    values = {
        "latitude": 48.1173,
        "longitude": 11.516666666666667,
        "altitude": 545.4,
        "horizontal_accuracy": 2.4,
        "vertical_accuracy": 4.0,
        "timestamp": datetime(2024, 3, 23, 12, 35, 19, tzinfo=timezone.utc),
        "fix_quality": FixQuality.RTK_FIXED,
        "satellite_count": 12,
        "hdop": 0.8,
    }
    values.update(overrides)
    return GNSSPosition(**values)


class TestParseGGA:
    """Tests for parse_gga function."""

    def test_reference_sentence(self):
        result = parse_gga(REFERENCE)
        assert result is not None
        assert result.talker_id == "GP"
        assert result.sentence_id == "GGA"
        assert result.checksum == "47"
        assert result.utc_time == "123519"
        assert result.fix_quality == 1
        assert result.satellite_count == 8
        assert result.hdop == pytest.approx(0.9)
        assert result.altitude == pytest.approx(545.4)
        assert result.geoid_height == pytest.approx(46.9)
        assert result.signed_latitude == pytest.approx(48.1173, abs=1e-4)
        assert result.signed_longitude == pytest.approx(11.5167, abs=1e-4)
        assert result.is_valid is True

    def test_rtk_fixed_quality(self):
        result = parse_gga(
            "$GPGGA,123519,4807.038,N,01131.000,E,4,08,0.9,545.4,M,46.9,M,,*42"
        )
        assert result is not None
        assert FixQuality.from_code(result.fix_quality) is FixQuality.RTK_FIXED
        assert result.is_valid is True

    def test_gga_no_fix(self):
        result = parse_gga("$GNGGA,123519.00,,,,,0,00,,,,,,,*5B")
        assert result is not None
        assert result.utc_time == "123519.00"
        assert result.latitude is None
        assert result.longitude is None
        assert result.fix_quality == 0
        assert result.satellite_count == 0
        assert result.hdop is None
        assert result.altitude is None
        assert result.geoid_height is None
        assert result.is_valid is False
        assert result.to_position() is None

    def test_gga_empty_fields_with_fix(self):
        result = parse_gga("$GNGGA,123519.00,4807.038,N,01131.000,E,1,,,545.4,M,,M,,*4D")
        assert result is not None
        assert result.fix_quality == 1
        assert result.satellite_count == 0
        assert result.hdop is None
        assert result.altitude == pytest.approx(545.4)

    def test_gga_southern_hemisphere(self):
        sentence = "$GPGGA,123519.00,3356.123,S,15112.456,W,2,10,0.8,100.0,M,20.0,M,,*65"
        result = parse_gga(sentence)
        assert result is not None
        assert result.latitude == pytest.approx(33.93538333, rel=1e-6)
        assert result.signed_latitude == pytest.approx(-33.93538333, rel=1e-6)
        assert result.signed_longitude == pytest.approx(-151.20760, rel=1e-6)

    def test_gga_invalid_checksum(self):
        assert parse_gga(REFERENCE[:-2] + "FF") is None

    def test_gga_malformed_too_few_fields(self):
        assert parse_gga("$GNGGA,123519.00,4807.038,N*17") is None

    def test_gga_wrong_sentence_type(self):
        assert parse_gga("$GNVTG,054.7,T,034.4,M,005.5,N,010.2,K,A*3B") is None

    def test_gga_any_talker_accepted(self):
        sentence = "$XXGGA,123519.00,4807.038,N,01131.000,E,1,08,0.9,545.4,M,47.0,M,,*76"
        result = parse_gga(sentence)
        assert result is not None
        assert result.talker_id == "XX"

    def test_gga_empty_fix_quality_defaults_to_zero(self):
        result = parse_gga("$GNGGA,123519.00,,,,,,,,,,,,,*6B")
        assert result is not None and result.fix_quality == 0

    def test_gga_multi_constellation_prefixes(self):
        prefixes = [("GP", "61"), ("GN", "7F"), ("GL", "7D"),
                    ("GA", "70"), ("GB", "73"), ("GQ", "60")]
        for prefix, cs in prefixes:
            s = f"${prefix}GGA,123519.00,4807.038,N,01131.000,E,1,08,0.9,545.4,M,47.0,M,,*{cs}"
            assert parse_gga(s) is not None, f"Failed: {prefix}"

    def test_gga_trailing_whitespace(self):
        sentence = "$GNGGA,123519.00,4807.038,N,01131.000,E,1,08,0.9,545.4,M,47.0,M,,*7F   \n"
        assert parse_gga(sentence) is not None

    def test_gga_high_precision_coordinates(self):
        sentence = "$GNGGA,123519.00,4807.03812345,N,01131.00098765,E,4,12,0.5,545.4,M,47.0,M,,*79"
        result = parse_gga(sentence)
        assert result is not None
        assert result.latitude == pytest.approx(48.11730208, rel=1e-6)
        assert result.longitude == pytest.approx(11.51668313, rel=1e-6)

    def test_zedf9p_gga_rtk_fixed(self):
        sentence = "$GNGGA,081836.00,3723.46587,N,12202.26957,W,4,12,0.7,10.5,M,-30.0,M,1.0,0000*51"
        result = parse_gga(sentence)
        assert result is not None
        assert result.dgps_age == pytest.approx(1.0)
        assert result.dgps_station == "0000"
        assert result.geoid_height == pytest.approx(-30.0)


class TestGGAToPosition:
    """Tests for GGASentence.to_position."""

    def test_position_fields(self):
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        position = parse_gga(REFERENCE).to_position(stamp)
        assert position is not None
        assert position.fix_quality is FixQuality.GPS
        assert position.satellite_count == 8
        assert position.altitude == pytest.approx(545.4)
        assert position.horizontal_accuracy == pytest.approx(2.7)
        assert position.vertical_accuracy == pytest.approx(4.5)
        assert position.timestamp == stamp
        assert position.pdop is None and position.vdop is None

    def test_missing_hdop_gives_unknown_accuracy(self):
        sentence = parse_gga("$GNGGA,123519.00,4807.038,N,01131.000,E,1,,,545.4,M,,M,,*4D")
        position = sentence.to_position()
        assert position is not None
        assert position.horizontal_accuracy is None
        assert position.vertical_accuracy is None

    def test_missing_altitude_gives_no_position(self):
        sentence = parse_gga("$GPGGA,123520,4807.038,N,01131.000,E,1,08,0.9,,M,,M,,*76")
        assert sentence is not None and sentence.is_valid
        assert sentence.to_position() is None

    def test_unknown_fix_code_gives_no_position(self):
        sentence = parse_gga("$GPGGA,123520.00,4807.0400,N,01131.0100,E,9,08,0.9,545.0,M,46.9,M,,*61")
        assert sentence is not None
        assert sentence.fix_quality == 9
        assert sentence.is_valid is False
        assert sentence.to_position() is None

    def test_default_timestamp_is_utc(self):
        position = parse_gga(REFERENCE).to_position()
        assert position.timestamp.tzinfo is timezone.utc


class TestBuildGGASentence:
    """Tests for build_gga_sentence function."""

    def test_exact_output(self):
        assert build_gga_sentence(_position()) == (
            "$GPGGA,123519.00,4807.0380,N,01131.0000,E,4,12,0.8,545.4,M,0.0,M,,*5D"
        )

    def test_southern_western_hemispheres_and_default_hdop(self):
        position = _position(
            latitude=-(33 + 56.123 / 60),
            longitude=-(151 + 12.456 / 60),
            altitude=100.0,
            timestamp=datetime(2024, 1, 1, 23, 59, 59, 500000, tzinfo=timezone.utc),
            fix_quality=FixQuality.DGPS,
            satellite_count=8,
            hdop=None,
        )
        assert build_gga_sentence(position) == (
            "$GPGGA,235959.50,3356.1230,S,15112.4560,W,2,08,1.0,100.0,M,0.0,M,,*5E"
        )

    def test_minutes_rounding_carries_into_degrees(self):
        position = _position(
            latitude=10 + 59.99999 / 60,
            longitude=0.0,
            altitude=0.0,
            timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
            fix_quality=FixQuality.GPS,
            satellite_count=5,
            hdop=1.0,
        )
        assert build_gga_sentence(position) == (
            "$GPGGA,000000.00,1100.0000,N,00000.0000,E,1,05,1.0,0.0,M,0.0,M,,*58"
        )

    def test_talker_id(self):
        sentence = build_gga_sentence(_position(), talker_id="GN")
        assert sentence.startswith("$GNGGA,")
        assert validate_checksum(sentence)

    def test_round_trip(self):
        for fix_quality in FixQuality:
            original = _position(
                latitude=-12.3456789,
                longitude=123.4567891,
                altitude=-17.25,
                fix_quality=fix_quality,
                satellite_count=31,
            )
            parsed = parse_gga(build_gga_sentence(original))
            assert parsed is not None
            assert parsed.fix_quality == int(fix_quality)
            assert parsed.satellite_count == 31
            assert parsed.signed_latitude == pytest.approx(original.latitude, abs=1e-4)
            assert parsed.signed_longitude == pytest.approx(original.longitude, abs=1e-4)
            assert parsed.altitude == pytest.approx(original.altitude, abs=0.1)
