"""Tests for connection configuration validation."""

import base64

import pytest

from rtkclient.config import NTRIPConfig, TCPEndpoint
from rtkclient.errors import ConfigurationError


class TestTCPEndpoint:
    """Tests for TCPEndpoint.validate."""

    def test_valid_endpoint(self):
        endpoint = TCPEndpoint("192.168.4.1", 2948)
        endpoint.validate()
        assert str(endpoint) == "192.168.4.1:2948"

    @pytest.mark.parametrize(
        ("host", "port"),
        [("", 2948), ("bad host", 2948), ("a/b", 2948), ("h", 0), ("h", 65536), ("h", True)],
    )
    def test_invalid_endpoint(self, host, port):
        with pytest.raises(ConfigurationError):
            TCPEndpoint(host, port).validate()

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            TCPEndpoint("", 1).validate()


class TestNTRIPConfig:
    """Tests for NTRIPConfig."""

    def test_defaults(self):
        config = NTRIPConfig(host="caster.example.com", mountpoint="MOUNT")
        config.validate()
        assert config.port == 2101
        assert config.position_report_interval == 10.0
        assert config.url == "http://caster.example.com:2101/MOUNT"
        assert config.authorization is None

    def test_basic_authorization(self):
        config = NTRIPConfig(
            host="caster.example.com",
            mountpoint="MOUNT",
            username="user",
            password="pa:ss",
        )
        token = config.authorization.removeprefix("Basic ")
        assert base64.b64decode(token) == b"user:pa:ss"

    def test_password_not_in_repr(self):
        config = NTRIPConfig(host="h", mountpoint="M", username="u", password="secret")
        assert "secret" not in repr(config)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"host": ""},
            {"port": 70000},
            {"mountpoint": ""},
            {"mountpoint": "A B"},
            {"mountpoint": "/MOUNT"},
            {"username": "a:b"},
            {"username": "", "password": "orphan"},
            {"user_agent": "NTRIP x\r\nX-Injected: 1"},
            {"position_report_interval": 0},
            {"connect_timeout": -1},
        ],
    )
    def test_invalid_config(self, overrides):
        values = {"host": "caster.example.com", "mountpoint": "MOUNT", "username": "u"}
        values.update(overrides)
        with pytest.raises(ConfigurationError):
            NTRIPConfig(**values).validate()
