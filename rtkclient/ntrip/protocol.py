"""NTRIP request building and caster response classification.

Request (NTRIP 1.0 style, one GET on a non-persistent connection)::

    GET /MOUNTPOINT HTTP/1.0
    Host: caster.example.com:2101
    Ntrip-Version: NTRIP/1.0
    User-Agent: NTRIP rtkclient/0.1
    Connection: close
    Authorization: Basic dXNlcjpwYXNz

Casters answer with one of:

    ``ICY 200 OK``             NTRIP 1.0 success, RTCM follows immediately
    ``HTTP/1.x 200 OK``        NTRIP 2.0 success, headers then RTCM
    ``SOURCETABLE 200 OK``     the mountpoint does not exist
    ``HTTP/1.x 401 ...``       bad credentials
    ``HTTP/1.x <code> ...``    any other rejection
"""

from rtkclient.config import NTRIPConfig
from rtkclient.errors import NTRIPResponseError
from rtkclient.ntrip.types import NTRIPFailure

__all__ = ["build_request", "check_response", "parse_header_line", "parse_status_line"]

_SOURCETABLE_CONTENT_TYPE = "gnss/sourcetable"


def build_request(config: NTRIPConfig) -> bytes:
    """Encode the GET request for *config*'s mountpoint."""
    lines = [
        f"GET /{config.mountpoint} HTTP/1.0",
        f"Host: {config.host}:{config.port}",
        "Ntrip-Version: NTRIP/1.0",
        f"User-Agent: {config.user_agent}",
        "Connection: close",
    ]
    authorization = config.authorization
    if authorization is not None:
        lines.append(f"Authorization: {authorization}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def parse_status_line(line: bytes) -> tuple[str, int, str]:
    """Split a caster status line into (protocol, status code, reason).

    Args:
        line: First line of the response, with or without terminator.

    Returns:
        e.g. ``("ICY", 200, "OK")`` or ``("HTTP/1.1", 401, "Unauthorized")``.

    Raises:
        NTRIPResponseError: The line is not a status line
            (``NTRIPFailure.INVALID_RESPONSE``).
    """
    text = line.decode("latin-1").strip()
    parts = text.split(None, 2)
    if len(parts) < 2 or not parts[1].isdigit():
        raise NTRIPResponseError(
            NTRIPFailure.INVALID_RESPONSE,
            message=f"unexpected status line: {text[:80]!r}",
        )
    protocol = parts[0].upper()
    if protocol not in ("ICY", "SOURCETABLE") and not protocol.startswith("HTTP/"):
        raise NTRIPResponseError(
            NTRIPFailure.INVALID_RESPONSE,
            message=f"unknown protocol: {parts[0][:20]!r}",
        )
    reason = parts[2] if len(parts) > 2 else ""
    return protocol, int(parts[1]), reason


def parse_header_line(line: bytes) -> tuple[str, str] | None:
    """Split ``Name: value`` into a lower-cased name and a stripped value."""
    name, separator, value = line.decode("latin-1").partition(":")
    if not separator:
        return None
    return name.strip().lower(), value.strip()


def check_response(protocol: str, status_code: int, headers: dict[str, str]) -> None:
    """Raise unless the response opens a correction stream.

    Args:
        protocol: Protocol token from the status line.
        status_code: Numeric status code.
        headers: Response headers with lower-cased names.

    Raises:
        NTRIPResponseError: with ``AUTHENTICATION_FAILED`` for 401,
            ``MOUNTPOINT_NOT_FOUND`` for 404 or a source table reply and
            ``SERVER_ERROR`` for any other non-200 code.
    """
    if protocol == "SOURCETABLE":
        raise NTRIPResponseError(
            NTRIPFailure.MOUNTPOINT_NOT_FOUND,
            status_code,
            "caster returned its source table",
        )
    if status_code == 200:
        content_type = headers.get("content-type", "")
        if content_type.lower().startswith(_SOURCETABLE_CONTENT_TYPE):
            raise NTRIPResponseError(
                NTRIPFailure.MOUNTPOINT_NOT_FOUND,
                status_code,
                "caster returned its source table",
            )
        return
    if status_code == 401:
        raise NTRIPResponseError(NTRIPFailure.AUTHENTICATION_FAILED, status_code)
    if status_code == 404:
        raise NTRIPResponseError(NTRIPFailure.MOUNTPOINT_NOT_FOUND, status_code)
    raise NTRIPResponseError(
        NTRIPFailure.SERVER_ERROR,
        status_code,
        f"caster answered {status_code}",
    )
