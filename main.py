"""Command-line RTK client.

Connects to a receiver over TCP or BLE, optionally streams corrections from
an NTRIP caster into it, and prints position updates::

    python main.py --tcp 192.168.4.1:2948 \\
        --ntrip-host caster.example.com --ntrip-mountpoint MOUNT \\
        --ntrip-user me            # password from RTKCLIENT_NTRIP_PASSWORD

    python main.py --scan          # list nearby BLE receivers
    python main.py --ble AA:BB:CC:DD:EE:FF --serve --port 8000
"""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping, Sequence

import uvicorn

from rtkclient.config import DEFAULT_NTRIP_PORT, NTRIPConfig, TCPEndpoint
from rtkclient.errors import ConfigurationError
from rtkclient.link import BLEDeviceLink, DeviceLink, TCPDeviceLink
from rtkclient.ntrip import NTRIPClient
from rtkclient.session import GNSSSession, SessionSnapshot
from server.main import create_app

logger = logging.getLogger(__name__)

PASSWORD_ENV_VAR = "RTKCLIENT_NTRIP_PASSWORD"

_SCAN_SECONDS = 10.0


def parse_endpoint(text: str) -> TCPEndpoint:
    """Parse ``host:port`` into a validated ``TCPEndpoint``."""
    host, separator, port = text.rpartition(":")
    if not separator or not port.isdigit():
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {text!r}")
    endpoint = TCPEndpoint(host.strip("[]"), int(port))
    try:
        endpoint.validate()
    except ConfigurationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return endpoint


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="RTK GNSS client")

    device = parser.add_mutually_exclusive_group(required=True)
    device.add_argument("--tcp", type=parse_endpoint, metavar="HOST:PORT",
                        help="receiver serving NMEA over TCP")
    device.add_argument("--ble", metavar="ADDRESS",
                        help="BLE address of a Nordic UART receiver")
    device.add_argument("--scan", action="store_true",
                        help="list BLE receivers and exit")

    ntrip = parser.add_argument_group("NTRIP caster")
    ntrip.add_argument("--ntrip-host")
    ntrip.add_argument("--ntrip-port", type=int, default=DEFAULT_NTRIP_PORT)
    ntrip.add_argument("--ntrip-mountpoint")
    ntrip.add_argument("--ntrip-user", default="")
    ntrip.add_argument("--ntrip-password", default=None,
                       help=f"defaults to ${PASSWORD_ENV_VAR}")
    ntrip.add_argument("--gga-interval", type=float, default=10.0,
                       help="seconds between position reports to the caster")

    serve = parser.add_argument_group("web server")
    serve.add_argument("--serve", action="store_true",
                       help="expose /status and /ws instead of printing")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args(argv)
    if args.ntrip_host and not args.ntrip_mountpoint:
        parser.error("--ntrip-host requires --ntrip-mountpoint")
    return args


def build_ntrip_config(
    args: argparse.Namespace,
    environ: Mapping[str, str] = os.environ,
) -> NTRIPConfig | None:
    """Caster settings from the arguments, or None when no caster is given.

    Raises:
        ConfigurationError: The caster settings are malformed.
    """
    if not args.ntrip_host:
        return None
    password = args.ntrip_password
    if password is None:
        password = environ.get(PASSWORD_ENV_VAR, "")
    config = NTRIPConfig(
        host=args.ntrip_host,
        port=args.ntrip_port,
        mountpoint=args.ntrip_mountpoint,
        username=args.ntrip_user,
        password=password,
        position_report_interval=args.gga_interval,
    )
    config.validate()
    return config


def build_link(args: argparse.Namespace) -> DeviceLink:
    if args.tcp is not None:
        return TCPDeviceLink()
    return BLEDeviceLink()


def format_snapshot_line(snapshot: SessionSnapshot) -> str:
    position = snapshot.position
    if position is None:
        fix = "no fix"
    else:
        fix = (
            f"{position.latitude:.8f} {position.longitude:.8f} "
            f"{position.altitude:.2f}m {position.fix_quality.label} "
            f"sats={position.satellite_count}"
        )
    age = "-" if snapshot.correction_age is None else f"{snapshot.correction_age:.1f}s"
    return (
        f"[{snapshot.status.value}] {fix} | "
        f"rate={snapshot.data_rate}/s age={age} "
        f"link={snapshot.link.state.value} ntrip={snapshot.ntrip.state.value}"
    )


async def scan(seconds: float = _SCAN_SECONDS) -> None:
    link = BLEDeviceLink(scan_timeout=seconds)
    await link.start_discovery()
    await asyncio.sleep(seconds)
    await link.stop_discovery()
    for device in link.discovered_devices:
        print(f"{device.identifier}  {device.name or '?':<24} {device.signal_strength} dBm")


async def connect_all(
    session: GNSSSession,
    args: argparse.Namespace,
    ntrip_config: NTRIPConfig | None,
) -> None:
    target = args.tcp if args.tcp is not None else args.ble
    await session.connect_device(target)
    if ntrip_config is not None:
        await session.connect_ntrip(ntrip_config)


async def run_console(
    session: GNSSSession,
    args: argparse.Namespace,
    ntrip_config: NTRIPConfig | None,
) -> None:
    async with session:
        updates = session.subscribe()
        await connect_all(session, args, ntrip_config)
        while True:
            snapshot = await updates.get()
            print(format_snapshot_line(snapshot))


async def serve(
    session: GNSSSession,
    args: argparse.Namespace,
    ntrip_config: NTRIPConfig | None,
) -> None:
    async def _startup(started: GNSSSession) -> None:
        await connect_all(started, args, ntrip_config)

    app = create_app(session, startup=_startup)
    config = uvicorn.Config(app, host=args.host, port=args.port,
                            log_level=args.log_level.lower())
    await uvicorn.Server(config).serve()


async def run(args: argparse.Namespace) -> int:
    if args.scan:
        await scan()
        return 0

    try:
        ntrip_config = build_ntrip_config(args)
    except ConfigurationError as exc:
        logger.error("Invalid NTRIP settings: %s", exc)
        return 2

    session = GNSSSession(build_link(args), NTRIPClient())
    if args.serve:
        await serve(session, args, ntrip_config)
    else:
        await run_console(session, args, ntrip_config)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Stopped.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
