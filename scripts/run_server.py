"""Entrypoint for launching the Haxidraw control server."""
from __future__ import annotations

import argparse

import uvicorn

from haxidraw.config import PlotterSettings
from haxidraw.device import MockBackend, PortInfo
from haxidraw.log import setup_logging
from haxidraw.server.app import create_app, create_session
from haxidraw.session import PlotterSession


def main() -> None:
    parser = argparse.ArgumentParser(description="Launch the Haxidraw control server.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument(
        "--serial-device",
        "-s",
        dest="serial_device",
        help="Serial device to use when connecting (e.g. /dev/ttyACM0).",
    )
    parser.add_argument("--mock", action="store_true", help="Drive an in-memory plotter instead of hardware.")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None)
    args = parser.parse_args()

    setup_logging(args.log_level, args.log_file)
    settings = PlotterSettings.from_env()
    if args.mock:
        port = PortInfo(device="mock", vid=settings.vendor_id, description="Mock plotter")
        session = PlotterSession(MockBackend([port], choice=port, delay=0.01), settings)
    else:
        session = create_session(settings, device=args.serial_device)

    uvicorn.run(create_app(session), host=args.host, port=args.port, reload=False)


if __name__ == "__main__":
    main()
