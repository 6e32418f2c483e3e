#!/usr/bin/env python3
# Grbl Shuttle (CNC jog pendant for Grbl)
# Copyright (C) 2026 Bob Kolbasowski
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
# Optional (not required by the license): If you make improvements, please consider
# contributing them back upstream (e.g., via a pull request) so others can benefit.
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""CLI entry point: ``grbl-shuttle --port /dev/ttyUSB0``"""

from __future__ import annotations

import argparse
import logging
from typing import Any

from .pendant import Pendant
from .scheduler import Scheduler
from .serial_transport import SerialTransport
from .shuttle_input import ShuttleInput
from .utils.config import PendantConfig
from .utils.exceptions import (
    ConfigLoadError,
    ConfigValidationError,
    InputDeviceError,
    InvalidParameterError,
    SerialConnectionError,
)
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="grbl-shuttle",
        description="Jog a Grbl CNC machine from a USB shuttle/jog pendant.",
    )
    p.add_argument("-p", "--port", default=None,
                   help="Serial port of the controller (default: from config)")
    p.add_argument("-b", "--baudrate", type=int, default=None,
                   help="Serial baud rate (default: from config, 115200)")
    p.add_argument("-c", "--config", default=None,
                   help="Path to the JSON config file")
    p.add_argument("-j", "--joystick", type=int, default=None,
                   help="pygame joystick index of the pendant (default: from config)")
    p.add_argument("--list-ports", action="store_true",
                   help="List available serial ports and exit")
    p.add_argument("-q", "--quiet", action="store_true",
                   help="Do not print state changes")
    p.add_argument("-v", "--verbose", action="count", default=0,
                   help="Increase log verbosity (-v info, -vv debug)")
    return p


def _print_event(event: str, value: Any) -> None:
    if event in ("mpos_changed", "wpos_changed") and value is not None:
        value = " ".join(f"{axis}{pos:.3f}" for axis, pos in zip("XYZ", value))
    print(f"{event.replace('_changed', '')}: {value}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.list_ports:
        for port in SerialTransport.list_ports():
            print(port)
        return 0

    config = PendantConfig(args.config)
    try:
        config.load()
        config.validate()
    except (ConfigLoadError, ConfigValidationError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    port = args.port or config.get("port")
    if not port:
        logger.error("No serial port given (use --port or set 'port' in the config)")
        return 2
    baud = args.baudrate or config.get("baud_rate")
    joystick = config.get("joystick", {})
    joystick_index = args.joystick if args.joystick is not None else joystick.get("index", 0)

    scheduler = Scheduler()
    pendant = Pendant(config, scheduler, display=None if args.quiet else _print_event)
    shuttle = ShuttleInput(
        pendant,
        scheduler,
        joystick_index=joystick_index,
        shuttle_axis=joystick.get("shuttle_axis", 0),
        jog_axis=joystick.get("jog_axis", 1),
    )
    try:
        shuttle.open()
    except InputDeviceError as e:
        logger.error(f"Input device error: {e}")
        return 1

    transport = SerialTransport(pendant.listener, status_poll_interval=config.get("status_poll_interval"))
    pendant.attach(transport)
    try:
        transport.connect(port, baud)
    except (SerialConnectionError, InvalidParameterError) as e:
        logger.error(str(e))
        shuttle.close()
        return 1

    # pygame wants its event pump on the main thread, so the loop runs here
    shuttle.start()
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        shuttle.close()
        transport.disconnect()
    return 0
