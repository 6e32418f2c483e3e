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

"""Logging setup for Grbl Shuttle.

Console output is governed by ``-v``; the rotating files always record
everything: the app log, a warnings-and-up log, and the raw serial traffic
written to the ``grbl_shuttle.serial`` logger.
"""

from __future__ import annotations

import logging
import logging.handlers
import tempfile
from pathlib import Path

from .config import get_config_path

APP_LOGGER_NAME = "grbl_shuttle"
SERIAL_LOGGER_NAME = f"{APP_LOGGER_NAME}.serial"
LOG_DIRNAME = "logs"

_CONSOLE_HANDLER = "grbl_shuttle_console"
_CONSOLE_LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
}

# (handler name, logger, file, level, format, max bytes, backups)
_FILE_HANDLERS = (
    (
        "grbl_shuttle_app_file", APP_LOGGER_NAME, "grbl_shuttle.log", logging.DEBUG,
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", 5_000_000, 5,
    ),
    (
        "grbl_shuttle_error_file", APP_LOGGER_NAME, "errors.log", logging.WARNING,
        "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d\n%(message)s\n", 2_000_000, 5,
    ),
    (
        "grbl_shuttle_serial_file", SERIAL_LOGGER_NAME, "serial.log", logging.DEBUG,
        "%(asctime)s.%(msecs)03d %(message)s", 5_000_000, 3,
    ),
)


def _find_handler(logger: logging.Logger, name: str) -> logging.Handler | None:
    return next((h for h in logger.handlers if h.get_name() == name), None)


def get_log_dir() -> Path:
    """Log directory next to the config file (temp dir if that fails)."""
    log_dir = Path(get_config_path()).parent / LOG_DIRNAME
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        log_dir = Path(tempfile.gettempdir()) / "grbl_shuttle_logs"
        log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def console_level(verbosity: int) -> int:
    """Map a ``-v`` count to a console log level."""
    return _CONSOLE_LEVELS.get(max(0, int(verbosity)), logging.DEBUG)


def setup_logging(verbosity: int = 0, log_dir: Path | None = None) -> logging.Logger:
    """Configure the ``grbl_shuttle`` logger tree. Safe to call repeatedly.

    Args:
        verbosity: 0 warnings only, 1 info, 2+ debug (console only)
        log_dir: Override for the log directory

    Returns:
        The application root logger
    """
    log_dir = log_dir or get_log_dir()

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(logging.DEBUG)
    app_logger.propagate = False

    console = _find_handler(app_logger, _CONSOLE_HANDLER)
    if console is None:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(message)s", datefmt="%H:%M:%S"))
        console.set_name(_CONSOLE_HANDLER)
        app_logger.addHandler(console)
    console.setLevel(console_level(verbosity))

    for name, logger_name, filename, level, fmt, max_bytes, backups in _FILE_HANDLERS:
        target = logging.getLogger(logger_name)
        target.setLevel(logging.DEBUG)
        if _find_handler(target, name) is not None:
            continue
        handler = logging.handlers.RotatingFileHandler(
            log_dir / filename,
            maxBytes=max_bytes,
            backupCount=backups,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
        handler.set_name(name)
        target.addHandler(handler)

    return app_logger
