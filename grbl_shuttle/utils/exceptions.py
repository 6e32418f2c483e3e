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

"""Custom exceptions for Grbl Shuttle.

Routine conditions (no transport yet, position unknown, a probe already
running) are never raised; these types cover I/O, configuration and the
internal cancellation of blocking waits.
"""

from typing import Any, Optional


class GrblShuttleException(Exception):
    """Base exception for all Grbl Shuttle errors."""
    pass


# ============================================================================
# SERIAL COMMUNICATION EXCEPTIONS
# ============================================================================

class SerialException(GrblShuttleException):
    """Base exception for serial communication errors."""
    pass


class SerialConnectionError(SerialException):
    """Failed to connect to serial port."""
    pass


class SerialWriteError(SerialException):
    """Failed to write data to serial port."""
    pass


# ============================================================================
# MACHINE EXCEPTIONS
# ============================================================================

class MachineException(GrblShuttleException):
    """Base exception for machine control errors."""
    pass


class ProbeAborted(MachineException):
    """A blocking wait was cancelled by the halt path or a connection loss."""
    pass


# ============================================================================
# INPUT EXCEPTIONS
# ============================================================================

class InputDeviceError(GrblShuttleException):
    """The shuttle/joystick input device is unavailable."""
    pass


# ============================================================================
# CONFIG EXCEPTIONS
# ============================================================================

class ConfigException(GrblShuttleException):
    """Base exception for configuration errors."""
    pass


class ConfigLoadError(ConfigException):
    """Failed to load configuration file."""
    pass


class ConfigSaveError(ConfigException):
    """Failed to save configuration file."""
    pass


class ConfigValidationError(ConfigException):
    """Configuration validation failed."""
    pass


# ============================================================================
# VALIDATION EXCEPTIONS
# ============================================================================

class ValidationException(GrblShuttleException):
    """Base exception for validation errors."""
    pass


class InvalidParameterError(ValidationException):
    """Invalid parameter value."""

    def __init__(self, parameter_name: str, value: Any, reason: Optional[str] = None):
        self.parameter_name = parameter_name
        self.value = value
        self.reason = reason

        message = f"Invalid value for '{parameter_name}': {value}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
