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

"""Validation utilities for Grbl Shuttle.

This module provides validation functions for configuration values,
ensuring data integrity before they reach the motion code.
"""

from typing import Any, List

from .constants import AXES, BUTTON_ROLES, VALID_BAUD_RATES
from .exceptions import InvalidParameterError


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce a firmware or config value to float.

    Args:
        value: Raw value (number or numeric string)
        default: Value returned when coercion fails

    Returns:
        The numeric value, or ``default``
    """
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return number


def validate_axis(axis: str) -> str:
    """Validate an axis letter.

    Args:
        axis: Axis letter, case-insensitive

    Returns:
        Upper-case axis letter

    Raises:
        InvalidParameterError: If the axis is not X, Y or Z
    """
    if not isinstance(axis, str) or axis.upper() not in AXES:
        raise InvalidParameterError("axis", axis, "must be one of X, Y, Z")
    return axis.upper()


def validate_positive(name: str, value: Any) -> float:
    """Validate a strictly positive number."""
    number = to_number(value, default=-1.0)
    if number <= 0:
        raise InvalidParameterError(name, value, "must be positive")
    return number


def validate_non_negative(name: str, value: Any) -> float:
    """Validate a number that may be zero."""
    number = to_number(value, default=-1.0)
    if number < 0:
        raise InvalidParameterError(name, value, "must not be negative")
    return number


def validate_step_distances(values: Any) -> List[float]:
    """Validate the ordered list of step jog distances.

    Args:
        values: Sequence of distances in mm

    Returns:
        List of floats

    Raises:
        InvalidParameterError: If the list is empty or holds non-positive values
    """
    if not isinstance(values, (list, tuple)) or not values:
        raise InvalidParameterError("step_distances", values, "must be a non-empty list")
    return [validate_positive("step_distances", v) for v in values]


def validate_button_role(role: Any) -> str:
    if role not in BUTTON_ROLES:
        raise InvalidParameterError("buttons", role, f"role must be one of {', '.join(BUTTON_ROLES)}")
    return role


def validate_baud_rate(baud: Any) -> int:
    """Validate baud rate.

    Args:
        baud: Baud rate value

    Returns:
        The validated baud rate

    Raises:
        InvalidParameterError: If baud rate is invalid
    """
    try:
        baud = int(baud)
    except (TypeError, ValueError):
        raise InvalidParameterError("baud_rate", baud, "must be an integer")
    if baud not in VALID_BAUD_RATES:
        raise InvalidParameterError("baud_rate", baud, "unsupported baud rate")
    return baud


def validate_port_name(port: Any) -> str:
    """Validate serial port name.

    Args:
        port: Serial port name (e.g., "COM3" or "/dev/ttyUSB0")

    Returns:
        The validated port name

    Raises:
        InvalidParameterError: If port name is invalid
    """
    if not port or not isinstance(port, str):
        raise InvalidParameterError("port", port, "must be non-empty string")

    port = port.strip()
    if not port:
        raise InvalidParameterError("port", port, "must be non-empty")

    return port
