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

"""Constants and configuration values for Grbl Shuttle.

This module centralizes all magic numbers, default values, and configuration
constants used throughout the pendant.
"""

from typing import Dict, Tuple

# ============================================================================
# AXES
# ============================================================================

AXIS_X = "X"
AXIS_Y = "Y"
AXIS_Z = "Z"

AXES: Tuple[str, ...] = (AXIS_X, AXIS_Y, AXIS_Z)
"""Axes the pendant can jog, in ladder computation order."""

# ============================================================================
# FEED LADDER / MOTION
# ============================================================================

HARD_MAX_FEED: Dict[str, float] = {AXIS_X: 1000.0, AXIS_Y: 1000.0, AXIS_Z: 250.0}
"""Upper bound (mm/min) applied to the firmware max rate for jogging."""

HARD_MAX_ACC: Dict[str, float] = {AXIS_X: 75.0, AXIS_Y: 75.0, AXIS_Z: 75.0}
"""Upper bound (mm/s^2) applied to the firmware acceleration for jogging."""

LATENCY_DEFAULT = 0.2
"""Seconds allowed between a jog cancel and the machine standing still."""

STOPPING_BONUS_DEFAULT = 0.1
"""Seconds of extra travel added to compensate for planner deceleration."""

FEED_LADDER_SIZE = 8
"""Number of feed rates per axis (index 0 is stationary)."""

FEED_LADDER_FIXED = (60.0, 120.0, 180.0)
"""Feed rates (mm/min) for ladder indices 1-3 before the linear progression."""

SHUTTLE_MAX = FEED_LADDER_SIZE - 1
"""Largest shuttle magnitude; shuttle values are clamped to +/- this."""

DISTANCE_DECIMALS = 3
"""Decimal places used for jog distances and positions."""

# ============================================================================
# ACTIVE STATES
# ============================================================================

STATE_NONE = ""
STATE_IDLE = "Idle"
STATE_RUN = "Run"
STATE_HOLD = "Hold"
STATE_JOG = "Jog"
STATE_ALARM = "Alarm"
STATE_DOOR = "Door"
STATE_CHECK = "Check"
STATE_HOME = "Home"
STATE_SLEEP = "Sleep"
STATE_HOMING_REQUIRED = "Homing-Required"
STATE_HOMING_IN_PROGRESS = "Homing-In-Progress"

HOMING_MASKED_STATES = frozenset({STATE_HOME, STATE_IDLE, STATE_ALARM})
"""Raw states that keep the homing-in-progress mask in place."""

SHUTTLE_START_STATES = frozenset({STATE_IDLE, STATE_JOG})
"""Presented states in which a new shuttle session may start."""

# ============================================================================
# GRBL SETTINGS
# ============================================================================

GRBL_SETTING_NAMES: Dict[str, str] = {
    "homing_enabled": "$22",
    "homing_pulloff": "$27",
    "max_feed_x": "$110",
    "max_feed_y": "$111",
    "max_feed_z": "$112",
    "accel_x": "$120",
    "accel_y": "$121",
    "accel_z": "$122",
    "travel_x": "$130",
    "travel_y": "$131",
    "travel_z": "$132",
}
"""Named aliases for the Grbl settings the pendant reads."""

Z_TRAVEL_DEFAULT = 50.0
"""Probe travel (mm) when the firmware reports no Z max travel."""

# ============================================================================
# COMMANDS
# ============================================================================

HOMING_COMMAND = "$H"
ACK_OK = "ok"
ACK_ERROR_PREFIX = "error"

JOG_COMMAND_FORMAT = "$J=G91 G21 {axis}{distance} F{feed}"

PROBE_RETRACT = 1.0
"""Retract (mm) between the coarse and fine probe."""

PROBE_FINE_DEPTH = 2.0
"""Maximum travel (mm) of the fine probe."""

PROBE_SETTLE_DWELL = 0.25
"""Dwell (s) after setting work zero so the firmware can persist it."""

SYNC_COMMAND = "G4 P0"
"""Zero-length dwell used to synchronise with the planner."""

# ============================================================================
# SERIAL COMMUNICATION CONSTANTS
# ============================================================================

BAUD_DEFAULT = 115200
"""Default baud rate for GRBL serial communication."""

VALID_BAUD_RATES = (9600, 19200, 38400, 57600, 115200, 230400)

STATUS_POLL_DEFAULT = 0.2
"""Default interval (seconds) between status queries."""

RX_BUFFER_SIZE = 128
"""GRBL RX buffer size in bytes."""

PLANNER_BLOCKS_DEFAULT = 15
"""Planner blocks available on an idle Grbl 1.1 (Bf first field)."""

SERIAL_TIMEOUT = 0.1
"""Serial read timeout (seconds)."""

SERIAL_WRITE_TIMEOUT = 0.5
"""Serial write timeout (seconds)."""

SERIAL_CONNECT_DELAY = 2.0
"""Seconds to wait after opening the port for the board to reset."""

THREAD_JOIN_TIMEOUT = 1.0
"""Seconds to wait for worker threads on disconnect."""

EVENT_QUEUE_TIMEOUT = 0.02
"""Idle wait (seconds) in worker loops."""

# ============================================================================
# GRBL REAL-TIME COMMAND BYTES
# ============================================================================

RT_RESET = b"\x18"
"""Soft reset."""

RT_STATUS = b"?"
"""Status report query."""

RT_HOLD = b"!"
"""Feed hold."""

RT_JOG_CANCEL = b"\x85"
"""Jog cancel."""

# ============================================================================
# INPUT
# ============================================================================

HOLD_MS_DEFAULT = 1000
"""Press duration (ms) after which a button press counts as a hold."""

JOYSTICK_POLL_INTERVAL_MS = 20
"""Interval (ms) between joystick polls."""

JOYSTICK_JOG_THRESHOLD = 0.01
"""Minimum jog wheel axis change treated as a click."""

ROLE_PROBE = "probe"
ROLE_STEP = "step"

BUTTON_ROLES = ("X", "Y", "Z", ROLE_PROBE, ROLE_STEP)
"""Roles a physical button can be assigned."""

# ============================================================================
# CONFIG FILES
# ============================================================================

CONFIG_FILENAME = "grbl_shuttle.json"
CONFIG_BACKUP_SUFFIX = ".backup"
CONFIG_TEMP_SUFFIX = ".tmp"
CONFIG_DIR_ENV = "GRBL_SHUTTLE_CONFIG_DIR"
