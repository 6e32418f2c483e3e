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

"""Machine state synthesis from the raw status stream.

The firmware's own state is noisy around resets and homing: after a reset
with homing configured it reports a plain ``Alarm``, and during a homing
cycle it flickers between ``Idle``, ``Alarm`` and ``Home``. The tracker
presents two synthesized states in their place:

``Homing-Required``
    Alarm seen on the first report after a reset while homing is enabled.
    Cleared once the machine reports Idle.

``Homing-In-Progress``
    Set when a ``$H`` command is seen on the outbound stream. Idle, Alarm
    and the firmware's Home report stay masked until the Idle that follows
    Home; any other state ends the mask.

Consumers only ever see the synthesized value.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

from .events import EventEmitter
from .settings_store import SettingsStore
from .types import Position, RawSnapshot
from .utils.constants import (
    HOMING_COMMAND,
    HOMING_MASKED_STATES,
    STATE_ALARM,
    STATE_HOME,
    STATE_HOMING_IN_PROGRESS,
    STATE_HOMING_REQUIRED,
    STATE_IDLE,
    STATE_NONE,
)
from .utils.validation import to_number

logger = logging.getLogger(__name__)

_HOMING_STARTED = "started"
_HOMING_HOME_SEEN = "home_seen"


def parse_position(raw: Any) -> Position | None:
    """Convert a ``{"x": ..., "y": ..., "z": ...}`` report to a tuple."""
    if not isinstance(raw, Mapping):
        return None
    return (
        to_number(raw.get("x", 0)),
        to_number(raw.get("y", 0)),
        to_number(raw.get("z", 0)),
    )


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class MachineState:
    """One fully-applied view of the machine; replaced, never mutated."""

    active_state: str = STATE_NONE
    mpos: Position | None = None
    wpos: Position | None = None
    planner: int | None = None
    rx: int | None = None
    status: Mapping[str, Any] | None = field(default=None, repr=False)
    parser_state: Mapping[str, Any] | None = field(default=None, repr=False)

    @property
    def position_known(self) -> bool:
        return self.mpos is not None

    @property
    def mpos_z(self) -> float:
        return self.mpos[2] if self.mpos else 0.0

    @property
    def wpos_z(self) -> float:
        return self.wpos[2] if self.wpos else 0.0


class StateTracker(EventEmitter):
    """Diff incoming snapshots and emit per-field notifications.

    Events:
        ``active_state_changed`` (state), ``mpos_changed`` (mpos),
        ``wpos_changed`` (wpos), ``status_changed`` (MachineState),
        ``parser_state_changed`` (parser state), ``changed`` (MachineState).
    """

    def __init__(self, settings: SettingsStore):
        super().__init__()
        self.settings = settings
        self._lock = threading.RLock()
        self._state = MachineState()
        self._baseline = MachineState()
        self._needs_reset = True
        self._needs_homing = False
        self._homing: str | None = None

    # ========================================================================
    # READERS
    # ========================================================================

    @property
    def state(self) -> MachineState:
        return self._state

    @property
    def active_state(self) -> str:
        return self._state.active_state

    @property
    def needs_homing(self) -> bool:
        return self._needs_homing

    @property
    def homing_in_progress(self) -> bool:
        return self._homing is not None

    # ========================================================================
    # INBOUND
    # ========================================================================

    def update(self, raw: RawSnapshot) -> None:
        """Apply a ``controller:state`` style snapshot."""
        raw = raw or {}
        status = raw.get("status")
        if not isinstance(status, Mapping):
            status = {}
        parser_state = raw.get("parserstate")
        buf = status.get("buf") if isinstance(status.get("buf"), Mapping) else {}

        with self._lock:
            active = self._synthesize(str(status.get("activeState") or STATE_NONE))
            self._apply(MachineState(
                active_state=active,
                mpos=parse_position(status.get("mpos")),
                wpos=parse_position(status.get("wpos")),
                planner=_optional_int(buf.get("planner")),
                rx=_optional_int(buf.get("rx")),
                status=dict(status) if status else None,
                parser_state=parser_state if isinstance(parser_state, Mapping) else None,
            ))

    def command_echo(self, text: str) -> None:
        """Watch the outbound command stream for a homing request."""
        if not text or not text.strip().upper().startswith(HOMING_COMMAND):
            return
        with self._lock:
            self._homing = _HOMING_STARTED
        logger.info("Homing cycle started")

    def alarm_report(self, text: str) -> None:
        """An ``ALARM:`` line ends any homing cycle (it failed)."""
        with self._lock:
            if self._homing is None:
                return
            self._homing = None
        logger.warning(f"Homing cycle aborted by {text.strip()}")

    def connection_closed(self) -> None:
        """Drop back to the just-connected baseline."""
        with self._lock:
            self._needs_reset = True
            self._needs_homing = False
            self._homing = None
            self._apply(MachineState())
        logger.info("Connection closed; waiting for reset")

    # ========================================================================
    # INTERNAL HELPERS
    # ========================================================================

    def _synthesize(self, raw: str) -> str:
        if raw == STATE_NONE:
            self._needs_reset = True
            self._homing = None
            return STATE_NONE

        if self._needs_reset:
            self._needs_reset = False
            if self.settings.homing_enabled and raw == STATE_ALARM:
                self._needs_homing = True

        if self._homing is not None:
            if raw not in HOMING_MASKED_STATES:
                logger.warning(f"Unexpected state '{raw}' during homing; clearing homing mask")
                self._homing = None
            elif raw == STATE_HOME:
                self._homing = _HOMING_HOME_SEEN
                return STATE_HOMING_IN_PROGRESS
            elif raw == STATE_IDLE and self._homing == _HOMING_HOME_SEEN:
                self._homing = None
                self._needs_homing = False
                logger.info("Homing cycle complete")
                return raw
            else:
                return STATE_HOMING_IN_PROGRESS

        if self._needs_homing:
            if raw == STATE_IDLE:
                self._needs_homing = False
                return raw
            return STATE_HOMING_REQUIRED

        return raw

    def _apply(self, new: MachineState) -> None:
        old = self._baseline
        self._state = new

        status_changed = False
        if old.active_state != new.active_state:
            logger.debug(f"Active state: '{old.active_state}' -> '{new.active_state}'")
            self.emit("active_state_changed", new.active_state)
            status_changed = True

        if old.mpos != new.mpos:
            self.emit("mpos_changed", new.mpos)
            status_changed = True

        if old.wpos != new.wpos:
            self.emit("wpos_changed", new.wpos)
            status_changed = True

        if status_changed or old.status != new.status:
            self.emit("status_changed", new)
            status_changed = True

        parser_changed = old.parser_state != new.parser_state
        if parser_changed:
            self.emit("parser_state_changed", new.parser_state)

        # Duplicate snapshots leave the baseline untouched
        if status_changed or parser_changed:
            self._baseline = new
            self.emit("changed", new)
