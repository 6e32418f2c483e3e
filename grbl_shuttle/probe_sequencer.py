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

"""Touch-plate probe cycle with halt recovery."""

from __future__ import annotations

import logging
import threading

from .machine import GrblMachine, format_distance, format_number
from .utils.constants import (
    PROBE_FINE_DEPTH,
    PROBE_RETRACT,
    PROBE_SETTLE_DWELL,
    STATE_HOLD,
    STATE_IDLE,
    Z_TRAVEL_DEFAULT,
)
from .utils.exceptions import ProbeAborted

logger = logging.getLogger(__name__)


class ProbeSequencer:
    """Runs one Z probe at a time against a touch plate.

    :meth:`probe` and :meth:`halt` block on machine state; use
    :meth:`start_probe` / :meth:`start_halt` from the event loop thread,
    which delivers the state changes they wait for.
    """

    def __init__(
        self,
        machine: GrblMachine,
        *,
        plate_thickness: float,
        probe_feedrate: float,
        fine_probe_feedrate: float = 20.0,
    ):
        self.machine = machine
        self.plate_thickness = float(plate_thickness)
        self.probe_feedrate = float(probe_feedrate)
        self.fine_probe_feedrate = float(fine_probe_feedrate)

        self._lock = threading.Lock()
        self._in_probe = False
        self._halting = False
        self._starting_z = 0.0
        self._cancel = threading.Event()
        self._halt_cancel = threading.Event()
        self._thread: threading.Thread | None = None

        machine.on("connection_closed", self._on_connection_closed)

    @property
    def in_progress(self) -> bool:
        return self._in_probe

    @property
    def starting_z(self) -> float:
        return self._starting_z

    # ========================================================================
    # BACKGROUND ENTRY POINTS
    # ========================================================================

    def start_probe(self) -> bool:
        if self._in_probe or self._halting:
            return False
        self._thread = threading.Thread(target=self.probe, daemon=True, name="Probe")
        self._thread.start()
        return True

    def start_halt(self) -> bool:
        if not self._in_probe or self._halting:
            return False
        thread = threading.Thread(target=self.halt, daemon=True, name="Probe-Halt")
        thread.start()
        return True

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    # ========================================================================
    # PROBE CYCLE
    # ========================================================================

    def _travel(self, mpos_z: float) -> float:
        settings = self.machine.settings
        travel = settings.travel_z or Z_TRAVEL_DEFAULT

        # Never probe past the bottom of the axis
        travel += mpos_z

        # Stay clear of the limit switch by the homing pull-off
        if settings.homing_enabled:
            travel -= settings.homing_pulloff
        return travel

    def probe(self) -> bool:
        """Run the full probe cycle; returns True when it completed.

        A second call while a cycle is running (or before the machine
        position is known) returns False without sending anything.
        """
        state = self.machine.state.state
        if not state.position_known:
            logger.debug("Probe ignored (position unknown)")
            return False

        with self._lock:
            if self._in_probe or self._halting:
                logger.debug("Probe ignored (already probing)")
                return False
            self._in_probe = True
            self._cancel = threading.Event()
            cancel = self._cancel
            self._starting_z = state.mpos_z

        try:
            travel = self._travel(self._starting_z)
            if travel <= 0:
                logger.warning(f"Probe skipped: no Z travel available ({travel:.3f} mm)")
                return False

            logger.info(f"Probing from Z{self._starting_z:.3f} (travel {travel:.3f} mm)")
            machine = self.machine
            mark = machine.state_mark()
            machine.gcode("G91")
            machine.gcode(f"G38.2 Z-{format_distance(travel)} F{format_number(self.probe_feedrate)}")
            machine.gcode(f"G0 Z{format_number(PROBE_RETRACT)}")
            machine.gcode(
                f"G38.2 Z-{format_number(PROBE_FINE_DEPTH)} F{format_number(self.fine_probe_feedrate)}"
            )
            machine.gcode(f"G10 L20 P1 Z{format_number(self.plate_thickness)}")
            machine.gcode(f"G4 P{format_number(PROBE_SETTLE_DWELL)}")
            machine.gcode(f"G53 G0 Z{format_distance(self._starting_z)}")
            machine.gcode("G90")

            machine.wait(cancel, since=mark)
            logger.info("Probe complete")
            return True
        except ProbeAborted as e:
            logger.warning(f"Probe aborted: {e}")
            return False
        finally:
            with self._lock:
                self._in_probe = False

    def halt(self) -> bool:
        """Stop a running probe and return the tool to its starting Z.

        Returns False when no probe is running.
        """
        with self._lock:
            if not self._in_probe or self._halting:
                return False
            self._halting = True
            self._halt_cancel = threading.Event()
            halt_cancel = self._halt_cancel
            self._cancel.set()
        self.machine.wake()

        machine = self.machine
        try:
            logger.warning("Halting probe")
            mark = machine.state_mark()
            machine.feedhold()
            machine.wait_for_active_state(STATE_HOLD, halt_cancel, mark)
            mark = machine.state_mark()
            machine.reset()
            machine.wait_for_active_state(STATE_IDLE, halt_cancel, mark)
            machine.gcode(f"G53 G0 Z{format_distance(self._starting_z)}")
            return True
        except ProbeAborted as e:
            logger.warning(f"Probe halt abandoned: {e}")
            return False
        finally:
            with self._lock:
                self._halting = False

    def _on_connection_closed(self) -> None:
        with self._lock:
            active = self._in_probe or self._halting
            self._cancel.set()
            self._halt_cancel.set()
        if active:
            logger.warning("Probe session aborted (connection lost)")
        self.machine.wake()
