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

"""Step and shuttle jogging."""

from __future__ import annotations

import logging
import threading
from typing import Mapping, Sequence

from .events import EventEmitter
from .feed_profile import FeedProfile
from .machine import GrblMachine
from .motion import MotionCalculator
from .types import AfterId, SchedulerLike
from .utils.constants import (
    AXES,
    AXIS_X,
    SHUTTLE_MAX,
    SHUTTLE_START_STATES,
    STATE_IDLE,
)
from .utils.validation import validate_axis, validate_step_distances

logger = logging.getLogger(__name__)


class JogEngine(EventEmitter):
    """Turns jog wheel clicks and shuttle positions into jog commands.

    A shuttle session runs a repeat timer at the motion cadence. Each tick
    sends one relative jog sized from the previous and current shuttle
    positions; when the shuttle returns to 0 the next tick sends a jog
    cancel and the timer is not re-armed.

    Events:
        ``axis_changed`` (axis), ``step_changed`` (step distance)
    """

    def __init__(
        self,
        machine: GrblMachine,
        profile: FeedProfile,
        motion: MotionCalculator,
        scheduler: SchedulerLike,
        *,
        step_distances: Sequence[float],
        reversed_axes: Mapping[str, bool] | None = None,
    ):
        super().__init__()
        self.machine = machine
        self.profile = profile
        self.motion = motion
        self.scheduler = scheduler
        self.step_distances = tuple(validate_step_distances(list(step_distances)))
        self.reversed_axes = {axis: bool((reversed_axes or {}).get(axis, False)) for axis in AXES}

        self._lock = threading.RLock()
        self._axis = AXIS_X
        self._step_index = 0
        self._current_shuttle = 0
        self._last_shuttle = 0
        self._shuttle_repeat: AfterId | None = None

        machine.on("connection_closed", self.abort_shuttle)

    # ========================================================================
    # AXIS / STEP SELECTION
    # ========================================================================

    @property
    def axis(self) -> str:
        return self._axis

    @property
    def step_index(self) -> int:
        return self._step_index

    @property
    def step_distance(self) -> float:
        return self.step_distances[self._step_index]

    @property
    def shuttle_active(self) -> bool:
        return self._shuttle_repeat is not None

    def select_axis(self, axis: str) -> bool:
        """Select the jog axis; only allowed while the machine is Idle."""
        axis = validate_axis(axis)
        with self._lock:
            if self.machine.state.active_state != STATE_IDLE:
                logger.debug(f"Axis change to {axis} ignored (not idle)")
                return False
            self._axis = axis
        logger.info(f"Jog axis {axis}")
        self.emit("axis_changed", axis)
        return True

    def next_step(self, reset: bool = False) -> float:
        """Advance to the next step distance, wrapping after the last."""
        with self._lock:
            if reset:
                self._step_index = 0
            else:
                self._step_index += 1
            if self._step_index >= len(self.step_distances):
                self._step_index = 0
            step = self.step_distance
        logger.info(f"Jog step {step}")
        self.emit("step_changed", step)
        return step

    def _axis_sign(self, axis: str) -> int:
        return -1 if self.reversed_axes.get(axis) else 1

    # ========================================================================
    # STEP JOG
    # ========================================================================

    def jog(self, direction: int) -> None:
        """Single step jog of the current step distance at the top feed."""
        if direction == 0:
            return
        with self._lock:
            axis = self._axis
            feed = self.profile.max_feed(axis)
            if feed <= 0:
                logger.debug("Step jog ignored (no feed rate configured)")
                return
            sign = (1 if direction > 0 else -1) * self._axis_sign(axis)
            self.machine.jog(axis, self.step_distance * sign, feed)

    # ========================================================================
    # SHUTTLE JOG
    # ========================================================================

    @property
    def current_shuttle(self) -> int:
        return self._current_shuttle

    def set_shuttle(self, value: int) -> None:
        value = max(-SHUTTLE_MAX, min(SHUTTLE_MAX, int(value)))
        with self._lock:
            if value == self._current_shuttle:
                return
            if (
                self._shuttle_repeat is None
                and value != 0
                and self.machine.state.active_state not in SHUTTLE_START_STATES
            ):
                logger.debug(
                    f"Shuttle {value} ignored in state '{self.machine.state.active_state}'"
                )
                return

            logger.debug(f"Shuttle {value}")
            self._current_shuttle = value

            # If we are not already shuttling, start now
            if self._shuttle_repeat is None:
                self._do_shuttle()

    def abort_shuttle(self) -> None:
        """Cancel the repeat timer and forget the session."""
        with self._lock:
            if self._shuttle_repeat is not None:
                self.scheduler.after_cancel(self._shuttle_repeat)
                logger.info("Shuttle session aborted")
            self._shuttle_repeat = None
            self._current_shuttle = 0
            self._last_shuttle = 0

    def _do_shuttle(self) -> None:
        with self._lock:
            current = self._current_shuttle
            if current == 0:
                self._shuttle_repeat = None
                self.machine.jog_cancel()
            else:
                axis = self._axis
                direction = (1 if current > 0 else -1) * self._axis_sign(axis)
                distance = self.motion.shuttle_distance(axis, abs(self._last_shuttle), abs(current))
                feed = self.profile.feed(axis, abs(current))
                self.machine.jog(axis, distance * direction, feed)
                self._shuttle_repeat = self.scheduler.after(self.motion.interval_ms, self._do_shuttle)

            # Keep the applied value to size the next tick
            self._last_shuttle = current
