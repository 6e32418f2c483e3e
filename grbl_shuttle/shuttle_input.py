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

"""Joystick-class shuttle device input via pygame.

A ShuttleXpress style device shows up as a joystick: the spring-loaded
shuttle ring is one axis, the endless jog wheel another, and the keys are
buttons. The poller runs on the scheduler and forwards changes to the
pendant.
"""

from __future__ import annotations

import logging
from types import ModuleType
from typing import Any, Hashable, Protocol

from .types import AfterId, SchedulerLike
from .utils.constants import JOYSTICK_JOG_THRESHOLD, JOYSTICK_POLL_INTERVAL_MS, SHUTTLE_MAX
from .utils.exceptions import InputDeviceError

logger = logging.getLogger(__name__)


class InputTarget(Protocol):
    def shuttle(self, value: int) -> None: ...
    def jog_wheel(self, direction: int) -> None: ...
    def button_press(self, button: Hashable) -> None: ...
    def button_release(self, button: Hashable) -> None: ...


def load_pygame() -> ModuleType:
    try:
        import pygame
    except ImportError as e:
        raise InputDeviceError("pygame is not installed; install the 'joystick' extra") from e
    return pygame


def shuttle_value(axis_value: float) -> int:
    """Map a -1..1 shuttle ring reading to -7..7."""
    return max(-SHUTTLE_MAX, min(SHUTTLE_MAX, int(round(axis_value * SHUTTLE_MAX))))


def jog_direction(previous: float, current: float) -> int:
    """Direction of one jog wheel movement, 0 when it did not move.

    The wheel position wraps, so a jump across more than half the axis
    range is a small move the other way.
    """
    delta = current - previous
    if abs(delta) < JOYSTICK_JOG_THRESHOLD:
        return 0
    if abs(delta) > 1.0:
        delta = -delta
    return 1 if delta > 0 else -1


class ShuttleInput:
    """Poll one joystick and drive a pendant from it.

    Args:
        target: Receives shuttle, jog wheel and button events
        scheduler: Loop the poller runs on
        joystick_index: pygame joystick index
        shuttle_axis: Axis index of the shuttle ring
        jog_axis: Axis index of the jog wheel
        pygame_module: Loaded pygame module (imported on demand when omitted)
    """

    def __init__(
        self,
        target: InputTarget,
        scheduler: SchedulerLike,
        *,
        joystick_index: int = 0,
        shuttle_axis: int = 0,
        jog_axis: int = 1,
        poll_interval_ms: int = JOYSTICK_POLL_INTERVAL_MS,
        pygame_module: ModuleType | Any | None = None,
    ):
        self.target = target
        self.scheduler = scheduler
        self.joystick_index = int(joystick_index)
        self.shuttle_axis = int(shuttle_axis)
        self.jog_axis = int(jog_axis)
        self.poll_interval_ms = int(poll_interval_ms)
        self._py = pygame_module
        self._joystick: Any = None
        self._poll_id: AfterId | None = None
        self._running = False
        self._shuttle = 0
        self._jog_position = 0.0
        self._buttons: dict[int, bool] = {}

    @property
    def name(self) -> str:
        return self._joystick.get_name() if self._joystick is not None else ""

    def open(self) -> None:
        """Initialise pygame and the configured joystick.

        Raises:
            InputDeviceError: pygame is missing or the device is not present
        """
        py = self._py or load_pygame()
        self._py = py
        try:
            py.init()
            py.joystick.init()
            count = py.joystick.get_count()
        except py.error as e:
            raise InputDeviceError(f"Joystick init failed: {e}") from e
        if self.joystick_index >= count:
            raise InputDeviceError(
                f"Joystick {self.joystick_index} not found ({count} device(s) connected)"
            )

        joy = py.joystick.Joystick(self.joystick_index)
        joy.init()
        self._joystick = joy
        self._shuttle = 0
        self._jog_position = float(joy.get_axis(self.jog_axis))
        self._buttons = {idx: bool(joy.get_button(idx)) for idx in range(joy.get_numbuttons())}
        logger.info(f"Using joystick {self.joystick_index}: {joy.get_name()}")

    def start(self) -> None:
        if self._joystick is None:
            self.open()
        self._running = True
        self._poll_id = self.scheduler.after(self.poll_interval_ms, self.poll)

    def stop(self) -> None:
        self._running = False
        if self._poll_id is not None:
            self.scheduler.after_cancel(self._poll_id)
            self._poll_id = None

    def close(self) -> None:
        self.stop()
        if self._joystick is not None:
            try:
                self._joystick.quit()
            except self._py.error as e:
                logger.warning(f"Joystick close failed: {e}")
            self._joystick = None

    def poll(self) -> None:
        self._poll_id = None
        try:
            self._py.event.pump()
            self._read_device()
        except self._py.error as e:
            logger.error(f"Joystick polling failed: {e}")
        finally:
            if self._running:
                self._poll_id = self.scheduler.after(self.poll_interval_ms, self.poll)

    def _read_device(self) -> None:
        joy = self._joystick
        if joy is None:
            return

        shuttle = shuttle_value(float(joy.get_axis(self.shuttle_axis)))
        if shuttle != self._shuttle:
            self._shuttle = shuttle
            self.target.shuttle(shuttle)

        position = float(joy.get_axis(self.jog_axis))
        direction = jog_direction(self._jog_position, position)
        if direction:
            self._jog_position = position
            self.target.jog_wheel(direction)

        for idx in range(joy.get_numbuttons()):
            pressed = bool(joy.get_button(idx))
            if pressed == self._buttons.get(idx, False):
                continue
            self._buttons[idx] = pressed
            if pressed:
                self.target.button_press(idx)
            else:
                self.target.button_release(idx)
