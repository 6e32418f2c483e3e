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

"""Tap / hold classification for the pendant buttons."""

from __future__ import annotations

import logging
from typing import Hashable

from .events import EventEmitter
from .state_tracker import StateTracker
from .types import AfterId, SchedulerLike
from .utils.constants import HOLD_MS_DEFAULT, STATE_IDLE

logger = logging.getLogger(__name__)


class ButtonDebouncer(EventEmitter):
    """Classify each press as a tap or a hold.

    A press arms a hold timer. If the timer fires first the press is a
    hold (``"hold"`` is emitted immediately and the release does nothing
    more); a release before that is a tap, emitted as ``"tap"`` only when
    the machine is Idle.

    Events:
        ``tap`` (button), ``hold`` (button)
    """

    def __init__(self, scheduler: SchedulerLike, state: StateTracker, *, hold_ms: int = HOLD_MS_DEFAULT):
        super().__init__()
        self.scheduler = scheduler
        self.state = state
        self.hold_ms = int(hold_ms)
        self._timers: dict[Hashable, AfterId | None] = {}
        self._held: set[Hashable] = set()

    def is_pressed(self, button: Hashable) -> bool:
        return button in self._timers

    def press(self, button: Hashable) -> None:
        if button in self._timers:
            return
        self._held.discard(button)
        after_id: AfterId | None = None

        def _fire() -> None:
            self._on_hold_timer(button, after_id)

        after_id = self.scheduler.after(self.hold_ms, _fire)
        self._timers[button] = after_id

    def release(self, button: Hashable) -> None:
        if button not in self._timers:
            return
        after_id = self._timers.pop(button)
        if after_id is not None:
            self.scheduler.after_cancel(after_id)
        if button in self._held:
            self._held.discard(button)
            return
        if self.state.active_state != STATE_IDLE:
            logger.debug(f"Tap on button {button} ignored in state '{self.state.active_state}'")
            return
        logger.debug(f"Tap on button {button}")
        self.emit("tap", button)

    def _on_hold_timer(self, button: Hashable, after_id: AfterId | None) -> None:
        if self._timers.get(button) != after_id:
            return
        self._timers[button] = None
        self._held.add(button)
        logger.debug(f"Hold on button {button}")
        self.emit("hold", button)
