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

"""One pendant session: every component for a single controller connection."""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable

from .button_debouncer import ButtonDebouncer
from .feed_profile import FeedProfile
from .jog_engine import JogEngine
from .machine import GrblMachine
from .motion import MotionCalculator
from .probe_sequencer import ProbeSequencer
from .settings_store import SettingsStore
from .state_tracker import StateTracker
from .types import RawSettings, RawSnapshot, SchedulerLike, TransportLike
from .utils.config import PendantConfig
from .utils.constants import (
    AXES,
    ROLE_PROBE,
    ROLE_STEP,
    STATE_IDLE,
)

logger = logging.getLogger(__name__)

DisplayCallback = Callable[[str, Any], None]

# Notifications forwarded to the display callback
_STATE_EVENTS = ("active_state_changed", "mpos_changed", "wpos_changed")
_JOG_EVENTS = ("axis_changed", "step_changed")


class ScheduledListener:
    """Transport listener that hands every report to the scheduler thread.

    The transport calls these from its own threads; the machine only ever
    sees them on the scheduler, in arrival order.
    """

    def __init__(self, scheduler: SchedulerLike, machine: GrblMachine):
        self.scheduler = scheduler
        self.machine = machine

    def settings_report(self, raw: RawSettings) -> None:
        self.scheduler.call_soon(self.machine.settings_report, raw)

    def status_report(self, raw: RawSnapshot) -> None:
        self.scheduler.call_soon(self.machine.status_report, raw)

    def connection_closed(self) -> None:
        self.scheduler.call_soon(self.machine.connection_closed)

    def command_echo(self, text: str) -> None:
        self.scheduler.call_soon(self.machine.command_echo, text)

    def command_ack(self, text: str) -> None:
        # Acks only wake blocked waiters; no ordering against state needed
        self.machine.command_ack(text)

    def alarm_report(self, text: str) -> None:
        self.scheduler.call_soon(self.machine.alarm_report, text)


class Pendant:
    """Wire settings, state, jogging, probing and buttons for one session.

    Input entry points (:meth:`shuttle`, :meth:`jog_wheel`,
    :meth:`button_press`, :meth:`button_release`) may be called from any
    thread; the work runs on the scheduler.

    Args:
        config: Loaded pendant configuration
        scheduler: Loop that owns all component handlers
        transport: Connection to the controller (may be attached later)
        display: Optional ``callback(event, value)`` for status output
    """

    def __init__(
        self,
        config: PendantConfig,
        scheduler: SchedulerLike,
        transport: TransportLike | None = None,
        *,
        display: DisplayCallback | None = None,
    ):
        self.config = config
        self.scheduler = scheduler

        self.settings = SettingsStore()
        self.state = StateTracker(self.settings)
        self.machine = GrblMachine(self.settings, self.state, planner_blocks=config.planner_blocks)
        self.profile = FeedProfile(
            self.settings,
            latency=config.latency,
            hard_max_feed=config.hard_max_feed(),
            hard_max_acc=config.hard_max_acc(),
        )
        self.motion = MotionCalculator(self.profile, stopping_bonus=config.stopping_bonus)
        self.jogger = JogEngine(
            self.machine,
            self.profile,
            self.motion,
            scheduler,
            step_distances=config.step_distances,
            reversed_axes=config.reversed_axes(),
        )
        self.prober = ProbeSequencer(
            self.machine,
            plate_thickness=float(config.get("plate_thickness")),
            probe_feedrate=float(config.get("probe_feedrate")),
            fine_probe_feedrate=float(config.get("fine_probe_feedrate")),
        )
        self.buttons = ButtonDebouncer(scheduler, self.state, hold_ms=config.hold_ms)
        self.button_roles = config.button_roles()
        self.listener = ScheduledListener(scheduler, self.machine)

        self.buttons.on("tap", self._on_tap)
        self.buttons.on("hold", self._on_hold)
        self.machine.on("alarm", self._on_alarm)

        if display is not None:
            self._connect_display(display)
        if transport is not None:
            self.attach(transport)

    def attach(self, transport: TransportLike | None) -> None:
        self.machine.attach(transport)

    def _connect_display(self, display: DisplayCallback) -> None:
        def _forward(event: str) -> Callable[..., None]:
            return lambda value=None: display(event, value)

        for event in _STATE_EVENTS:
            self.state.on(event, _forward(event))
        for event in _JOG_EVENTS:
            self.jogger.on(event, _forward(event))
        self.machine.on("error", _forward("error"))
        self.machine.on("alarm", _forward("alarm"))
        self.machine.on("connection_closed", _forward("connection_closed"))

    # ========================================================================
    # INPUT ENTRY POINTS
    # ========================================================================

    def shuttle(self, value: int) -> None:
        self.scheduler.call_soon(self.jogger.set_shuttle, value)

    def jog_wheel(self, direction: int) -> None:
        self.scheduler.call_soon(self.jogger.jog, direction)

    def button_press(self, button: Hashable) -> None:
        self.scheduler.call_soon(self.buttons.press, str(button))

    def button_release(self, button: Hashable) -> None:
        self.scheduler.call_soon(self.buttons.release, str(button))

    def role_of(self, button: Hashable) -> str | None:
        return self.button_roles.get(str(button))

    # ========================================================================
    # BUTTON ROLES
    # ========================================================================

    def _on_tap(self, button: str) -> None:
        role = self.role_of(button)
        if role in AXES:
            self.jogger.select_axis(role)
        elif role == ROLE_STEP:
            self.jogger.next_step()
        elif role is None:
            logger.debug(f"Tap on unmapped button {button}")

    def _on_hold(self, button: str) -> None:
        role = self.role_of(button)
        if role in AXES:
            if self.state.active_state != STATE_IDLE:
                logger.debug(f"Zero {role} ignored in state '{self.state.active_state}'")
                return
            logger.info(f"Zeroing {role}")
            self.machine.zero_axis(role)
        elif role == ROLE_STEP:
            self.jogger.next_step(reset=True)
        elif role == ROLE_PROBE:
            if self.prober.in_progress:
                self.prober.start_halt()
            elif self.state.active_state == STATE_IDLE:
                self.prober.start_probe()
            else:
                logger.debug(f"Probe ignored in state '{self.state.active_state}'")
        elif role is None:
            logger.debug(f"Hold on unmapped button {button}")

    def _on_alarm(self, text: str) -> None:
        self.jogger.abort_shuttle()
