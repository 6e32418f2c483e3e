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

"""Grbl machine facade.

Owns the settings cache and state tracker for one session, receives the
inbound reports from the transport, formats outbound commands, and offers
the blocking waits the probe cycle is built on.

Outbound commands are fire-and-forget. When no transport is attached (or it
is not connected) they are dropped silently; this is a routine startup race,
not an error.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .events import EventEmitter
from .settings_store import SettingsStore
from .state_tracker import StateTracker
from .types import RawSettings, RawSnapshot, TransportLike
from .utils.constants import (
    ACK_ERROR_PREFIX,
    ACK_OK,
    DISTANCE_DECIMALS,
    HOMING_COMMAND,
    JOG_COMMAND_FORMAT,
    PLANNER_BLOCKS_DEFAULT,
    STATE_IDLE,
    STATE_RUN,
    SYNC_COMMAND,
)
from .utils.exceptions import ProbeAborted
from .utils.validation import validate_axis

logger = logging.getLogger(__name__)


def format_number(value: float) -> str:
    """Format a feed/offset without trailing zeros (``60``, ``247.5``)."""
    text = f"{float(value):.{DISTANCE_DECIMALS}f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_distance(value: float) -> str:
    return f"{float(value):.{DISTANCE_DECIMALS}f}"


class GrblMachine(EventEmitter):
    """Session facade in front of the transport.

    Events:
        ``error`` (text): a command was rejected by the firmware
        ``alarm`` (text): the firmware raised an alarm
        ``connection_closed``: the transport was lost
    """

    def __init__(
        self,
        settings: SettingsStore | None = None,
        state: StateTracker | None = None,
        *,
        planner_blocks: int = PLANNER_BLOCKS_DEFAULT,
    ):
        super().__init__()
        self.settings = settings or SettingsStore()
        self.state = state or StateTracker(self.settings)
        self.planner_blocks = int(planner_blocks)
        self._transport: TransportLike | None = None
        self._cond = threading.Condition()
        self._ok_count = 0
        self._state_seq = 0
        self._state_seen: dict[str, int] = {}
        self.state.on("active_state_changed", self._record_active_state)
        self.state.on("changed", self._notify_waiters)

    # ========================================================================
    # TRANSPORT
    # ========================================================================

    @property
    def transport(self) -> TransportLike | None:
        return self._transport

    def attach(self, transport: TransportLike | None) -> None:
        self._transport = transport

    def is_connected(self) -> bool:
        transport = self._transport
        return transport is not None and transport.is_connected()

    # ========================================================================
    # INBOUND
    # ========================================================================

    def settings_report(self, raw: RawSettings) -> None:
        self.settings.update(raw)

    def status_report(self, raw: RawSnapshot) -> None:
        self.state.update(raw)

    def connection_closed(self) -> None:
        logger.warning("Connection to controller lost")
        self.state.connection_closed()
        self.emit("connection_closed")
        self._notify_waiters()

    def command_echo(self, text: str) -> None:
        logger.debug(f"> {text.strip()}")
        self.state.command_echo(text)

    def command_ack(self, text: str) -> None:
        reply = (text or "").strip()
        lowered = reply.lower()
        if lowered == ACK_OK:
            with self._cond:
                self._ok_count += 1
                self._cond.notify_all()
        elif lowered.startswith(ACK_ERROR_PREFIX):
            logger.error(f"Grbl error: {reply}")
            self.emit("error", reply)

    def alarm_report(self, text: str) -> None:
        logger.warning(f"Grbl alarm: {text.strip()}")
        self.state.alarm_report(text)
        self.emit("alarm", text.strip())

    # ========================================================================
    # OUTBOUND
    # ========================================================================

    def gcode(self, code: str) -> None:
        if not self.is_connected():
            logger.debug(f"Dropped '{code}' (not connected)")
            return
        assert self._transport is not None
        self._transport.send_command(code)

    def jog(self, axis: str, distance: float, feed: float) -> None:
        """Relative jog; a zero distance is sent as a jog cancel."""
        axis = validate_axis(axis)
        logger.debug(f"jog {axis} {distance} F{feed}")
        if distance == 0:
            self.jog_cancel()
            return
        self.gcode(JOG_COMMAND_FORMAT.format(
            axis=axis,
            distance=format_distance(distance),
            feed=format_number(feed),
        ))

    def jog_cancel(self) -> None:
        if not self.is_connected():
            return
        assert self._transport is not None
        logger.debug("jog cancel")
        self._transport.send_jog_cancel()

    def feedhold(self) -> None:
        if not self.is_connected():
            return
        assert self._transport is not None
        logger.info("Feed hold")
        self._transport.send_feedhold()

    def reset(self) -> None:
        if not self.is_connected():
            return
        assert self._transport is not None
        logger.info("Soft reset")
        self._transport.send_reset()

    def zero_axis(self, axis: str) -> None:
        """Set the current work position of ``axis`` to zero."""
        self.gcode(f"G10 L20 P1 {validate_axis(axis)}0")

    def home(self) -> None:
        self.gcode(HOMING_COMMAND)

    # ========================================================================
    # BLOCKING WAITS
    # ========================================================================

    def _notify_waiters(self, *_args) -> None:
        with self._cond:
            self._cond.notify_all()

    def _record_active_state(self, state: str) -> None:
        with self._cond:
            self._state_seq += 1
            self._state_seen[state] = self._state_seq
            self._cond.notify_all()

    def state_mark(self) -> int:
        """Sequence number of the latest active state change.

        Pass it as ``since`` to a wait so that states entered after this
        point count even if they have already been left again.
        """
        with self._cond:
            return self._state_seq

    def wake(self) -> None:
        """Wake blocked waiters so they re-check their cancel event."""
        self._notify_waiters()

    def _wait_until(self, predicate: Callable[[], bool], cancel: threading.Event | None) -> None:
        with self._cond:
            while not predicate():
                if cancel is not None and cancel.is_set():
                    raise ProbeAborted("Wait cancelled")
                self._cond.wait()

    def wait_for_active_state(
        self,
        target: str,
        cancel: threading.Event | None = None,
        since: int | None = None,
    ) -> int:
        """Block until the machine is in ``target`` or entered it after ``since``.

        Returns:
            Sequence number of the change into ``target``
        """
        if since is None:
            since = self.state_mark()

        def _reached() -> bool:
            return self.state.active_state == target or self._state_seen.get(target, -1) > since

        logger.debug(f"Waiting for active state '{target}'")
        self._wait_until(_reached, cancel)
        with self._cond:
            return self._state_seen.get(target, self._state_seq)

    def wait_for_planner(self, blocks: int | None = None, cancel: threading.Event | None = None) -> None:
        """Wait until at least ``blocks`` planner blocks are free."""
        required = self.planner_blocks if blocks is None else int(blocks)

        def _ready() -> bool:
            planner = self.state.state.planner
            return planner is not None and planner >= required

        logger.debug(f"Waiting for {required} free planner blocks")
        self._wait_until(_ready, cancel)

    def send_and_wait_ok(self, code: str, cancel: threading.Event | None = None) -> None:
        """Send ``code`` and block until the next literal ``ok`` arrives."""
        with self._cond:
            start = self._ok_count
        self.gcode(code)
        self._wait_until(lambda: self._ok_count > start, cancel)

    def wait(self, cancel: threading.Event | None = None, since: int | None = None) -> None:
        """Block until queued motion has run and the planner is empty.

        ``since`` is a :meth:`state_mark` taken before the motion was queued.
        """
        run_seq = self.wait_for_active_state(STATE_RUN, cancel, since)
        self.wait_for_active_state(STATE_IDLE, cancel, run_seq)
        self.wait_for_planner(cancel=cancel)
        self.send_and_wait_ok(SYNC_COMMAND, cancel)
