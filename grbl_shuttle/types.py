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

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, TypeAlias

AfterId: TypeAlias = int
Position: TypeAlias = tuple[float, float, float]
RawSnapshot: TypeAlias = Mapping[str, Any]
RawSettings: TypeAlias = Mapping[str, Any]
Listener: TypeAlias = Callable[..., Any]


class SchedulerLike(Protocol):
    """Single-owner callback scheduler (Tk ``after`` style)."""

    def after(self, ms: int, func: Callable[[], Any]) -> AfterId: ...
    def after_cancel(self, after_id: AfterId) -> None: ...
    def call_soon(self, func: Callable[..., Any], *args: Any) -> None: ...


class TransportLike(Protocol):
    """Outbound side of the connection to the firmware.

    Every call is fire-and-forget; ordering of calls is the only guarantee.
    """

    def is_connected(self) -> bool: ...
    def send_command(self, text: str) -> None: ...
    def send_jog_cancel(self) -> None: ...
    def send_feedhold(self) -> None: ...
    def send_reset(self) -> None: ...


class TransportListener(Protocol):
    """Inbound side of the connection, implemented by the machine facade."""

    def settings_report(self, raw: RawSettings) -> None: ...
    def status_report(self, raw: RawSnapshot) -> None: ...
    def connection_closed(self) -> None: ...
    def command_echo(self, text: str) -> None: ...
    def command_ack(self, text: str) -> None: ...
    def alarm_report(self, text: str) -> None: ...
