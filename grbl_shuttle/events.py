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

"""Observer registration for per-kind notifications."""

from __future__ import annotations

import logging
import threading
from typing import Any

from .types import Listener

logger = logging.getLogger(__name__)


class EventEmitter:
    """Fan out named notifications to registered callbacks.

    Listeners are called synchronously, in registration order, on the
    emitting thread. A listener that raises is logged and skipped so the
    remaining listeners (and the emitter's own state update) still run.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, tuple[Listener, ...]] = {}
        self._listeners_lock = threading.Lock()

    def on(self, event: str, listener: Listener) -> Listener:
        with self._listeners_lock:
            current = self._listeners.get(event, ())
            self._listeners[event] = current + (listener,)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        with self._listeners_lock:
            current = self._listeners.get(event, ())
            self._listeners[event] = tuple(fn for fn in current if fn is not listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> None:
        for listener in self._listeners.get(event, ()):
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"Listener for '{event}' failed: {e}", exc_info=True)
