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

"""Single-owner event loop.

All component handlers (settings, state, jog, buttons) run on this loop's
thread so they never execute concurrently with themselves. Transport and
input threads hand work over with :meth:`Scheduler.call_soon`; repeat
timers use :meth:`Scheduler.after` / :meth:`Scheduler.after_cancel`.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from typing import Any, Callable

from .types import AfterId
from .utils.constants import THREAD_JOIN_TIMEOUT

logger = logging.getLogger(__name__)


class Scheduler:
    def __init__(self, name: str = "GrblShuttle-Loop"):
        self._name = name
        self._cond = threading.Condition()
        self._ready: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()
        self._timers: list[tuple[float, int]] = []
        self._callbacks: dict[int, Callable[[], Any]] = {}
        self._ids = itertools.count(1)
        self._stop_evt = threading.Event()
        self._thread: threading.Thread | None = None

    # ========================================================================
    # SCHEDULING
    # ========================================================================

    def call_soon(self, func: Callable[..., Any], *args: Any) -> None:
        with self._cond:
            self._ready.append((func, args))
            self._cond.notify()

    def after(self, ms: int, func: Callable[[], Any]) -> AfterId:
        after_id = next(self._ids)
        due = time.monotonic() + max(0, ms) / 1000.0
        with self._cond:
            self._callbacks[after_id] = func
            heapq.heappush(self._timers, (due, after_id))
            self._cond.notify()
        return after_id

    def after_cancel(self, after_id: AfterId) -> None:
        with self._cond:
            self._callbacks.pop(after_id, None)

    def pending_timers(self) -> int:
        with self._cond:
            return len(self._callbacks)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_evt.clear()
        self._thread = threading.Thread(target=self.run_forever, daemon=True, name=self._name)
        self._thread.start()

    def stop(self) -> None:
        self._stop_evt.set()
        with self._cond:
            self._cond.notify_all()
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=THREAD_JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning(f"Thread {thread.name} did not terminate")
        self._thread = None

    def run_forever(self) -> None:
        """Run callbacks and due timers until :meth:`stop` is called."""
        logger.debug("Scheduler loop started")
        try:
            while not self._stop_evt.is_set():
                job = self._next_job()
                if job is None:
                    continue
                func, args = job
                try:
                    func(*args)
                except Exception as e:
                    logger.error(f"Scheduled callback failed: {e}", exc_info=True)
        finally:
            logger.debug("Scheduler loop stopped")

    def _next_job(self) -> tuple[Callable[..., Any], tuple[Any, ...]] | None:
        with self._cond:
            while not self._stop_evt.is_set():
                if self._ready:
                    return self._ready.popleft()
                now = time.monotonic()
                while self._timers and self._timers[0][1] not in self._callbacks:
                    heapq.heappop(self._timers)
                if self._timers:
                    due, after_id = self._timers[0]
                    if due <= now:
                        heapq.heappop(self._timers)
                        func = self._callbacks.pop(after_id)
                        return func, ()
                    self._cond.wait(due - now)
                else:
                    self._cond.wait()
        return None
