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

"""Per-axis jog feed ladder derived from the machine settings.

For the jogging to feel responsive the latency between a jog cancel and the
machine standing still has to stay low. Grbl stops gracefully, so the time
it needs depends on the axis acceleration and the current feed. Capping the
jog feed at ``acceleration * latency * 60`` keeps that stop inside the
latency budget: an axis with 50 mm/s^2 and a 0.2 s latency jogs at no more
than 600 mm/min.
"""

from __future__ import annotations

import logging
from typing import Mapping

from .events import EventEmitter
from .settings_store import SettingsStore
from .utils.constants import (
    AXES,
    FEED_LADDER_FIXED,
    FEED_LADDER_SIZE,
    HARD_MAX_ACC,
    HARD_MAX_FEED,
    LATENCY_DEFAULT,
)
from .utils.validation import validate_axis

logger = logging.getLogger(__name__)


def build_ladder(max_usable: float) -> tuple[float, ...]:
    """Build the 8-step feed ladder for one axis.

    Indices 1-3 are the fixed rates capped by ``max_usable``; indices 4-7
    step linearly from index 3 to ``max_usable``. When ``max_usable`` is
    below the last fixed rate the fixed rates repeat and the tail is flat.
    """
    ladder = [0.0]
    ladder.extend(min(rate, max_usable) for rate in FEED_LADDER_FIXED)
    step = (max_usable - ladder[-1]) / (FEED_LADDER_SIZE - len(ladder))
    while len(ladder) < FEED_LADDER_SIZE:
        ladder.append(ladder[-1] + step)
    return tuple(ladder)


class FeedProfile(EventEmitter):
    """Feed ladders for X, Y and Z, rebuilt on every settings update.

    The acceleration used for each ladder is cached with it; distance
    calculations must use the same value the ladder was built from.
    """

    def __init__(
        self,
        settings: SettingsStore,
        *,
        latency: float = LATENCY_DEFAULT,
        hard_max_feed: Mapping[str, float] | None = None,
        hard_max_acc: Mapping[str, float] | None = None,
    ):
        super().__init__()
        self.settings = settings
        self.latency = float(latency)
        self.hard_max_feed = dict(hard_max_feed or HARD_MAX_FEED)
        self.hard_max_acc = dict(hard_max_acc or HARD_MAX_ACC)
        self._ladders: dict[str, tuple[float, ...]] = {}
        self._accel: dict[str, float] = {}
        self.recalculate()
        settings.on("updated", self.recalculate)

    def _max_usable_feed(self, axis: str) -> tuple[float, float]:
        feed = min(self.settings.max_feed(axis), self.hard_max_feed[axis])
        accel = min(self.settings.acceleration(axis), self.hard_max_acc[axis])
        return min(accel * self.latency * 60, feed), accel

    def recalculate(self) -> None:
        ladders: dict[str, tuple[float, ...]] = {}
        accel: dict[str, float] = {}
        for axis in AXES:
            max_usable, accel[axis] = self._max_usable_feed(axis)
            ladders[axis] = build_ladder(max_usable)
        self._ladders = ladders
        self._accel = accel
        logger.debug(f"Feed ladders: {ladders}")
        self.emit("updated")

    def ladder(self, axis: str) -> tuple[float, ...]:
        return self._ladders[validate_axis(axis)]

    def feed(self, axis: str, index: int) -> float:
        return self.ladder(axis)[index]

    def max_feed(self, axis: str) -> float:
        return self.ladder(axis)[-1]

    def acceleration(self, axis: str) -> float:
        return self._accel[validate_axis(axis)]
