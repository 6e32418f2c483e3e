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

"""Jog distance calculations for shuttle jogging.

Every shuttle tick sends one relative jog sized so the machine is still
moving when the next tick arrives ``latency`` seconds later. Feeds come in
mm/min from the ladder and are converted to mm/s here.
"""

from __future__ import annotations

from .feed_profile import FeedProfile
from .utils.constants import DISTANCE_DECIMALS, STOPPING_BONUS_DEFAULT


class MotionCalculator:
    def __init__(self, profile: FeedProfile, *, stopping_bonus: float = STOPPING_BONUS_DEFAULT):
        self.profile = profile
        self.stopping_bonus = float(stopping_bonus)

    @property
    def latency(self) -> float:
        return self.profile.latency

    @property
    def interval_ms(self) -> int:
        """Shuttle repeat cadence in milliseconds."""
        return int(round(self.latency * 1000))

    def accel_distance(self, axis: str, f1: float, f2: float) -> tuple[float, float]:
        """Distance (mm) and time (s) to change between two feeds (mm/s).

        The change is always treated as an acceleration from the lower to
        the higher feed, so the result does not depend on argument order.
        """
        accel = self.profile.acceleration(axis)
        lo, hi = min(f1, f2), max(f1, f2)
        if hi == lo or accel <= 0:
            return 0.0, 0.0
        time = (hi - lo) / accel
        distance = (lo * time) + (0.5 * accel * time * time)
        return distance, time

    def start_distance(self, axis: str, step_target: int) -> float:
        """Advance added on the first tick of a shuttle session.

        The planner starts decelerating as soon as it sees the end of a jog;
        adding the full stopping distance up front (plus the stopping bonus
        at the target feed) keeps the cruise feed for the whole tick.
        """
        target = self.profile.feed(axis, step_target) / 60
        distance, _ = self.accel_distance(axis, target, 0)
        return distance + target * self.stopping_bonus

    def shuttle_distance(
        self,
        axis: str,
        step_current: int,
        step_target: int,
        *,
        start_bonus: bool | None = None,
    ) -> float:
        """Jog distance (mm, 3 decimals) for one shuttle tick.

        Args:
            axis: Axis being jogged
            step_current: Ladder index applied on the previous tick
            step_target: Ladder index requested now
            start_bonus: Force the start-of-session advance on or off;
                by default it applies when ``step_current`` is 0
        """
        f1 = self.profile.feed(axis, step_current) / 60
        f2 = self.profile.feed(axis, step_target) / 60
        distance = 0.0
        time = 0.0

        if start_bonus is None:
            start_bonus = step_current == 0
        if start_bonus:
            distance += self.start_distance(axis, step_target)

        if f1 != f2:
            d, t = self.accel_distance(axis, f1, f2)
            distance += d
            time += t
            # Bias the move so the next tick starts where it is expected to
            if f1 < f2:
                distance += (f2 - f1) * self.stopping_bonus
            else:
                distance -= (f1 - f2) * self.stopping_bonus

        if self.latency - time > 0:
            distance += f2 * (self.latency - time)

        return round(distance, DISTANCE_DECIMALS)
