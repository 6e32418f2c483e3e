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

"""Cache of the firmware's machine settings ($$ report)."""

from __future__ import annotations

import logging
import math
from types import MappingProxyType
from typing import Any, Mapping

from .events import EventEmitter
from .types import RawSettings
from .utils.constants import GRBL_SETTING_NAMES
from .utils.validation import to_number, validate_axis

logger = logging.getLogger(__name__)

_AXIS_CODES = {
    "max_feed": {"X": "$110", "Y": "$111", "Z": "$112"},
    "accel": {"X": "$120", "Y": "$121", "Z": "$122"},
}


def _extract_settings(raw: RawSettings | None) -> dict[str, Any]:
    if not raw:
        return {}
    nested = raw.get("settings")
    if isinstance(nested, Mapping):
        return dict(nested)
    return dict(raw)


class SettingsStore(EventEmitter):
    """Holds the last settings report and emits ``"updated"`` on change.

    Values are kept as the firmware sent them and coerced to numbers on
    read; a missing, non-numeric, negative or infinite value reads as
    ``0.0`` which callers treat as "unconfigured".
    """

    def __init__(self) -> None:
        super().__init__()
        self._settings: Mapping[str, Any] = MappingProxyType({})

    def update(self, raw: RawSettings | None) -> None:
        """Replace the cached settings wholesale and notify listeners."""
        self._settings = MappingProxyType(_extract_settings(raw))
        logger.debug(f"Settings updated ({len(self._settings)} values)")
        self.emit("updated")

    def get(self, name: str) -> float:
        """Return a setting by Grbl code (``"$110"``) or alias (``"max_feed_x"``)."""
        code = GRBL_SETTING_NAMES.get(name, name)
        value = to_number(self._settings.get(code, 0))
        # Grbl settings are never negative; anything else is unconfigured
        if not math.isfinite(value) or value < 0:
            return 0.0
        return value

    def snapshot(self) -> Mapping[str, Any]:
        return self._settings

    def max_feed(self, axis: str) -> float:
        return self.get(_AXIS_CODES["max_feed"][validate_axis(axis)])

    def acceleration(self, axis: str) -> float:
        return self.get(_AXIS_CODES["accel"][validate_axis(axis)])

    @property
    def homing_enabled(self) -> bool:
        return bool(self.get("homing_enabled"))

    @property
    def homing_pulloff(self) -> float:
        return self.get("homing_pulloff")

    @property
    def travel_z(self) -> float:
        return self.get("travel_z")
