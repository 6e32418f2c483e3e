"""Shared fixtures: a manual-clock scheduler and a recording transport."""

import itertools
import time

import pytest

from grbl_shuttle.machine import GrblMachine
from grbl_shuttle.settings_store import SettingsStore
from grbl_shuttle.state_tracker import StateTracker


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

GRBL_SETTINGS = {
    "$22": "1",
    "$27": "1.000",
    "$110": "1000.000",
    "$111": "1000.000",
    "$112": "500.000",
    "$120": "75.000",
    "$121": "75.000",
    "$122": "50.000",
    "$130": "300.000",
    "$131": "300.000",
    "$132": "80.000",
}


def snapshot(state, mpos=(0.0, 0.0, 0.0), wpos=None, planner=15, rx=128):
    """A CNCJS-shaped ``controller:state`` payload."""
    if not state:
        return {"status": {"activeState": ""}}
    wpos = wpos or mpos
    return {
        "status": {
            "activeState": state,
            "mpos": {"x": f"{mpos[0]:.3f}", "y": f"{mpos[1]:.3f}", "z": f"{mpos[2]:.3f}"},
            "wpos": {"x": f"{wpos[0]:.3f}", "y": f"{wpos[1]:.3f}", "z": f"{wpos[2]:.3f}"},
            "buf": {"planner": planner, "rx": rx},
        },
        "parserstate": {"modal": ["G0", "G54", "G17", "G21", "G90", "G94"]},
    }


def wait_for(predicate, timeout=2.0):
    """Poll ``predicate`` from the test thread until true or timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class FakeScheduler:
    """Scheduler with a manual clock; ``call_soon`` runs inline."""

    def __init__(self):
        self.now = 0
        self._timers = {}
        self._ids = itertools.count(1)

    def call_soon(self, func, *args):
        func(*args)

    def after(self, ms, func):
        after_id = next(self._ids)
        self._timers[after_id] = (self.now + ms, func)
        return after_id

    def after_cancel(self, after_id):
        self._timers.pop(after_id, None)

    def pending(self):
        return len(self._timers)

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = [(when, after_id) for after_id, (when, _) in self._timers.items() if when <= target]
            if not due:
                break
            when, after_id = min(due)
            self.now = when
            _, func = self._timers.pop(after_id)
            func()
        self.now = target


class RecordingTransport:
    """Transport double that records every outbound call in order."""

    def __init__(self, connected=True):
        self.connected = connected
        self.sent = []

    def is_connected(self):
        return self.connected

    def send_command(self, text):
        self.sent.append(text)

    def send_jog_cancel(self):
        self.sent.append("<jog-cancel>")

    def send_feedhold(self):
        self.sent.append("<feedhold>")

    def send_reset(self):
        self.sent.append("<reset>")

    @property
    def commands(self):
        return [line for line in self.sent if not line.startswith("<")]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def settings():
    store = SettingsStore()
    store.update({"settings": dict(GRBL_SETTINGS)})
    return store


@pytest.fixture
def tracker(settings):
    return StateTracker(settings)


@pytest.fixture
def machine(settings, tracker, transport):
    m = GrblMachine(settings, tracker)
    m.attach(transport)
    return m


@pytest.fixture
def config(tmp_path):
    from grbl_shuttle.utils.config import PendantConfig

    return PendantConfig(str(tmp_path / "grbl_shuttle.json"))
